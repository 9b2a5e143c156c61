"""Shared fixtures: a recording process runner and a project skeleton."""

from __future__ import annotations

import io
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from tsgrammars.config import BuildConfig
from tsgrammars.errors import SubprocessFailed
from tsgrammars.runtime.process import ProcessRunner

Action = Callable[[Tuple[str, ...], Optional[Path]], None]

COMPILERS = {
    "cc",
    "c++",
    "g++",
    "clang",
    "clang++",
    "aarch64-linux-gnu-gcc",
    "aarch64-linux-gnu-g++",
    "x86_64-w64-mingw32-gcc",
    "x86_64-w64-mingw32-g++",
}


class FakeRunner:
    """Records every command instead of executing it.

    Responses are registered per program and argument prefix; the most
    recently registered match wins. ``tar`` is delegated to a real
    ProcessRunner so bundles can be inspected. Compiler invocations create
    the ``-o`` output file unless a response says otherwise.
    """

    def __init__(self, artifact_dir: Path) -> None:
        self.artifact_dir = Path(artifact_dir)
        self.calls: List[Tuple[str, Tuple[str, ...], Optional[Path]]] = []
        self._responses: List[Tuple[str, Tuple[str, ...], str, int, Optional[Action]]] = []
        self._lock = threading.Lock()
        self._real = ProcessRunner(artifact_dir)

    def on(
        self,
        program: str,
        *prefix: str,
        output: str = "",
        exit_code: int = 0,
        action: Optional[Action] = None,
    ) -> None:
        self._responses.insert(0, (program, tuple(prefix), output, exit_code, action))

    def commands(self, program: Optional[str] = None) -> List[Tuple[str, ...]]:
        return [
            (prog, *args)
            for prog, args, _ in self.calls
            if program is None or prog == program
        ]

    def _match(self, program: str, args: Tuple[str, ...]):
        for prog, prefix, output, exit_code, action in self._responses:
            if prog == program and args[: len(prefix)] == prefix:
                return output, exit_code, action
        return None

    def run(self, program: str, *args: str, cwd: Optional[Path] = None, sink=None) -> None:
        args = tuple(str(a) for a in args)
        with self._lock:
            self.calls.append((program, args, cwd))

        if program == "tar":
            self._real.run(program, *args, cwd=cwd, sink=sink)
            return

        response = self._match(program, args)
        if response is None:
            if program in COMPILERS:
                touch_output(args, cwd)
            return

        output, exit_code, action = response
        if action is not None:
            action(args, cwd)
        elif program in COMPILERS and exit_code == 0:
            touch_output(args, cwd)
        if sink is not None and output:
            sink.write(output)
            sink.flush()
        if exit_code != 0:
            raise SubprocessFailed(program, args, exit_code, output)

    def capture(self, program: str, *args: str, cwd: Optional[Path] = None) -> str:
        sink = io.StringIO()
        self.run(program, *args, cwd=cwd, sink=sink)
        return sink.getvalue()


def touch_output(args: Sequence[str], cwd: Optional[Path]) -> None:
    if "-o" not in args:
        return
    out = Path(args[list(args).index("-o") + 1])
    if not out.is_absolute() and cwd is not None:
        out = cwd / out
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(b"\x7fELF fake")


def submodule_line(code: str, language: str, revision: str = "0123456789abcdef") -> str:
    return f"{code}{revision} sources/{language} (heads/master)\n"


def make_grammar(checkout: Path, scanner: Optional[str] = None) -> Path:
    """Create a minimal grammar directory with ``src/parser.c``."""
    src = checkout / "src"
    src.mkdir(parents=True, exist_ok=True)
    (src / "parser.c").write_text("/* parser */\n", encoding="utf-8")
    if scanner:
        (src / scanner).write_text("/* scanner */\n", encoding="utf-8")
    return checkout


@pytest.fixture
def config(tmp_path: Path) -> BuildConfig:
    return BuildConfig(root_dir=tmp_path, host_os="linux", command_timeout=60)


@pytest.fixture
def runner(config: BuildConfig) -> FakeRunner:
    fake = FakeRunner(config.artifact_root)
    fake.on("git", "submodule", "status", output="")
    return fake


@pytest.fixture
def no_preflight(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip the PATH check for git and tree-sitter."""
    monkeypatch.setattr("tsgrammars.build.compiler.require_tools", lambda tools: None)


@pytest.fixture
def languages(config: BuildConfig) -> Dict[str, Path]:
    """Two checked-out single-grammar languages: foo (C scanner) and bar."""
    sources = config.sources_root
    return {
        "foo": make_grammar(sources / "foo", scanner="scanner.c"),
        "bar": make_grammar(sources / "bar"),
    }
