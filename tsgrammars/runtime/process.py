"""Synchronous execution of external programs.

Every git, tree-sitter, compiler, npm and tar invocation in tsgrammars goes
through ProcessRunner. The runner exports the artifact directory to the
child, blocks until it exits, and turns a non-zero exit into
SubprocessFailed.

Output handling:
- With a sink, stdout and stderr are merged, fully drained and written to
  the sink (then flushed) before ``run`` returns, so the caller can read the
  sink right away.
- Without a sink, the child inherits the caller's stdout/stderr.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Mapping, Optional, Sequence, TextIO

from tsgrammars.errors import SubprocessFailed, SubprocessTimeout, ToolNotFound

logger = logging.getLogger("tsgrammars.runtime.process")


@contextmanager
def output_sink() -> Iterator[io.StringIO]:
    """Scoped in-memory sink, closed on every exit path."""
    buffer = io.StringIO()
    try:
        yield buffer
    finally:
        buffer.close()


def require_tools(tools: Sequence[str]) -> None:
    """Fail fast when any of ``tools`` is missing from PATH.

    Raises:
        ToolNotFound: Listing every missing executable.
    """
    missing = [tool for tool in tools if shutil.which(tool) is None]
    if missing:
        raise ToolNotFound(missing)


class ProcessRunner:
    """Runs external programs with the artifact directory in their environment.

    Attributes:
        artifact_dir: Value exported through ``env_var``.
        env_var: Name of the exported environment variable.
        timeout: Per-command timeout in seconds, None for no limit.
    """

    def __init__(
        self,
        artifact_dir: Path,
        env_var: str = "TREE_SITTER_DIR",
        timeout: Optional[float] = None,
        extra_env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.artifact_dir = Path(artifact_dir)
        self.env_var = env_var
        self.timeout = timeout
        self._extra_env = dict(extra_env or {})

    @classmethod
    def from_config(cls, config) -> "ProcessRunner":
        return cls(
            config.artifact_root,
            env_var=config.artifact_dir_env,
            timeout=config.command_timeout,
        )

    def _environment(self) -> dict:
        env = os.environ.copy()
        env.update(self._extra_env)
        env[self.env_var] = str(self.artifact_dir)
        return env

    def run(
        self,
        program: str,
        *args: str,
        cwd: Optional[Path] = None,
        sink: Optional[TextIO] = None,
    ) -> None:
        """Run ``program`` with ``args`` and wait for it to finish.

        Args:
            program: Executable name or path.
            *args: Command-line arguments.
            cwd: Working directory; defaults to the current one.
            sink: Text stream receiving merged stdout/stderr.

        Raises:
            SubprocessFailed: On a non-zero exit status or a missing executable.
            SubprocessTimeout: When the command exceeds ``timeout``.
        """
        cmd = [program, *[str(a) for a in args]]
        logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd or Path.cwd())

        capture = sink is not None
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd is not None else None,
                env=self._environment(),
                stdout=subprocess.PIPE if capture else None,
                stderr=subprocess.STDOUT if capture else None,
                text=capture,
                encoding="utf-8" if capture else None,
                errors="replace" if capture else None,
            )
        except FileNotFoundError as exc:
            raise SubprocessFailed(
                program, cmd[1:], None, message=f"Executable not found: {program}"
            ) from exc

        with proc:
            try:
                output, _ = proc.communicate(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                proc.kill()
                output, _ = proc.communicate()
                if sink is not None and output:
                    sink.write(output)
                    sink.flush()
                logger.error("Command timed out after %ss: %s", self.timeout, " ".join(cmd))
                raise SubprocessTimeout(program, cmd[1:], self.timeout, output or "")

        if sink is not None and output:
            sink.write(output)
            sink.flush()

        if proc.returncode != 0:
            logger.debug("Command exited with %d: %s", proc.returncode, " ".join(cmd))
            raise SubprocessFailed(program, cmd[1:], proc.returncode, output or "")

    def capture(self, program: str, *args: str, cwd: Optional[Path] = None) -> str:
        """Run a command and return its merged output.

        Raises:
            SubprocessFailed: On a non-zero exit status.
        """
        with output_sink() as sink:
            self.run(program, *args, cwd=cwd, sink=sink)
            return sink.getvalue()


__all__ = ["ProcessRunner", "output_sink", "require_tools"]
