"""Compile grammar source checkouts into shared libraries.

For every grammar path of a language the compiler:

1. installs npm dependencies for languages whose grammar.js requires them,
2. regenerates ``src/parser.c`` with ``tree-sitter generate``,
3. compiles ``src/parser.c`` (plus the custom scanner, if any) straight
   into the artifact directory.

Toolchain selection, in priority order:

- explicit cross target: toolchain from CROSS_TARGETS;
- Linux host with a C++ scanner: static libgcc/libstdc++ build;
- otherwise: the native C/C++ compiler.

In each branch a ``scanner.cc`` selects C++ mode without exceptions, a
``scanner.c`` selects C mode, and no scanner means a parser-only compile.

Post-processing (``finalize``) runs once per compile pass and normalizes every
artifact in the directory, not only the ones just built.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from tsgrammars.build.platform import (
    ARTIFACT_SUFFIXES,
    LINUX,
    BuildTarget,
    native_suffix,
    resolve_target,
)
from tsgrammars.config import BuildConfig
from tsgrammars.errors import (
    GrammarToolError,
    SourceNotFound,
    SubprocessFailed,
)
from tsgrammars.runtime.process import ProcessRunner, require_tools
from tsgrammars.sources.resolver import GrammarPath, LanguageSource, SourceResolver
from tsgrammars.sources.tracker import SourceTracker

logger = logging.getLogger("tsgrammars.build.compiler")

REQUIRED_TOOLS: Tuple[str, ...] = ("git", "tree-sitter")

# Grammars whose grammar.js imports npm packages (usually a base grammar).
LANGUAGES_WITH_DEPENDENCIES = frozenset(
    {
        "arduino",
        "astro",
        "commonlisp",
        "cpp",
        "cuda",
        "glsl",
        "hlsl",
        "ispc",
        "markdown",
        "ocaml",
        "typescript",
        "wgsl_bevy",
    }
)

_COMMON_FLAGS = ("-shared", "-fPIC", "-g", "-O2")
_CXX_FLAGS = ("-shared", "-fPIC", "-fno-exceptions", "-g", "-O2")
_LINUX_STATIC_FLAGS = (
    "-shared",
    "-fPIC",
    "-fno-exceptions",
    "-g",
    "-O2",
    "-static-libgcc",
    "-static-libstdc++",
)


@dataclass(frozen=True)
class CompiledArtifact:
    """A shared library produced for one grammar."""

    language: str
    file_path: Path

    @property
    def platform_suffix(self) -> str:
        return self.file_path.suffix


@dataclass(frozen=True)
class DependencyStep:
    """One npm invocation run before ``tree-sitter generate``.

    A best-effort step logs its failure and lets the build continue.
    """

    program: str
    args: Tuple[str, ...]
    best_effort: bool = False


def normalized_artifact_name(name: str, apple: bool) -> str:
    """Lowercase-hyphenated artifact name; ``.so`` becomes ``.dylib`` on Apple."""
    path = Path(name)
    suffix = path.suffix
    if apple and suffix == ".so":
        suffix = ".dylib"
    return path.stem.replace("_", "-").lower() + suffix


def _declared_dependencies(package_json: Path) -> List[str]:
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s: %s", package_json, exc)
        return []
    names: List[str] = []
    for section in ("dependencies", "devDependencies"):
        block = data.get(section) if isinstance(data, dict) else None
        if isinstance(block, dict):
            names.extend(name for name in block if name not in names)
    return names


class GrammarCompiler:
    """Dispatches compilation of grammar checkouts for a host or cross target."""

    def __init__(
        self,
        config: BuildConfig,
        runner: ProcessRunner,
        resolver: Optional[SourceResolver] = None,
        tracker: Optional[SourceTracker] = None,
        machine: Optional[str] = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.tracker = tracker or SourceTracker(config, runner)
        self.resolver = resolver or SourceResolver(config, runner, self.tracker)
        self._machine = machine

    def preflight(self) -> None:
        """Raise ToolNotFound unless git and the tree-sitter CLI are on PATH."""
        require_tools(REQUIRED_TOOLS)

    def resolve_target(self, target: Optional[str]) -> BuildTarget:
        return resolve_target(target, self.config.host_os, self._machine)

    def dependency_steps(self, package_dir: Path) -> List[DependencyStep]:
        steps = [
            DependencyStep("npm", ("install", "--no-progress", "--no-save", name), True)
            for name in _declared_dependencies(package_dir / "package.json")
        ]
        steps.append(DependencyStep("npm", ("install", "--no-progress"), True))
        return steps

    def install_dependencies(self, source: LanguageSource, grammar_dir: Path) -> None:
        package_dir = grammar_dir
        while not (package_dir / "package.json").is_file() and package_dir != source.checkout:
            package_dir = package_dir.parent
        logger.info("Installing npm dependencies for %s in %s", source.language, package_dir)
        for step in self.dependency_steps(package_dir):
            try:
                self.runner.run(step.program, *step.args, cwd=package_dir)
            except SubprocessFailed as exc:
                if not step.best_effort:
                    raise
                logger.warning("Ignoring failed dependency step for %s: %s", source.language, exc)

    def compile_command(
        self, grammar_dir: Path, output: Path, target: BuildTarget
    ) -> Tuple[str, List[str]]:
        """Select the compiler and arguments for one grammar directory.

        Paths inside the returned arguments are relative to ``grammar_dir``,
        which is the working directory of the compile.
        """
        src = grammar_dir / "src"
        has_cxx_scanner = (src / "scanner.cc").is_file()
        has_c_scanner = (src / "scanner.c").is_file()
        out = str(output)

        toolchain = target.cross_toolchain
        if toolchain is not None:
            extra: Sequence[str] = toolchain.target_flags()
            c_compiler, cxx_compiler = toolchain.c_compiler, toolchain.cxx_compiler
        elif self.config.host_os == LINUX and has_cxx_scanner:
            return self.config.linux_cxx_compiler, [
                *_LINUX_STATIC_FLAGS,
                "-I",
                "src",
                "src/scanner.cc",
                "-xc",
                "src/parser.c",
                "-o",
                out,
            ]
        else:
            extra = ()
            c_compiler, cxx_compiler = self.config.c_compiler, self.config.cxx_compiler

        if has_cxx_scanner:
            return cxx_compiler, [
                *_CXX_FLAGS,
                "-I",
                "src",
                "src/scanner.cc",
                "-xc",
                "src/parser.c",
                "-o",
                out,
                *extra,
            ]
        if has_c_scanner:
            return c_compiler, [
                *_COMMON_FLAGS,
                "-I",
                "src",
                "src/scanner.c",
                "src/parser.c",
                "-o",
                out,
                *extra,
            ]
        return c_compiler, [*_COMMON_FLAGS, "-I", "src", "src/parser.c", "-o", out, *extra]

    def artifact_path(self, grammar: GrammarPath, target: BuildTarget) -> Path:
        if target.cross_toolchain is not None:
            suffix = target.cross_toolchain.suffix
        else:
            suffix = native_suffix(target.operating_system)
        return self.config.artifact_root / f"{grammar.output_name}{suffix}"

    def compile_grammar(
        self, source: LanguageSource, grammar: GrammarPath, target: BuildTarget
    ) -> CompiledArtifact:
        grammar_dir = source.grammar_dir(grammar)
        if not grammar_dir.is_dir():
            raise SourceNotFound(grammar.output_name, grammar_dir)

        if source.language in LANGUAGES_WITH_DEPENDENCIES:
            self.install_dependencies(source, grammar_dir)

        logger.info("Generating parser for %s in %s", grammar.output_name, grammar_dir)
        self.runner.run("tree-sitter", "generate", cwd=grammar_dir)

        output = self.artifact_path(grammar, target)
        output.parent.mkdir(parents=True, exist_ok=True)
        program, args = self.compile_command(grammar_dir, output, target)
        logger.info("Compiling %s -> %s", grammar.output_name, output.name)
        self.runner.run(program, *args, cwd=grammar_dir)
        return CompiledArtifact(grammar.output_name, output)

    def compile_language(
        self, language: str, target: BuildTarget, clean: bool = False
    ) -> List[CompiledArtifact]:
        """Compile every grammar path of ``language`` without post-processing.

        Raises:
            SourceNotFound: When the language has no checkout.
            SubprocessFailed: When a generate or compile command fails.
        """
        source = self.resolver.resolve(language)
        if source is None:
            raise SourceNotFound(language, self.config.source_path(language))

        logger.info(
            "Compiling %s (revision %s) for %s",
            language,
            source.revision or "unknown",
            target.architecture_triple,
        )
        artifacts: List[CompiledArtifact] = []
        try:
            for grammar in source.grammar_paths:
                artifacts.append(self.compile_grammar(source, grammar, target))
        except GrammarToolError:
            if clean:
                self._clean_after_failure(language)
            raise
        if clean:
            self.tracker.reset(language)
        return artifacts

    def _clean_after_failure(self, language: str) -> None:
        try:
            self.tracker.reset(language)
        except GrammarToolError as exc:
            logger.error("Could not clean %s after a failed build: %s", language, exc)

    def finalize(self, target: BuildTarget) -> Dict[Path, Path]:
        """Normalize every artifact name in the artifact directory.

        Returns:
            Mapping from each artifact's previous path to its final path.
        """
        root = self.config.artifact_root
        renamed: Dict[Path, Path] = {}
        if not root.is_dir():
            return renamed
        for path in sorted(root.iterdir()):
            if not path.is_file() or path.suffix not in ARTIFACT_SUFFIXES:
                continue
            final = path.with_name(normalized_artifact_name(path.name, target.is_apple))
            if final != path:
                logger.debug("Renaming %s -> %s", path.name, final.name)
                path.replace(final)
            renamed[path] = final
        return renamed

    def compile(
        self, language: str, clean: bool = False, target: Optional[str] = None
    ) -> List[CompiledArtifact]:
        """Compile one language end to end and return its final artifacts.

        Raises:
            UnsupportedTarget: Before any work when ``target`` is unmapped.
            ToolNotFound: Before any work when git or tree-sitter is missing.
        """
        build_target = self.resolve_target(target)
        self.preflight()
        artifacts = self.compile_language(language, build_target, clean=clean)
        renamed = self.finalize(build_target)
        return [
            CompiledArtifact(a.language, renamed.get(a.file_path, a.file_path))
            for a in artifacts
        ]


__all__ = [
    "CompiledArtifact",
    "DependencyStep",
    "GrammarCompiler",
    "LANGUAGES_WITH_DEPENDENCIES",
    "REQUIRED_TOOLS",
    "normalized_artifact_name",
]
