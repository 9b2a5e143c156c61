"""Exception hierarchy for the grammar build and distribution pipeline.

Single-language operations raise these directly. Bulk operations catch the
per-language ones and report them together through PartialBuildFailure.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple
from pathlib import Path


class GrammarToolError(Exception):
    """Base class for every error raised by tsgrammars."""

    pass


class ToolNotFound(GrammarToolError):
    """A required external executable is missing from PATH."""

    def __init__(self, tools: Sequence[str]) -> None:
        self.tools = list(tools)
        super().__init__(
            "Required tool(s) not found on PATH: " + ", ".join(self.tools)
        )


class SubprocessFailed(GrammarToolError):
    """An external command exited with a non-zero status.

    Attributes:
        program: Executable that was invoked.
        arguments: Arguments passed to the executable.
        exit_code: Exit status, or None when the process never exited normally.
        output: Captured output, when the caller supplied a sink.
    """

    def __init__(
        self,
        program: str,
        arguments: Sequence[str],
        exit_code: Optional[int],
        output: str = "",
        message: Optional[str] = None,
    ) -> None:
        self.program = program
        self.arguments = list(arguments)
        self.exit_code = exit_code
        self.output = output
        super().__init__(
            message
            or f"Command '{self.command_line}' failed with exit code {exit_code}"
        )

    @property
    def command_line(self) -> str:
        return " ".join([self.program, *self.arguments])


class SubprocessTimeout(SubprocessFailed):
    """An external command exceeded the configured timeout and was killed."""

    def __init__(
        self, program: str, arguments: Sequence[str], timeout: float, output: str = ""
    ) -> None:
        self.timeout = timeout
        command_line = " ".join([program, *arguments])
        super().__init__(
            program,
            arguments,
            None,
            output=output,
            message=f"Command '{command_line}' timed out after {timeout}s",
        )


class SourceControlError(GrammarToolError):
    """A git command against a source checkout failed."""

    def __init__(self, message: str, exit_code: Optional[int] = None) -> None:
        self.exit_code = exit_code
        super().__init__(message)


class UnresolvedConflict(SourceControlError):
    """The source checkout has merge conflicts that must be resolved by hand."""

    pass


class SourceNotFound(GrammarToolError):
    """No source checkout directory exists for the requested language."""

    def __init__(self, language: str, path: Path) -> None:
        self.language = language
        self.path = path
        super().__init__(f"No grammar source for '{language}' at {path}")


class UnsupportedPlatform(GrammarToolError):
    """The host OS/architecture has no bundle or toolchain mapping."""

    pass


class UnsupportedTarget(GrammarToolError):
    """A requested cross-compilation or bundle target has no mapping."""

    pass


class DownloadFailed(GrammarToolError):
    """Fetching a bundle failed due to a network error or HTTP status."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None) -> None:
        self.url = url
        self.status = status
        super().__init__(f"Failed to download {url}: {reason}")


class ReleaseMetadataError(GrammarToolError):
    """The release-metadata endpoint was unreachable or returned garbage."""

    pass


class PartialBuildFailure(GrammarToolError):
    """One or more languages failed during a multi-language build.

    Whatever could be built was still produced (and, for bundle creation,
    archived). ``failures`` keeps the order in which languages were attempted.
    """

    def __init__(
        self,
        failures: Sequence[Tuple[str, BaseException]],
        bundle_path: Optional[Path] = None,
    ) -> None:
        self.failures: List[Tuple[str, BaseException]] = list(failures)
        self.bundle_path = bundle_path
        super().__init__(self.summary())

    @property
    def languages(self) -> List[str]:
        return [language for language, _ in self.failures]

    def summary(self) -> str:
        """Render one line per failing language."""
        lines = [f"{len(self.failures)} language(s) failed to build:"]
        for language, exc in self.failures:
            lines.append(f"  - {language}: {exc}")
        if self.bundle_path is not None:
            lines.append(f"Bundle with the remaining grammars: {self.bundle_path}")
        return "\n".join(lines)


__all__ = [
    "GrammarToolError",
    "ToolNotFound",
    "SubprocessFailed",
    "SubprocessTimeout",
    "SourceControlError",
    "UnresolvedConflict",
    "SourceNotFound",
    "UnsupportedPlatform",
    "UnsupportedTarget",
    "DownloadFailed",
    "ReleaseMetadataError",
    "PartialBuildFailure",
]
