"""Source repository tracking for grammar checkouts.

Each language's upstream source is a git submodule under the sources root
(``<root>/<sources_dir_name>/<language>``). The tracker reads submodule
state, initializes or refreshes a checkout to its pinned commit, and
enumerates the checked-out language universe.

Status is derived from the first character of ``git submodule status``:

    '-'  not initialized
    '+'  checked-out commit differs from the recorded one
    'U'  merge conflicts
    ' '  in sync with the recorded commit
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from tsgrammars.config import BuildConfig
from tsgrammars.errors import SourceControlError, SubprocessFailed, UnresolvedConflict
from tsgrammars.runtime.process import ProcessRunner

logger = logging.getLogger("tsgrammars.sources.tracker")


class RepositoryStatus(Enum):
    """Checkout state relative to the pinned revision."""

    UNINITIALIZED = "uninitialized"
    MODIFIED = "modified"
    CONFLICTED = "conflicted"
    SYNCHRONIZED = "synchronized"
    UNKNOWN = "unknown"


_STATUS_CODES = {
    "-": RepositoryStatus.UNINITIALIZED,
    "+": RepositoryStatus.MODIFIED,
    "U": RepositoryStatus.CONFLICTED,
    " ": RepositoryStatus.SYNCHRONIZED,
}


@dataclass(frozen=True)
class CheckoutStatus:
    """Parsed ``git submodule status`` line for one language.

    Attributes:
        state: Derived repository status.
        revision: Full commit hash recorded for (or checked out in) the submodule.
        raw_code: The status character as reported by git; kept for UNKNOWN.
        path: Submodule path relative to the project root.
    """

    state: RepositoryStatus
    revision: str
    raw_code: str
    path: str

    @property
    def short_revision(self) -> str:
        return self.revision[:7]


def parse_submodule_status(line: str) -> Optional[CheckoutStatus]:
    """Parse one line of ``git submodule status`` output.

    Returns:
        CheckoutStatus, or None when the line is empty or malformed.
    """
    if not line.strip():
        return None
    raw_code, rest = line[0], line[1:]
    parts = rest.split()
    if len(parts) < 2:
        return None
    revision, path = parts[0], parts[1]
    state = _STATUS_CODES.get(raw_code, RepositoryStatus.UNKNOWN)
    return CheckoutStatus(state=state, revision=revision, raw_code=raw_code, path=path)


class SourceTracker:
    """Reads and synchronizes per-language source checkouts."""

    def __init__(self, config: BuildConfig, runner: ProcessRunner) -> None:
        self.config = config
        self.runner = runner

    def _submodule_path(self, language: str) -> str:
        return f"{self.config.sources_dir_name}/{language}"

    def _git(self, *args: str, cwd: Optional[Path] = None) -> str:
        try:
            return self.runner.capture("git", *args, cwd=cwd or self.config.root_dir)
        except SubprocessFailed as exc:
            logger.error("git %s failed: %s", " ".join(args), exc.output.strip() or exc)
            raise SourceControlError(
                f"git {' '.join(args)} failed with exit code {exc.exit_code}",
                exit_code=exc.exit_code,
            ) from exc

    def inspect(self, language: str) -> CheckoutStatus:
        """Return the parsed submodule status for ``language`` without mutating it.

        Raises:
            SourceControlError: When git fails or reports nothing for the path.
        """
        path = self._submodule_path(language)
        output = self._git("submodule", "status", "--", path)
        for line in output.splitlines():
            status = parse_submodule_status(line)
            if status is not None and status.path == path:
                return status
        raise SourceControlError(f"{path} is not a registered submodule")

    def status(self, language: str) -> RepositoryStatus:
        return self.inspect(language).state

    def sync(self, language: str, force: bool = False) -> RepositoryStatus:
        """Bring the checkout of ``language`` to its pinned revision.

        Args:
            language: Language identifier.
            force: Discard local modifications of a MODIFIED checkout.

        Returns:
            Status after the operation.

        Raises:
            UnresolvedConflict: When the checkout has merge conflicts.
            SourceControlError: When a git command fails.
        """
        status = self.inspect(language)
        path = self._submodule_path(language)

        if status.state is RepositoryStatus.CONFLICTED:
            raise UnresolvedConflict(f"{path} has unresolved merge conflicts")

        if status.state is RepositoryStatus.UNINITIALIZED:
            logger.info("Initializing %s at %s", path, status.short_revision)
            self._git("submodule", "update", "--init", "--checkout", "--", path)
        elif status.state is RepositoryStatus.MODIFIED:
            if not force:
                logger.warning(
                    "%s differs from its pinned revision; use force to reset it", path
                )
                return status.state
            logger.info("Discarding local changes in %s", path)
            checkout = self.config.root_dir / path
            self._git("reset", "--hard", "HEAD", cwd=checkout)
            self._git("clean", "-fd", cwd=checkout)
            self._git("submodule", "update", "--init", "--checkout", "--force", "--", path)
        elif status.state is RepositoryStatus.SYNCHRONIZED:
            logger.debug("%s already synchronized", path)
            return status.state
        else:
            raise SourceControlError(
                f"{path} has unrecognized submodule status code {status.raw_code!r}"
            )

        return self.status(language)

    def reset(self, language: str) -> None:
        """Restore a checkout to a pristine copy of its pinned revision."""
        checkout = self.config.source_path(language)
        logger.info("Cleaning %s", checkout)
        self._git("reset", "--hard", "HEAD", cwd=checkout)
        self._git("clean", "-fdx", cwd=checkout)

    def sources(self) -> Iterator[Tuple[str, Path]]:
        """Yield ``(language, checkout_path)`` for every source directory."""
        root = self.config.sources_root
        if not root.is_dir():
            logger.warning("Sources root does not exist: %s", root)
            return
        for entry in sorted(root.iterdir()):
            if entry.is_dir():
                yield entry.name, entry

    def languages(self) -> List[str]:
        return [language for language, _ in self.sources()]

    def for_each_source(self, fn: Callable[[str, Path], None]) -> None:
        for language, path in self.sources():
            fn(language, path)


__all__ = [
    "CheckoutStatus",
    "RepositoryStatus",
    "SourceTracker",
    "parse_submodule_status",
]
