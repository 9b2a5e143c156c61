"""Compute which languages changed relative to a base revision."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Set

from tsgrammars.config import BuildConfig
from tsgrammars.errors import SubprocessFailed
from tsgrammars.runtime.process import ProcessRunner

logger = logging.getLogger("tsgrammars.sources.changes")


def affected_languages(
    changed_paths: Iterable[str], sources_dir: str, queries_dir: str
) -> Set[str]:
    """Extract language identifiers from changed repository paths.

    A path contributes its second segment when its first segment is either
    the sources root or the queries root. For submodules git reports the
    submodule path itself (``sources/foo``), which counts as well.
    """
    roots = {sources_dir, queries_dir}
    languages: Set[str] = set()
    for raw in changed_paths:
        parts = raw.strip().replace("\\", "/").split("/")
        if len(parts) >= 2 and parts[0] in roots and parts[1]:
            languages.add(parts[1])
    return languages


class ChangeScopeDetector:
    """Diffs the project against a base revision to scope incremental builds."""

    def __init__(self, config: BuildConfig, runner: ProcessRunner) -> None:
        self.config = config
        self.runner = runner

    def changed_languages(self, base: Optional[str] = None) -> Set[str]:
        """Languages whose sources or queries differ from ``base``.

        An empty set means "build everything"; git failures also yield the
        empty set so that the caller falls back to a full build.
        """
        revision = base or self.config.default_base_revision
        try:
            output = self.runner.capture(
                "git", "diff", "--name-only", revision, cwd=self.config.root_dir
            )
        except SubprocessFailed as exc:
            logger.warning(
                "Could not diff against %s (%s); treating every language as changed",
                revision,
                exc,
            )
            return set()

        languages = affected_languages(
            output.splitlines(),
            self.config.sources_dir_name,
            self.config.queries_dir_name,
        )
        logger.info("Changed since %s: %s", revision, ", ".join(sorted(languages)) or "none")
        return languages


__all__ = ["ChangeScopeDetector", "affected_languages"]
