"""Copy per-language query files out of the source checkouts.

``<sources>/<lang>/queries/<query_file>`` is copied to
``<queries>/<lang>/<query_file>``. Grammar repositories without the file are
skipped.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from tsgrammars.config import BuildConfig
from tsgrammars.sources.tracker import SourceTracker

logger = logging.getLogger("tsgrammars.build.queries")


class QueryCopier:
    def __init__(self, config: BuildConfig, tracker: SourceTracker) -> None:
        self.config = config
        self.tracker = tracker

    def source_query(self, language: str) -> Path:
        return self.config.source_path(language) / "queries" / self.config.query_file_name

    def destination(self, language: str) -> Path:
        return self.config.queries_root / language / self.config.query_file_name

    def copy_query(self, language: str, force: bool = False) -> Optional[Path]:
        """Copy the query file for ``language``.

        Returns:
            Destination path when a file was copied, otherwise None.
        """
        src = self.source_query(language)
        if not src.is_file():
            logger.debug("No %s in %s", self.config.query_file_name, src.parent)
            return None

        dest = self.destination(language)
        if dest.exists() and not force:
            logger.debug("Keeping existing %s", dest)
            return None

        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)
        logger.info("Copied %s queries to %s", language, dest)
        return dest

    def copy_all(self) -> List[Path]:
        """Refresh the query file of every known source, overwriting."""
        copied: List[Path] = []
        for language, _ in self.tracker.sources():
            dest = self.copy_query(language, force=True)
            if dest is not None:
                copied.append(dest)
        return copied


__all__ = ["QueryCopier"]
