"""status, sync and copy-queries commands."""

import logging
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from tsgrammars.build.queries import QueryCopier
from tsgrammars.config import BuildConfig
from tsgrammars.errors import GrammarToolError
from tsgrammars.runtime.process import ProcessRunner
from tsgrammars.sources.tracker import SourceTracker

logger = logging.getLogger("tsgrammars.cli.sources")


def _tracker(config: BuildConfig) -> SourceTracker:
    return SourceTracker(config, ProcessRunner.from_config(config))


def _selected(args, tracker: SourceTracker) -> List[str]:
    languages = list(getattr(args, "languages", None) or [])
    return languages or tracker.languages()


def status_command(args, config: BuildConfig, console: Optional[Console] = None) -> int:
    """Print the checkout status of each requested language."""
    tracker = _tracker(config)
    table = Table(title="Grammar sources")
    table.add_column("Language")
    table.add_column("Status")
    table.add_column("Revision")

    failed = 0
    for language in _selected(args, tracker):
        try:
            checkout = tracker.inspect(language)
        except (GrammarToolError, OSError) as exc:
            logger.error("%s: %s", language, exc)
            failed += 1
            continue
        table.add_row(language, checkout.state.value, checkout.short_revision)

    (console or Console()).print(table)
    return 1 if failed else 0


def sync_command(args, config: BuildConfig) -> int:
    """Bring each requested checkout to its pinned revision."""
    tracker = _tracker(config)
    failed = 0
    for language in _selected(args, tracker):
        try:
            state = tracker.sync(language, force=args.force)
        except (GrammarToolError, OSError) as exc:
            logger.error("%s: %s", language, exc)
            failed += 1
            continue
        logger.info("%s: %s", language, state.value)
    return 1 if failed else 0


def copy_queries_command(args, config: BuildConfig) -> int:
    """Copy highlight queries from the checkouts into the queries directory."""
    tracker = _tracker(config)
    copier = QueryCopier(config, tracker)
    languages = list(getattr(args, "languages", None) or [])
    try:
        if languages:
            copied = [copier.copy_query(lang, force=args.force) for lang in languages]
            count = sum(1 for path in copied if path is not None)
        else:
            count = len(copier.copy_all())
    except OSError as exc:
        logger.error("Failed to copy queries: %s", exc)
        return 1
    logger.info("Copied %d query file(s)", count)
    return 0
