"""compile, compile-changed-or-all and create-bundle commands."""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console

from tsgrammars.build.pipeline import BuildPipeline
from tsgrammars.config import BuildConfig
from tsgrammars.errors import GrammarToolError, PartialBuildFailure

logger = logging.getLogger("tsgrammars.cli.build")


def _pipeline(args, config: BuildConfig, console: Optional[Console]) -> BuildPipeline:
    return BuildPipeline(
        config,
        show_progress=not getattr(args, "no_progress", False),
        console=console,
    )


def _report_partial(exc: PartialBuildFailure) -> int:
    for line in exc.summary().splitlines():
        logger.error("%s", line)
    return 1


def compile_command(args, config: BuildConfig, console: Optional[Console] = None) -> int:
    """Compile the languages named on the command line.

    Args:
        args: Parsed arguments with ``languages``, ``clean`` and ``target``.
        config: Active build configuration.
        console: Console shared with the log handler.

    Returns:
        int: Exit code.
    """
    pipeline = _pipeline(args, config, console)
    languages = list(args.languages)
    try:
        if len(languages) == 1:
            artifacts = pipeline.compile(languages[0], clean=args.clean, target=args.target)
            for artifact in artifacts:
                logger.info("Built %s", artifact.file_path)
        else:
            report = pipeline.compile_many(languages, clean=args.clean, target=args.target)
            logger.info("Built %d artifact(s)", len(report.artifacts))
    except PartialBuildFailure as exc:
        return _report_partial(exc)
    except GrammarToolError as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("Build failed: %s", exc)
        return 1
    return 0


def compile_changed_command(
    args, config: BuildConfig, console: Optional[Console] = None
) -> int:
    """Compile languages changed since a base revision, else everything."""
    pipeline = _pipeline(args, config, console)
    try:
        result = pipeline.compile_changed_or_all(
            base=args.base, clean=args.clean, target=args.target
        )
    except PartialBuildFailure as exc:
        return _report_partial(exc)
    except GrammarToolError as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("Build failed: %s", exc)
        return 1

    if isinstance(result, Path):
        logger.info("Bundle created: %s", result)
    else:
        logger.info("Built %d artifact(s)", len(result.artifacts))
    return 0


def bundle_command(args, config: BuildConfig, console: Optional[Console] = None) -> int:
    """Compile every source and write the platform bundle."""
    pipeline = _pipeline(args, config, console)
    try:
        path = pipeline.create_bundle(clean=args.clean, target=args.target)
    except PartialBuildFailure as exc:
        return _report_partial(exc)
    except GrammarToolError as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("Build failed: %s", exc)
        return 1
    if console is not None:
        console.print(str(path))
    logger.info("Bundle created: %s", path)
    return 0
