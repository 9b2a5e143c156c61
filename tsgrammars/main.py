"""Main CLI entry point for tsgrammars.

Provides commands: compile, compile-changed-or-all, create-bundle, install,
install-latest, status, sync, copy-queries
"""

import argparse
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from tsgrammars.cli.build import bundle_command, compile_changed_command, compile_command
from tsgrammars.cli.install import install_command, install_latest_command
from tsgrammars.cli.sources import copy_queries_command, status_command, sync_command
from tsgrammars.runtime.config_loader import load_build_config

logger = logging.getLogger("tsgrammars.cli")


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Setup logging configuration with Rich integration.

    Args:
        verbose: Enable verbose logging.
        console: Rich Console instance for coordinated output (optional).
    """
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    # Share the console with the progress display so bars and logs interleave
    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        log_time_format="[%H:%M:%S]",
    )

    logging.basicConfig(
        level=level,
        format="[%(name)s] [%(levelname)s] %(message)s",
        handlers=[handler],
        force=True,
    )


def _add_build_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--clean",
        action="store_true",
        help="Reset each source checkout after compiling it",
    )
    parser.add_argument(
        "--target",
        help=(
            "Cross-compilation target triple, e.g. aarch64-apple-darwin. "
            "Defaults to the host platform."
        ),
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the progress display",
    )


def _add_install_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--platform",
        help="Bundle platform triple to install (defaults to the host's)",
    )
    parser.add_argument(
        "--skip-if-current",
        action="store_true",
        help="Do nothing when the requested version is already installed",
    )
    parser.add_argument(
        "--keep-archive",
        action="store_true",
        help="Keep the downloaded bundle archive after extraction",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tsgrammars",
        description="Build, bundle and install tree-sitter grammars",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-c",
        "--config",
        help=(
            "Optional configuration. Can be a path to a TOML/JSON file or an "
            "inline TOML/JSON string. When omitted, built-in defaults are used."
        ),
    )
    parser.add_argument(
        "--root",
        help="Project root holding .gitmodules and the sources directory (default: cwd)",
    )
    parser.add_argument(
        "--artifact-dir",
        help="Directory for compiled grammars (default: <root>/bin)",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        help="Number of languages compiled concurrently (default: 1)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    compile_parser = subparsers.add_parser(
        "compile",
        help="Compile one or more languages into the artifact directory",
    )
    compile_parser.add_argument("languages", nargs="+", help="Language identifiers")
    _add_build_options(compile_parser)

    changed_parser = subparsers.add_parser(
        "compile-changed-or-all",
        help="Compile languages changed since a base revision, or build the full bundle",
    )
    changed_parser.add_argument(
        "--base",
        help="Base revision to diff against (default: origin/master)",
    )
    _add_build_options(changed_parser)

    bundle_parser = subparsers.add_parser(
        "create-bundle",
        help="Compile every source and write the platform bundle",
    )
    _add_build_options(bundle_parser)

    install_parser = subparsers.add_parser(
        "install",
        help="Download and install a pre-built grammar bundle",
    )
    install_parser.add_argument(
        "--version",
        help="Bundle version (defaults to the configured bundle version)",
    )
    _add_install_options(install_parser)

    latest_parser = subparsers.add_parser(
        "install-latest",
        help="Download and install the newest published grammar bundle",
    )
    _add_install_options(latest_parser)

    status_parser = subparsers.add_parser(
        "status",
        help="Show the checkout status of grammar sources",
    )
    status_parser.add_argument("languages", nargs="*", help="Languages (default: all)")

    sync_parser = subparsers.add_parser(
        "sync",
        help="Bring grammar sources to their pinned revisions",
    )
    sync_parser.add_argument("languages", nargs="*", help="Languages (default: all)")
    sync_parser.add_argument(
        "--force",
        action="store_true",
        help="Discard local modifications in modified checkouts",
    )

    queries_parser = subparsers.add_parser(
        "copy-queries",
        help="Copy highlight queries from the sources into the queries directory",
    )
    queries_parser.add_argument("languages", nargs="*", help="Languages (default: all)")
    queries_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing query files (always on when copying all)",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        int: Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    console = Console(stderr=True)
    setup_logging(args.verbose, console)

    if not args.command:
        parser.print_help()
        return 1

    overrides = {
        "root_dir": args.root,
        "artifact_dir": args.artifact_dir,
        "max_workers": args.workers,
    }
    try:
        config = load_build_config(args.config, overrides=overrides)
    except (OSError, ValueError, ValidationError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    if args.command == "compile":
        return compile_command(args, config, console)
    elif args.command == "compile-changed-or-all":
        return compile_changed_command(args, config, console)
    elif args.command == "create-bundle":
        return bundle_command(args, config, console)
    elif args.command == "install":
        return install_command(args, config)
    elif args.command == "install-latest":
        return install_latest_command(args, config)
    elif args.command == "status":
        return status_command(args, config, console)
    elif args.command == "sync":
        return sync_command(args, config)
    elif args.command == "copy-queries":
        return copy_queries_command(args, config)
    else:
        parser.print_help()
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
