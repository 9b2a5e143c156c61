"""install and install-latest commands."""

import logging

from tsgrammars.config import BuildConfig
from tsgrammars.errors import GrammarToolError
from tsgrammars.install.installer import Installer

logger = logging.getLogger("tsgrammars.cli.install")


def install_command(args, config: BuildConfig) -> int:
    """Install a specific bundle version (the configured one by default).

    Args:
        args: Parsed arguments with ``version``, ``platform``, ``skip_if_current``
            and ``keep_archive``.
        config: Active build configuration.

    Returns:
        int: Exit code.
    """
    try:
        with Installer(config) as installer:
            installed = installer.install(
                version=args.version,
                platform=args.platform,
                skip_if_current=args.skip_if_current,
                keep_archive=args.keep_archive,
            )
    except GrammarToolError as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("Install failed: %s", exc)
        return 1
    if not installed:
        logger.info("Nothing to do")
    return 0


def install_latest_command(args, config: BuildConfig) -> int:
    """Install the newest published bundle."""
    try:
        with Installer(config) as installer:
            installer.install_latest(
                platform=args.platform,
                skip_if_current=args.skip_if_current,
                keep_archive=args.keep_archive,
            )
    except GrammarToolError as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("Install failed: %s", exc)
        return 1
    return 0
