"""Resolve a language identifier into the metadata needed to build it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from tsgrammars.config import BuildConfig
from tsgrammars.errors import SourceControlError, SubprocessFailed
from tsgrammars.runtime.process import ProcessRunner
from tsgrammars.sources.tracker import SourceTracker

logger = logging.getLogger("tsgrammars.sources.resolver")


@dataclass(frozen=True)
class GrammarPath:
    """One grammar inside a source repository.

    Attributes:
        subdirectory: Grammar directory relative to the checkout ("" = root).
        output_name: Language identifier the compiled artifact is named after.
    """

    subdirectory: str
    output_name: str


@dataclass(frozen=True)
class LanguageSource:
    """Everything needed to compile one language's source repository."""

    language: str
    checkout: Path
    url: Optional[str]
    revision: Optional[str]
    grammar_paths: Tuple[GrammarPath, ...]

    def grammar_dir(self, grammar: GrammarPath) -> Path:
        if not grammar.subdirectory:
            return self.checkout
        return self.checkout / grammar.subdirectory


# Repositories that hold more than one grammar.
MULTI_GRAMMAR_PATHS: Dict[str, Tuple[GrammarPath, ...]] = {
    "typescript": (
        GrammarPath("typescript", "typescript"),
        GrammarPath("tsx", "tsx"),
    ),
    "ocaml": (
        GrammarPath("grammars/ocaml", "ocaml"),
        GrammarPath("grammars/interface", "ocaml_interface"),
    ),
    "markdown": (
        GrammarPath("tree-sitter-markdown", "markdown"),
        GrammarPath("tree-sitter-markdown-inline", "markdown_inline"),
    ),
    "php": (
        GrammarPath("php", "php"),
        GrammarPath("php_only", "php_only"),
    ),
    "xml": (
        GrammarPath("xml", "xml"),
        GrammarPath("dtd", "dtd"),
    ),
    "csv": (
        GrammarPath("csv", "csv"),
        GrammarPath("psv", "psv"),
        GrammarPath("tsv", "tsv"),
    ),
}


def grammar_paths_for(language: str) -> Tuple[GrammarPath, ...]:
    paths = MULTI_GRAMMAR_PATHS.get(language)
    if paths is None:
        return (GrammarPath("", language),)
    return paths


class SourceResolver:
    """Reads upstream URL and pinned revision without touching the checkout."""

    def __init__(
        self,
        config: BuildConfig,
        runner: ProcessRunner,
        tracker: Optional[SourceTracker] = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.tracker = tracker or SourceTracker(config, runner)

    def upstream_url(self, language: str) -> Optional[str]:
        """Read ``submodule.<path>.url`` from ``.gitmodules``."""
        key = f"submodule.{self.config.sources_dir_name}/{language}.url"
        try:
            output = self.runner.capture(
                "git",
                "config",
                "--file",
                ".gitmodules",
                "--get",
                key,
                cwd=self.config.root_dir,
            )
        except SubprocessFailed as exc:
            logger.warning("No upstream URL recorded for %s (exit %s)", language, exc.exit_code)
            return None
        url = output.strip()
        return url or None

    def pinned_revision(self, language: str) -> Optional[str]:
        try:
            return self.tracker.inspect(language).short_revision
        except SourceControlError as exc:
            logger.warning("Could not read pinned revision of %s: %s", language, exc)
            return None

    def resolve(self, language: str) -> Optional[LanguageSource]:
        """Return the LanguageSource for ``language``, or None without a checkout."""
        checkout = self.config.source_path(language)
        if not checkout.is_dir():
            logger.debug("No source directory for %s at %s", language, checkout)
            return None
        return LanguageSource(
            language=language,
            checkout=checkout,
            url=self.upstream_url(language),
            revision=self.pinned_revision(language),
            grammar_paths=grammar_paths_for(language),
        )


__all__ = [
    "GrammarPath",
    "LanguageSource",
    "MULTI_GRAMMAR_PATHS",
    "SourceResolver",
    "grammar_paths_for",
]
