"""Top-level build operations: compile, compile-changed-or-all, create-bundle.

BuildPipeline builds every component from one BuildConfig and one
ProcessRunner, so all of them share the same configuration value and route
external commands through the same runner.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from rich.console import Console

from tsgrammars.build.bundle import BundleBuilder
from tsgrammars.build.compiler import CompiledArtifact, GrammarCompiler
from tsgrammars.build.queries import QueryCopier
from tsgrammars.build.sweep import BuildReport, compile_languages
from tsgrammars.config import BuildConfig
from tsgrammars.errors import PartialBuildFailure
from tsgrammars.runtime.process import ProcessRunner
from tsgrammars.runtime.progress import SweepProgress
from tsgrammars.sources.changes import ChangeScopeDetector
from tsgrammars.sources.resolver import SourceResolver
from tsgrammars.sources.tracker import SourceTracker

logger = logging.getLogger("tsgrammars.build.pipeline")


class BuildPipeline:
    """Wires tracker, resolver, compiler, bundler, detector and query copier."""

    def __init__(
        self,
        config: BuildConfig,
        runner: Optional[ProcessRunner] = None,
        show_progress: bool = False,
        console: Optional[Console] = None,
        machine: Optional[str] = None,
    ) -> None:
        self.config = config
        self.runner = runner or ProcessRunner.from_config(config)
        self.show_progress = show_progress
        self.console = console
        self.tracker = SourceTracker(config, self.runner)
        self.resolver = SourceResolver(config, self.runner, self.tracker)
        self.compiler = GrammarCompiler(
            config, self.runner, resolver=self.resolver, tracker=self.tracker, machine=machine
        )
        self.bundler = BundleBuilder(config, self.runner, self.compiler, self.tracker)
        self.detector = ChangeScopeDetector(config, self.runner)
        self.queries = QueryCopier(config, self.tracker)

    def _progress(self, total: int) -> SweepProgress:
        return SweepProgress(total=total, enabled=self.show_progress, console=self.console)

    def compile(
        self, language: str, clean: bool = False, target: Optional[str] = None
    ) -> List[CompiledArtifact]:
        """Compile a single language; failures propagate unchanged."""
        artifacts = self.compiler.compile(language, clean=clean, target=target)
        self.queries.copy_query(language)
        return artifacts

    def compile_many(
        self,
        languages: Sequence[str],
        clean: bool = False,
        target: Optional[str] = None,
    ) -> BuildReport:
        """Compile ``languages``, then raise if any of them failed.

        Raises:
            PartialBuildFailure: After every language was attempted.
        """
        build_target = self.compiler.resolve_target(target)
        self.compiler.preflight()
        with self._progress(len(languages)) as progress:
            report = compile_languages(
                self.compiler,
                list(languages),
                build_target,
                clean=clean,
                max_workers=self.config.max_workers,
                progress=progress,
            )
        self.queries.copy_all()
        if report.failures:
            raise PartialBuildFailure(report.failures)
        return report

    def create_bundle(self, clean: bool = False, target: Optional[str] = None) -> Path:
        """Compile every source and archive the result.

        Raises:
            PartialBuildFailure: When some languages failed; the bundle exists.
        """
        total = len(self.tracker.languages())
        try:
            with self._progress(total) as progress:
                return self.bundler.create(clean=clean, target=target, progress=progress)
        finally:
            self.queries.copy_all()

    def compile_changed_or_all(
        self,
        base: Optional[str] = None,
        clean: bool = False,
        target: Optional[str] = None,
    ) -> Union[BuildReport, Path]:
        """Compile languages changed since ``base``, or build the full bundle.

        Returns:
            The BuildReport of an incremental build, or the bundle path when
            nothing changed (or the diff could not be computed).
        """
        # Fail on a bad target before running git.
        self.compiler.resolve_target(target)
        changed = self.detector.changed_languages(base)
        if not changed:
            logger.info("No changed languages detected; building everything")
            return self.create_bundle(clean=clean, target=target)
        return self.compile_many(sorted(changed), clean=clean, target=target)


__all__ = ["BuildPipeline"]
