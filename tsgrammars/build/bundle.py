"""Assemble compiled grammars into a versioned, per-platform bundle.

A bundle is ``<bundle_name>.<triple>.v<version>.tar.gz`` containing every
shared library in the artifact directory plus the version marker file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from tsgrammars.build.compiler import GrammarCompiler
from tsgrammars.build.platform import WINDOWS, bundle_file_name
from tsgrammars.build.sweep import compile_languages
from tsgrammars.config import VERSION_MARKER_NAME, BuildConfig
from tsgrammars.errors import PartialBuildFailure
from tsgrammars.runtime.process import ProcessRunner
from tsgrammars.runtime.progress import SweepProgress
from tsgrammars.sources.tracker import SourceTracker
from tsgrammars.utils.path_utils import artifact_files, write_text_atomic

logger = logging.getLogger("tsgrammars.build.bundle")


class BundleBuilder:
    """Compiles every known source and archives the results."""

    def __init__(
        self,
        config: BuildConfig,
        runner: ProcessRunner,
        compiler: Optional[GrammarCompiler] = None,
        tracker: Optional[SourceTracker] = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.tracker = tracker or SourceTracker(config, runner)
        self.compiler = compiler or GrammarCompiler(config, runner, tracker=self.tracker)

    def bundle_path(self, triple: str) -> Path:
        name = bundle_file_name(self.config.bundle_name, self.config.bundle_version, triple)
        return self.config.bundle_root / name

    def write_version_marker(self) -> Path:
        marker = self.config.version_marker_path
        write_text_atomic(marker, self.config.bundle_version)
        return marker

    def members(self) -> List[str]:
        """Archive member names: every artifact, then the version marker."""
        names = [p.name for p in artifact_files(self.config.artifact_root)]
        names.append(VERSION_MARKER_NAME)
        return names

    def archive(self, triple: str) -> Path:
        """Write the version marker and tar the artifact directory.

        Returns:
            Path of the created bundle.
        """
        self.write_version_marker()
        path = self.bundle_path(triple).resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        members = self.members()

        args: List[str] = []
        # GNU tar reads "C:" in an archive name as a remote host.
        if self.config.host_os == WINDOWS:
            args.append("--force-local")
        args.extend(["-zcvf", str(path), *members])

        logger.info("Creating bundle %s with %d member(s)", path.name, len(members))
        self.runner.run("tar", *args, cwd=self.config.artifact_root)
        return path

    def create(
        self,
        clean: bool = False,
        target: Optional[str] = None,
        max_workers: Optional[int] = None,
        progress: Optional[SweepProgress] = None,
    ) -> Path:
        """Compile every source and build the bundle.

        The bundle is written even when some languages fail; in that case
        PartialBuildFailure is raised afterwards, carrying the bundle path.

        Raises:
            UnsupportedTarget: Before any work when ``target`` is unmapped.
            ToolNotFound: Before any work when required tools are missing.
            PartialBuildFailure: When at least one language failed.
        """
        build_target = self.compiler.resolve_target(target)
        self.compiler.preflight()

        languages = self.tracker.languages()
        logger.info(
            "Building bundle v%s for %s from %d source(s)",
            self.config.bundle_version,
            build_target.architecture_triple,
            len(languages),
        )
        report = compile_languages(
            self.compiler,
            languages,
            build_target,
            clean=clean,
            max_workers=max_workers or self.config.max_workers,
            progress=progress,
        )
        path = self.archive(build_target.architecture_triple)
        if report.failures:
            raise PartialBuildFailure(report.failures, bundle_path=path)
        logger.info("Bundle created: %s", path)
        return path


__all__ = ["BundleBuilder"]
