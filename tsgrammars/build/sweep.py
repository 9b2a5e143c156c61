"""Compile many languages, collecting failures instead of stopping at the first.

Languages are independent: each writes only artifacts named after its own
grammars, so they can be compiled concurrently by a bounded thread pool.
Post-processing touches the whole artifact directory and therefore runs once,
after every compilation has been joined.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from tsgrammars.build.compiler import CompiledArtifact, GrammarCompiler
from tsgrammars.build.platform import BuildTarget
from tsgrammars.errors import GrammarToolError
from tsgrammars.runtime.progress import SweepProgress

logger = logging.getLogger("tsgrammars.build.sweep")


@dataclass
class BuildReport:
    """Outcome of a multi-language compile sweep."""

    artifacts: List[CompiledArtifact] = field(default_factory=list)
    failures: List[Tuple[str, BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_languages(self) -> List[str]:
        return [language for language, _ in self.failures]


def _compile_one(
    compiler: GrammarCompiler,
    language: str,
    target: BuildTarget,
    clean: bool,
    progress: SweepProgress,
) -> List[CompiledArtifact]:
    progress.start(language)
    try:
        artifacts = compiler.compile_language(language, target, clean=clean)
    except (GrammarToolError, OSError):
        progress.advance(language, ok=False)
        raise
    progress.advance(language, ok=True)
    return artifacts


def compile_languages(
    compiler: GrammarCompiler,
    languages: Sequence[str],
    target: BuildTarget,
    clean: bool = False,
    max_workers: int = 1,
    progress: Optional[SweepProgress] = None,
) -> BuildReport:
    """Compile ``languages`` and normalize the artifact directory afterwards.

    Every language is attempted. Failures are recorded in input order.

    Args:
        compiler: Compiler used for every language.
        languages: Language identifiers to compile.
        target: Resolved build target (host or cross).
        clean: Reset each checkout after compiling it.
        max_workers: Upper bound on concurrent compilations.
        progress: Optional progress display.

    Returns:
        BuildReport with final artifact paths and per-language failures.
    """
    progress = progress or SweepProgress(total=len(languages), enabled=False)
    results: Dict[str, List[CompiledArtifact]] = {}
    report = BuildReport()

    if max_workers <= 1 or len(languages) <= 1:
        for language in languages:
            try:
                results[language] = _compile_one(compiler, language, target, clean, progress)
            except (GrammarToolError, OSError) as exc:
                logger.error("Failed to compile %s: %s", language, exc)
                report.failures.append((language, exc))
    else:
        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tsgrammars-compile"
        ) as pool:
            futures: Dict[str, Future] = {
                language: pool.submit(
                    _compile_one, compiler, language, target, clean, progress
                )
                for language in languages
            }
            for language in languages:
                try:
                    results[language] = futures[language].result()
                except (GrammarToolError, OSError) as exc:
                    logger.error("Failed to compile %s: %s", language, exc)
                    report.failures.append((language, exc))

    renamed = compiler.finalize(target)
    for language in languages:
        for artifact in results.get(language, []):
            final = renamed.get(artifact.file_path, artifact.file_path)
            report.artifacts.append(CompiledArtifact(artifact.language, final))

    logger.info(
        "Compiled %d grammar(s), %d language(s) failed",
        len(report.artifacts),
        len(report.failures),
    )
    return report


__all__ = ["BuildReport", "compile_languages"]
