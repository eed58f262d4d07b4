"""Corpus materialization: run modes, per-pair pipeline and worker pool."""

from __future__ import annotations

import shutil
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from .errors import CloneFailed, ExtractionError
from .extractor import SourceExtractor
from .logging import get_logger
from .models import Language, PairResult, PairState, ResolvedPair, RunReport
from .repositories import RepositoryCache

STAGING_DIRNAME = ".pairgen-staging"
DEFAULT_DEMO_LIMIT = 3


class RunMode(str, Enum):
    """What a run does with the resolved pairs."""

    FULL = "full"
    DEMO = "demo"
    DELETE = "delete"


def select_demo_pairs(
    pairs: Sequence[ResolvedPair],
    *,
    programs: Sequence[str] = (),
    limit: int = DEFAULT_DEMO_LIMIT,
) -> List[ResolvedPair]:
    """Pick the fixed demo subset: the allow-list if given, else the first `limit` pairs."""
    if not programs:
        return list(pairs[:limit])

    wanted = set(programs)
    selected = [pair for pair in pairs if pair.program_name in wanted]
    missing = wanted - {pair.program_name for pair in selected}
    if missing:
        get_logger("builder").warning(
            "Demo programs not found in metadata: %s", ", ".join(sorted(missing))
        )
    return selected


class BuildProgress(Protocol):
    """Receives the number of selected pairs, then each pair result as it lands."""

    def start(self, total: int) -> None:
        ...

    def advance(self, result: PairResult) -> None:
        ...


class CorpusBuilder:
    """Materializes resolved pairs into `<output_root>/<program>/{c,rust}-program/`."""

    def __init__(
        self,
        output_root: Path,
        cache: RepositoryCache,
        extractor: SourceExtractor | None = None,
        *,
        workers: int = 4,
        demo_programs: Sequence[str] = (),
        demo_limit: int = DEFAULT_DEMO_LIMIT,
    ) -> None:
        self.output_root = output_root
        self.cache = cache
        self.extractor = extractor or SourceExtractor()
        self.workers = max(workers, 1)
        self.demo_programs = list(demo_programs)
        self.demo_limit = demo_limit
        self.logger = get_logger("builder")

    @property
    def staging_root(self) -> Path:
        return self.output_root / STAGING_DIRNAME

    def select(self, pairs: Sequence[ResolvedPair], mode: RunMode | str = RunMode.FULL) -> List[ResolvedPair]:
        """Return the pairs `mode` would materialize, in load order."""
        mode = RunMode(mode)
        if mode is RunMode.DELETE:
            return []
        if mode is RunMode.DEMO:
            return select_demo_pairs(pairs, programs=self.demo_programs, limit=self.demo_limit)
        return list(pairs)

    def build(
        self,
        pairs: Sequence[ResolvedPair],
        mode: RunMode | str = RunMode.FULL,
        *,
        progress: Optional[BuildProgress] = None,
    ) -> RunReport:
        """Run `mode` over `pairs` and report per-pair outcomes.

        Clone and extraction failures only fail their own pair. An ``OSError``
        while writing output aborts the run: pending pairs are cancelled and
        the error propagates.
        """
        mode = RunMode(mode)
        report = RunReport(mode=mode.value)
        if mode is RunMode.DELETE:
            self.delete()
            return report

        selected = self.select(pairs, mode)
        self.logger.info("Building %d pairs (%s mode) into %s", len(selected), mode.value, self.output_root)
        if progress is not None:
            progress.start(len(selected))
        if not selected:
            return report

        self.output_root.mkdir(parents=True, exist_ok=True)
        self._reset_staging()
        self.cache.prune_partial()

        executor = ThreadPoolExecutor(
            max_workers=min(self.workers, len(selected)), thread_name_prefix="pairgen"
        )
        futures: Dict[Future[PairResult], ResolvedPair] = {
            executor.submit(self._run_pair, pair, report, progress): pair for pair in selected
        }
        try:
            for future in as_completed(futures):
                future.result()
        except BaseException:
            self.logger.error("Run aborted; cancelling pending pairs")
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        else:
            executor.shutdown(wait=True)
        finally:
            shutil.rmtree(self.staging_root, ignore_errors=True)

        order = {pair.program_name: index for index, pair in enumerate(selected)}
        report.results.sort(key=lambda result: order[result.program_name])
        self.logger.info(
            "Finished: %d succeeded, %d failed", len(report.succeeded), len(report.failed)
        )
        return report

    def build_pair(self, pair: ResolvedPair) -> PairResult:
        """Clone, extract and publish one pair. Pair-scoped failures are captured in the result."""
        result = PairResult(program_name=pair.program_name)
        staging = self.staging_root / f"{pair.program_name}-{uuid.uuid4().hex[:8]}"
        try:
            result.state = PairState.CLONING
            checkouts = {side.language: self.cache.acquire(side.repository_url) for side in pair.sides}

            result.state = PairState.EXTRACTING
            counts: Dict[Language, int] = {}
            for side in pair.sides:
                destination = staging / side.language.directory_name
                destination.mkdir(parents=True, exist_ok=True)
                counts[side.language] = self.extractor.extract(
                    checkouts[side.language],
                    side.source_paths,
                    destination,
                    program_name=pair.program_name,
                    language=side.language,
                )
                if counts[side.language] == 0:
                    self.logger.warning(
                        "No %s source files found for %s", side.language.label, pair.program_name
                    )

            self._publish(staging, self.output_root / pair.program_name)
        except (CloneFailed, ExtractionError) as exc:
            result.fail(str(exc))
        else:
            result.state = PairState.DONE
            result.c_files = counts[Language.C]
            result.rust_files = counts[Language.RUST]
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)
        return result

    def delete(self) -> None:
        """Remove the generated corpus and the repository cache."""
        if self.output_root.exists():
            shutil.rmtree(self.output_root)
            self.logger.info("Removed %s", self.output_root)
        if self.cache.clear():
            self.logger.info("Removed %s", self.cache.root)

    # ------------------------------------------------------------------
    # Internal helpers

    def _run_pair(
        self, pair: ResolvedPair, report: RunReport, progress: Optional[BuildProgress]
    ) -> PairResult:
        self.logger.debug("Processing %s (%s)", pair.program_name, pair.origin)
        result = self.build_pair(pair)
        if result.succeeded:
            self.logger.info(
                "Materialized %s (c: %d files, rust: %d files)",
                pair.program_name,
                result.c_files,
                result.rust_files,
            )
        else:
            self.logger.warning("Failed %s: %s", pair.program_name, result.reason)
        report.add(result)
        if progress is not None:
            progress.advance(result)
        return result

    def _publish(self, staging: Path, target: Path) -> None:
        if not target.exists():
            staging.rename(target)
            return
        retired = self.staging_root / f".retired-{target.name}-{uuid.uuid4().hex[:8]}"
        target.rename(retired)
        staging.rename(target)
        shutil.rmtree(retired)

    def _reset_staging(self) -> None:
        if self.staging_root.exists():
            self.logger.debug("Removing stale staging directory %s", self.staging_root)
            shutil.rmtree(self.staging_root)
        self.staging_root.mkdir(parents=True)


__all__ = ["BuildProgress", "CorpusBuilder", "DEFAULT_DEMO_LIMIT", "RunMode", "STAGING_DIRNAME", "select_demo_pairs"]
