"""
Sweep driver for threshold_sweep.

Runs every (threshold, file) WorkItem exactly once, strictly in order:
outer loop over the configured thresholds, inner loop over the file list.
Each item goes through stage -> transcode -> evaluate -> log -> release.
Per-item failures become recorded RunResults; only an unusable scratch root
at startup stops the sweep.
"""

import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..models import (CleanupFailed, QualityResult, RunResult, RunStatus, StorageUnavailable,
                      SweepConfig, Threshold, TranscodeOutcome, WorkItem)
from ..system.result_logger import ResultLogger
from ..system.scratch_manager import ScratchSpaceManager
from ....utils.logging import create_progress_bar, format_duration, get_logger

logger = get_logger("sweep_driver")


def iter_work_items(config: SweepConfig, files: Sequence[str]) -> Iterator[WorkItem]:
    """WorkItems in sweep order: thresholds outer, files inner."""
    total = len(config.thresholds) * len(files)
    index = 0
    for threshold in config.thresholds:
        for file in files:
            index += 1
            yield WorkItem(file=file, threshold=threshold, index=index, total=total)


@dataclass
class SweepSummary:
    """Counts for a finished sweep."""
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    statuses: Counter = field(default_factory=Counter)
    elapsed_s: float = 0.0
    results: List[RunResult] = field(default_factory=list)

    def add(self, result: RunResult):
        self.attempted += 1
        self.statuses[result.status.value] += 1
        if result.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1
        self.results.append(result)


class SweepDriver:
    """Top-level control loop over one sweep."""

    def __init__(self, config: SweepConfig, files: Sequence[str], dataset_root: Path,
                 scratch: ScratchSpaceManager, transcoder, evaluator, result_logger: ResultLogger,
                 keep_failed_scratch: bool = False,
                 completed: Optional[Dict[Tuple[str, Threshold], Dict[str, Any]]] = None):
        self.config = config
        self.files = list(files)
        self.dataset_root = Path(dataset_root)
        self.scratch = scratch
        self.transcoder = transcoder
        self.evaluator = evaluator
        self.result_logger = result_logger
        self.keep_failed_scratch = keep_failed_scratch
        self.completed = completed or {}

    @property
    def total(self) -> int:
        return len(self.config.thresholds) * len(self.files)

    def run(self) -> SweepSummary:
        """
        Attempt every WorkItem once.

        Raises:
            StorageUnavailable: scratch root unusable, before any WorkItem runs
        """
        self.scratch.check_root()

        summary = SweepSummary()
        start = time.perf_counter()
        logger.sweep(f"{len(self.config.thresholds)} thresholds x {len(self.files)} files "
                     f"= {self.total} work items")

        pbar = create_progress_bar(total=self.total, desc="Sweep", unit="items")
        try:
            for item in iter_work_items(self.config, self.files):
                pbar.set_description(f"t={item.threshold} {Path(item.file).name[:30]}")
                prior = self.completed.get(item.key)
                if prior is not None:
                    logger.debug(f"Already completed, skipping: {item.label()}")
                    self.result_logger.carry(prior)
                    summary.skipped += 1
                else:
                    summary.add(self.process(item))
                pbar.update(1)
        finally:
            pbar.close()
            self.scratch.close()

        summary.elapsed_s = time.perf_counter() - start
        logger.result(f"{summary.attempted} attempted, {summary.succeeded} succeeded, "
                      f"{summary.failed} failed, {summary.skipped} resumed "
                      f"in {format_duration(summary.elapsed_s)}")
        for status, count in sorted(summary.statuses.items()):
            if status != RunStatus.OK.value:
                logger.result(f"  {status}: {count}")
        return summary

    def process(self, item: WorkItem) -> RunResult:
        """Stage, transcode, evaluate, log and release one WorkItem."""
        logger.sweep(f"[{item.index}/{item.total}] {item.label()}")
        source = self.dataset_root / item.file

        try:
            region = self.scratch.acquire(item)
        except StorageUnavailable as e:
            logger.error(str(e))
            outcome = TranscodeOutcome(status=RunStatus.STORAGE_UNAVAILABLE, duration_s=0.0, error=str(e))
            return self.result_logger.record(item, outcome, None)

        result = None
        try:
            outcome = self._transcode(source, item, region)
            quality = None
            if outcome.succeeded:
                quality = self._evaluate(source, outcome, region)
            else:
                logger.debug(f"Skipping quality evaluation for {item.label()}")
            result = self.result_logger.record(item, outcome, quality)
            return result
        finally:
            keep = self.keep_failed_scratch and (result is None or not result.succeeded)
            try:
                self.scratch.release(region, keep=keep)
            except CleanupFailed as e:
                logger.warn(str(e))

    def _transcode(self, source: Path, item: WorkItem, region) -> TranscodeOutcome:
        try:
            return self.transcoder.transcode(source, item.threshold, region)
        except Exception as e:
            logger.error(f"Transcoder adapter error for {item.label()}: {e}")
            return TranscodeOutcome(status=RunStatus.TRANSCODE_FAILED, duration_s=0.0,
                                    error=f"{type(e).__name__}: {e}")

    def _evaluate(self, source: Path, outcome: TranscodeOutcome, region) -> QualityResult:
        reconstructed = outcome.reconstructed_path or region.reconstructed_path
        try:
            return self.evaluator.evaluate(source, reconstructed, region.vmaf_log_path)
        except Exception as e:
            logger.error(f"Quality adapter error for {source.name}: {e}")
            return QualityResult(RunStatus.EVALUATION_FAILED, error=f"{type(e).__name__}: {e}")
