"""
Data model for threshold sweeps.

Defines the immutable records passed between the sweep components:
- SweepConfig and WorkItem describe what to run
- TranscodeOutcome and QualityResult are the tagged results returned by the
  external tool adapters
- RunResult is the consolidated, logged outcome of one WorkItem
- ScratchRegion is a scratch directory scoped to one WorkItem
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

Threshold = Union[int, float]


class SweepError(Exception):
    """Base class for harness errors."""


class StorageUnavailable(SweepError):
    """Scratch storage root is missing, not a directory, or not writable."""


class CleanupFailed(SweepError):
    """A scratch region could not be removed."""


class FileListError(SweepError):
    """The file list is missing, unreadable, or empty."""


class RunStatus(str, Enum):
    """Outcome classes recorded per WorkItem."""
    OK = "ok"
    TRANSCODE_FAILED = "TranscodeFailed"
    TRANSCODE_TIMED_OUT = "TranscodeTimedOut"
    EVALUATION_FAILED = "EvaluationFailed"
    EVALUATION_TIMED_OUT = "EvaluationTimedOut"
    STORAGE_UNAVAILABLE = "StorageUnavailable"


@dataclass(frozen=True)
class SweepConfig:
    """Ordered contrast thresholds plus the baseline value for one run."""
    thresholds: Tuple[Threshold, ...]
    baseline: Threshold = 0

    def __post_init__(self):
        if not self.thresholds:
            raise ValueError("SweepConfig requires at least one threshold")
        # Accept any sequence but store a tuple so the order cannot change mid-run
        object.__setattr__(self, "thresholds", tuple(self.thresholds))


@dataclass(frozen=True)
class WorkItem:
    """One (file, threshold) pair."""
    file: str
    threshold: Threshold
    index: int = 0
    total: int = 0

    @property
    def key(self) -> Tuple[str, Threshold]:
        return (self.file, self.threshold)

    def label(self) -> str:
        return f"threshold={self.threshold} file={self.file}"


@dataclass(frozen=True)
class ScratchRegion:
    """Scratch directory for a single WorkItem."""
    work_item: WorkItem
    path: Path

    @property
    def events_path(self) -> Path:
        return self.path / "events.adder"

    @property
    def reconstructed_path(self) -> Path:
        return self.path / "reconstructed.mp4"

    @property
    def vmaf_log_path(self) -> Path:
        return self.path / "vmaf.json"


@dataclass(frozen=True)
class TranscodeOutcome:
    """Tagged result of one transcoder invocation."""
    status: RunStatus
    duration_s: float
    returncode: Optional[int] = None
    summary: str = ""
    error: Optional[str] = None
    info_error: Optional[str] = None
    events_path: Optional[Path] = None
    reconstructed_path: Optional[Path] = None

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.OK


@dataclass(frozen=True)
class QualityResult:
    """Tagged result of one quality evaluation."""
    status: RunStatus
    score: Optional[float] = None
    metrics: Dict[str, float] = field(default_factory=dict)
    error: Optional[str] = None
    duration_s: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.OK and self.score is not None


def _timestamp() -> str:
    return datetime.now().isoformat(timespec="seconds")


@dataclass(frozen=True)
class RunResult:
    """Consolidated outcome of one WorkItem."""
    work_item: WorkItem
    transcode: TranscodeOutcome
    quality: Optional[QualityResult] = None
    baseline: Optional[Threshold] = None
    finished_at: str = field(default_factory=_timestamp)

    @property
    def status(self) -> RunStatus:
        if not self.transcode.succeeded:
            return self.transcode.status
        if self.quality is None:
            return RunStatus.EVALUATION_FAILED
        return self.quality.status

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.OK

    @property
    def error(self) -> Optional[str]:
        if not self.transcode.succeeded:
            return self.transcode.error
        if self.quality is None:
            return "quality evaluation did not run"
        return self.quality.error

    def to_record(self) -> Dict[str, Any]:
        """JSON-serializable record; quality fields only when evaluation succeeded."""
        record: Dict[str, Any] = {
            "file": self.work_item.file,
            "param": self.work_item.threshold,
            "baseline": self.baseline,
            "status": self.status.value,
        }
        if self.quality is not None and self.quality.succeeded:
            record["quality"] = self.quality.score
            if self.quality.metrics:
                record["vmaf"] = dict(self.quality.metrics)
        record["duration_s"] = round(self.transcode.duration_s, 3)
        record["returncode"] = self.transcode.returncode
        record["error"] = self.error
        if self.transcode.info_error:
            record["info_error"] = self.transcode.info_error
        record["finished_at"] = self.finished_at
        return record
