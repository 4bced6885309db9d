"""
Result persistence for threshold sweeps.

Two artifacts per run, both under the output directory:
- <run_name>.log: append-only text log with the execution time and the
  transcoder's info summary for every WorkItem, flushed after each record
- <run_name>.json: one document with run metadata and one record per
  WorkItem, rewritten atomically every `flush_every` records and on close

A crash loses at most the records since the last JSON flush; the text log
loses nothing that was recorded.
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..models import QualityResult, RunResult, Threshold, TranscodeOutcome, WorkItem
from ....utils.logging import get_logger

logger = get_logger("result_logger")

RecordKey = Tuple[str, Threshold]


def record_key(record: Dict[str, Any]) -> RecordKey:
    return (record["file"], record["param"])


def load_completed(json_path: Path) -> Dict[RecordKey, Dict[str, Any]]:
    """
    Load successful records from a previous run's JSON document.

    Returns:
        Mapping of (file, param) to the stored record, successful records only.
        Missing or unreadable documents yield an empty mapping.
    """
    json_path = Path(json_path)
    if not json_path.exists():
        return {}
    try:
        with open(json_path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warn(f"Cannot resume from {json_path}: {e}")
        return {}

    completed = {}
    for record in document.get("results", []):
        if record.get("status") == "ok" and "file" in record and "param" in record:
            completed[record_key(record)] = record
    logger.info(f"Loaded {len(completed)} completed records from {json_path}")
    return completed


class ResultLogger:
    """Owns the text log handle and the in-memory JSON records for one run."""

    def __init__(self, output_dir: Path, run_name: str, flush_every: int = 1,
                 metadata: Optional[Dict[str, Any]] = None,
                 carried: Optional[Dict[RecordKey, Dict[str, Any]]] = None):
        if flush_every < 1:
            raise ValueError("flush_every must be >= 1")
        self.output_dir = Path(output_dir)
        self.run_name = run_name
        self.flush_every = flush_every
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.records: List[Dict[str, Any]] = []
        # Records from a resumed run that the sweep has not reached yet; they
        # stay in every flushed document until carry() moves them into place
        self._awaiting: Dict[RecordKey, Dict[str, Any]] = {
            key: dict(record, resumed=True) for key, record in (carried or {}).items()
        }
        self._pending = 0
        self._log_file = None

    @property
    def log_path(self) -> Path:
        return self.output_dir / f"{self.run_name}.log"

    @property
    def json_path(self) -> Path:
        return self.output_dir / f"{self.run_name}.json"

    def open(self) -> "ResultLogger":
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._log_file = open(self.log_path, 'a', encoding='utf-8')
        self.metadata.setdefault("started_at", datetime.now().isoformat(timespec="seconds"))

        header = [f"##### Sweep started {self.metadata['started_at']}"]
        for key, value in self.metadata.items():
            if key != "started_at":
                header.append(f"# {key}: {value}")
        self._write_text("\n".join(header) + "\n\n")
        self.flush_json()
        logger.output(f"Text log: {self.log_path}")
        logger.output(f"JSON results: {self.json_path}")
        return self

    def __enter__(self) -> "ResultLogger":
        return self.open()

    def __exit__(self, *exc):
        self.close()
        return False

    def _write_text(self, text: str):
        if self._log_file is None:
            raise RuntimeError("ResultLogger is not open")
        self._log_file.write(text)
        self._log_file.flush()
        os.fsync(self._log_file.fileno())

    def record(self, work_item: WorkItem, transcode_outcome: TranscodeOutcome,
               quality_result: Optional[QualityResult]) -> RunResult:
        """Log one WorkItem's outcome to both artifacts and return the RunResult."""
        result = RunResult(work_item=work_item, transcode=transcode_outcome,
                           quality=quality_result, baseline=self.metadata.get("baseline"))
        self._write_text(self._format_block(result))
        self._append(result.to_record())
        return result

    def carry(self, record: Dict[str, Any]):
        """Re-emit a record completed by an earlier run (resume)."""
        self._awaiting.pop(record_key(record), None)
        self._append(dict(record, resumed=True))

    def _append(self, record: Dict[str, Any]):
        self.records.append(record)
        self._pending += 1
        if self._pending >= self.flush_every:
            self.flush_json()

    def _format_block(self, result: RunResult) -> str:
        item = result.work_item
        outcome = result.transcode
        lines = [
            f"=== [{item.index}/{item.total}] {item.label()} status={result.status.value}",
            f"Execution time: {outcome.duration_s:.3f} s",
        ]
        if outcome.succeeded:
            if outcome.summary:
                lines.append(outcome.summary.rstrip("\n"))
            if outcome.info_error:
                lines.append(f"Info summary unavailable: {outcome.info_error}")
            quality = result.quality
            if quality is not None and quality.succeeded:
                lines.append(f"VMAF: {quality.score:.4f}")
            elif quality is not None:
                lines.append(f"Quality evaluation failed ({quality.status.value}): {quality.error}")
        else:
            lines.append(f"Transcode failed (exit {outcome.returncode}): {outcome.error}")
        return "\n".join(lines) + "\n\n"

    def flush_json(self):
        """Atomically rewrite the JSON document so it is always valid on disk."""
        document = {"run": self.metadata, "results": self.records + list(self._awaiting.values())}
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.run_name}.", suffix=".json.tmp",
                                        dir=str(self.output_dir))
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.json_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        self._pending = 0
        logger.debug(f"Flushed {len(self.records)} records to {self.json_path}")

    def close(self):
        if self._log_file is None:
            return
        self.metadata["finished_at"] = datetime.now().isoformat(timespec="seconds")
        self.flush_json()
        self._write_text(f"##### Sweep finished {self.metadata['finished_at']}: "
                         f"{len(self.records)} records\n\n")
        self._log_file.close()
        self._log_file = None
