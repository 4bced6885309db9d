"""
VMAfEvaluator Module

Perceptual quality evaluation of reconstructed transcoder output:
- Input validation (missing or empty files)
- ffmpeg libvmaf invocation with JSON logging
- Score extraction from the JSON log, falling back to ffmpeg's stderr summary
- Failure and timeout classification distinct from transcode failures
"""

import json
import shlex
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..models import QualityResult, RunStatus
from ..system.system_utils import last_lines, run_command
from ....utils.logging import get_logger

logger = get_logger("vmaf_evaluator")

POOLED_KEYS = ("min", "max", "harmonic_mean")


def escape_filter_value(value: str) -> str:
    """Escape a filter option value for use inside an ffmpeg filtergraph.

    Two levels: the option parser (\\ ' :) and then the filtergraph
    parser (\\ ' [ ] , ;).
    """
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace(":", "\\:")
    for char in "\\'[],;":
        escaped = escaped.replace(char, "\\" + char)
    return escaped


class VMAfEvaluator:
    """Runs ffmpeg's libvmaf filter on (original, reconstructed) pairs."""

    def __init__(self, ffmpeg_cmd: str = "ffmpeg", n_threads: int = 0, model: Optional[str] = None,
                 timeout: Optional[float] = None, extra_input_args: Sequence[str] = ()):
        self.ffmpeg = shlex.split(ffmpeg_cmd)
        if not self.ffmpeg:
            raise ValueError("ffmpeg command is empty")
        self.n_threads = n_threads
        self.model = model
        self.timeout = timeout
        self.extra_input_args = list(extra_input_args)

    def build_vmaf_cmd(self, reference: Path, distorted: Path, log_path: Path) -> List[str]:
        opts = ["log_fmt=json", f"log_path={escape_filter_value(str(log_path))}"]
        if self.n_threads and self.n_threads > 0:
            opts.append(f"n_threads={self.n_threads}")
        if self.model:
            opts.append(f"model={self.model}")
        filter_graph = f"[0:v][1:v]libvmaf={':'.join(opts)}"

        return [
            *self.ffmpeg, "-hide_banner", "-loglevel", "info", "-y",
            *self.extra_input_args, "-i", str(distorted),   # distorted first
            *self.extra_input_args, "-i", str(reference),   # reference second
            "-lavfi", filter_graph,
            "-f", "null", "-"
        ]

    def evaluate(self, original: Path, reconstructed: Path, log_path: Path) -> QualityResult:
        """
        Compare the reconstructed output against the original source.

        Returns:
            QualityResult tagged OK, EVALUATION_FAILED or EVALUATION_TIMED_OUT
        """
        original, reconstructed, log_path = Path(original), Path(reconstructed), Path(log_path)

        validation_error = self._validate_vmaf_files(original, reconstructed)
        if validation_error:
            logger.vmaf_failed(validation_error)
            return QualityResult(RunStatus.EVALUATION_FAILED, error=validation_error)

        cmd = self.build_vmaf_cmd(original, reconstructed, log_path)
        logger.vmaf(f"{original.name} vs {reconstructed.name}")

        start = time.perf_counter()
        try:
            result = run_command(cmd, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            return QualityResult(RunStatus.EVALUATION_TIMED_OUT,
                                 error=f"VMAF timed out after {self.timeout}s",
                                 duration_s=time.perf_counter() - start)
        except OSError as e:
            return QualityResult(RunStatus.EVALUATION_FAILED,
                                 error=f"Could not start quality tool: {e}",
                                 duration_s=time.perf_counter() - start)
        duration = time.perf_counter() - start

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logger.vmaf_failed(f"exit code {result.returncode}")
            logger.debug(last_lines(stderr))
            return QualityResult(RunStatus.EVALUATION_FAILED,
                                 error=last_lines(stderr) or f"Quality tool exited with code {result.returncode}",
                                 duration_s=duration)

        score, metrics = self._read_vmaf_log(log_path)
        if score is None:
            score = self._extract_vmaf_score(result.stderr or "")
        if score is None:
            logger.vmaf_failed("no VMAF score in quality tool output")
            return QualityResult(RunStatus.EVALUATION_FAILED,
                                 error="Could not parse VMAF score from quality tool output",
                                 duration_s=duration)

        logger.vmaf(f"score {score:.2f}")
        return QualityResult(RunStatus.OK, score=score, metrics=metrics, duration_s=duration)

    def _read_vmaf_log(self, log_path: Path) -> Tuple[Optional[float], Dict[str, float]]:
        """Pooled metrics from a libvmaf JSON log."""
        if not log_path.exists():
            return None, {}
        try:
            with open(log_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            pooled = data["pooled_metrics"]["vmaf"]
            score = float(pooled["mean"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.debug(f"Unusable VMAF log {log_path}: {e}")
            return None, {}

        metrics = {}
        for key in POOLED_KEYS:
            try:
                metrics[key] = float(pooled[key])
            except (KeyError, TypeError, ValueError):
                continue
        return score, metrics

    def _extract_vmaf_score(self, stderr: str) -> Optional[float]:
        """Extract VMAF score from ffmpeg stderr output."""
        # Format: VMAF score: 85.123456
        for line in stderr.split('\n'):
            if 'VMAF score:' in line:
                try:
                    score_str = line.split('VMAF score:')[1].strip()
                    return float(score_str)
                except (IndexError, ValueError):
                    continue
        return None

    def _validate_vmaf_files(self, reference: Path, distorted: Path) -> Optional[str]:
        """Validate files before VMAF computation."""

        if not reference.exists():
            return f"Reference file missing for VMAF: {reference}"

        if not distorted.exists():
            return f"Reconstructed output missing for VMAF: {distorted}"

        try:
            if reference.stat().st_size == 0:
                return f"Reference file is empty: {reference}"
            if distorted.stat().st_size == 0:
                return f"Reconstructed output is empty: {distorted}"
        except OSError as e:
            return f"File access error: {e}"

        return None
