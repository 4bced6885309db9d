"""
Transcoder adapter for threshold_sweep.

This module drives the external transcoding pipeline:
- Command building from shell-style templates
- Wall-clock timing of each transcode
- Capture of the pipeline's info summary for the produced artifact
- Classification of failures and timeouts into tagged outcomes
"""

import shlex
import string
import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional

from ..models import RunStatus, ScratchRegion, Threshold, TranscodeOutcome
from ..system.system_utils import last_lines, run_command
from ....utils.logging import get_logger

logger = get_logger("transcoding_engine")

# ADΔER transcoder with symmetric contrast thresholds
DEFAULT_TRANSCODE_CMD = (
    "adder_transcoder --input {source} --c-thresh-pos {threshold} --c-thresh-neg {threshold} "
    "--c-thresh-baseline {baseline} --output-events {events} --output-video {reconstructed}"
)
DEFAULT_INFO_CMD = "adderinfo -i {events} -d"

# Seconds; shared with the configuration defaults
DEFAULT_TRANSCODE_TIMEOUT = 7200
DEFAULT_INFO_TIMEOUT = 600

PLACEHOLDERS = frozenset({"source", "threshold", "baseline", "scratch", "events", "reconstructed"})


def template_fields(template: str) -> List[str]:
    """Placeholder names used by a command template."""
    return [name for _, name, _, _ in string.Formatter().parse(template) if name]


def validate_template(template: str) -> str:
    """
    Check a command template before the sweep starts.

    Raises:
        ValueError: empty template or unknown placeholder
    """
    if not template or not shlex.split(template):
        raise ValueError("Command template is empty")
    unknown = sorted(set(template_fields(template)) - PLACEHOLDERS)
    if unknown:
        raise ValueError(f"Unknown placeholder(s) in command template: {', '.join(unknown)}")
    return template


def build_command(template: str, values: Dict[str, str]) -> List[str]:
    """Split a template into argv and substitute placeholders per argument.

    Substitution happens after splitting so paths with spaces stay single arguments.
    """
    return [arg.format(**values) for arg in shlex.split(template)]


class TranscoderAdapter:
    """Runs one transcode per (source, threshold) and captures its telemetry."""

    def __init__(self, transcode_cmd: str = DEFAULT_TRANSCODE_CMD, info_cmd: str = DEFAULT_INFO_CMD,
                 baseline: Threshold = 0, transcode_timeout: Optional[float] = None,
                 info_timeout: Optional[float] = DEFAULT_INFO_TIMEOUT):
        self.transcode_cmd = validate_template(transcode_cmd)
        self.info_cmd = validate_template(info_cmd)
        self.baseline = baseline
        self.transcode_timeout = transcode_timeout
        self.info_timeout = info_timeout

    def _values(self, source: Path, threshold: Threshold, region: ScratchRegion) -> Dict[str, str]:
        return {
            "source": str(source),
            "threshold": str(threshold),
            "baseline": str(self.baseline),
            "scratch": str(region.path),
            "events": str(region.events_path),
            "reconstructed": str(region.reconstructed_path),
        }

    def build_transcode_cmd(self, source: Path, threshold: Threshold, region: ScratchRegion) -> List[str]:
        return build_command(self.transcode_cmd, self._values(source, threshold, region))

    def build_info_cmd(self, source: Path, threshold: Threshold, region: ScratchRegion) -> List[str]:
        return build_command(self.info_cmd, self._values(source, threshold, region))

    def transcode(self, source: Path, threshold: Threshold, region: ScratchRegion) -> TranscodeOutcome:
        """
        Transcode one source at one contrast threshold into the scratch region.

        Returns:
            TranscodeOutcome tagged OK, TRANSCODE_FAILED or TRANSCODE_TIMED_OUT
        """
        cmd = self.build_transcode_cmd(source, threshold, region)
        logger.transcode(f"{Path(source).name} @ threshold {threshold}")

        start = time.perf_counter()
        try:
            result = run_command(cmd, timeout=self.transcode_timeout)
        except subprocess.TimeoutExpired:
            duration = time.perf_counter() - start
            logger.transcode_failed(f"{Path(source).name}: timed out after {self.transcode_timeout}s")
            return TranscodeOutcome(
                status=RunStatus.TRANSCODE_TIMED_OUT,
                duration_s=duration,
                error=f"Transcoder timed out after {self.transcode_timeout}s",
            )
        except OSError as e:
            duration = time.perf_counter() - start
            return TranscodeOutcome(
                status=RunStatus.TRANSCODE_FAILED,
                duration_s=duration,
                error=f"Could not start transcoder: {e}",
            )
        duration = time.perf_counter() - start

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logger.transcode_failed(f"{Path(source).name}: exit code {result.returncode}")
            if stderr:
                logger.debug(last_lines(stderr))
            return TranscodeOutcome(
                status=RunStatus.TRANSCODE_FAILED,
                duration_s=duration,
                returncode=result.returncode,
                error=stderr or f"Transcoder exited with code {result.returncode}",
            )

        summary, info_error = self._run_info(source, threshold, region)
        return TranscodeOutcome(
            status=RunStatus.OK,
            duration_s=duration,
            returncode=result.returncode,
            summary=summary,
            info_error=info_error,
            events_path=region.events_path,
            reconstructed_path=region.reconstructed_path,
        )

    def _run_info(self, source: Path, threshold: Threshold, region: ScratchRegion):
        """Run the info facility; its stdout is stored verbatim."""
        cmd = self.build_info_cmd(source, threshold, region)
        try:
            result = run_command(cmd, timeout=self.info_timeout)
        except subprocess.TimeoutExpired:
            return "", f"Info command timed out after {self.info_timeout}s"
        except OSError as e:
            return "", f"Could not start info command: {e}"

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            logger.warn(f"Info command exited with code {result.returncode}")
            return result.stdout or "", stderr or f"Info command exited with code {result.returncode}"
        return result.stdout or "", None
