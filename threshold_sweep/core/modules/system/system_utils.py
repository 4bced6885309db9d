"""
System utilities for threshold_sweep.

This module provides system-level utilities including:
- Subprocess execution with timeouts
- Size formatting
- Output tail helper for failure records
"""

import shlex
import subprocess
from typing import Optional

from ....utils.logging import get_logger

logger = get_logger("system_utils")


def format_size(bytes_size: int) -> str:
    """Convert bytes to human readable format:
    - Bytes: integer no decimal ("500 B", "0 B")
    - >= KB: two decimals ("1.50 KB", "2.00 MB")
    """
    negative = bytes_size < 0
    size = float(abs(bytes_size))
    units = ['B', 'KB', 'MB', 'GB', 'TB', 'PB']
    unit_index = 0
    while unit_index < len(units) - 1 and size >= 1024.0:
        size /= 1024.0
        unit_index += 1
    unit = units[unit_index]
    if unit == 'B':
        formatted = f"{int(size)} {unit}"
    else:
        formatted = f"{size:.2f} {unit}"
    return f"-{formatted}" if negative else formatted


def quote_command(cmd: list[str]) -> str:
    return " ".join(shlex.quote(c) for c in cmd)


def run_command(cmd: list[str], timeout: Optional[float] = 30,
                capture_output: bool = True) -> subprocess.CompletedProcess:
    """
    Standardized subprocess command runner with consistent error handling.

    Output is decoded as UTF-8 with undecodable bytes replaced, so a tool
    writing binary or legacy-encoded text never breaks the capture.

    Args:
        cmd: Command as list of strings
        timeout: Timeout in seconds (default: 30, None waits forever)
        capture_output: Whether to capture stdout/stderr (default: True)

    Returns:
        CompletedProcess object; a non-zero exit is returned, not raised
    """
    logger.cmd(quote_command(cmd))
    try:
        return subprocess.run(
            cmd,
            capture_output=capture_output,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd[:3])}...")
        raise
    except OSError as e:
        logger.error(f"Could not start {cmd[0]}: {e}")
        raise


def last_lines(text: Optional[str], count: int = 20) -> str:
    """Tail of captured tool output, enough to triage a failure from the logs."""
    if not text:
        return ""
    lines = text.strip().splitlines()
    return "\n".join(lines[-count:])
