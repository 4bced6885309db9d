"""
Centralized logging utilities for threshold_sweep

Provides consistent logging patterns with configurable debug levels:
- [INFO] for general information
- [WARN] for warnings
- [ERROR] for errors
- [RESULT] for final results
- [DEBUG] for debug information
- [SWEEP] for sweep progress messages
- [TRANSCODE] for transcoder invocations
- [VMAF] for quality evaluation messages
- [SCRATCH] for scratch storage messages

Usage:
    from threshold_sweep.utils.logging import get_logger, set_debug_mode

    set_debug_mode(True)  # Enable debug messages

    logger = get_logger("sweep_driver")
    logger.info("This is an info message")
    logger.debug("This is a debug message")  # Only shows if debug enabled
    logger.sweep("Threshold 20: 4/12 files")
"""

import os
from enum import Enum
from typing import Optional

from tqdm import tqdm

# Global logging configuration
_DEBUG_ENABLED = False
_QUIET_MODE = False


class LogLevel(Enum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


def _init_debug_mode():
    global _DEBUG_ENABLED
    if os.getenv('DEBUG', '').lower() in ('1', 'true', 'yes'):
        _DEBUG_ENABLED = True


_init_debug_mode()


def set_debug_mode(enabled: bool):
    """Enable or disable debug mode globally"""
    global _DEBUG_ENABLED
    _DEBUG_ENABLED = enabled


def set_quiet_mode(enabled: bool):
    """Enable or disable quiet mode (suppress INFO and DEBUG messages)"""
    global _QUIET_MODE
    _QUIET_MODE = enabled


def _emit(line: str):
    # tqdm.write keeps log lines from tearing an active progress bar
    tqdm.write(line)


class Logger:
    """Centralized logger with consistent formatting and configurable output"""

    def __init__(self, module_name: str = ""):
        self.module_name = module_name
        self.prefix = f"[{module_name}] " if module_name else ""

    def _should_log(self, level: LogLevel) -> bool:
        """Check if message should be logged based on current settings"""
        return not (_QUIET_MODE and level in (LogLevel.DEBUG, LogLevel.INFO))

    def _log(self, level: str, message: str):
        log_level = LogLevel[level]
        if not self._should_log(log_level):
            return
        _emit(f"[{level}] {self.prefix}{message}")

    def _tagged(self, tag: str, message: str, level: LogLevel = LogLevel.INFO):
        if self._should_log(level):
            _emit(f"[{tag}] {message}")

    def debug(self, message: str):
        """Log debug message (only if debug mode enabled)"""
        if _DEBUG_ENABLED:
            self._log("DEBUG", message)

    def info(self, message: str):
        """Log informational message"""
        self._log("INFO", message)

    def warn(self, message: str):
        """Log warning message"""
        self._log("WARN", message)

    def error(self, message: str):
        """Log error message"""
        self._log("ERROR", message)

    def result(self, message: str):
        """Log result message"""
        self._tagged("RESULT", f"{self.prefix}{message}")

    # Domain-specific logging methods
    def sweep(self, message: str):
        """Log sweep progress message"""
        self._tagged("SWEEP", message)

    def transcode(self, message: str):
        """Log transcoder invocation message"""
        self._tagged("TRANSCODE", message)

    def transcode_failed(self, message: str):
        """Log transcoder failure message"""
        self._tagged("TRANSCODE-FAILED", message, LogLevel.WARN)

    def vmaf(self, message: str):
        """Log VMAF calculation message"""
        self._tagged("VMAF", message)

    def vmaf_failed(self, message: str):
        """Log VMAF failure message"""
        self._tagged("VMAF-FAILED", message, LogLevel.WARN)

    def scratch(self, message: str):
        """Log scratch storage message"""
        self._tagged("SCRATCH", message)

    def output(self, message: str):
        """Log output artifact message"""
        self._tagged("OUTPUT", message)

    def cmd(self, message: str):
        """Log command execution message"""
        if _DEBUG_ENABLED:
            self._tagged("CMD", message, LogLevel.DEBUG)


def get_logger(module_name: str = "") -> Logger:
    """Get a logger instance for a module"""
    return Logger(module_name)


def create_progress_bar(total: Optional[int] = None, desc: str = "", unit: str = "it",
                        position: Optional[int] = None, leave: bool = True):
    """Create a progress bar with consistent styling"""
    return tqdm(total=total, desc=desc, unit=unit, position=position, leave=leave,
                disable=_QUIET_MODE)


def print_section_header(title: str, width: int = 90):
    """Print a section header with consistent formatting"""
    if _QUIET_MODE:
        return
    _emit("=" * width)
    _emit(title)
    _emit("=" * width)


def format_duration(seconds: float) -> str:
    """Format duration in seconds to a human-readable string"""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds/60:.1f}m"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"
