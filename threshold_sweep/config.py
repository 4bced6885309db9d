"""Configuration management for threshold-sweep."""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from .core.modules.processing.transcoding_engine import (DEFAULT_INFO_CMD, DEFAULT_INFO_TIMEOUT,
                                                         DEFAULT_TRANSCODE_CMD,
                                                         DEFAULT_TRANSCODE_TIMEOUT)

DEFAULT_THRESHOLDS = "0,5,10,15,20,25,30,35,40"


def load_env_file(env_path: Optional[Path] = None) -> Dict[str, str]:
    """Load environment variables from .env file."""
    if env_path is None:
        # Look for .env in current directory, then in package directory
        candidates = [
            Path.cwd() / ".env",
            Path(__file__).parent.parent / ".env",
        ]

        for candidate in candidates:
            if candidate.exists():
                env_path = candidate
                break

    env_vars = {}

    if env_path and env_path.exists():
        with open(env_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#'):
                    if '=' in line:
                        key, value = line.split('=', 1)
                        env_vars[key.strip()] = value.strip()

    return env_vars


def parse_number(value: Union[str, int, float]) -> Union[int, float]:
    """Parse a numeric parameter, keeping integral values as int."""
    number = float(value)
    if number != number or number in (float('inf'), float('-inf')):
        raise ValueError(f"Not a finite number: {value!r}")
    return int(number) if number.is_integer() else number


def parse_thresholds(value: str) -> Tuple[Union[int, float], ...]:
    """Parse a comma separated threshold list, preserving order."""
    parts = [p.strip() for p in str(value).split(',') if p.strip()]
    if not parts:
        raise ValueError("No thresholds given")
    try:
        return tuple(parse_number(p) for p in parts)
    except ValueError as e:
        raise ValueError(f"Invalid threshold list {value!r}: {e}") from e


def _bool(value: str) -> bool:
    return str(value).lower() in ('true', '1', 'yes')


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or str(value).strip().lower() in ('', 'none', '0'):
        return None
    return float(value)


def get_config(env_path: Optional[Path] = None) -> Dict[str, Any]:
    """Get configuration from .env file, then environment variables, then defaults."""
    env_vars = load_env_file(env_path)

    def setting(key: str, default: Optional[str]) -> Optional[str]:
        return env_vars.get(key, os.getenv(key.upper(), default))

    config = {
        'thresholds': parse_thresholds(setting('thresholds', DEFAULT_THRESHOLDS)),
        'transcode_cmd': setting('transcode_cmd', DEFAULT_TRANSCODE_CMD),
        'info_cmd': setting('info_cmd', DEFAULT_INFO_CMD),
        'ffmpeg_cmd': setting('ffmpeg_cmd', 'ffmpeg'),
        'vmaf_threads': int(setting('vmaf_threads', str(min(8, os.cpu_count() or 8)))),
        'vmaf_model': setting('vmaf_model', None) or None,
        'transcode_timeout': _optional_float(setting('transcode_timeout', str(DEFAULT_TRANSCODE_TIMEOUT))),
        'info_timeout': _optional_float(setting('info_timeout', str(DEFAULT_INFO_TIMEOUT))),
        'vmaf_timeout': _optional_float(setting('vmaf_timeout', '3600')),
        'json_flush_every': int(setting('json_flush_every', '1')),
        'keep_failed_scratch': _bool(setting('keep_failed_scratch', 'false')),
        'min_scratch_free_gb': float(setting('min_scratch_free_gb', '1')),
        'debug': _bool(setting('debug', 'false')),
    }

    return config
