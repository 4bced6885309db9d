"""
Threshold Sweep - batch evaluation harness for contrast-threshold transcoding sweeps.
"""

__version__ = "1.0.0"

from .config import get_config, load_env_file, parse_thresholds
from .core.modules.models import (RunResult, RunStatus, StorageUnavailable, SweepConfig,
                                  WorkItem)

__all__ = [
    "get_config",
    "load_env_file",
    "parse_thresholds",
    "RunResult",
    "RunStatus",
    "StorageUnavailable",
    "SweepConfig",
    "WorkItem",
]
