"""
Scratch space management for threshold_sweep.

Intermediate transcoder artifacts (event streams, reconstructed video, VMAF
logs) are large and short-lived, so each WorkItem gets its own directory on a
fast, usually memory-backed, storage root (e.g. a tmpfs mount). Mounting that
root is an environment precondition; this module only checks it and manages
subdirectories inside it.
"""

import hashlib
import os
import re
import shutil
from pathlib import Path
from typing import Optional

import psutil

from ..models import CleanupFailed, ScratchRegion, StorageUnavailable, WorkItem
from .system_utils import format_size
from ....utils.logging import get_logger

logger = get_logger("scratch_manager")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_component(value: str) -> str:
    """Turn a dataset-relative path or threshold into a single directory name."""
    cleaned = _UNSAFE_CHARS.sub("_", str(value).replace("/", "__").replace("\\", "__"))
    cleaned = cleaned.strip("._")
    return cleaned or "_"


class ScratchSpaceManager:
    """Allocates and removes per-WorkItem scratch regions under a storage root."""

    def __init__(self, root: Path, namespace: str = "threshold_sweep", min_free_bytes: int = 0):
        self.root = Path(root)
        self.namespace = namespace
        self.min_free_bytes = min_free_bytes
        self._live: Optional[ScratchRegion] = None

    @property
    def base_dir(self) -> Path:
        return self.root / self.namespace

    @property
    def live_region(self) -> Optional[ScratchRegion]:
        return self._live

    def check_root(self) -> int:
        """
        Verify the scratch root is usable before any WorkItem runs.

        Returns:
            Free bytes on the scratch filesystem

        Raises:
            StorageUnavailable: root missing, not a directory, or not writable
        """
        if not self.root.exists():
            raise StorageUnavailable(f"Scratch root does not exist: {self.root}")
        if not self.root.is_dir():
            raise StorageUnavailable(f"Scratch root is not a directory: {self.root}")
        if not os.access(self.root, os.W_OK | os.X_OK):
            raise StorageUnavailable(f"Scratch root is not writable: {self.root}")

        try:
            usage = psutil.disk_usage(str(self.root))
        except OSError as e:
            raise StorageUnavailable(f"Cannot stat scratch root {self.root}: {e}") from e

        logger.scratch(f"Root {self.root}: {format_size(usage.free)} free of {format_size(usage.total)}")
        if self.min_free_bytes and usage.free < self.min_free_bytes:
            logger.warn(f"Scratch root has only {format_size(usage.free)} free "
                        f"(wanted {format_size(self.min_free_bytes)})")
        return usage.free

    def region_path(self, work_item: WorkItem) -> Path:
        """Deterministic scratch path for a WorkItem's (file, threshold) identity.

        Sanitizing is lossy, so a digest of the raw identity keeps distinct
        WorkItems apart ("a b.mp4" and "a_b.mp4" sanitize alike).
        """
        identity = f"{work_item.file}\0{work_item.threshold}".encode("utf-8")
        digest = hashlib.sha1(identity).hexdigest()[:8]
        return (self.base_dir
                / f"t{sanitize_component(str(work_item.threshold))}"
                / f"{sanitize_component(work_item.file)}-{digest}")

    def acquire(self, work_item: WorkItem) -> ScratchRegion:
        """Create an empty scratch region for the WorkItem."""
        if self._live is not None:
            raise RuntimeError(f"Scratch region still live: {self._live.path}")

        path = self.region_path(work_item)
        try:
            if path.exists():
                # Leftover from an interrupted or kept-for-inspection run
                logger.debug(f"Wiping stale scratch region {path}")
                shutil.rmtree(path)
            path.mkdir(parents=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot create scratch region {path}: {e}") from e

        region = ScratchRegion(work_item=work_item, path=path)
        self._live = region
        logger.debug(f"Acquired scratch region {path}")
        return region

    def release(self, region: ScratchRegion, keep: bool = False):
        """
        Remove a scratch region, or leave it in place when keep is set.

        Raises:
            CleanupFailed: the region could not be removed
        """
        if self._live is not None and self._live.path == region.path:
            self._live = None

        if keep:
            logger.scratch(f"Keeping scratch region for inspection: {region.path}")
            return

        try:
            if region.path.exists():
                shutil.rmtree(region.path)
        except OSError as e:
            raise CleanupFailed(f"Failed to remove scratch region {region.path}: {e}") from e

        # Drop the per-threshold directory once its last region is gone
        parent = region.path.parent
        try:
            parent.rmdir()
        except OSError:
            pass
        logger.debug(f"Released scratch region {region.path}")

    def release_all(self):
        """Release whatever region is still live (interrupt path)."""
        if self._live is None:
            return
        region = self._live
        try:
            self.release(region)
        except CleanupFailed as e:
            logger.warn(str(e))

    def close(self):
        """Release any live region and remove the namespace directory if empty."""
        self.release_all()
        try:
            self.base_dir.rmdir()
        except OSError:
            pass
