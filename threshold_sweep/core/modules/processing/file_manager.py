"""
File list loading for threshold sweeps.

The dataset is described by a plain text file with one dataset-relative path
per line. The list order is the inner iteration order of the sweep, so it is
preserved exactly: entries are neither sorted nor de-duplicated.
"""

from collections import Counter
from pathlib import Path
from typing import List

from ..models import FileListError
from ....utils.logging import get_logger

# Module logger
logger = get_logger("file_manager")


class FileManager:
    """Loads the file list and resolves its entries against the dataset root."""

    def __init__(self, dataset_root: Path, debug: bool = False):
        self.dataset_root = Path(dataset_root)
        self.debug = debug

    def load_file_list(self, file_list: Path) -> List[str]:
        """
        Read the ordered list of dataset-relative paths.

        Blank lines and lines starting with '#' are ignored.

        Raises:
            FileListError: list missing, unreadable, or without entries
        """
        file_list = Path(file_list)
        try:
            with open(file_list, 'r', encoding='utf-8') as f:
                lines = f.read().splitlines()
        except OSError as e:
            raise FileListError(f"Cannot read file list {file_list}: {e}") from e

        entries = []
        for line in lines:
            entry = line.strip()
            if entry and not entry.startswith('#'):
                entries.append(entry)

        if not entries:
            raise FileListError(f"File list is empty: {file_list}")

        duplicates = [name for name, count in Counter(entries).items() if count > 1]
        for name in duplicates:
            logger.warn(f"File list entry appears more than once: {name}")

        if self.debug:
            logger.debug(f"Loaded {len(entries)} entries from {file_list}")
        return entries

    def resolve(self, entry: str) -> Path:
        """Absolute source path for a file list entry."""
        return self.dataset_root / entry

    def missing_entries(self, entries: List[str]) -> List[str]:
        """Entries whose source file does not exist (kept in the sweep, reported only)."""
        missing = [e for e in entries if not self.resolve(e).exists()]
        for entry in missing:
            logger.warn(f"Source file not found, transcodes will fail: {self.resolve(entry)}")
        return missing
