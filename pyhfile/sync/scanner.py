"""Directory scanning utilities for sync operations."""

import fnmatch
import logging
from pathlib import Path
from typing import Optional

from ..models import FileRecord, RepositorySnapshot
from ..utils import IGNORE_FILE_NAME, METADATA_DIR_NAME
from .fingerprint import calculate_fingerprint

logger = logging.getLogger(__name__)


def is_metadata_path(relative_path: str) -> bool:
    """Check if a relative path belongs to the client's own metadata."""
    return relative_path == IGNORE_FILE_NAME or relative_path.startswith(
        METADATA_DIR_NAME
    )


def load_ignore_patterns(root: Path) -> list[str]:
    """Read glob patterns from the repository ignore file.

    Blank lines and lines starting with ``#`` are skipped. A missing ignore
    file yields no patterns.

    Args:
        root: Repository root directory

    Returns:
        List of glob patterns
    """
    ignore_file = root / IGNORE_FILE_NAME
    if not ignore_file.is_file():
        return []

    patterns = []
    for line in ignore_file.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


class DirectoryScanner:
    """Scans a repository directory into a RepositorySnapshot.

    The repository's own metadata (the ``.hfile`` directory and the
    ``.hfileignore`` marker) is never included. Additional glob patterns,
    from the constructor and from the root ``.hfileignore`` file, exclude
    matching files; a pattern is matched against both the relative path
    and the file name.

    Examples:
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp"])
        >>> snapshot = scanner.scan_local(Path("/home/user/project"))
        >>> sorted(snapshot)
        ['README.md', 'src/main.py']
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        use_ignore_file: bool = True,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns to exclude (e.g., ["*.log", "build/*"])
            use_ignore_file: Whether to read extra patterns from .hfileignore
        """
        self.ignore_patterns = list(ignore_patterns or [])
        self.use_ignore_file = use_ignore_file
        self._active_patterns: list[str] = []

    def is_metadata(self, relative_path: str) -> bool:
        """Check if a relative path belongs to the client's own metadata."""
        return is_metadata_path(relative_path)

    def should_ignore(self, relative_path: str) -> bool:
        """Check if a relative path should be excluded from the snapshot."""
        if self.is_metadata(relative_path):
            return True

        name = relative_path.rsplit("/", 1)[-1]
        for pattern in self._active_patterns:
            if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(
                name, pattern
            ):
                logger.debug("Ignoring %s (pattern %s)", relative_path, pattern)
                return True
        return False

    def scan_local(self, root: Path) -> RepositorySnapshot:
        """Recursively scan a local directory.

        Errors are not swallowed: an unreadable file or directory aborts
        the scan, so a snapshot is either complete or not produced at all.

        Args:
            root: Directory to scan

        Returns:
            Snapshot of every regular file below root

        Raises:
            FileNotFoundError: If root does not exist
            NotADirectoryError: If root is not a directory
            OSError: If a path below root cannot be read
        """
        if not root.exists():
            raise FileNotFoundError(f"Directory does not exist: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        self._active_patterns = list(self.ignore_patterns)
        if self.use_ignore_file:
            self._active_patterns.extend(load_ignore_patterns(root))

        records: list[FileRecord] = []
        self._scan_directory(root, root, records)
        logger.debug("Scanned %d local file(s) under %s", len(records), root)
        return RepositorySnapshot(records)

    def _scan_directory(
        self, directory: Path, root: Path, records: list[FileRecord]
    ) -> None:
        for item in sorted(directory.iterdir()):
            # Use as_posix() to ensure forward slashes on all platforms
            relative_path = item.relative_to(root).as_posix()

            if item.is_dir() and not item.is_symlink():
                if self.is_metadata(relative_path):
                    continue
                self._scan_directory(item, root, records)
            elif item.is_file():
                if self.should_ignore(relative_path):
                    continue
                records.append(self._build_record(item, relative_path))

    def _build_record(self, file_path: Path, relative_path: str) -> FileRecord:
        stat = file_path.stat()
        return FileRecord(
            path=relative_path,
            fingerprint=calculate_fingerprint(file_path),
            modified_at=stat.st_mtime_ns // 1_000_000_000,
        )
