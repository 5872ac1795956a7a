"""Transfer operations bound to one repository."""

from pathlib import Path, PurePosixPath
from typing import Callable, Optional

from ..api import HfileClient
from ..models import FileRecord
from .scanner import is_metadata_path


class TransferExecutor:
    """Uploads and downloads files of one repository through the client."""

    def __init__(self, client: HfileClient, repo: str, root: Path):
        """Initialize transfer executor.

        Args:
            client: Authenticated hfile client
            repo: Repository name on the server
            root: Local repository root directory
        """
        self.client = client
        self.repo = repo
        self.root = root

    def local_path(self, relative_path: str) -> Path:
        """Resolve a snapshot path to a local path inside the repository.

        Raises:
            ValueError: If the path is absolute, escapes the repository, or
                names the client's own metadata
        """
        pure = PurePosixPath(relative_path)
        if pure.is_absolute() or ".." in pure.parts:
            raise ValueError(f"Refusing path outside repository: {relative_path}")
        if is_metadata_path(pure.as_posix()):
            raise ValueError(f"Refusing to write repository metadata: {relative_path}")
        return self.root.joinpath(*pure.parts)

    def upload(
        self,
        record: FileRecord,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        """Upload a local file (single-shot or chunked, chosen by size).

        Args:
            record: Local record of the file to upload
            progress_callback: Optional callback(bytes_uploaded, total_bytes)
        """
        self.client.upload_file(
            repo=self.repo,
            file_path=self.local_path(record.path),
            remote_name=record.path,
            progress_callback=progress_callback,
        )

    def download(
        self,
        remote_path: str,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """Download a remote file into the repository, resuming if partial.

        Args:
            remote_path: Relative path of the remote file
            progress_callback: Optional callback(bytes_downloaded, total_bytes)

        Returns:
            Number of bytes written
        """
        return self.client.download_file(
            repo=self.repo,
            remote_path=remote_path,
            output_path=self.local_path(remote_path),
            progress_callback=progress_callback,
        )
