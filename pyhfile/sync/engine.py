"""Core sync engine: push, pull and status command bodies."""

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Optional

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)

from ..api import HfileClient, ProgressCallback
from ..config import Settings
from ..exceptions import HfileAPIError
from ..models import FileRecord, RepositorySnapshot, TransferPlan
from ..output import OutputFormatter
from .comparator import FileComparator
from .operations import TransferExecutor
from .remote import fetch_remote
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)

# Per-file failures that are reported without stopping the run
TRANSFER_ERRORS = (OSError, ValueError, HfileAPIError)

TransferFn = Callable[[FileRecord, Optional[ProgressCallback]], object]


def _progress_updater(progress: Progress, task: TaskID) -> ProgressCallback:
    def update(done: int, total: int) -> None:
        progress.update(task, completed=done, total=total or None)

    return update


@dataclass
class SyncResult:
    """Outcome of a push or pull run."""

    plan: TransferPlan
    dry_run: bool = False
    uploaded: list[str] = field(default_factory=list)
    downloaded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    """Relative path -> error message for files that could not be transferred"""

    @property
    def conflicts(self) -> list[str]:
        return self.plan.conflicts

    def to_dict(self) -> dict:
        """Convert result to dictionary for JSON output."""
        return {
            "dry_run": self.dry_run,
            "plan": self.plan.to_dict(),
            "uploaded": list(self.uploaded),
            "downloaded": list(self.downloaded),
            "failed": dict(self.failed),
            "conflicts": list(self.conflicts),
        }


class SyncEngine:
    """Sequences scan, fetch, reconcile and transfer for one repository."""

    def __init__(
        self,
        client: HfileClient,
        settings: Settings,
        output: Optional[OutputFormatter] = None,
        ignore_patterns: Optional[list[str]] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Authenticated hfile client
            settings: Resolved settings; must point inside a repository
            output: Output formatter for displaying progress/status
            ignore_patterns: Extra glob patterns excluded from the local scan
        """
        self.client = client
        self.settings = settings
        self.output = output or OutputFormatter()
        self.root = settings.require_repo()
        self.repo = settings.repo_name or self.root.name
        self.scanner = DirectoryScanner(ignore_patterns=ignore_patterns)
        self.comparator = FileComparator()
        self.operations = TransferExecutor(client, self.repo, self.root)

    # =========================
    # Planning
    # =========================

    def snapshots(self) -> tuple[RepositorySnapshot, RepositorySnapshot]:
        """Fetch the remote snapshot and scan the local one.

        Any failure here propagates: without both snapshots there is no plan.

        Returns:
            Tuple of (local, remote) snapshots
        """
        start = time.time()
        remote = fetch_remote(self.client, self.repo)
        local = self.scanner.scan_local(self.root)
        logger.debug(
            "Snapshots took %.2fs: %d local, %d remote",
            time.time() - start,
            len(local),
            len(remote),
        )
        return local, remote

    def build_plan(self) -> TransferPlan:
        """Compute the transfer plan for the repository."""
        if self.output.quiet or self.output.json_output:
            local, remote = self.snapshots()
        else:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
                console=self.output.err_console,
            ) as progress:
                progress.add_task("Comparing local and remote files...", total=None)
                local, remote = self.snapshots()
        return self.comparator.build_plan(local, remote)

    # =========================
    # Commands
    # =========================

    def status(self) -> TransferPlan:
        """Compute and display the plan without transferring anything."""
        plan = self.build_plan()
        self._display_plan(plan, show_uploads=True, show_downloads=True)
        return plan

    def push(self, dry_run: bool = False) -> SyncResult:
        """Upload local files that are new or newer than their remote copy.

        Args:
            dry_run: Only display what would be uploaded

        Returns:
            SyncResult with per-file outcomes
        """
        plan = self.build_plan()
        result = SyncResult(plan=plan, dry_run=dry_run)
        self._display_plan(plan, show_uploads=True, show_downloads=False)

        if not dry_run:
            self._execute(
                plan.to_upload,
                "Uploading",
                lambda record, callback: self.operations.upload(record, callback),
                result.uploaded,
                result.failed,
            )
        self._display_summary(result)
        return result

    def pull(self, dry_run: bool = False) -> SyncResult:
        """Download remote files that are new or newer than the local copy.

        Args:
            dry_run: Only display what would be downloaded

        Returns:
            SyncResult with per-file outcomes
        """
        plan = self.build_plan()
        result = SyncResult(plan=plan, dry_run=dry_run)
        self._display_plan(plan, show_uploads=False, show_downloads=True)

        if not dry_run:
            self._execute(
                plan.to_download,
                "Downloading",
                lambda record, callback: self.operations.download(
                    record.path, callback
                ),
                result.downloaded,
                result.failed,
            )
        self._display_summary(result)
        return result

    # =========================
    # Execution
    # =========================

    @contextmanager
    def _progress(self) -> Iterator[Optional[Progress]]:
        if self.output.quiet or self.output.json_output:
            yield None
            return
        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=self.output.err_console,
        ) as progress:
            yield progress

    def _execute(
        self,
        records: list[FileRecord],
        verb: str,
        transfer: TransferFn,
        succeeded: list[str],
        failed: dict[str, str],
    ) -> None:
        """Run transfers sequentially, isolating each file's failure."""
        with self._progress() as progress:
            for index, record in enumerate(records, start=1):
                callback: Optional[ProgressCallback] = None
                task: Optional[TaskID] = None
                if progress is not None:
                    task = progress.add_task(
                        f"{verb} {record.path} ({index}/{len(records)})", total=None
                    )
                    callback = _progress_updater(progress, task)

                start = time.time()
                try:
                    transfer(record, callback)
                except TRANSFER_ERRORS as e:
                    failed[record.path] = str(e)
                    logger.debug("%s %s failed: %s", verb, record.path, e)
                    self.output.error(f"Failed to sync {record.path}: {e}")
                else:
                    succeeded.append(record.path)
                    logger.debug(
                        "%s %s took %.2fs", verb, record.path, time.time() - start
                    )
                finally:
                    if progress is not None and task is not None:
                        progress.remove_task(task)

    # =========================
    # Display
    # =========================

    def _display_plan(
        self, plan: TransferPlan, show_uploads: bool, show_downloads: bool
    ) -> None:
        """Display sync plan to user."""
        if self.output.quiet or self.output.json_output:
            return

        self.output.info(f"Repository: {self.repo} ({self.root})")
        if show_uploads:
            self.output.info(f"  ↑ Upload: {len(plan.to_upload)} file(s)")
            for record in plan.to_upload:
                self.output.info(f"      {record.path}")
        if show_downloads:
            self.output.info(f"  ↓ Download: {len(plan.to_download)} file(s)")
            for record in plan.to_download:
                self.output.info(f"      {record.path}")

        if plan.conflicts:
            self.output.warning(
                f"  ⚠ Conflicts: {len(plan.conflicts)} file(s) changed on both "
                "sides with the same timestamp, skipped"
            )
            for path in plan.conflicts:
                self.output.warning(f"      {path}")
        self.output.print("")

    def _display_summary(self, result: SyncResult) -> None:
        """Display sync summary."""
        if self.output.quiet or self.output.json_output:
            return

        if result.dry_run:
            self.output.success("Dry run complete!")
            return

        total = len(result.uploaded) + len(result.downloaded)
        if total == 0 and not result.failed:
            self.output.info("No changes needed - everything is in sync!")
            return

        self.output.success("Sync complete!")
        if result.uploaded:
            self.output.info(f"  Uploaded: {len(result.uploaded)}")
        if result.downloaded:
            self.output.info(f"  Downloaded: {len(result.downloaded)}")
        if result.failed:
            self.output.warning(f"  Failed: {len(result.failed)}")
