"""Sync engine for hfile - change detection, reconciliation and transfers."""

from .comparator import FileComparator, find_conflicts, plan_download, plan_upload
from .engine import SyncEngine, SyncResult
from .fingerprint import calculate_fingerprint
from .operations import TransferExecutor
from .remote import fetch_remote
from .scanner import DirectoryScanner, load_ignore_patterns

__all__ = [
    "SyncEngine",
    "SyncResult",
    "FileComparator",
    "plan_upload",
    "plan_download",
    "find_conflicts",
    "calculate_fingerprint",
    "TransferExecutor",
    "fetch_remote",
    "DirectoryScanner",
    "load_ignore_patterns",
]
