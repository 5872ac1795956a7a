"""hfile client - sync a local directory tree with an hfile server."""

from .api import HfileClient
from .config import Settings
from .exceptions import (
    HfileAPIError,
    HfileAuthenticationError,
    HfileConfigError,
    HfileDownloadError,
    HfileInvalidResponseError,
    HfileNetworkError,
    HfileRepositoryNotFoundError,
    HfileServerError,
    HfileUploadError,
)
from .models import FileRecord, RepositorySnapshot, TransferPlan

__all__ = [
    "HfileClient",
    "Settings",
    "FileRecord",
    "RepositorySnapshot",
    "TransferPlan",
    "HfileAPIError",
    "HfileAuthenticationError",
    "HfileConfigError",
    "HfileDownloadError",
    "HfileInvalidResponseError",
    "HfileNetworkError",
    "HfileRepositoryNotFoundError",
    "HfileServerError",
    "HfileUploadError",
]
