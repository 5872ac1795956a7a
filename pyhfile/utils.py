"""Utility functions and shared constants for hfile."""

# =============================================================================
# Constants for repository layout
# =============================================================================

# Directory that marks a repository root and holds its config
METADATA_DIR_NAME: str = ".hfile"

# Ignore marker file at the repository root
IGNORE_FILE_NAME: str = ".hfileignore"

CONFIG_FILE_NAME: str = "config.toml"

DEFAULT_SERVER_URL: str = "http://localhost:8080"

# =============================================================================
# Constants for file operations
# =============================================================================

# Files at or below this size are uploaded in a single request (100 MiB)
SINGLE_UPLOAD_LIMIT: int = 100 * 1024 * 1024

# Chunk size for chunked uploads (10 MiB)
DEFAULT_CHUNK_SIZE: int = 10 * 1024 * 1024

# Streaming buffer for downloads
DOWNLOAD_BUFFER_SIZE: int = 64 * 1024

# Retry configuration for idempotent listing requests
DEFAULT_MAX_RETRIES: int = 2
DEFAULT_RETRY_DELAY: float = 1.0  # seconds


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def mask_token(token: str) -> str:
    """Mask a token for display.

    Examples:
        >>> mask_token("abcdef1234567890wxyz")
        'abcdef****wxyz'
        >>> mask_token("short")
        '****'
    """
    if len(token) <= 10:
        return "****"
    return token[:6] + "****" + token[-4:]
