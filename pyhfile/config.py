"""Layered configuration for the hfile client.

Settings are resolved once per command into an explicit :class:`Settings`
object which is then handed to the client and the sync engine. Lookup
priority for both the server URL and the token is:

1. explicit override (``--server`` / ``--token`` or their env variables)
2. ``<repo>/.hfile/config.toml`` of the nearest enclosing repository
3. ``~/.hfile/config.toml``
4. built-in default (server URL only)
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Optional

import tomli_w

from .exceptions import HfileConfigError, HfileRepositoryNotFoundError
from .utils import (
    CONFIG_FILE_NAME,
    DEFAULT_SERVER_URL,
    METADATA_DIR_NAME,
    mask_token,
)

logger = logging.getLogger(__name__)


def find_repo_root(
    start_dir: Path, home_dir: Optional[Path] = None
) -> Optional[Path]:
    """Find the nearest directory containing the repository metadata marker.

    The home directory is never a repository root: its marker directory
    holds the user-wide config written by ``hfile init``.

    Args:
        start_dir: Directory to start searching from
        home_dir: Home directory override (default: the user's home)

    Returns:
        Absolute path of the repository root, or None if not inside a repository
    """
    home = (home_dir or Path.home()).resolve()
    directory = start_dir.resolve()
    for candidate in (directory, *directory.parents):
        if candidate == home:
            continue
        if (candidate / METADATA_DIR_NAME).exists():
            return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a TOML config file, returning an empty dict if it does not exist."""
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise HfileConfigError(f"Failed to parse config file {path}: {e}") from e
    except OSError as e:
        raise HfileConfigError(f"Failed to read config file {path}: {e}") from e


def write_config_file(path: Path, data: dict[str, Any]) -> None:
    """Write a TOML config file, creating its directory if needed."""
    # TOML has no null; drop unset keys
    clean = {key: value for key, value in data.items() if value is not None}
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as f:
            tomli_w.dump(clean, f)
    except OSError as e:
        raise HfileConfigError(f"Failed to write config file {path}: {e}") from e
    logger.debug("Wrote config file %s", path)


def home_config_path(home_dir: Optional[Path] = None) -> Path:
    """Return the path of the per-user config file."""
    return (home_dir or Path.home()) / METADATA_DIR_NAME / CONFIG_FILE_NAME


def repo_config_path(repo_root: Path) -> Path:
    """Return the path of a repository's config file."""
    return repo_root / METADATA_DIR_NAME / CONFIG_FILE_NAME


def init_home_config(
    server_url: Optional[str] = None, home_dir: Optional[Path] = None
) -> Path:
    """Create (or overwrite) the per-user config file.

    Args:
        server_url: Server URL to store (defaults to the built-in default)
        home_dir: Home directory override

    Returns:
        Path of the written config file
    """
    path = home_config_path(home_dir)
    write_config_file(path, {"server": server_url or DEFAULT_SERVER_URL})
    return path


def init_repo_config(
    directory: Path,
    server_url: Optional[str] = None,
    home_dir: Optional[Path] = None,
) -> Path:
    """Mark directory as a repository by creating its config file.

    Existing keys (such as a saved token) are preserved; only the server
    URL is replaced.

    Raises:
        HfileConfigError: If directory is the home directory
    """
    if directory.resolve() == (home_dir or Path.home()).resolve():
        raise HfileConfigError(
            "The home directory cannot be a repository; "
            "run 'hfile init-local' in a subdirectory"
        )
    path = repo_config_path(directory)
    data = read_config_file(path)
    data["server"] = server_url or DEFAULT_SERVER_URL
    write_config_file(path, data)
    return path


class Settings:
    """Resolved configuration for one command invocation."""

    def __init__(
        self,
        server_url: str = DEFAULT_SERVER_URL,
        token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        repo_root: Optional[Path] = None,
        home_dir: Optional[Path] = None,
        working_dir: Optional[Path] = None,
        sources: Optional[dict[str, str]] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.token = token
        self.refresh_token = refresh_token
        self.repo_root = repo_root
        self.home_dir = home_dir or Path.home()
        self.working_dir = working_dir or Path.cwd()
        self.sources = sources or {}

    @classmethod
    def load(
        cls,
        start_dir: Optional[Path] = None,
        server_override: Optional[str] = None,
        token_override: Optional[str] = None,
        home_dir: Optional[Path] = None,
    ) -> "Settings":
        """Resolve settings from overrides and the config file layers.

        Args:
            start_dir: Directory to search for a repository from (default: cwd)
            server_override: Server URL that takes precedence over config files
            token_override: Token that takes precedence over config files
            home_dir: Home directory override

        Returns:
            Settings instance
        """
        working_dir = (start_dir or Path.cwd()).resolve()
        home = home_dir or Path.home()
        repo_root = find_repo_root(working_dir, home)

        layers: list[tuple[str, dict[str, Any]]] = []
        if repo_root is not None:
            layers.append(("repository", read_config_file(repo_config_path(repo_root))))
        layers.append(("home", read_config_file(home_config_path(home))))

        sources: dict[str, str] = {}

        server_url = server_override
        if server_url:
            sources["server"] = "override"
        else:
            for name, data in layers:
                if data.get("server"):
                    server_url = str(data["server"])
                    sources["server"] = name
                    break
            else:
                server_url = DEFAULT_SERVER_URL
                sources["server"] = "default"

        token = token_override
        refresh_token: Optional[str] = None
        if token:
            sources["token"] = "override"
        else:
            for name, data in layers:
                if data.get("token"):
                    token = str(data["token"])
                    refresh_token = data.get("refresh_token") or None
                    sources["token"] = name
                    break

        logger.debug(
            "Resolved settings: server=%s (%s), repo=%s",
            server_url,
            sources["server"],
            repo_root,
        )
        return cls(
            server_url=server_url,
            token=token,
            refresh_token=refresh_token,
            repo_root=repo_root,
            home_dir=home,
            working_dir=working_dir,
            sources=sources,
        )

    @property
    def repo_name(self) -> Optional[str]:
        """Repository identity: base name of the repository root."""
        return self.repo_root.name if self.repo_root is not None else None

    def require_token(self) -> str:
        """Return the token or raise if the user is not logged in."""
        if not self.token:
            raise HfileConfigError(
                "No token configured. Run 'hfile login <user> <password>' first."
            )
        return self.token

    def require_repo(self) -> Path:
        """Return the repository root or raise if not inside a repository."""
        if self.repo_root is None:
            raise HfileRepositoryNotFoundError(
                "Not an hfile repository (or any of the parent directories): "
                f"{METADATA_DIR_NAME} not found. Run 'hfile init-local' first."
            )
        return self.repo_root

    def save_token(self, token: str, refresh_token: str = "") -> Path:
        """Persist tokens to the highest-priority existing config file.

        The repository config wins if it exists, then the home config. If
        neither exists a new config is created in the repository (or the
        working directory when outside a repository).

        Returns:
            Path of the config file that was written
        """
        candidates: list[Path] = []
        if self.repo_root is not None:
            candidates.append(repo_config_path(self.repo_root))
        candidates.append(home_config_path(self.home_dir))

        target = next((path for path in candidates if path.is_file()), None)
        if target is None:
            target = repo_config_path(self.repo_root or self.working_dir)

        data = read_config_file(target)
        data["token"] = token
        data["refresh_token"] = refresh_token
        data.setdefault("server", self.server_url)
        write_config_file(target, data)

        self.token = token
        self.refresh_token = refresh_token
        return target

    def describe(self) -> list[tuple[str, str]]:
        """Describe the active settings and each config layer for display."""
        rows = [
            ("Active server", f"{self.server_url} ({self.sources.get('server')})"),
            ("Repository", str(self.repo_root) if self.repo_root else "(none)"),
        ]

        layers: list[tuple[str, Path]] = []
        if self.repo_root is not None:
            layers.append(("Repository config", repo_config_path(self.repo_root)))
        layers.append(("Home config", home_config_path(self.home_dir)))

        for label, path in layers:
            if not path.is_file():
                rows.append((label, f"{path} (not found)"))
                continue
            data = read_config_file(path)
            token = data.get("token")
            rows.append(
                (
                    label,
                    f"{path} - server: {data.get('server', '')}, "
                    f"token: {mask_token(token) if token else '(none)'}",
                )
            )
        return rows
