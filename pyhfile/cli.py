"""CLI interface for the hfile sync client."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import HfileClient
from .config import Settings, init_home_config, init_repo_config
from .exceptions import HfileAPIError, HfileServerError
from .output import OutputFormatter
from .sync import SyncEngine

logger = logging.getLogger(__name__)

ignore_option = click.option(
    "--ignore",
    "-i",
    "ignore",
    multiple=True,
    help="Glob pattern to exclude from the local scan (repeatable)",
)


def _load_settings(ctx: Any) -> Settings:
    """Resolve settings for this invocation from options and config files."""
    return Settings.load(
        server_override=ctx.obj.get("server"),
        token_override=ctx.obj.get("token"),
    )


def _run_sync_command(
    ctx: Any, command: str, ignore: tuple[str, ...], **kwargs: Any
) -> Any:
    """Shared body of push/pull/status.

    Failures that prevent building a plan exit with status 1. Per-file
    transfer failures are reported by the engine and do not change the
    exit status.
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        settings = _load_settings(ctx)
        token = settings.require_token()
        settings.require_repo()
    except HfileAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return None

    logger.debug(
        "Using server %s for repo %s", settings.server_url, settings.repo_name
    )

    try:
        with HfileClient(server_url=settings.server_url, token=token) as client:
            engine = SyncEngine(client, settings, out, ignore_patterns=list(ignore))
            result = getattr(engine, command)(**kwargs)
    except KeyboardInterrupt:
        out.warning("\nCancelled by user")
        ctx.exit(130)
        return None
    except HfileAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return None
    except OSError as e:
        out.error(f"Local file error: {e}")
        ctx.exit(1)
        return None

    if out.json_output:
        out.output_json(result.to_dict())
    return result


@click.group()
@click.option(
    "--server",
    "-s",
    envvar="HFILE_SERVER",
    help="Server URL (overrides config files)",
)
@click.option(
    "--token",
    "-t",
    envvar="HFILE_TOKEN",
    help="Access token (overrides config files)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pyhfile")
@click.pass_context
def main(
    ctx: Any,
    server: Optional[str],
    token: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """hfile - sync a local directory with an hfile server."""
    ctx.ensure_object(dict)
    ctx.obj["server"] = server
    ctx.obj["token"] = token
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pyhfile").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("server_url", required=False)
@click.pass_context
def init(ctx: Any, server_url: Optional[str]) -> None:
    """Initialize the user config file (~/.hfile/config.toml)."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        path = init_home_config(server_url or ctx.obj.get("server"))
        settings = _load_settings(ctx)
    except HfileAPIError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
        return

    out.print_summary(
        "Initialization Complete",
        [
            ("Config file", str(path)),
            ("Server URL", settings.server_url),
        ],
    )


@main.command("init-local")
@click.argument("server_url", required=False)
@click.pass_context
def init_local(ctx: Any, server_url: Optional[str]) -> None:
    """Mark the current directory as an hfile repository."""
    out: OutputFormatter = ctx.obj["out"]
    directory = Path.cwd()

    try:
        path = init_repo_config(directory, server_url or ctx.obj.get("server"))
    except HfileAPIError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)
        return

    out.print_summary(
        "Repository Initialized",
        [
            ("Repository", directory.name),
            ("Config file", str(path)),
        ],
    )


@main.group("config")
def config_group() -> None:
    """Inspect configuration."""


@config_group.command("list")
@click.pass_context
def config_list(ctx: Any) -> None:
    """Show the active server and every config layer."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        settings = _load_settings(ctx)
        rows = settings.describe()
    except HfileAPIError as e:
        out.error(str(e))
        ctx.exit(1)
        return

    if out.json_output:
        out.output_json(dict(rows))
    else:
        for label, value in rows:
            out.console.print(f"{label}: {value}", markup=False)


@main.command()
@click.argument("username")
@click.argument("password")
@click.pass_context
def register(ctx: Any, username: str, password: str) -> None:
    """Register a new account (USERNAME may be an email address)."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        settings = _load_settings(ctx)
        out.info(f"Using server: {settings.server_url}")
        with HfileClient(server_url=settings.server_url) as client:
            client.register(username, password)
    except HfileServerError as e:
        out.error(f"Registration failed: {e}")
        for item in e.details:
            if isinstance(item, dict):
                out.error(f"  {item.get('field')}: {item.get('messages')}")
        ctx.exit(1)
        return
    except HfileAPIError as e:
        out.error(f"Registration failed: {e}")
        ctx.exit(1)
        return

    out.success("Registration successful!")


@main.command()
@click.argument("username")
@click.argument("password")
@click.pass_context
def login(ctx: Any, username: str, password: str) -> None:
    """Log in and store the access token."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        settings = _load_settings(ctx)
        out.info(f"Using server: {settings.server_url}")
        with HfileClient(server_url=settings.server_url) as client:
            tokens = client.login(username, password)
        path = settings.save_token(tokens.token, tokens.refresh_token)
    except HfileAPIError as e:
        out.error(f"Login failed: {e}")
        ctx.exit(1)
        return

    out.success("Login successful!")
    out.info(f"Token saved to: {path}")


@main.command()
@click.option(
    "--dry-run", is_flag=True, help="Show what would be uploaded without uploading"
)
@ignore_option
@click.pass_context
def push(ctx: Any, dry_run: bool, ignore: tuple[str, ...]) -> None:
    """Upload local files that are new or newer than the remote copy."""
    _run_sync_command(ctx, "push", ignore, dry_run=dry_run)


@main.command()
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would be downloaded without downloading",
)
@ignore_option
@click.pass_context
def pull(ctx: Any, dry_run: bool, ignore: tuple[str, ...]) -> None:
    """Download remote files that are new or newer than the local copy."""
    _run_sync_command(ctx, "pull", ignore, dry_run=dry_run)


@main.command()
@ignore_option
@click.pass_context
def status(ctx: Any, ignore: tuple[str, ...]) -> None:
    """Show pending uploads and downloads without transferring anything."""
    _run_sync_command(ctx, "status", ignore)


if __name__ == "__main__":
    main()
