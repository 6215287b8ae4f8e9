"""Command line for checking a torrent daemon through unitorrent.

Provides:
- Backend probing (family and version)
- Torrent list and detail tables
- Global transfer settings
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import aiohttp
import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from unitorrent.adapter.base import BaseAdapter
from unitorrent.adapter.detect import detect_backend
from unitorrent.adapter.factory import create_adapter
from unitorrent.adapter.transmission.normalize import RATIO_INFINITE
from unitorrent.config.config import ConfigManager, init_config
from unitorrent.exceptions import UnitorrentError
from unitorrent.models import BackendType, Config, LogLevel
from unitorrent.utils.logging_config import set_correlation_id, setup_logging
from unitorrent.utils.version import get_version

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")

_STATE_STYLES = {
    "downloading": "green",
    "seeding": "cyan",
    "paused": "dim",
    "checking": "yellow",
    "queued": "blue",
    "error": "red",
}


def format_bytes(value: int | float | None) -> str:
    """Human-readable size with 1024-based units."""
    if value is None:
        return "-"
    size = float(value)
    for unit in _UNITS:
        if abs(size) < 1024 or unit == _UNITS[-1]:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {_UNITS[-1]}"  # pragma: no cover


def format_speed(value: int | None) -> str:
    if not value:
        return "-"
    return f"{format_bytes(value)}/s"


def format_limit(value: int) -> str:
    return "unlimited" if value <= 0 else format_speed(value)


def format_ratio(value: float) -> str:
    if value == RATIO_INFINITE:
        return "∞"
    if value < 0:
        return "-"
    return f"{value:.2f}"


def format_eta(seconds: int) -> str:
    if seconds < 0:
        return "∞"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes:02d}m"
    return f"{minutes}m{secs:02d}s"


def _raise_cli_error(message: str) -> None:
    """Raise a ClickException with the given message."""
    raise click.ClickException(message) from None


def _config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


def _run(coro: Awaitable[T]) -> T:
    try:
        return asyncio.run(coro)  # type: ignore[arg-type]
    except UnitorrentError as e:
        logger.debug("Command failed", exc_info=True)
        raise click.ClickException(str(e)) from e
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.debug("Command failed", exc_info=True)
        msg = f"Connection failed: {e or type(e).__name__}"
        raise click.ClickException(msg) from e


async def _with_adapter(config: Config, action: Callable[[BaseAdapter], Awaitable[T]]) -> T:
    adapter = await create_adapter(config.backend)
    async with adapter:
        return await action(adapter)


@click.group()
@click.version_option(version=get_version(), prog_name="unitorrent")
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path",
)
@click.option("--url", help="Backend RPC URL (overrides the config file)")
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: info, -vv: debug)",
)
@click.pass_context
def cli(ctx: click.Context, config_file: str | None, url: str | None, verbose: int) -> None:
    """unitorrent - inspect torrent daemons through one uniform API."""
    ctx.ensure_object(dict)
    try:
        manager: ConfigManager = init_config(config_file, configure_logging=False)
        cfg = manager.apply_overrides({"backend.url": url})
    except UnitorrentError as e:
        _raise_cli_error(str(e))
        return

    observability = cfg.observability
    if verbose >= 2:
        observability = observability.model_copy(update={"log_level": LogLevel.DEBUG})
    elif verbose == 1:
        observability = observability.model_copy(update={"log_level": LogLevel.INFO})
    setup_logging(observability)
    set_correlation_id()

    ctx.obj["config"] = cfg
    ctx.obj["verbosity"] = verbose
    ctx.obj["console"] = Console()


@cli.command()
@click.pass_context
def probe(ctx: click.Context) -> None:
    """Detect the backend family and version at the configured URL."""
    cfg = _config(ctx)
    console: Console = ctx.obj["console"]
    forced = (
        None
        if cfg.backend.backend_type == "auto"
        else BackendType(cfg.backend.backend_type)
    )
    version = _run(
        detect_backend(
            cfg.backend.url,
            timeout=min(cfg.backend.timeout, 3.0),
            forced=forced,
            username=cfg.backend.username,
            password=cfg.backend.password,
        )
    )

    table = Table(title="Backend")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("URL", escape(cfg.backend.url))
    table.add_row("Type", version.type.value)
    table.add_row("Version", escape(version.version))
    if version.rpc_semver:
        table.add_row("RPC version", escape(version.rpc_semver))
    if version.api_version:
        table.add_row("API version", escape(version.api_version))
    if version.is_unknown:
        table.add_row("Note", "[yellow]version not revealed (authentication?)[/yellow]")
    console.print(table)


@cli.command("list")
@click.option("--state", help="Only show torrents in this state")
@click.pass_context
def list_torrents(ctx: click.Context, state: str | None) -> None:
    """List all torrents."""
    cfg = _config(ctx)
    console: Console = ctx.obj["console"]
    result = _run(_with_adapter(cfg, lambda adapter: adapter.fetch_list()))

    torrents = sorted(result.torrents.values(), key=lambda t: t.name.lower())
    if state:
        torrents = [t for t in torrents if t.state.value == state.lower()]

    table = Table(title=f"Torrents ({len(torrents)})")
    table.add_column("Name", style="cyan", overflow="fold")
    table.add_column("State")
    table.add_column("Progress", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Down", justify="right")
    table.add_column("Up", justify="right")
    table.add_column("ETA", justify="right")
    table.add_column("Category")
    table.add_column("Tags")
    for t in torrents:
        style = _STATE_STYLES.get(t.state.value, "white")
        table.add_row(
            escape(t.name),
            f"[{style}]{t.state.value}[/{style}]",
            f"{t.progress * 100:.1f}%",
            format_bytes(t.size),
            format_speed(t.dlspeed),
            format_speed(t.upspeed),
            format_eta(t.eta),
            escape(t.category or "/"),
            escape(", ".join(t.tags)),
        )
    console.print(table)

    server = result.server_state
    if server is not None:
        console.print(
            f"[bold]Total:[/bold] down {format_speed(server.dl_info_speed)}, "
            f"up {format_speed(server.up_info_speed)}, {server.peers} peers"
        )


@cli.command()
@click.argument("torrent_id")
@click.pass_context
def detail(ctx: click.Context, torrent_id: str) -> None:
    """Show files and trackers of one torrent."""
    cfg = _config(ctx)
    console: Console = ctx.obj["console"]
    info = _run(_with_adapter(cfg, lambda adapter: adapter.fetch_detail(torrent_id)))

    summary = Table(title=escape(info.name or info.id))
    summary.add_column("Property", style="cyan")
    summary.add_column("Value")
    summary.add_row("Hash", escape(info.id))
    summary.add_row("State", info.state.value)
    summary.add_row("Progress", f"{info.progress * 100:.1f}%")
    summary.add_row("Save path", escape(info.save_path))
    summary.add_row("Ratio", format_ratio(info.ratio))
    summary.add_row(
        "Seeds",
        f"{info.num_seeds if info.num_seeds is not None else '-'}"
        f" ({info.total_seeds if info.total_seeds is not None else '?'})",
    )
    summary.add_row(
        "Peers",
        f"{info.num_peers if info.num_peers is not None else '-'}"
        f" ({info.total_peers if info.total_peers is not None else '?'})",
    )
    summary.add_row("Download limit", format_limit(info.dl_limit))
    summary.add_row("Upload limit", format_limit(info.up_limit))
    console.print(summary)

    files = Table(title=f"Files ({len(info.files)})")
    files.add_column("#", justify="right")
    files.add_column("Name", overflow="fold")
    files.add_column("Size", justify="right")
    files.add_column("Progress", justify="right")
    files.add_column("Priority")
    for f in info.files:
        files.add_row(
            str(f.id),
            escape(f.name),
            format_bytes(f.size),
            f"{f.progress * 100:.1f}%",
            f.priority.value,
        )
    console.print(files)

    trackers = Table(title=f"Trackers ({len(info.trackers)})")
    trackers.add_column("Tier", justify="right")
    trackers.add_column("URL", overflow="fold")
    trackers.add_column("Status")
    trackers.add_column("Peers", justify="right")
    trackers.add_column("Message")
    for tr in info.trackers:
        trackers.add_row(
            str(tr.tier), escape(tr.url), tr.status.value, str(tr.peers), escape(tr.msg)
        )
    console.print(trackers)


@cli.command()
@click.pass_context
def settings(ctx: click.Context) -> None:
    """Show global transfer settings."""
    cfg = _config(ctx)
    console: Console = ctx.obj["console"]
    values = _run(_with_adapter(cfg, lambda adapter: adapter.get_transfer_settings()))

    table = Table(title="Transfer settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    rows: list[tuple[str, Any]] = [
        ("Download limit", format_limit(values.download_limit)),
        ("Upload limit", format_limit(values.upload_limit)),
        ("Alternate speeds", "on" if values.alt_enabled else "off"),
        ("Alternate download limit", format_limit(values.alt_download_limit)),
        ("Alternate upload limit", format_limit(values.alt_upload_limit)),
        ("Speed unit", f"{values.speed_bytes} B"),
    ]
    for name, value in rows:
        table.add_row(name, str(value))
    console.print(table)


def main() -> None:
    """Main CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
