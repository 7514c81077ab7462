from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import AppConfig
from .version import __version__


@dataclass
class BannerInfo:
    version: str
    dry_run: bool
    verbose: bool
    server_url: Optional[str]
    match: Optional[str]
    ignore_case: bool
    poll_interval: float
    notifications_enabled: bool
    config_watch: bool


def build_banner_info(config: AppConfig, verbose: bool = False) -> BannerInfo:
    """Build a BannerInfo instance from AppConfig and runtime settings."""
    settings = config.settings
    return BannerInfo(
        version=__version__,
        dry_run=settings.dry_run,
        verbose=verbose,
        server_url=settings.jellyfin.url,
        match=settings.skip.match,
        ignore_case=settings.skip.ignore_case,
        poll_interval=settings.jellyfin.poll_interval,
        notifications_enabled=settings.skip.notification.enabled,
        config_watch=settings.config_watcher.enabled,
    )


def print_startup_banner(info: BannerInfo, console: Console) -> None:
    """Print a styled startup banner showing version and configuration."""
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="cyan bold", no_wrap=True)
    table.add_column("Value", style="white")

    table.add_row("Version", f"[bold]{info.version}[/bold]")

    mode_parts = []
    if info.dry_run:
        mode_parts.append("[yellow]DRY-RUN[/yellow]")
    if info.verbose:
        mode_parts.append("[cyan]VERBOSE[/cyan]")
    if mode_parts:
        table.add_row("Mode", " ".join(mode_parts))

    table.add_row("Server", info.server_url or "[red](not configured)[/red]")
    if info.match:
        suffix = " [dim](ignore case)[/dim]" if info.ignore_case else ""
        table.add_row("Match", f"[bold]{escape(info.match)}[/bold]{suffix}")
    else:
        table.add_row("Match", "[yellow]disabled[/yellow]")
    table.add_row("Poll Interval", f"{info.poll_interval:g}s")

    features = []
    if info.notifications_enabled:
        features.append("[green]Notifications[/green]")
    if info.config_watch:
        features.append("[green]Config Reload[/green]")
    if features:
        table.add_row("Features", " · ".join(features))

    panel = Panel(
        table,
        title="[bold white]CHAPTERSKIP[/bold white]",
        border_style="blue",
        padding=(1, 2),
    )

    console.print()
    console.print(panel)
    console.print()
