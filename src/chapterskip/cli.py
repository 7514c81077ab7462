from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

import yaml
from rich.console import Console
from rich.markup import escape

from .banner import build_banner_info, print_startup_banner
from .commands import ConfiguredCommandSink
from .config import AppConfig, ConfigurationError, compile_match_pattern, load_config
from .config_source import ConfigFileWatcher, ConfigurationSource
from .jellyfin_client import JellyfinClient
from .logging_utils import configure_logging, render_fields_block
from .session_monitor import SessionMonitor
from .skipper import ChapterSkipController
from .version import __version__

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/config/chapterskip.yaml"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chapterskip",
        description="Automatically skip Jellyfin chapters whose titles match a pattern.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)),
        help="Path to the chapterskip YAML config (default: $CONFIG_PATH or %(default)s)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-level", choices=sorted(LOG_LEVELS), help="Explicit log level (overrides --verbose)")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("run", help="Watch playback sessions and skip matching chapters (default)")
    subparsers.add_parser("validate", help="Validate the configuration and match pattern, then exit")
    return parser


def _resolve_log_level(args: argparse.Namespace) -> int:
    if args.log_level:
        return LOG_LEVELS[args.log_level]
    return logging.DEBUG if args.verbose else logging.INFO


def _load(path: Path) -> Optional[AppConfig]:
    try:
        return load_config(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        LOGGER.error("Failed to load config %s: %s", path, exc)
        return None


def validate_config(args: argparse.Namespace, console: Optional[Console] = None) -> int:
    console = console or Console()
    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        console.print(f"[bold red]✗ Failed to load {escape(str(args.config))}:[/bold red] {escape(str(exc))}")
        return 1

    skip = config.settings.skip
    try:
        pattern = compile_match_pattern(skip.match, ignore_case=skip.ignore_case)
    except ConfigurationError as exc:
        console.print(f"[bold red]✗ {escape(str(exc))}[/bold red]")
        return 1

    if pattern is None:
        console.print("[yellow]No 'skip.match' pattern configured; chapter skipping is disabled.[/yellow]")
    if not config.settings.jellyfin.url or not config.settings.jellyfin.api_key:
        console.print("[yellow]'jellyfin.url' and 'jellyfin.api_key' are required to run the service.[/yellow]")
    console.print("[bold green]✓ Configuration passed validation.[/bold green]")
    return 0


def run_service(
    args: argparse.Namespace,
    *,
    console: Optional[Console] = None,
    stop_event: Optional[threading.Event] = None,
) -> int:
    configure_logging(_resolve_log_level(args), log_file=args.log_file)

    config = _load(args.config)
    if config is None:
        return 1

    print_startup_banner(build_banner_info(config, verbose=args.verbose), console or Console())

    jellyfin = config.settings.jellyfin
    if not jellyfin.url or not jellyfin.api_key:
        LOGGER.error("'jellyfin.url' and 'jellyfin.api_key' must be configured (or set JELLYFIN_URL/JELLYFIN_API_KEY)")
        return 2

    client = JellyfinClient(jellyfin.url, jellyfin.api_key, timeout=jellyfin.timeout)
    source = ConfigurationSource(args.config, config)
    monitor = SessionMonitor(
        client,
        poll_interval=jellyfin.poll_interval,
        active_within_seconds=jellyfin.active_within_seconds,
    )
    sink = ConfiguredCommandSink(client, dry_run=config.settings.dry_run)
    source.subscribe(sink.on_configuration_changed)
    controller = ChapterSkipController(
        monitor,
        source,
        sink,
        notification=config.settings.skip.notification,
    )
    watcher = ConfigFileWatcher(source, config.settings.config_watcher) if config.settings.config_watcher.enabled else None

    LOGGER.info(
        render_fields_block(
            "Chapter Skip Service",
            [
                ("Server", jellyfin.url),
                ("Match", config.settings.skip.match or "(disabled)"),
                ("Ignore case", config.settings.skip.ignore_case),
                ("Dry run", config.settings.dry_run),
                ("Poll interval", f"{jellyfin.poll_interval:g}s"),
                ("Config reload", watcher is not None),
            ],
        )
    )

    stop_event = stop_event or threading.Event()
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, lambda *_: stop_event.set())

    controller.start()
    if watcher is not None:
        watcher.start()
    try:
        monitor.run_forever(stop_event)
    except KeyboardInterrupt:
        LOGGER.info("Interrupted; shutting down")
    finally:
        monitor.stop()
        controller.stop()
        if watcher is not None:
            watcher.stop()
        source.unsubscribe(sink.on_configuration_changed)
        stats = controller.stats
        LOGGER.info(
            render_fields_block(
                "Chapter Skip Summary",
                [
                    ("Skips", stats.skips),
                    ("Skips to end", stats.skips_to_end),
                    ("Dispatch failures", stats.dispatch_failures),
                    ("Chapters", [f"{name} x{count}" for name, count in sorted(stats.skipped_chapters.items())]),
                ],
            )
        )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "validate":
        return validate_config(args)
    return run_service(args)


if __name__ == "__main__":
    sys.exit(main())
