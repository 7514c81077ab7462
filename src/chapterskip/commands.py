from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .utils import format_ticks

if TYPE_CHECKING:  # pragma: no cover
    from .config import AppConfig
    from .jellyfin_client import JellyfinClient

LOGGER = logging.getLogger(__name__)


class CommandSink:
    """Delivers playback commands to a client session."""

    name: str = "sink"

    def send_seek(self, session_id: str, controlling_user_id: Optional[str], target_ticks: int) -> None:
        raise NotImplementedError

    def send_notification(self, session_id: str, header: str, text: str, timeout_ms: Optional[int]) -> None:
        raise NotImplementedError


class JellyfinCommandSink(CommandSink):
    name = "jellyfin"

    def __init__(self, client: JellyfinClient) -> None:
        self._client = client

    def send_seek(self, session_id: str, controlling_user_id: Optional[str], target_ticks: int) -> None:
        self._client.send_seek(session_id, controlling_user_id, target_ticks)

    def send_notification(self, session_id: str, header: str, text: str, timeout_ms: Optional[int]) -> None:
        self._client.send_message(session_id, header, text, timeout_ms)


class DryRunCommandSink(CommandSink):
    """Logs the commands that would be sent instead of sending them."""

    name = "dry-run"

    def send_seek(self, session_id: str, controlling_user_id: Optional[str], target_ticks: int) -> None:
        LOGGER.info(
            "[dry-run] Would seek session %s to %s (%d ticks)",
            session_id,
            format_ticks(target_ticks),
            target_ticks,
        )

    def send_notification(self, session_id: str, header: str, text: str, timeout_ms: Optional[int]) -> None:
        LOGGER.info("[dry-run] Would notify session %s: %s - %s", session_id, header, text)


class ConfiguredCommandSink(CommandSink):
    """Routes commands to the live or dry-run sink according to ``settings.dry_run``.

    Subscribe ``on_configuration_changed`` to a configuration source so that
    toggling dry-run in the config file takes effect without a restart.
    """

    name = "configured"

    def __init__(self, client: JellyfinClient, *, dry_run: bool = False) -> None:
        self._live = JellyfinCommandSink(client)
        self._dry_run = DryRunCommandSink()
        self._active: CommandSink = self._dry_run if dry_run else self._live

    @property
    def dry_run(self) -> bool:
        return self._active is self._dry_run

    @property
    def active(self) -> CommandSink:
        return self._active

    def on_configuration_changed(self, config: AppConfig) -> None:
        dry_run = config.settings.dry_run
        if dry_run == self.dry_run:
            return
        self._active = self._dry_run if dry_run else self._live
        if dry_run:
            LOGGER.warning("Dry-run enabled; seek and notification commands will only be logged")
        else:
            LOGGER.warning("Dry-run disabled; seek and notification commands will be sent to Jellyfin")

    def send_seek(self, session_id: str, controlling_user_id: Optional[str], target_ticks: int) -> None:
        self._active.send_seek(session_id, controlling_user_id, target_ticks)

    def send_notification(self, session_id: str, header: str, text: str, timeout_ms: Optional[int]) -> None:
        self._active.send_notification(session_id, header, text, timeout_ms)


__all__ = ["CommandSink", "ConfiguredCommandSink", "DryRunCommandSink", "JellyfinCommandSink"]
