from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .events import EventHook
from .jellyfin_client import JellyfinApiError
from .models import NowPlayingItem, PlaybackProgressEvent, PlaybackStoppedEvent, SessionInfo

if TYPE_CHECKING:  # pragma: no cover
    from .jellyfin_client import JellyfinClient

LOGGER = logging.getLogger(__name__)


class SessionMonitor:
    """Polls the server's sessions and turns them into playback events.

    A progress event is emitted on every poll for each session that has a
    now-playing item. A stopped event is emitted once when a session
    disappears, stops playing, or switches to a different item.
    """

    def __init__(
        self,
        client: JellyfinClient,
        *,
        poll_interval: float = 1.0,
        active_within_seconds: Optional[int] = None,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self._active_within_seconds = active_within_seconds
        self.playback_progress: EventHook[PlaybackProgressEvent] = EventHook("playback_progress")
        self.playback_stopped: EventHook[PlaybackStoppedEvent] = EventHook("playback_stopped")
        # session id -> item currently playing in that session
        self._playing: Dict[str, NowPlayingItem] = {}
        # item id -> item fetched because the session payload carried no chapters
        self._item_cache: Dict[str, NowPlayingItem] = {}

    @property
    def playing_sessions(self) -> List[str]:
        return sorted(self._playing)

    def poll_once(self) -> None:
        try:
            sessions = self._client.list_sessions(active_within_seconds=self._active_within_seconds)
        except JellyfinApiError as exc:
            LOGGER.warning("Unable to list sessions: %s", exc)
            return

        current: Dict[str, Tuple[SessionInfo, NowPlayingItem]] = {}
        for session in sessions:
            if session.now_playing is not None and session.now_playing.id:
                current[session.id] = (session, session.now_playing)

        for session_id, item in list(self._playing.items()):
            entry = current.get(session_id)
            if entry is None or entry[1].id != item.id:
                self._emit_stopped(session_id, item)

        for session_id, (session, now_playing) in current.items():
            item = self._resolve_item(session, now_playing)
            if session_id not in self._playing:
                LOGGER.debug("Session %s started playing %s", session.describe(), item.name or item.id)
            self._playing[session_id] = item
            self.playback_progress.emit(
                PlaybackProgressEvent(
                    session_id=session_id,
                    user_id=session.user_id,
                    position_ticks=session.position_ticks,
                    item=item,
                )
            )

        playing_items = {item.id for item in self._playing.values()}
        for item_id in list(self._item_cache):
            if item_id not in playing_items:
                del self._item_cache[item_id]

    def run_forever(self, stop_event: threading.Event) -> None:
        LOGGER.info("Polling sessions every %.1fs", self._poll_interval)
        while not stop_event.is_set():
            self.poll_once()
            stop_event.wait(self._poll_interval)

    def stop(self) -> None:
        for session_id, item in list(self._playing.items()):
            self._emit_stopped(session_id, item)

    def _emit_stopped(self, session_id: str, item: NowPlayingItem) -> None:
        self._playing.pop(session_id, None)
        LOGGER.debug("Session %s stopped playing %s", session_id, item.name or item.id)
        self.playback_stopped.emit(PlaybackStoppedEvent(session_id=session_id, item=item))

    def _resolve_item(self, session: SessionInfo, item: NowPlayingItem) -> NowPlayingItem:
        if item.chapters_loaded or not session.user_id:
            return item

        cached = self._item_cache.get(item.id)
        if cached is not None:
            return cached

        try:
            fetched = self._client.get_item(session.user_id, item.id)
        except JellyfinApiError as exc:
            LOGGER.warning("Unable to load chapters for %s: %s", item.name or item.id, exc)
            return item

        fetched = replace(
            fetched,
            id=item.id,
            runtime_ticks=fetched.runtime_ticks if fetched.runtime_ticks is not None else item.runtime_ticks,
        )
        self._item_cache[item.id] = fetched
        return fetched


__all__ = ["SessionMonitor"]
