"""Chapter skip decisions for live playback sessions.

The controller listens to playback progress and stop events. When the current
chapter's name matches the configured pattern it commands the session to seek
to the start of the next non-matching chapter, or to the end of the item when
the matched run reaches the last chapter.

Each session remembers the last seek target it was sent. A skip is only issued
when the reported position has moved strictly past that target, so repeated or
stale progress reports inside an already skipped region never fire twice.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import TYPE_CHECKING, Dict, Optional, Sequence

from .config import (
    AppConfig,
    ConfigurationError,
    SkipNotificationSettings,
    compile_match_pattern,
)
from .models import (
    Chapter,
    PlaybackProgressEvent,
    PlaybackStoppedEvent,
    SkipCommand,
    SkipStats,
)
from .utils import format_ticks

if TYPE_CHECKING:  # pragma: no cover
    from .commands import CommandSink
    from .config_source import ConfigurationSource
    from .session_monitor import SessionMonitor

LOGGER = logging.getLogger(__name__)


def _current_chapter_index(chapters: Sequence[Chapter], position_ticks: int) -> Optional[int]:
    for index in range(len(chapters) - 1, -1, -1):
        if chapters[index].start_position_ticks < position_ticks:
            return index
    return None


def _is_skippable(chapter: Chapter, pattern: re.Pattern[str]) -> bool:
    """A chapter without a name never ends a skip run."""
    return chapter.name is None or pattern.search(chapter.name) is not None


def _next_unmatched_start(chapters: Sequence[Chapter], start: int, pattern: re.Pattern[str]) -> Optional[int]:
    for chapter in chapters[start:]:
        if not _is_skippable(chapter, pattern):
            return chapter.start_position_ticks
    return None


class ChapterSkipController:
    """Seeks sessions past chapters whose names match the configured pattern."""

    def __init__(
        self,
        sessions: SessionMonitor,
        configuration: ConfigurationSource,
        commands: CommandSink,
        *,
        notification: Optional[SkipNotificationSettings] = None,
    ) -> None:
        self._sessions = sessions
        self._configuration = configuration
        self._commands = commands
        self._notification = notification or SkipNotificationSettings()
        self._pattern: Optional[re.Pattern[str]] = None
        self._last_targets: Dict[str, int] = {}
        # Bumped by stop(); decisions begun under an older generation are discarded
        self._generation = 0
        self._state_lock = threading.Lock()
        self._lifecycle_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._started = False
        self.stats = SkipStats()

    @property
    def pattern(self) -> Optional[re.Pattern[str]]:
        return self._pattern

    @property
    def started(self) -> bool:
        return self._started

    def set_pattern(self, raw: Optional[str], *, ignore_case: bool = False) -> None:
        """Replace the active match pattern.

        An empty pattern disables skipping. An invalid pattern also disables
        skipping and raises ConfigurationError.
        """
        try:
            compiled = compile_match_pattern(raw, ignore_case=ignore_case)
        except ConfigurationError:
            self._pattern = None
            raise
        self._pattern = compiled
        if compiled is None:
            LOGGER.info("Chapter skipping disabled (no match pattern configured)")
        else:
            LOGGER.info("Chapter skipping enabled for chapters matching %r", compiled.pattern)

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._started:
                return
            self._configuration.subscribe(self._on_configuration_changed, replay=True)
            self._sessions.playback_progress.subscribe(self.on_progress)
            self._sessions.playback_stopped.subscribe(self.on_stopped)
            self._started = True
        LOGGER.debug("Chapter skip controller started")

    def stop(self) -> None:
        with self._lifecycle_lock:
            if not self._started:
                return
            self._sessions.playback_progress.unsubscribe(self.on_progress)
            self._sessions.playback_stopped.unsubscribe(self.on_stopped)
            self._configuration.unsubscribe(self._on_configuration_changed)
            self._pattern = None
            with self._state_lock:
                self._last_targets.clear()
                self._generation += 1
            self._started = False
        LOGGER.debug("Chapter skip controller stopped")

    def _on_configuration_changed(self, config: AppConfig) -> None:
        skip = config.settings.skip
        self._notification = skip.notification
        self.set_pattern(skip.match, ignore_case=skip.ignore_case)

    def last_skip_target(self, session_id: str) -> Optional[int]:
        with self._state_lock:
            return self._last_targets.get(session_id)

    def tracked_sessions(self) -> list[str]:
        with self._state_lock:
            return sorted(self._last_targets)

    def on_progress(self, event: PlaybackProgressEvent) -> Optional[SkipCommand]:
        with self._state_lock:
            generation = self._generation
        pattern = self._pattern
        if pattern is None:
            return None

        item = event.item
        chapters = item.chapters if item is not None else ()
        if not chapters:
            return None

        position = event.position_ticks
        if position is None:
            return None

        index = _current_chapter_index(chapters, position)
        if index is None:
            return None

        chapter_name = chapters[index].name
        if chapter_name is None or not pattern.search(chapter_name):
            return None

        target = _next_unmatched_start(chapters, index + 1, pattern)
        to_end = False
        if target is None:
            runtime = item.runtime_ticks
            if runtime is None or position >= runtime:
                return None
            if not all(_is_skippable(chapter, pattern) for chapter in chapters[index + 1 :]):
                return None
            target = runtime
            to_end = True

        if not self._claim(event.session_id, position, target, generation):
            return None

        command = SkipCommand(
            session_id=event.session_id,
            controlling_user_id=event.user_id,
            target_ticks=target,
            chapter_name=chapter_name,
            item_name=item.name,
            position_ticks=position,
            to_end=to_end,
        )
        self._dispatch(command)
        return command

    def on_stopped(self, event: PlaybackStoppedEvent) -> None:
        with self._state_lock:
            removed = self._last_targets.pop(event.session_id, None)
        if removed is not None:
            LOGGER.debug("Cleared skip state for stopped session %s", event.session_id)

    def _claim(self, session_id: str, position_ticks: int, target_ticks: int, generation: int) -> bool:
        """Record ``target_ticks`` as the session's last skip target if the position has moved past the previous one.

        Nothing is recorded when the controller was stopped after the decision began.
        """
        with self._state_lock:
            if generation != self._generation:
                LOGGER.debug("Discarding skip decision for session %s made before the controller stopped", session_id)
                return False
            previous = self._last_targets.get(session_id)
            if previous is not None and (position_ticks <= previous or target_ticks <= previous):
                claimed = False
            else:
                self._last_targets[session_id] = target_ticks
                claimed = True

        if not claimed:
            LOGGER.debug(
                "Session %s at %s is not past its last skip target %s; not skipping again",
                session_id,
                format_ticks(position_ticks),
                format_ticks(previous),
            )
        return claimed

    def _dispatch(self, command: SkipCommand) -> None:
        notification = self._notification
        LOGGER.info(
            "Skipping chapter %r on session %s: %s -> %s%s",
            command.chapter_name,
            command.session_id,
            format_ticks(command.position_ticks),
            format_ticks(command.target_ticks),
            " (end of item)" if command.to_end else "",
        )
        with self._stats_lock:
            self.stats.register_skip(command)

        try:
            self._commands.send_seek(command.session_id, command.controlling_user_id, command.target_ticks)
        except Exception:  # noqa: BLE001 - dispatch is fire-and-forget
            LOGGER.exception("Failed to send seek command to session %s", command.session_id)
            self._register_failure()

        if not notification.enabled:
            return

        try:
            self._commands.send_notification(
                command.session_id,
                notification.header,
                notification.render_text(command.chapter_name, command.item_name),
                notification.timeout_ms,
            )
        except Exception:  # noqa: BLE001 - dispatch is fire-and-forget
            LOGGER.exception("Failed to send skip notification to session %s", command.session_id)
            self._register_failure()

    def _register_failure(self) -> None:
        with self._stats_lock:
            self.stats.register_failure()


__all__ = ["ChapterSkipController"]
