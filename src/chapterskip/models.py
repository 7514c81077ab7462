from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Chapter:
    name: Optional[str]
    start_position_ticks: int


@dataclass(frozen=True, slots=True)
class NowPlayingItem:
    id: str
    name: Optional[str] = None
    chapters: Tuple[Chapter, ...] = ()
    runtime_ticks: Optional[int] = None
    # False when the payload carried no chapter info at all (as opposed to an empty list)
    chapters_loaded: bool = True


@dataclass(frozen=True, slots=True)
class SessionInfo:
    id: str
    user_id: Optional[str]
    now_playing: Optional[NowPlayingItem]
    position_ticks: Optional[int] = None
    is_paused: bool = False
    client: Optional[str] = None
    device_name: Optional[str] = None

    def describe(self) -> str:
        parts = [part for part in (self.client, self.device_name) if part]
        label = " / ".join(parts)
        return f"{self.id} ({label})" if label else self.id


@dataclass(frozen=True, slots=True)
class PlaybackProgressEvent:
    session_id: str
    user_id: Optional[str]
    position_ticks: Optional[int]
    item: Optional[NowPlayingItem]


@dataclass(frozen=True, slots=True)
class PlaybackStoppedEvent:
    session_id: str
    item: Optional[NowPlayingItem] = None


@dataclass(frozen=True, slots=True)
class SkipCommand:
    session_id: str
    controlling_user_id: Optional[str]
    target_ticks: int
    chapter_name: str
    item_name: Optional[str] = None
    position_ticks: Optional[int] = None
    to_end: bool = False


@dataclass(slots=True)
class SkipStats:
    """Counters for skips issued and command dispatch failures."""

    skips: int = 0
    skips_to_end: int = 0
    dispatch_failures: int = 0
    skipped_chapters: Dict[str, int] = field(default_factory=dict)

    def register_skip(self, command: SkipCommand) -> None:
        self.skips += 1
        if command.to_end:
            self.skips_to_end += 1
        self.skipped_chapters[command.chapter_name] = self.skipped_chapters.get(command.chapter_name, 0) + 1

    def register_failure(self) -> None:
        self.dispatch_failures += 1
