"""Adapter to convert Jellyfin API responses to chapterskip dataclass models."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional, Tuple

from .models import Chapter, NowPlayingItem, SessionInfo

if TYPE_CHECKING:
    from .jellyfin_models import ChapterResponse, ItemResponse, SessionResponse


class JellyfinAdapter:
    """Converts Jellyfin API responses to chapterskip dataclass models."""

    def to_chapter(self, response: ChapterResponse) -> Optional[Chapter]:
        """Convert ChapterResponse to Chapter, or None without a usable start position."""
        start = response.start_position_ticks
        if start is None or start < 0:
            return None
        return Chapter(name=response.name, start_position_ticks=start)

    def to_chapters(self, responses: Optional[Iterable[ChapterResponse]]) -> Tuple[Chapter, ...]:
        """Convert a chapter list, ordered by start position.

        Args:
            responses: API chapter entries, possibly unordered

        Returns:
            Tuple of chapters with non-decreasing start positions
        """
        chapters = [chapter for chapter in (self.to_chapter(entry) for entry in responses or ()) if chapter is not None]
        chapters.sort(key=lambda chapter: chapter.start_position_ticks)
        return tuple(chapters)

    def to_item(self, response: ItemResponse) -> NowPlayingItem:
        """Convert ItemResponse to NowPlayingItem.

        Args:
            response: API item response

        Returns:
            NowPlayingItem dataclass; ``chapters_loaded`` is False when the
            payload carried no chapter list at all
        """
        return NowPlayingItem(
            id=response.id,
            name=response.name,
            chapters=self.to_chapters(response.chapters),
            runtime_ticks=response.run_time_ticks,
            chapters_loaded=response.chapters is not None,
        )

    def to_session(self, response: SessionResponse) -> SessionInfo:
        play_state = response.play_state
        return SessionInfo(
            id=response.id,
            user_id=response.user_id,
            now_playing=self.to_item(response.now_playing_item) if response.now_playing_item is not None else None,
            position_ticks=play_state.position_ticks if play_state else None,
            is_paused=play_state.is_paused if play_state else False,
            client=response.client,
            device_name=response.device_name,
        )
