"""Tests for Jellyfin response models and the dataclass adapter."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from chapterskip.jellyfin_adapter import JellyfinAdapter
from chapterskip.jellyfin_models import ChapterResponse, ItemResponse, SessionResponse
from chapterskip.models import Chapter


def _session_payload(**overrides):
    payload = {
        "Id": "abc123",
        "UserId": "user-1",
        "Client": "Jellyfin Web",
        "DeviceName": "Firefox",
        "PlayState": {"PositionTicks": 12345, "IsPaused": False},
        "NowPlayingItem": {
            "Id": "item-9",
            "Name": "Pilot",
            "RunTimeTicks": 26000000000,
            "Chapters": [
                {"Name": "Intro", "StartPositionTicks": 0},
                {"Name": "Episode", "StartPositionTicks": 900000000},
            ],
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def adapter() -> JellyfinAdapter:
    return JellyfinAdapter()


class TestChapters:
    def test_to_chapter(self, adapter) -> None:
        assert adapter.to_chapter(ChapterResponse.model_validate({"Name": "Intro", "StartPositionTicks": 10})) == Chapter(
            "Intro", 10
        )

    def test_numeric_string_start_is_coerced(self, adapter) -> None:
        response = ChapterResponse.model_validate({"StartPositionTicks": "20"})
        assert adapter.to_chapter(response) == Chapter(None, 20)

    def test_chapter_without_usable_start_is_dropped(self, adapter) -> None:
        assert adapter.to_chapter(ChapterResponse.model_validate({"Name": "Intro"})) is None
        assert adapter.to_chapter(ChapterResponse.model_validate({"Name": "Intro", "StartPositionTicks": -5})) is None

    def test_to_chapters_orders_by_start(self, adapter) -> None:
        item = ItemResponse.model_validate(
            {
                "Id": "x",
                "Chapters": [
                    {"Name": "Credits", "StartPositionTicks": 600},
                    {"Name": "Intro", "StartPositionTicks": 0},
                    {"Name": "Broken"},
                ],
            }
        )
        assert adapter.to_chapters(item.chapters) == (Chapter("Intro", 0), Chapter("Credits", 600))

    def test_to_chapters_handles_none(self, adapter) -> None:
        assert adapter.to_chapters(None) == ()


class TestItems:
    def test_to_item(self, adapter) -> None:
        item = adapter.to_item(ItemResponse.model_validate(_session_payload()["NowPlayingItem"]))

        assert item.id == "item-9"
        assert item.name == "Pilot"
        assert item.runtime_ticks == 26000000000
        assert [chapter.name for chapter in item.chapters] == ["Intro", "Episode"]
        assert item.chapters_loaded is True

    def test_item_without_chapters_key(self, adapter) -> None:
        item = adapter.to_item(ItemResponse.model_validate({"Id": "x", "Name": "Movie"}))
        assert item.chapters == ()
        assert item.chapters_loaded is False
        assert item.runtime_ticks is None

    def test_item_with_empty_chapter_list_is_loaded(self, adapter) -> None:
        item = adapter.to_item(ItemResponse.model_validate({"Id": "x", "Chapters": []}))
        assert item.chapters == ()
        assert item.chapters_loaded is True


class TestSessions:
    def test_to_session(self, adapter) -> None:
        session = adapter.to_session(SessionResponse.model_validate(_session_payload()))

        assert session.id == "abc123"
        assert session.user_id == "user-1"
        assert session.position_ticks == 12345
        assert session.is_paused is False
        assert session.now_playing is not None
        assert session.now_playing.id == "item-9"
        assert session.describe() == "abc123 (Jellyfin Web / Firefox)"

    def test_idle_session_has_no_now_playing(self, adapter) -> None:
        session = adapter.to_session(SessionResponse.model_validate({"Id": "idle", "UserId": "u"}))
        assert session.now_playing is None
        assert session.position_ticks is None
        assert session.is_paused is False

    def test_session_without_id_is_invalid(self) -> None:
        with pytest.raises(ValidationError):
            SessionResponse.model_validate({"UserId": "u"})

    def test_unknown_fields_are_ignored(self, adapter) -> None:
        session = adapter.to_session(SessionResponse.model_validate(_session_payload(Capabilities={"x": 1})))
        assert session.id == "abc123"
