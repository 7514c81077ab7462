"""Pydantic models for Jellyfin API responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ChapterResponse(BaseModel):
    """API response model for a chapter marker."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = Field(default=None, alias="Name")
    start_position_ticks: int | None = Field(default=None, alias="StartPositionTicks")


class ItemResponse(BaseModel):
    """API response model for a library item (also used for NowPlayingItem)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(default="", alias="Id")
    name: str | None = Field(default=None, alias="Name")
    run_time_ticks: int | None = Field(default=None, alias="RunTimeTicks")
    # None when the payload omits the key entirely
    chapters: list[ChapterResponse] | None = Field(default=None, alias="Chapters")


class PlayStateResponse(BaseModel):
    """API response model for a session's play state."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    position_ticks: int | None = Field(default=None, alias="PositionTicks")
    is_paused: bool = Field(default=False, alias="IsPaused")


class SessionResponse(BaseModel):
    """API response model for an entry of GET /Sessions."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="Id")
    user_id: str | None = Field(default=None, alias="UserId")
    client: str | None = Field(default=None, alias="Client")
    device_name: str | None = Field(default=None, alias="DeviceName")
    play_state: PlayStateResponse | None = Field(default=None, alias="PlayState")
    now_playing_item: ItemResponse | None = Field(default=None, alias="NowPlayingItem")
