"""Tests for the Jellyfin client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from chapterskip.jellyfin_client import (
    TOKEN_HEADER,
    JellyfinApiError,
    JellyfinClient,
    JellyfinRateLimitError,
    _sanitize_url_for_logging,
)


def _response(status_code: int = 200, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


class TestJellyfinClientInit:
    def test_init_validates_url(self) -> None:
        with pytest.raises(JellyfinApiError, match="Invalid Jellyfin URL"):
            JellyfinClient("not-a-url", "key")

    def test_init_strips_trailing_slash(self) -> None:
        client = JellyfinClient("http://localhost:8096/", "key")
        assert client.base_url == "http://localhost:8096"
        assert client.api_key == "key"

    def test_uses_given_session(self) -> None:
        session = MagicMock()
        client = JellyfinClient("http://localhost:8096", "key", session=session)
        assert client.session is session
        session.mount.assert_not_called()


class TestJellyfinClientRequests:
    def test_token_passed_in_header_not_params(self) -> None:
        client = JellyfinClient("http://localhost:8096", "secret-key")

        with patch.object(client.session, "request", return_value=_response(payload=[])) as mock_req:
            client.list_sessions()

            call_kwargs = mock_req.call_args[1]
            assert call_kwargs["headers"][TOKEN_HEADER] == "secret-key"
            assert "api_key" not in (call_kwargs.get("params") or {})
            assert call_kwargs["timeout"] == client.timeout

    def test_list_sessions_parses_payload(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")
        payload = [
            {
                "Id": "s1",
                "UserId": "u1",
                "PlayState": {"PositionTicks": 5000},
                "NowPlayingItem": {
                    "Id": "i1",
                    "RunTimeTicks": 650000,
                    "Chapters": [{"Name": "Intro", "StartPositionTicks": 0}],
                },
            },
            {"Id": "s2", "UserId": "u2"},
            {"UserId": "no-id"},
        ]

        with patch.object(client.session, "request", return_value=_response(payload=payload)) as mock_req:
            sessions = client.list_sessions(active_within_seconds=60)

        assert [session.id for session in sessions] == ["s1", "s2"]
        assert sessions[0].position_ticks == 5000
        assert sessions[0].now_playing.chapters[0].name == "Intro"
        assert sessions[1].now_playing is None
        args, kwargs = mock_req.call_args
        assert args == ("GET", "http://localhost:8096/Sessions")
        assert kwargs["params"] == {"activeWithinSeconds": 60}

    def test_list_sessions_rejects_non_list(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")
        with patch.object(client.session, "request", return_value=_response(payload={"oops": True})):
            with pytest.raises(JellyfinApiError, match="expected a list"):
                client.list_sessions()

    def test_invalid_json_raises(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")
        with patch.object(client.session, "request", return_value=_response(payload=ValueError("bad"), text="<html>")):
            with pytest.raises(JellyfinApiError, match="Failed to parse"):
                client.list_sessions()

    def test_get_item(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")
        payload = {"Id": "i1", "Name": "Pilot", "Chapters": [{"Name": "Recap", "StartPositionTicks": 0}]}

        with patch.object(client.session, "request", return_value=_response(payload=payload)) as mock_req:
            item = client.get_item("u1", "i1")

        assert item.name == "Pilot"
        assert item.chapters[0].name == "Recap"
        assert mock_req.call_args[0] == ("GET", "http://localhost:8096/Users/u1/Items/i1")

    def test_send_seek(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")

        with patch.object(client.session, "request", return_value=_response(status_code=204)) as mock_req:
            client.send_seek("s1", "u1", 30000)

        args, kwargs = mock_req.call_args
        assert args == ("POST", "http://localhost:8096/Sessions/s1/Playing/Seek")
        assert kwargs["params"] == {"seekPositionTicks": 30000, "controllingUserId": "u1"}

    def test_send_seek_without_user(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")

        with patch.object(client.session, "request", return_value=_response(status_code=204)) as mock_req:
            client.send_seek("s1", None, 30000)

        assert mock_req.call_args[1]["params"] == {"seekPositionTicks": 30000}

    def test_send_message(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")

        with patch.object(client.session, "request", return_value=_response(status_code=204)) as mock_req:
            client.send_message("s1", "Auto Chapter Skip", "Intro skipped", 2000)

        args, kwargs = mock_req.call_args
        assert args == ("POST", "http://localhost:8096/Sessions/s1/Message")
        assert kwargs["json"] == {"Header": "Auto Chapter Skip", "Text": "Intro skipped", "TimeoutMs": 2000}

    def test_error_status_raises(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")
        with patch.object(client.session, "request", return_value=_response(status_code=404, text="Not Found")):
            with pytest.raises(JellyfinApiError) as exc_info:
                client.send_seek("s1", "u1", 1)
        assert exc_info.value.status_code == 404

    def test_rate_limit_raises(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")
        with patch.object(client.session, "request", return_value=_response(status_code=429)):
            with pytest.raises(JellyfinRateLimitError):
                client.list_sessions()

    def test_transport_error_is_wrapped(self) -> None:
        client = JellyfinClient("http://localhost:8096", "key")
        with patch.object(client.session, "request", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(JellyfinApiError, match="request failed"):
                client.list_sessions()


def test_sanitize_url_masks_api_key() -> None:
    assert _sanitize_url_for_logging("http://h/Sessions?api_key=abc&x=1") == "http://h/Sessions?api_key=***&x=1"


def test_get_item_rejects_malformed_payload() -> None:
    client = JellyfinClient("http://localhost:8096", "key")
    with patch.object(client.session, "request", return_value=_response(payload=["not", "an", "item"])):
        with pytest.raises(JellyfinApiError, match="Unexpected payload for item i1"):
            client.get_item("u1", "i1")
