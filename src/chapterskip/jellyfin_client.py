from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .jellyfin_adapter import JellyfinAdapter
from .jellyfin_models import ItemResponse, SessionResponse
from .models import NowPlayingItem, SessionInfo
from .utils import validate_url

LOGGER = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5
RETRY_STATUS_CODES = frozenset({500, 502, 503, 504, 429})

TOKEN_HEADER = "X-Emby-Token"


class JellyfinApiError(RuntimeError):
    """Raised when Jellyfin API requests fail."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class JellyfinRateLimitError(JellyfinApiError):
    """Raised when Jellyfin returns 429 Too Many Requests."""


def _build_url(base_url: str, path: str) -> str:
    normalized = base_url.rstrip("/") + "/"
    return urljoin(normalized, path.lstrip("/"))


def _sanitize_url_for_logging(url: str) -> str:
    """Remove api_key query parameters from URL for safe logging."""
    return re.sub(r"(?i)([?&])api_key=[^&]*", r"\1api_key=***", url)


def _parse_json_response(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        snippet = response.text[:500]
        raise JellyfinApiError(
            f"Failed to parse Jellyfin response as JSON ({response.status_code}): {snippet}",
            status_code=response.status_code,
        ) from exc


class JellyfinClient:
    """Thin wrapper around the Jellyfin session endpoints.

    The API key is passed via the X-Emby-Token header (not query params).
    Includes automatic retries with exponential backoff for transient failures.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        max_retries: int = DEFAULT_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    ) -> None:
        if not validate_url(base_url):
            raise JellyfinApiError(f"Invalid Jellyfin URL: {base_url}")

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._adapter = JellyfinAdapter()

        self.session = session or requests.Session()
        if session is None:
            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=backoff_factor,
                status_forcelist=list(RETRY_STATUS_CODES),
                allowed_methods=["GET", "POST"],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy, pool_maxsize=10)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = _build_url(self.base_url, path)
        headers = {
            "Accept": "application/json",
            TOKEN_HEADER: self.api_key,
        }

        LOGGER.debug("Jellyfin %s %s", method.upper(), _sanitize_url_for_logging(url))

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise JellyfinApiError(f"Jellyfin request failed: {exc}") from exc

        if response.status_code == 429:
            raise JellyfinRateLimitError("Jellyfin rate limit exceeded (429)", status_code=429)

        if response.status_code >= 400:
            snippet = response.text[:200]
            raise JellyfinApiError(
                f"Jellyfin request failed ({response.status_code}): {snippet}",
                status_code=response.status_code,
            )

        return response

    def list_sessions(self, *, active_within_seconds: Optional[int] = None) -> List[SessionInfo]:
        """List sessions known to the server, optionally limited to recent activity."""
        params: Dict[str, Any] = {}
        if active_within_seconds:
            params["activeWithinSeconds"] = active_within_seconds
        response = self._request("GET", "/Sessions", params=params or None)
        payload = _parse_json_response(response)
        if not isinstance(payload, list):
            raise JellyfinApiError("Unexpected /Sessions payload; expected a list", status_code=response.status_code)
        sessions: List[SessionInfo] = []
        for entry in payload:
            try:
                response_model = SessionResponse.model_validate(entry)
            except ValidationError as exc:
                LOGGER.debug("Ignoring malformed session entry: %s", exc)
                continue
            if response_model.id:
                sessions.append(self._adapter.to_session(response_model))
        return sessions

    def get_item(self, user_id: str, item_id: str) -> NowPlayingItem:
        """Fetch a single item including its chapter list."""
        response = self._request("GET", f"/Users/{user_id}/Items/{item_id}")
        payload = _parse_json_response(response)
        try:
            return self._adapter.to_item(ItemResponse.model_validate(payload))
        except ValidationError as exc:
            raise JellyfinApiError(
                f"Unexpected payload for item {item_id}: {exc}", status_code=response.status_code
            ) from exc

    def send_seek(self, session_id: str, controlling_user_id: Optional[str], target_ticks: int) -> None:
        params: Dict[str, Any] = {"seekPositionTicks": int(target_ticks)}
        if controlling_user_id:
            params["controllingUserId"] = controlling_user_id
        self._request("POST", f"/Sessions/{session_id}/Playing/Seek", params=params)

    def send_message(self, session_id: str, header: str, text: str, timeout_ms: Optional[int] = None) -> None:
        body: Dict[str, Any] = {"Header": header, "Text": text}
        if timeout_ms is not None:
            body["TimeoutMs"] = int(timeout_ms)
        self._request("POST", f"/Sessions/{session_id}/Message", json=body)


__all__ = [
    "JellyfinApiError",
    "JellyfinClient",
    "JellyfinRateLimitError",
]
