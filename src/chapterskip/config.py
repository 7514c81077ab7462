from __future__ import annotations

import re
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .utils import env_bool, env_str, load_yaml_file, validate_url

DEFAULT_NOTIFICATION_HEADER = "Auto Chapter Skip"
DEFAULT_NOTIFICATION_TEXT = "{chapter} skipped"
DEFAULT_NOTIFICATION_TIMEOUT_MS = 2000

# Placeholders available to the notification text template
NOTIFICATION_PLACEHOLDERS = frozenset({"chapter", "item"})


class ConfigurationError(ValueError):
    """Raised when the configured chapter match pattern cannot be compiled."""


@dataclass
class JellyfinSettings:
    url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: float = 10.0
    poll_interval: float = 1.0
    active_within_seconds: int = 960


@dataclass
class SkipNotificationSettings:
    enabled: bool = True
    header: str = DEFAULT_NOTIFICATION_HEADER
    text: str = DEFAULT_NOTIFICATION_TEXT
    timeout_ms: int = DEFAULT_NOTIFICATION_TIMEOUT_MS

    def render_text(self, chapter: str, item: Optional[str] = None) -> str:
        return self.text.format(chapter=chapter, item=item or "")


@dataclass
class SkipSettings:
    match: Optional[str] = None
    ignore_case: bool = False
    notification: SkipNotificationSettings = field(default_factory=SkipNotificationSettings)


@dataclass
class ConfigWatcherSettings:
    enabled: bool = True
    debounce_seconds: float = 1.0


@dataclass
class Settings:
    dry_run: bool = False
    jellyfin: JellyfinSettings = field(default_factory=JellyfinSettings)
    skip: SkipSettings = field(default_factory=SkipSettings)
    config_watcher: ConfigWatcherSettings = field(default_factory=ConfigWatcherSettings)


@dataclass
class AppConfig:
    settings: Settings = field(default_factory=Settings)


def compile_match_pattern(raw: Optional[str], *, ignore_case: bool = False) -> Optional[re.Pattern[str]]:
    """Compile the chapter match pattern.

    Returns None when ``raw`` is empty, which disables chapter skipping.
    Raises ConfigurationError when the pattern is not a valid regular expression.
    """
    if not raw:
        return None
    flags = re.IGNORECASE if ignore_case else 0
    try:
        return re.compile(raw, flags)
    except re.error as exc:
        raise ConfigurationError(f"Invalid chapter match pattern {raw!r}: {exc}") from exc


def _ensure_mapping(value: Any, *, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"'{field_name}' must be provided as a mapping when specified")
    return value


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _positive_float(value: Any, *, field_name: str, allow_zero: bool = False) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:  # noqa: PERF203
        raise ValueError(f"'{field_name}' must be a number") from exc
    if allow_zero and number < 0:
        raise ValueError(f"'{field_name}' must be greater than or equal to 0")
    if not allow_zero and number <= 0:
        raise ValueError(f"'{field_name}' must be greater than 0")
    return number


def _non_negative_int(value: Any, *, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"'{field_name}' must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:  # noqa: PERF203
        raise ValueError(f"'{field_name}' must be an integer") from exc
    if number < 0:
        raise ValueError(f"'{field_name}' must be greater than or equal to 0")
    return number


def _validate_text_template(template: str, *, field_name: str) -> str:
    try:
        fields = {name for _, name, _, _ in string.Formatter().parse(template) if name is not None}
    except ValueError as exc:
        raise ValueError(f"'{field_name}' is not a valid template: {exc}") from exc
    unknown = sorted(name for name in fields if name not in NOTIFICATION_PLACEHOLDERS)
    if unknown:
        allowed = ", ".join(sorted(NOTIFICATION_PLACEHOLDERS))
        raise ValueError(f"'{field_name}' uses unknown placeholder(s) {', '.join(unknown)} (allowed: {allowed})")
    return template


def _build_jellyfin_settings(data: Any) -> JellyfinSettings:
    data = _ensure_mapping(data, field_name="jellyfin")
    if not data:
        return JellyfinSettings()

    url = _clean_str(data.get("url"))
    if url and not validate_url(url):
        raise ValueError(f"'jellyfin.url' must be a valid http/https URL, got: {url}")

    return JellyfinSettings(
        url=url.rstrip("/") if url else None,
        api_key=_clean_str(data.get("api_key")),
        timeout=_positive_float(data.get("timeout", 10.0), field_name="jellyfin.timeout"),
        poll_interval=_positive_float(data.get("poll_interval", 1.0), field_name="jellyfin.poll_interval"),
        active_within_seconds=_non_negative_int(
            data.get("active_within_seconds", 960), field_name="jellyfin.active_within_seconds"
        ),
    )


def _build_notification_settings(data: Any) -> SkipNotificationSettings:
    data = _ensure_mapping(data, field_name="skip.notification")
    if not data:
        return SkipNotificationSettings()

    header = _clean_str(data.get("header")) or DEFAULT_NOTIFICATION_HEADER
    text = _clean_str(data.get("text")) or DEFAULT_NOTIFICATION_TEXT

    return SkipNotificationSettings(
        enabled=bool(data.get("enabled", True)),
        header=header,
        text=_validate_text_template(text, field_name="skip.notification.text"),
        timeout_ms=_non_negative_int(
            data.get("timeout_ms", DEFAULT_NOTIFICATION_TIMEOUT_MS), field_name="skip.notification.timeout_ms"
        ),
    )


def _build_skip_settings(data: Any) -> SkipSettings:
    data = _ensure_mapping(data, field_name="skip")
    if not data:
        return SkipSettings()

    match = data.get("match")
    if match is not None and not isinstance(match, str):
        raise ValueError("'skip.match' must be a string when specified")

    return SkipSettings(
        match=match or None,
        ignore_case=bool(data.get("ignore_case", False)),
        notification=_build_notification_settings(data.get("notification")),
    )


def _build_config_watcher_settings(data: Any) -> ConfigWatcherSettings:
    data = _ensure_mapping(data, field_name="config_watcher")
    if not data:
        return ConfigWatcherSettings()

    return ConfigWatcherSettings(
        enabled=bool(data.get("enabled", True)),
        debounce_seconds=_positive_float(
            data.get("debounce_seconds", 1.0), field_name="config_watcher.debounce_seconds", allow_zero=True
        ),
    )


def _build_settings(data: dict[str, Any]) -> Settings:
    return Settings(
        dry_run=bool(data.get("dry_run", False)),
        jellyfin=_build_jellyfin_settings(data.get("jellyfin")),
        skip=_build_skip_settings(data.get("skip")),
        config_watcher=_build_config_watcher_settings(data.get("config_watcher")),
    )


def _apply_env_overrides(settings: Settings) -> None:
    url = env_str("JELLYFIN_URL")
    if url:
        if not validate_url(url):
            raise ValueError(f"'JELLYFIN_URL' must be a valid http/https URL, got: {url}")
        settings.jellyfin.url = url.rstrip("/")

    api_key = env_str("JELLYFIN_API_KEY")
    if api_key:
        settings.jellyfin.api_key = api_key

    match = env_str("CHAPTERSKIP_MATCH")
    if match:
        settings.skip.match = match

    dry_run = env_bool("CHAPTERSKIP_DRY_RUN")
    if dry_run is not None:
        settings.dry_run = dry_run


def load_config(path: Path) -> AppConfig:
    data = load_yaml_file(path)
    settings_raw = _ensure_mapping(data.get("settings"), field_name="settings")
    settings = _build_settings(settings_raw)
    _apply_env_overrides(settings)
    return AppConfig(settings=settings)
