from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from chapterskip.commands import CommandSink, ConfiguredCommandSink, DryRunCommandSink, JellyfinCommandSink
from chapterskip.config import AppConfig
from chapterskip.config_source import ConfigurationSource


def test_base_sink_is_abstract() -> None:
    sink = CommandSink()
    with pytest.raises(NotImplementedError):
        sink.send_seek("s1", "u1", 1)
    with pytest.raises(NotImplementedError):
        sink.send_notification("s1", "h", "t", 1)


def test_jellyfin_sink_forwards_to_client() -> None:
    client = MagicMock()
    sink = JellyfinCommandSink(client)

    sink.send_seek("s1", "u1", 30000)
    sink.send_notification("s1", "Auto Chapter Skip", "Intro skipped", 2000)

    client.send_seek.assert_called_once_with("s1", "u1", 30000)
    client.send_message.assert_called_once_with("s1", "Auto Chapter Skip", "Intro skipped", 2000)


def test_jellyfin_sink_propagates_errors() -> None:
    client = MagicMock()
    client.send_seek.side_effect = RuntimeError("offline")
    with pytest.raises(RuntimeError):
        JellyfinCommandSink(client).send_seek("s1", "u1", 1)


def test_dry_run_sink_logs(caplog) -> None:
    sink = DryRunCommandSink()

    with caplog.at_level(logging.INFO, logger="chapterskip.commands"):
        sink.send_seek("s1", "u1", 300_000_000)
        sink.send_notification("s1", "Auto Chapter Skip", "Intro skipped", 2000)

    assert "Would seek session s1 to 0:00:30" in caplog.text
    assert "Would notify session s1: Auto Chapter Skip - Intro skipped" in caplog.text


class TestConfiguredCommandSink:
    @pytest.fixture(autouse=True)
    def _clear_env(self, monkeypatch) -> None:
        for name in ("JELLYFIN_URL", "JELLYFIN_API_KEY", "CHAPTERSKIP_MATCH", "CHAPTERSKIP_DRY_RUN"):
            monkeypatch.delenv(name, raising=False)

    def test_routes_to_live_sink(self) -> None:
        client = MagicMock()
        sink = ConfiguredCommandSink(client)

        sink.send_seek("s1", "u1", 30000)
        sink.send_notification("s1", "Auto Chapter Skip", "Intro skipped", 2000)

        assert sink.dry_run is False
        client.send_seek.assert_called_once_with("s1", "u1", 30000)
        client.send_message.assert_called_once_with("s1", "Auto Chapter Skip", "Intro skipped", 2000)

    def test_starts_in_dry_run(self) -> None:
        client = MagicMock()
        sink = ConfiguredCommandSink(client, dry_run=True)

        sink.send_seek("s1", "u1", 30000)

        assert isinstance(sink.active, DryRunCommandSink)
        client.send_seek.assert_not_called()

    def test_reload_toggles_dry_run(self, tmp_path, caplog) -> None:
        config_path = tmp_path / "chapterskip.yaml"
        config_path.write_text("settings:\n  dry_run: false\n", encoding="utf-8")
        source = ConfigurationSource(config_path)
        client = MagicMock()
        sink = ConfiguredCommandSink(client, dry_run=source.config.settings.dry_run)
        source.subscribe(sink.on_configuration_changed)

        config_path.write_text("settings:\n  dry_run: true\n", encoding="utf-8")
        with caplog.at_level(logging.WARNING, logger="chapterskip.commands"):
            assert source.reload() is True
        sink.send_seek("s1", "u1", 30000)

        assert sink.dry_run is True
        client.send_seek.assert_not_called()
        assert "Dry-run enabled" in caplog.text

        config_path.write_text("settings:\n  dry_run: false\n", encoding="utf-8")
        source.reload()
        sink.send_seek("s1", "u1", 30000)

        client.send_seek.assert_called_once_with("s1", "u1", 30000)

    def test_unchanged_dry_run_is_quiet(self, caplog) -> None:
        sink = ConfiguredCommandSink(MagicMock())

        with caplog.at_level(logging.WARNING, logger="chapterskip.commands"):
            sink.on_configuration_changed(AppConfig())

        assert sink.dry_run is False
        assert caplog.text == ""
