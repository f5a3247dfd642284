"""Tests for ManagerOptions loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from processguard.config import ManagerOptions, load_options


class TestLoadOptions:
    def test_defaults(self):
        options = load_options()
        assert options == ManagerOptions()
        assert options.settings_path is None
        assert options.settle_timeout == 30.0
        assert options.poll_interval == 0.1
        assert options.non_interactive is False

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("PROCESSGUARD_SETTINGS_PATH", "/tmp/pg.yaml")
        monkeypatch.setenv("PROCESSGUARD_SETTLE_TIMEOUT", "5")
        monkeypatch.setenv("PROCESSGUARD_NONINTERACTIVE", "true")
        options = load_options()
        assert options.settings_path == Path("/tmp/pg.yaml")
        assert options.settle_timeout == 5.0
        assert options.non_interactive is True

    @pytest.mark.parametrize("value,expected", [("1", True), ("YES", True), ("0", False), ("", False)])
    def test_noninteractive_parsing(self, monkeypatch, value, expected):
        monkeypatch.setenv("PROCESSGUARD_NONINTERACTIVE", value)
        assert load_options().non_interactive is expected

    def test_overrides_beat_environment(self, monkeypatch):
        monkeypatch.setenv("PROCESSGUARD_SETTLE_TIMEOUT", "5")
        assert load_options(settle_timeout=1.5).settle_timeout == 1.5

    def test_none_override_ignored(self, monkeypatch):
        monkeypatch.setenv("PROCESSGUARD_SETTINGS_PATH", "/tmp/pg.yaml")
        assert load_options(settings_path=None).settings_path == Path("/tmp/pg.yaml")

    @pytest.mark.parametrize("value", ["soon", "0", "-3"])
    def test_invalid_timeout(self, monkeypatch, value):
        monkeypatch.setenv("PROCESSGUARD_SETTLE_TIMEOUT", value)
        with pytest.raises(ValueError):
            load_options()
