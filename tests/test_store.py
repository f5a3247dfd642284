"""Tests for the configuration stores and settled writes."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from processguard.errors import SettleTimeoutError
from processguard.generator import ServerConfigGenerator
from processguard.store import (
    ConfigurationChangeEvent,
    ConfigurationTarget,
    InMemoryConfigurationStore,
    YamlConfigurationStore,
    values_equal,
    wait_for_value,
    write_settings,
)


class _NeverSettles(InMemoryConfigurationStore):
    """Accepts writes but never makes them visible."""

    async def _write(self, path, value, target):
        return None


class TestInMemoryStore:
    def test_declared_defaults(self, store):
        assert store.get("server.autoStart") is True
        assert store.get("ui.refreshInterval") == 2000
        assert store.get("ui.showResourceUsage") is True
        assert store.get("server.logLevel") == "info"
        assert store.get("timeout.initialization") == 60000
        assert store.get("timeout.standardRequest") == 30000
        assert store.get("reconnect.maxRetries") == 3
        assert store.get("reconnect.retryDelay") == 2000

    def test_fallback_default_for_undeclared_path(self, store):
        assert store.get("not.declared", 5) == 5
        assert store.get("not.declared") is None

    def test_initial_values_land_in_global_scope(self):
        store = InMemoryConfigurationStore({"process.maxConcurrentProcesses": 4})
        assert store.get("process.maxConcurrentProcesses") == 4
        assert store.inspect("process.maxConcurrentProcesses").global_value == 4

    def test_null_counts_as_unset(self):
        store = InMemoryConfigurationStore({"process.maxConcurrentProcesses": None})
        assert store.get("process.maxConcurrentProcesses") == 10

    def test_get_returns_copy(self):
        store = InMemoryConfigurationStore({"executable.allowedExecutables": ["node"]})
        value = store.get("executable.allowedExecutables")
        value.append("python")
        assert store.get("executable.allowedExecutables") == ["node"]

    async def test_scope_precedence(self, store):
        path = "process.maxConcurrentProcesses"
        await store.update(path, 1, ConfigurationTarget.GLOBAL)
        assert store.get(path) == 1
        await store.update(path, 2, ConfigurationTarget.WORKSPACE)
        assert store.get(path) == 2
        await store.update(path, 3, ConfigurationTarget.WORKSPACE_FOLDER)
        assert store.get(path) == 3

        info = store.inspect(path)
        assert (info.global_value, info.workspace_value, info.workspace_folder_value) == (1, 2, 3)
        assert info.default_value == 10

    async def test_update_none_writes_default_explicitly(self, store):
        path = "process.maxConcurrentProcesses"
        await store.update(path, 5)
        await store.update(path, None)
        assert store.get(path) == 10
        assert store.inspect(path).global_value == 10

    async def test_update_none_without_default_removes_key(self, store):
        await store.update("custom.key", "x")
        await store.update("custom.key", None)
        assert store.inspect("custom.key").global_value is None

    async def test_accepts_target_as_string(self, store):
        await store.update("process.maxConcurrentProcesses", 7, "workspace")
        assert store.inspect("process.maxConcurrentProcesses").workspace_value == 7

    async def test_change_listener(self, store):
        events: list[ConfigurationChangeEvent] = []
        unsubscribe = store.on_did_change(events.append)

        await store.update("process.maxConcurrentProcesses", 5)
        assert len(events) == 1
        assert events[0].paths == frozenset({"process.maxConcurrentProcesses"})

        unsubscribe()
        await store.update("process.maxConcurrentProcesses", 6)
        assert len(events) == 1

    async def test_failing_listener_does_not_block_others(self, store):
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        store.on_did_change(broken)
        store.on_did_change(seen.append)
        await store.update("ui.refreshInterval", 500)
        assert len(seen) == 1

    async def test_delayed_visibility(self):
        store = InMemoryConfigurationStore(settle_delay=0.05)
        await store.update("process.maxConcurrentProcesses", 3)
        assert store.get("process.maxConcurrentProcesses") == 10
        await wait_for_value(store, "process.maxConcurrentProcesses", 3, timeout=2.0, poll_interval=0.01)
        assert store.get("process.maxConcurrentProcesses") == 3


class TestChangeEvent:
    def test_affects_section(self):
        event = ConfigurationChangeEvent(frozenset({"process.maxConcurrentProcesses"}))
        assert event.affects_configuration("mcp-process")
        assert event.affects_configuration("process")
        assert event.affects_configuration("mcp-process.process")
        assert event.affects_configuration("process.maxConcurrentProcesses")
        assert not event.affects_configuration("server")
        assert not event.affects_configuration("process.max")

    def test_empty_event_affects_nothing(self):
        assert not ConfigurationChangeEvent(frozenset()).affects_configuration("mcp-process")


class TestSettledWrites:
    async def test_write_settings_counts_writes(self, store):
        written = await write_settings(
            store,
            [("process.maxConcurrentProcesses", 4), ("ui.refreshInterval", 1000)],
            poll_interval=0.01,
        )
        assert written == 2
        assert store.get("ui.refreshInterval") == 1000

    async def test_write_settings_waits_for_slow_store(self):
        store = InMemoryConfigurationStore(settle_delay=0.03)
        await write_settings(
            store,
            [("process.maxConcurrentProcesses", 4), ("process.maxProcessLifetime", 60)],
            timeout=2.0,
            poll_interval=0.01,
        )
        assert store.get("process.maxConcurrentProcesses") == 4
        assert store.get("process.maxProcessLifetime") == 60

    async def test_reset_settles_on_default(self, store):
        await store.update("process.maxConcurrentProcesses", 4)
        await write_settings(store, [("process.maxConcurrentProcesses", None)], poll_interval=0.01)
        assert store.get("process.maxConcurrentProcesses") == 10

    async def test_timeout_raises(self):
        store = _NeverSettles()
        with pytest.raises(SettleTimeoutError) as exc_info:
            await write_settings(
                store, [("process.maxConcurrentProcesses", 4)], timeout=0.05, poll_interval=0.01
            )
        assert exc_info.value.path == "process.maxConcurrentProcesses"
        assert exc_info.value.expected == 4
        assert exc_info.value.actual == 10
        assert "process.maxConcurrentProcesses" in str(exc_info.value)

    def test_values_equal_keeps_bool_and_int_apart(self):
        assert values_equal([1, "a"], [1, "a"])
        assert values_equal({"a": 1, "b": 2}, {"b": 2, "a": 1})
        assert not values_equal(True, 1)
        assert not values_equal([], None)


class TestYamlStore:
    async def test_persists_by_scope(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        store = YamlConfigurationStore(path)
        await store.update("process.maxConcurrentProcesses", 5)
        await store.update("executable.allowedExecutables", ["node"], ConfigurationTarget.WORKSPACE)

        raw = yaml.safe_load(path.read_text())
        assert raw["global"]["process.maxConcurrentProcesses"] == 5
        assert raw["workspace"]["executable.allowedExecutables"] == ["node"]

        reloaded = YamlConfigurationStore(path)
        assert reloaded.get("process.maxConcurrentProcesses") == 5
        assert reloaded.get("executable.allowedExecutables") == ["node"]

    async def test_mapping_values_reload_whole(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        store = YamlConfigurationStore(path)
        await store.update("security.advanced.chrootDirectory", {"a": 1})
        await store.update("security.advanced.macProfile", {})

        reloaded = YamlConfigurationStore(path)
        assert reloaded.get("security.advanced.chrootDirectory") == {"a": 1}
        assert reloaded.get("security.advanced.macProfile") == {}
        assert ServerConfigGenerator(reloaded).generate() == ServerConfigGenerator(store).generate()

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        store = YamlConfigurationStore(tmp_path / "absent.yaml")
        assert store.get("process.maxConcurrentProcesses") == 10

    def test_reads_hand_written_file(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "global:\n"
            "  security.advanced.enableChroot: true\n"
            "workspaceFolder:\n"
            "  ui.refreshInterval: 250\n"
        )
        store = YamlConfigurationStore(path)
        assert store.get("security.advanced.enableChroot") is True
        assert store.inspect("ui.refreshInterval").workspace_folder_value == 250

    def test_rejects_non_mapping_file(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="must contain a mapping"):
            YamlConfigurationStore(path)

    def test_rejects_non_mapping_scope(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("global: 3\n")
        with pytest.raises(ValueError, match="scope 'global'"):
            YamlConfigurationStore(path)
