"""Tests for ServerConfigGenerator."""

from __future__ import annotations

from processguard.generator import ServerConfigGenerator
from processguard.models import ConnectionSettings
from processguard.schema import FIELD_PATHS, NESTED_PATHS
from processguard.store import InMemoryConfigurationStore


class TestGenerate:
    def test_complete_from_empty_store(self, store):
        config = ServerConfigGenerator(store).generate()
        assert set(config) == set(FIELD_PATHS) | set(NESTED_PATHS)
        assert config["maxConcurrentProcesses"] == 10
        assert config["maxProcessLifetime"] == 3600
        assert config["enableAuditLog"] is True
        assert config["defaultResourceLimits"] == {
            "maxCpuPercent": 50,
            "maxMemoryMB": 512,
            "maxFileDescriptors": 1024,
            "maxCpuTime": 300,
            "maxProcesses": 10,
        }
        assert config["namespaces"] == {
            "pid": False, "network": False, "mount": False,
            "uts": False, "ipc": False, "user": False,
        }

    def test_empty_allowlist_becomes_wildcard(self, store):
        assert ServerConfigGenerator(store).generate()["allowedExecutables"] == ["*"]

    def test_explicit_allowlist_kept(self):
        store = InMemoryConfigurationStore({"executable.allowedExecutables": ["node", "git"]})
        assert ServerConfigGenerator(store).generate()["allowedExecutables"] == ["node", "git"]

    def test_wrong_types_pass_through(self):
        store = InMemoryConfigurationStore(
            {
                "process.maxConcurrentProcesses": "ten",
                "executable.allowedExecutables": "node",
                "resources.defaultMaxCpuPercent": True,
            }
        )
        config = ServerConfigGenerator(store).generate()
        assert config["maxConcurrentProcesses"] == "ten"
        assert config["allowedExecutables"] == "node"
        assert config["defaultResourceLimits"]["maxCpuPercent"] is True

    def test_null_resolves_to_default(self):
        store = InMemoryConfigurationStore({"process.maxConcurrentProcesses": None})
        assert ServerConfigGenerator(store).generate()["maxConcurrentProcesses"] == 10

    def test_nested_values_read_from_flat_paths(self):
        store = InMemoryConfigurationStore(
            {"resources.defaultMaxMemoryMB": 2048, "security.advanced.namespacesPid": True}
        )
        config = ServerConfigGenerator(store).generate()
        assert config["defaultResourceLimits"]["maxMemoryMB"] == 2048
        assert config["namespaces"]["pid"] is True

    def test_falls_back_when_store_declares_no_defaults(self):
        store = InMemoryConfigurationStore(defaults={})
        config = ServerConfigGenerator(store).generate()
        assert config["maxConcurrentProcesses"] == 10
        assert config["allowedExecutables"] == ["*"]

    def test_deterministic_and_fresh(self, store):
        generator = ServerConfigGenerator(store)
        first = generator.generate()
        second = generator.generate()
        assert first == second
        assert first is not second

        first["blockedArgumentPatterns"].append("rm -rf")
        first["defaultResourceLimits"]["maxCpuPercent"] = 99
        third = generator.generate()
        assert third["blockedArgumentPatterns"] == []
        assert third["defaultResourceLimits"]["maxCpuPercent"] == 50

    async def test_reflects_store_writes(self, store):
        generator = ServerConfigGenerator(store)
        await store.update("process.maxConcurrentProcesses", 3)
        assert generator.generate()["maxConcurrentProcesses"] == 3


class TestSections:
    def test_server_defaults(self, store):
        server = ServerConfigGenerator(store).server_settings()
        assert server == {
            "serverPath": "",
            "useConfigFile": False,
            "configPath": "",
            "autoStart": True,
            "logLevel": "info",
        }

    def test_ui_defaults(self, store):
        ui = ServerConfigGenerator(store).ui_settings()
        assert ui["refreshInterval"] == 2000
        assert ui["showResourceUsage"] is True

    def test_connection_defaults(self, store):
        assert ServerConfigGenerator(store).connection_settings() == ConnectionSettings()

    def test_connection_reads_store(self):
        store = InMemoryConfigurationStore({"timeout.initialization": 90000, "server.logLevel": "debug"})
        settings = ServerConfigGenerator(store).connection_settings()
        assert settings.initialization_timeout == 90000
        assert settings.log_level == "debug"
        assert settings.max_retries == 3
