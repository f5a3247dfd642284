"""Shared fixtures for processguard tests."""

from __future__ import annotations

import pytest

from processguard.config import ManagerOptions
from processguard.manager import SettingsManager
from processguard.models import PlatformCapabilities
from processguard.platform_detection import build_capabilities
from processguard.store import InMemoryConfigurationStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "PROCESSGUARD_SETTINGS_PATH",
        "PROCESSGUARD_SETTLE_TIMEOUT",
        "PROCESSGUARD_NONINTERACTIVE",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def linux_caps() -> PlatformCapabilities:
    return build_capabilities("linux", platform_name="linux", architecture="x86_64")


@pytest.fixture
def macos_caps() -> PlatformCapabilities:
    return build_capabilities("macos", platform_name="darwin", architecture="arm64")


@pytest.fixture
def windows_caps() -> PlatformCapabilities:
    return build_capabilities("windows", platform_name="win32", architecture="AMD64")


@pytest.fixture
def options() -> ManagerOptions:
    return ManagerOptions(settle_timeout=2.0, poll_interval=0.01)


@pytest.fixture
def store() -> InMemoryConfigurationStore:
    return InMemoryConfigurationStore()


@pytest.fixture
def manager(store, linux_caps, options):
    m = SettingsManager(store, options=options, capabilities=linux_caps)
    yield m
    m.dispose()
