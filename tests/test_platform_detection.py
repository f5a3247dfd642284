"""Tests for platform detection and per-setting support lookup."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from pydantic import ValidationError

from processguard import platform_detection
from processguard.platform_detection import (
    PLATFORM_SPECIFIC_SETTINGS,
    build_capabilities,
    detect_mac_type,
    detect_platform,
    detect_platform_capabilities,
    generate_platform_metadata,
    get_unsupported_reason,
    get_unsupported_settings,
    is_setting_supported,
)

_FLAGS = (
    "supports_chroot",
    "supports_namespaces",
    "supports_seccomp",
    "supports_mac",
    "supports_file_descriptor_limits",
    "supports_setuid_blocking",
    "supports_capabilities",
    "supports_cpu_limits",
    "supports_memory_limits",
)


class TestDetectPlatform:
    @pytest.mark.parametrize(
        "sys_platform,expected",
        [
            ("win32", "windows"),
            ("darwin", "macos"),
            ("linux", "linux"),
            ("linux2", "linux"),
            ("freebsd13", "unknown"),
            ("cygwin", "unknown"),
        ],
    )
    def test_mapping(self, sys_platform, expected):
        assert detect_platform(sys_platform) == expected


class TestCapabilityTable:
    @pytest.mark.parametrize(
        "plat,expected",
        [
            ("linux", (True, True, True, True, True, True, True, True, True)),
            ("macos", (True, False, False, False, True, True, False, True, True)),
            ("windows", (False, False, False, False, False, False, False, True, True)),
            ("unknown", (False,) * 9),
        ],
    )
    def test_table(self, plat, expected):
        caps = build_capabilities(plat, platform_name=plat)
        assert tuple(getattr(caps, flag) for flag in _FLAGS) == expected

    def test_mac_info_does_not_change_table(self):
        caps = build_capabilities("macos", platform_name="darwin", mac_type="selinux", mac_enabled=True)
        assert caps.supports_mac is False
        assert caps.mac_type == "selinux"

    def test_immutable(self, linux_caps):
        with pytest.raises(ValidationError):
            linux_caps.supports_chroot = False

    def test_camel_case_dump(self, linux_caps):
        data = linux_caps.model_dump(by_alias=True)
        assert data["platformName"] == "linux"
        assert data["supportsMAC"] is True
        assert data["supportsFileDescriptorLimits"] is True
        assert "macType" in data

    def test_detection_is_memoized(self):
        assert detect_platform_capabilities() is detect_platform_capabilities()


class TestMacDetection:
    @pytest.fixture
    def sysfs(self, tmp_path: Path, monkeypatch):
        monkeypatch.setattr(platform_detection, "_SELINUX_DIR", tmp_path / "selinux")
        monkeypatch.setattr(platform_detection, "_APPARMOR_DIR", tmp_path / "apparmor")
        monkeypatch.setattr(platform_detection, "_APPARMOR_ENABLED", tmp_path / "apparmor_enabled")
        return tmp_path

    def test_none(self, sysfs):
        assert detect_mac_type() == (None, False)

    @pytest.mark.parametrize("flag,enabled", [("1", True), ("0", False)])
    def test_selinux(self, sysfs, flag, enabled):
        (sysfs / "selinux").mkdir()
        (sysfs / "selinux" / "enforce").write_text(flag + "\n")
        assert detect_mac_type() == ("selinux", enabled)

    @pytest.mark.parametrize("flag,enabled", [("Y", True), ("N", False)])
    def test_apparmor(self, sysfs, flag, enabled):
        (sysfs / "apparmor").mkdir()
        (sysfs / "apparmor_enabled").write_text(flag)
        assert detect_mac_type() == ("apparmor", enabled)

    def test_apparmor_without_module_flag(self, sysfs):
        (sysfs / "apparmor").mkdir()
        assert detect_mac_type() == ("apparmor", True)


class TestMetadata:
    def test_fields(self):
        metadata = generate_platform_metadata()
        assert metadata.runtime_version.startswith("Python ")
        assert datetime.fromisoformat(metadata.timestamp).tzinfo is not None
        assert metadata.platform in ("windows", "macos", "linux", "unknown")
        assert metadata.model_dump(by_alias=True)["nodeVersion"] == metadata.runtime_version


class TestSettingSupport:
    def test_linux_supports_everything(self, linux_caps):
        assert get_unsupported_settings(linux_caps) == []
        assert get_unsupported_reason("security.advanced.enableSeccomp", linux_caps) is None

    def test_windows_supports_no_gated_setting(self, windows_caps):
        assert get_unsupported_settings(windows_caps) == list(PLATFORM_SPECIFIC_SETTINGS)

    def test_macos(self, macos_caps):
        unsupported = get_unsupported_settings(macos_caps)
        assert "security.advanced.enableNamespaces" in unsupported
        assert "security.advanced.dropCapabilities" in unsupported
        assert "security.advanced.enableChroot" not in unsupported
        assert "executable.blockSetuidExecutables" not in unsupported

    def test_ungated_setting_always_supported(self, windows_caps):
        assert is_setting_supported("process.maxConcurrentProcesses", windows_caps)

    def test_reason(self, windows_caps):
        assert get_unsupported_reason("security.advanced.enableNamespaces", windows_caps) == (
            "Linux namespaces is not supported on win32. This feature requires Linux."
        )
