"""Host platform detection and per-setting support lookup.

The capability table is fixed per OS family:

    capability            linux  macos  windows
    chroot                 yes    yes     no
    namespaces             yes    no      no
    seccomp                yes    no      no
    MAC                    yes    no      no
    fd limits              yes    yes     no
    setuid blocking        yes    yes     no
    capability dropping    yes    no      no
    cpu/memory limits      yes    yes     yes

Unknown platforms support nothing. On Linux the active MAC system
(SELinux / AppArmor) is probed for information only.
"""

from __future__ import annotations

import functools
import logging
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from processguard.models import Platform, PlatformCapabilities, PlatformMetadata

logger = logging.getLogger(__name__)

_CAPABILITY_TABLE: dict[str, dict[str, bool]] = {
    "linux": {
        "supports_chroot": True,
        "supports_namespaces": True,
        "supports_seccomp": True,
        "supports_mac": True,
        "supports_file_descriptor_limits": True,
        "supports_cpu_limits": True,
        "supports_memory_limits": True,
        "supports_setuid_blocking": True,
        "supports_capabilities": True,
    },
    "macos": {
        "supports_chroot": True,
        "supports_file_descriptor_limits": True,
        "supports_cpu_limits": True,
        "supports_memory_limits": True,
        "supports_setuid_blocking": True,
    },
    "windows": {
        "supports_cpu_limits": True,
        "supports_memory_limits": True,
    },
    "unknown": {},
}

_SELINUX_DIR = Path("/sys/fs/selinux")
_APPARMOR_DIR = Path("/sys/kernel/security/apparmor")
_APPARMOR_ENABLED = Path("/sys/module/apparmor/parameters/enabled")


def detect_platform(sys_platform: str | None = None) -> Platform:
    name = sys_platform or sys.platform
    if name == "win32":
        return "windows"
    if name == "darwin":
        return "macos"
    if name.startswith("linux"):
        return "linux"
    return "unknown"


def _read_flag(path: Path) -> str | None:
    try:
        return path.read_text().strip()
    except OSError:
        return None


def detect_mac_type() -> tuple[Literal["selinux", "apparmor"] | None, bool]:
    """Return ``(mac_type, enabled)`` for the Linux MAC system in use."""
    if _SELINUX_DIR.exists():
        return "selinux", _read_flag(_SELINUX_DIR / "enforce") == "1"
    if _APPARMOR_DIR.exists():
        flag = _read_flag(_APPARMOR_ENABLED)
        # directory present without the module flag: assume enabled
        return "apparmor", flag is None or flag == "Y"
    return None, False


def build_capabilities(
    plat: Platform,
    *,
    platform_name: str,
    architecture: str = "",
    release: str = "",
    mac_type: Literal["selinux", "apparmor"] | None = None,
    mac_enabled: bool = False,
) -> PlatformCapabilities:
    """Capabilities for ``plat`` according to the fixed table."""
    return PlatformCapabilities(
        platform=plat,
        platform_name=platform_name,
        architecture=architecture,
        release=release,
        mac_type=mac_type,
        mac_enabled=mac_enabled,
        **_CAPABILITY_TABLE[plat],
    )


@functools.cache
def detect_platform_capabilities() -> PlatformCapabilities:
    """Detect the running host's capabilities. Computed once per process."""
    plat = detect_platform()
    mac_type, mac_enabled = detect_mac_type() if plat == "linux" else (None, False)
    caps = build_capabilities(
        plat,
        platform_name=sys.platform,
        architecture=platform.machine(),
        release=platform.release(),
        mac_type=mac_type,
        mac_enabled=mac_enabled,
    )
    logger.info(
        "Detected platform %s (%s %s), MAC=%s", caps.platform, caps.architecture, caps.release,
        caps.mac_type or "none",
    )
    return caps


def generate_platform_metadata() -> PlatformMetadata:
    return PlatformMetadata(
        platform=detect_platform(),
        platform_name=sys.platform,
        architecture=platform.machine(),
        release=platform.release(),
        runtime_version=f"Python {platform.python_version()}",
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


# ── Per-setting support ──────────────────────────────────────────────────────

# store path → (capability attribute, feature label, requirement)
_SETTING_REQUIREMENTS: dict[str, tuple[str, str, str]] = {
    "security.advanced.enableChroot": ("supports_chroot", "Chroot", "Unix/Linux"),
    "security.advanced.chrootDirectory": ("supports_chroot", "Chroot", "Unix/Linux"),
    "security.advanced.enableNamespaces": ("supports_namespaces", "Linux namespaces", "Linux"),
    "security.advanced.namespacesPid": ("supports_namespaces", "Linux namespaces", "Linux"),
    "security.advanced.namespacesNetwork": ("supports_namespaces", "Linux namespaces", "Linux"),
    "security.advanced.namespacesMount": ("supports_namespaces", "Linux namespaces", "Linux"),
    "security.advanced.namespacesUts": ("supports_namespaces", "Linux namespaces", "Linux"),
    "security.advanced.namespacesIpc": ("supports_namespaces", "Linux namespaces", "Linux"),
    "security.advanced.namespacesUser": ("supports_namespaces", "Linux namespaces", "Linux"),
    "security.advanced.enableSeccomp": ("supports_seccomp", "Seccomp", "Linux"),
    "security.advanced.seccompProfile": ("supports_seccomp", "Seccomp", "Linux"),
    "security.advanced.enableMAC": (
        "supports_mac", "Mandatory Access Control (SELinux/AppArmor)", "Linux",
    ),
    "security.advanced.macProfile": (
        "supports_mac", "Mandatory Access Control (SELinux/AppArmor)", "Linux",
    ),
    "security.advanced.dropCapabilities": ("supports_capabilities", "Linux capabilities", "Linux"),
    "security.advanced.readOnlyFilesystem": (
        "supports_chroot", "Read-only filesystem", "Unix/Linux",
    ),
    "security.advanced.tmpfsSize": ("supports_chroot", "Tmpfs", "Unix/Linux"),
    "resources.defaultMaxFileDescriptors": (
        "supports_file_descriptor_limits", "File descriptor limits", "Unix/Linux",
    ),
    "executable.blockSetuidExecutables": (
        "supports_setuid_blocking", "Setuid blocking", "Unix/Linux",
    ),
}

PLATFORM_SPECIFIC_SETTINGS: tuple[str, ...] = tuple(_SETTING_REQUIREMENTS)


def is_setting_supported(path: str, capabilities: PlatformCapabilities | None = None) -> bool:
    """Settings without a capability requirement are always supported."""
    caps = capabilities or detect_platform_capabilities()
    requirement = _SETTING_REQUIREMENTS.get(path)
    if requirement is None:
        return True
    return bool(getattr(caps, requirement[0]))


def get_unsupported_settings(capabilities: PlatformCapabilities | None = None) -> list[str]:
    caps = capabilities or detect_platform_capabilities()
    return [p for p in PLATFORM_SPECIFIC_SETTINGS if not is_setting_supported(p, caps)]


def get_unsupported_reason(
    path: str, capabilities: PlatformCapabilities | None = None
) -> str | None:
    """Human-readable reason ``path`` is unsupported, or None if it is supported."""
    caps = capabilities or detect_platform_capabilities()
    if is_setting_supported(path, caps):
        return None
    requirement = _SETTING_REQUIREMENTS.get(path)
    if requirement is None:
        return f"This setting is not supported on {caps.platform_name}."
    _, label, needs = requirement
    return f"{label} is not supported on {caps.platform_name}. This feature requires {needs}."
