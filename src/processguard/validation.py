"""Validation of SecurityConfig candidates and client connection settings.

Every rule runs on every call and all failures are collected; nothing
short-circuits on the first error. Malformed *values* never raise, they are
reported. ``None`` counts as absent for every rule, so partial configs are
validated as-is without default substitution.

Error and warning paths are store paths (``process.maxConcurrentProcesses``)
so the UI layer can point the user at the exact setting.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from processguard.models import (
    ConnectionSettings,
    PlatformCapabilities,
    Severity,
    ValidationIssue,
    ValidationResult,
)
from processguard.schema import CONNECTION_PATHS, NESTED_PATHS, setting_path

logger = logging.getLogger(__name__)

ARRAY_FIELDS = (
    "allowedExecutables",
    "additionalBlockedExecutables",
    "blockedArgumentPatterns",
    "additionalBlockedEnvVars",
    "allowedEnvVars",
    "allowedWorkingDirectories",
    "blockedWorkingDirectories",
    "allowedNetworkDestinations",
    "blockedNetworkDestinations",
    "requireConfirmationFor",
    "allowedTimeWindows",
    "blockedTimeWindows",
    "dropCapabilities",
)

BOOLEAN_FIELDS = (
    "blockSetuidExecutables",
    "blockShellInterpreters",
    "allowProcessTermination",
    "allowGroupTermination",
    "allowForcedTermination",
    "allowStdinInput",
    "allowOutputCapture",
    "enableAuditLog",
    "requireConfirmation",
    "strictResourceEnforcement",
    "requireTerminationConfirmation",
    "blockBinaryStdin",
    "enableChroot",
    "enableNamespaces",
    "enableSeccomp",
    "blockNetworkAccess",
    "enableSecurityAlerts",
    "enableMAC",
    "readOnlyFilesystem",
)

STRING_FIELDS = ("chrootDirectory", "macProfile", "securityAlertWebhook", "auditLogPath")

# field → (minimum, suggestion)
NUMERIC_FIELDS: dict[str, tuple[int, str]] = {
    "maxConcurrentProcesses": (1, "Set to a positive integer (recommended: 10)"),
    "maxProcessLifetime": (1, "Set to a positive integer in seconds (recommended: 3600)"),
    "maxConcurrentProcessesPerAgent": (0, "Set to a non-negative integer"),
    "maxTotalProcesses": (0, "Set to a non-negative integer"),
    "maxArgumentCount": (0, "Set to a non-negative integer"),
    "maxArgumentLength": (0, "Set to a non-negative integer in bytes"),
    "maxEnvVarCount": (0, "Set to a non-negative integer"),
    "maxLaunchesPerMinute": (0, "Set to a non-negative integer (0 = unlimited)"),
    "maxLaunchesPerHour": (0, "Set to a non-negative integer (0 = unlimited)"),
    "rateLimitCooldownSeconds": (0, "Set to a non-negative integer in seconds"),
    "maxOutputBufferSize": (0, "Set to a non-negative integer in bytes"),
    "autoApproveAfterCount": (0, "Set to a non-negative integer (0 = never auto-approve)"),
    "tmpfsSize": (0, "Set to a non-negative integer in megabytes"),
}

_LIMIT_SUGGESTIONS = {
    "maxCpuPercent": "Set to a value between 0 and 100 (0 = unlimited)",
    "maxMemoryMB": "Set to a positive integer in megabytes (0 = unlimited)",
    "maxFileDescriptors": "Set to a positive integer (0 = unlimited)",
    "maxCpuTime": "Set to a positive integer in seconds (0 = unlimited)",
    "maxProcesses": "Set to a positive integer (0 = unlimited)",
}

SECCOMP_PROFILES = ("strict", "moderate", "permissive")
AUDIT_LOG_LEVELS = ("error", "warn", "info", "debug")
LOG_LEVELS = ("debug", "info", "warn", "error")

_URL = TypeAdapter(AnyUrl)


def _present(config: Mapping[str, Any], key: str) -> bool:
    return config.get(key) is not None


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_valid_url(value: str) -> bool:
    try:
        _URL.validate_python(value)
    except PydanticValidationError:
        return False
    return True


@dataclass
class _Report:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    def error(self, setting: str, message: str, suggestion: str | None = None) -> None:
        self.errors.append(ValidationIssue(setting=setting, message=message, suggestion=suggestion))

    def warn(self, setting: str, message: str, severity: Severity) -> None:
        self.warnings.append(ValidationIssue(setting=setting, message=message, severity=severity))

    def result(self) -> ValidationResult:
        return ValidationResult(errors=self.errors, warnings=self.warnings)


class ValidationEngine:
    """Stateless validator; holds only the host capability snapshot."""

    def __init__(self, capabilities: PlatformCapabilities) -> None:
        self.capabilities = capabilities

    def validate(self, config: Mapping[str, Any]) -> ValidationResult:
        """Validate a partial or complete SecurityConfig.

        Raises:
            TypeError: ``config`` is not a mapping at all.
        """
        if not isinstance(config, Mapping):
            raise TypeError(f"SecurityConfig must be a mapping, got {type(config).__name__}")

        report = _Report()
        self._check_types(config, report)
        self._check_ranges(config, report)
        self._check_enums(config, report)
        self._check_dependencies(config, report)
        self._check_platform(config, report)
        self._check_consistency(config, report)
        self._check_posture(config, report)

        result = report.result()
        if not result.valid:
            logger.warning(
                "Configuration invalid: %d error(s) in %s",
                len(result.errors),
                ", ".join(e.setting for e in result.errors),
            )
        return result

    # ── type rules ───────────────────────────────────────────────────────

    def _check_types(self, config: Mapping[str, Any], report: _Report) -> None:
        for name in ARRAY_FIELDS:
            if _present(config, name) and not isinstance(config[name], list):
                report.error(
                    setting_path(name),
                    f"{name} must be an array",
                    "Set to an empty array [] or provide a list of values",
                )

        for name in BOOLEAN_FIELDS:
            if _present(config, name) and not isinstance(config[name], bool):
                report.error(setting_path(name), f"{name} must be a boolean", "Set to true or false")

        for name in STRING_FIELDS:
            if _present(config, name) and not isinstance(config[name], str):
                report.error(setting_path(name), f"{name} must be a string", "Set to a text value")

        for name in NUMERIC_FIELDS:
            if _present(config, name) and not _is_number(config[name]):
                report.error(setting_path(name), f"{name} must be a number", "Set to an integer")

        for name, paths in NESTED_PATHS.items():
            if not _present(config, name):
                continue
            value = config[name]
            if not isinstance(value, Mapping):
                report.error(name, f"{name} must be an object", "Set to an object of named values")
                continue
            for key, path in paths.items():
                if value.get(key) is None:
                    continue
                if name == "namespaces":
                    if not isinstance(value[key], bool):
                        report.error(path, f"namespaces.{key} must be a boolean", "Set to true or false")
                elif not _is_number(value[key]):
                    report.error(path, f"{key} must be a number", _LIMIT_SUGGESTIONS[key])

    # ── range rules ──────────────────────────────────────────────────────

    def _check_ranges(self, config: Mapping[str, Any], report: _Report) -> None:
        for name, (minimum, suggestion) in NUMERIC_FIELDS.items():
            value = config.get(name)
            if not _is_number(value) or value >= minimum:
                continue
            if minimum == 1:
                unit = " second" if name == "maxProcessLifetime" else ""
                report.error(setting_path(name), f"{name} must be at least 1{unit}", suggestion)
            else:
                report.error(setting_path(name), f"{name} must be non-negative", suggestion)

        for name in ("defaultResourceLimits", "maximumResourceLimits"):
            limits = config.get(name)
            if not isinstance(limits, Mapping):
                continue
            for key, path in NESTED_PATHS[name].items():
                value = limits.get(key)
                if not _is_number(value):
                    continue
                if key == "maxCpuPercent":
                    if not 0 <= value <= 100:
                        report.error(
                            path, "maxCpuPercent must be between 0 and 100", _LIMIT_SUGGESTIONS[key]
                        )
                elif value < 0:
                    report.error(path, f"{key} must be non-negative", _LIMIT_SUGGESTIONS[key])

    # ── enum rules ───────────────────────────────────────────────────────

    def _check_enums(self, config: Mapping[str, Any], report: _Report) -> None:
        if _present(config, "seccompProfile") and config["seccompProfile"] not in SECCOMP_PROFILES:
            report.error(
                setting_path("seccompProfile"),
                f"seccompProfile must be one of: {', '.join(SECCOMP_PROFILES)}",
                'Set to "strict", "moderate", or "permissive"',
            )
        if _present(config, "auditLogLevel") and config["auditLogLevel"] not in AUDIT_LOG_LEVELS:
            report.error(
                setting_path("auditLogLevel"),
                f"auditLogLevel must be one of: {', '.join(AUDIT_LOG_LEVELS)}",
                'Set to "error", "warn", "info", or "debug"',
            )

    # ── dependency rules ─────────────────────────────────────────────────

    def _check_dependencies(self, config: Mapping[str, Any], report: _Report) -> None:
        if config.get("enableChroot") is True and _is_blank(config.get("chrootDirectory")):
            report.error(
                setting_path("chrootDirectory"),
                "chrootDirectory is required when enableChroot is true",
                "Set chrootDirectory to a valid directory path or disable enableChroot",
            )

        if config.get("enableMAC") is True and _is_blank(config.get("macProfile")):
            report.error(
                setting_path("macProfile"),
                "macProfile is required when enableMAC is true",
                "Set macProfile to a valid SELinux context or AppArmor profile, or disable enableMAC",
            )

        if config.get("enableSecurityAlerts") is True:
            webhook = config.get("securityAlertWebhook")
            if _is_blank(webhook):
                report.error(
                    setting_path("securityAlertWebhook"),
                    "securityAlertWebhook is required when enableSecurityAlerts is true",
                    "Set securityAlertWebhook to a valid URL or disable enableSecurityAlerts",
                )
            elif isinstance(webhook, str) and not is_valid_url(webhook.strip()):
                report.error(
                    setting_path("securityAlertWebhook"),
                    "securityAlertWebhook must be a valid URL",
                    "Set to a valid HTTP/HTTPS URL (e.g., https://hooks.slack.com/...)",
                )

    # ── platform gates (warnings only) ───────────────────────────────────

    def _check_platform(self, config: Mapping[str, Any], report: _Report) -> None:
        caps = self.capabilities
        where = caps.platform_name

        if config.get("enableChroot") is True and not caps.supports_chroot:
            report.warn(setting_path("enableChroot"), f"chroot is not supported on {where}", "high")

        if config.get("enableNamespaces") is True and not caps.supports_namespaces:
            report.warn(
                setting_path("enableNamespaces"),
                f"Linux namespaces are not supported on {where}",
                "high",
            )

        if config.get("enableSeccomp") is True and not caps.supports_seccomp:
            report.warn(setting_path("enableSeccomp"), f"seccomp is not supported on {where}", "high")

        if config.get("enableMAC") is True and not caps.supports_mac:
            report.warn(
                setting_path("enableMAC"),
                f"Mandatory Access Control (SELinux/AppArmor) is not supported on {where}",
                "high",
            )

        limits = config.get("defaultResourceLimits")
        fds = limits.get("maxFileDescriptors") if isinstance(limits, Mapping) else None
        if _is_number(fds) and fds > 0 and not caps.supports_file_descriptor_limits:
            report.warn(
                setting_path("defaultResourceLimits.maxFileDescriptors"),
                f"File descriptor limits are not supported on {where}",
                "low",
            )

        if config.get("blockSetuidExecutables") is True and not caps.supports_setuid_blocking:
            report.warn(
                setting_path("blockSetuidExecutables"),
                f"Setuid blocking is not supported on {where}",
                "low",
            )

        dropped = config.get("dropCapabilities")
        if isinstance(dropped, list) and dropped and not caps.supports_capabilities:
            report.warn(
                setting_path("dropCapabilities"),
                f"Linux capabilities are not supported on {where}",
                "medium",
            )

    # ── consistency and posture warnings ─────────────────────────────────

    def _check_consistency(self, config: Mapping[str, Any], report: _Report) -> None:
        namespaces = config.get("namespaces")
        if isinstance(namespaces, Mapping) and any(v is True for v in namespaces.values()):
            if config.get("enableNamespaces") is not True:
                report.warn(
                    setting_path("enableNamespaces"),
                    "Individual namespaces are enabled but enableNamespaces is false",
                    "medium",
                )

        if config.get("seccompProfile") and config.get("enableSeccomp") is not True:
            report.warn(
                setting_path("enableSeccomp"),
                "seccompProfile is set but enableSeccomp is false",
                "low",
            )

    def _check_posture(self, config: Mapping[str, Any], report: _Report) -> None:
        if config.get("allowedExecutables") == []:
            report.warn(
                setting_path("allowedExecutables"),
                "allowedExecutables is empty - no executables are explicitly allowed",
                "low",
            )

        if config.get("allowForcedTermination") is True:
            report.warn(
                setting_path("allowForcedTermination"),
                "Forced termination (SIGKILL) is enabled - processes cannot clean up",
                "medium",
            )

        if config.get("blockShellInterpreters") is False:
            report.warn(
                setting_path("blockShellInterpreters"),
                "Shell interpreters are not blocked - this may allow command injection",
                "high",
            )

        if config.get("enableAuditLog") is False:
            report.warn(
                setting_path("enableAuditLog"),
                "Audit logging is disabled - security events will not be recorded",
                "medium",
            )


# ── Connection settings ──────────────────────────────────────────────────────

# attribute → (minimum, maximum, maximum is a hard limit)
_CONNECTION_LIMITS: dict[str, tuple[int, int, bool]] = {
    "initialization_timeout": (10000, 300000, False),
    "standard_request_timeout": (5000, 120000, False),
    "max_retries": (0, 10, True),
    "retry_delay": (1000, 10000, False),
}


def validate_connection_settings(settings: ConnectionSettings) -> ValidationResult:
    """Check client timeouts, reconnect policy and server log level.

    Values below the minimum are errors; values above the maximum are
    warnings, except for ``reconnect.maxRetries`` where both are errors.
    """
    report = _Report()

    for attr, (minimum, maximum, hard_max) in _CONNECTION_LIMITS.items():
        path = CONNECTION_PATHS[attr]
        value = getattr(settings, attr)
        if not _is_number(value):
            report.error(path, f"{path} must be a number", f"Set to an integer between {minimum} and {maximum}")
            continue
        if value < minimum or (hard_max and value > maximum):
            report.error(
                path,
                f"{path} must be between {minimum} and {maximum}",
                f"Set to an integer between {minimum} and {maximum}",
            )
        elif value > maximum:
            report.warn(path, f"{path} is above the recommended maximum of {maximum}", "low")

    init = settings.initialization_timeout
    standard = settings.standard_request_timeout
    if _is_number(init) and _is_number(standard) and init < standard:
        report.warn(
            CONNECTION_PATHS["initialization_timeout"],
            "Initialization timeout is shorter than the standard request timeout",
            "medium",
        )

    if settings.log_level not in LOG_LEVELS:
        report.error(
            CONNECTION_PATHS["log_level"],
            f"server.logLevel must be one of: {', '.join(LOG_LEVELS)}",
            'Set to "debug", "info", "warn", or "error"',
        )

    return report.result()
