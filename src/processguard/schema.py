"""Setting paths and declared defaults.

This is the contributed-settings table of the host editor: every dotted
store path the manager reads or writes, its declared default, and the
mapping between ``SecurityConfig`` fields and store paths. The generator,
the validator (error paths), preset application and import all go through
the same mapping.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

logger = logging.getLogger(__name__)

SECTION = "mcp-process"

# SecurityConfig field → store path, for every non-nested field.
FIELD_PATHS: dict[str, str] = {
    "allowedExecutables": "executable.allowedExecutables",
    "blockSetuidExecutables": "executable.blockSetuidExecutables",
    "blockShellInterpreters": "executable.blockShellInterpreters",
    "additionalBlockedExecutables": "executable.additionalBlockedExecutables",
    "maxArgumentCount": "executable.maxArgumentCount",
    "maxArgumentLength": "executable.maxArgumentLength",
    "blockedArgumentPatterns": "executable.blockedArgumentPatterns",
    "additionalBlockedEnvVars": "security.additionalBlockedEnvVars",
    "allowedEnvVars": "security.allowedEnvVars",
    "maxEnvVarCount": "security.maxEnvVarCount",
    "allowedWorkingDirectories": "security.allowedWorkingDirectories",
    "blockedWorkingDirectories": "security.blockedWorkingDirectories",
    "strictResourceEnforcement": "resources.strictResourceEnforcement",
    "maxConcurrentProcesses": "process.maxConcurrentProcesses",
    "maxConcurrentProcessesPerAgent": "process.maxConcurrentProcessesPerAgent",
    "maxProcessLifetime": "process.maxProcessLifetime",
    "maxTotalProcesses": "process.maxTotalProcesses",
    "maxLaunchesPerMinute": "process.maxLaunchesPerMinute",
    "maxLaunchesPerHour": "process.maxLaunchesPerHour",
    "rateLimitCooldownSeconds": "process.rateLimitCooldownSeconds",
    "allowProcessTermination": "security.allowProcessTermination",
    "allowGroupTermination": "security.allowGroupTermination",
    "allowForcedTermination": "security.allowForcedTermination",
    "requireTerminationConfirmation": "security.requireTerminationConfirmation",
    "allowStdinInput": "io.allowStdinInput",
    "allowOutputCapture": "io.allowOutputCapture",
    "maxOutputBufferSize": "io.maxOutputBufferSize",
    "blockBinaryStdin": "io.blockBinaryStdin",
    "enableChroot": "security.advanced.enableChroot",
    "chrootDirectory": "security.advanced.chrootDirectory",
    "enableNamespaces": "security.advanced.enableNamespaces",
    "enableSeccomp": "security.advanced.enableSeccomp",
    "seccompProfile": "security.advanced.seccompProfile",
    "blockNetworkAccess": "security.advanced.blockNetworkAccess",
    "allowedNetworkDestinations": "security.advanced.allowedNetworkDestinations",
    "blockedNetworkDestinations": "security.advanced.blockedNetworkDestinations",
    "enableAuditLog": "audit.enableAuditLog",
    "auditLogPath": "audit.auditLogPath",
    "auditLogLevel": "audit.auditLogLevel",
    "enableSecurityAlerts": "audit.enableSecurityAlerts",
    "securityAlertWebhook": "audit.securityAlertWebhook",
    "requireConfirmation": "security.requireConfirmation",
    "requireConfirmationFor": "security.requireConfirmationFor",
    "autoApproveAfterCount": "security.autoApproveAfterCount",
    "allowedTimeWindows": "audit.allowedTimeWindows",
    "blockedTimeWindows": "audit.blockedTimeWindows",
    "enableMAC": "security.advanced.enableMAC",
    "macProfile": "security.advanced.macProfile",
    "dropCapabilities": "security.advanced.dropCapabilities",
    "readOnlyFilesystem": "security.advanced.readOnlyFilesystem",
    "tmpfsSize": "security.advanced.tmpfsSize",
}

# Nested SecurityConfig objects are stored as one flat path per key.
NESTED_PATHS: dict[str, dict[str, str]] = {
    "defaultResourceLimits": {
        "maxCpuPercent": "resources.defaultMaxCpuPercent",
        "maxMemoryMB": "resources.defaultMaxMemoryMB",
        "maxFileDescriptors": "resources.defaultMaxFileDescriptors",
        "maxCpuTime": "resources.defaultMaxCpuTime",
        "maxProcesses": "resources.defaultMaxProcesses",
    },
    "maximumResourceLimits": {
        "maxCpuPercent": "resources.maximumMaxCpuPercent",
        "maxMemoryMB": "resources.maximumMaxMemoryMB",
    },
    "namespaces": {
        "pid": "security.advanced.namespacesPid",
        "network": "security.advanced.namespacesNetwork",
        "mount": "security.advanced.namespacesMount",
        "uts": "security.advanced.namespacesUts",
        "ipc": "security.advanced.namespacesIpc",
        "user": "security.advanced.namespacesUser",
    },
}

# Exported ``server`` / ``ui`` section keys → store paths.
SERVER_PATHS: dict[str, str] = {
    "serverPath": "server.serverPath",
    "useConfigFile": "server.useConfigFile",
    "configPath": "server.configPath",
    "autoStart": "server.autoStart",
    "logLevel": "server.logLevel",
}

UI_PATHS: dict[str, str] = {
    "refreshInterval": "ui.refreshInterval",
    "showResourceUsage": "ui.showResourceUsage",
    "showSecurityWarnings": "ui.showSecurityWarnings",
    "confirmDangerousOperations": "ui.confirmDangerousOperations",
}

CONNECTION_PATHS: dict[str, str] = {
    "initialization_timeout": "timeout.initialization",
    "standard_request_timeout": "timeout.standardRequest",
    "max_retries": "reconnect.maxRetries",
    "retry_delay": "reconnect.retryDelay",
    "log_level": "server.logLevel",
}

SETTING_DEFAULTS: dict[str, Any] = {
    # server
    "server.serverPath": "",
    "server.useConfigFile": False,
    "server.configPath": "",
    "server.autoStart": True,
    "server.logLevel": "info",
    # ui
    "ui.refreshInterval": 2000,
    "ui.showResourceUsage": True,
    "ui.showSecurityWarnings": True,
    "ui.confirmDangerousOperations": True,
    # client connection
    "timeout.initialization": 60000,
    "timeout.standardRequest": 30000,
    "reconnect.maxRetries": 3,
    "reconnect.retryDelay": 2000,
    # executable
    "executable.allowedExecutables": [],
    "executable.blockSetuidExecutables": True,
    "executable.blockShellInterpreters": False,
    "executable.additionalBlockedExecutables": [],
    "executable.maxArgumentCount": 100,
    "executable.maxArgumentLength": 4096,
    "executable.blockedArgumentPatterns": [],
    # environment / working directories
    "security.additionalBlockedEnvVars": [],
    "security.allowedEnvVars": [],
    "security.maxEnvVarCount": 100,
    "security.allowedWorkingDirectories": [],
    "security.blockedWorkingDirectories": [],
    # resources
    "resources.defaultMaxCpuPercent": 50,
    "resources.defaultMaxMemoryMB": 512,
    "resources.defaultMaxFileDescriptors": 1024,
    "resources.defaultMaxCpuTime": 300,
    "resources.defaultMaxProcesses": 10,
    "resources.maximumMaxCpuPercent": 100,
    "resources.maximumMaxMemoryMB": 2048,
    "resources.strictResourceEnforcement": False,
    # process
    "process.maxConcurrentProcesses": 10,
    "process.maxConcurrentProcessesPerAgent": 5,
    "process.maxProcessLifetime": 3600,
    "process.maxTotalProcesses": 1000,
    "process.maxLaunchesPerMinute": 10,
    "process.maxLaunchesPerHour": 100,
    "process.rateLimitCooldownSeconds": 60,
    # termination / confirmation
    "security.allowProcessTermination": True,
    "security.allowGroupTermination": True,
    "security.allowForcedTermination": False,
    "security.requireTerminationConfirmation": False,
    "security.requireConfirmation": False,
    "security.requireConfirmationFor": [],
    "security.autoApproveAfterCount": 0,
    # io
    "io.allowStdinInput": True,
    "io.allowOutputCapture": True,
    "io.maxOutputBufferSize": 1048576,
    "io.blockBinaryStdin": True,
    # isolation / network / advanced
    "security.advanced.enableChroot": False,
    "security.advanced.chrootDirectory": "",
    "security.advanced.enableNamespaces": False,
    "security.advanced.namespacesPid": False,
    "security.advanced.namespacesNetwork": False,
    "security.advanced.namespacesMount": False,
    "security.advanced.namespacesUts": False,
    "security.advanced.namespacesIpc": False,
    "security.advanced.namespacesUser": False,
    "security.advanced.enableSeccomp": False,
    "security.advanced.seccompProfile": None,
    "security.advanced.blockNetworkAccess": False,
    "security.advanced.allowedNetworkDestinations": [],
    "security.advanced.blockedNetworkDestinations": [],
    "security.advanced.enableMAC": False,
    "security.advanced.macProfile": "",
    "security.advanced.dropCapabilities": [],
    "security.advanced.readOnlyFilesystem": False,
    "security.advanced.tmpfsSize": 64,
    # audit
    "audit.enableAuditLog": True,
    "audit.auditLogPath": "",
    "audit.auditLogLevel": "info",
    "audit.enableSecurityAlerts": False,
    "audit.securityAlertWebhook": "",
    "audit.allowedTimeWindows": [],
    "audit.blockedTimeWindows": [],
}


def setting_path(field: str) -> str:
    """Store path for a SecurityConfig field (``field`` itself if unmapped).

    Nested fields use dotted names, e.g. ``defaultResourceLimits.maxMemoryMB``.
    """
    if field in FIELD_PATHS:
        return FIELD_PATHS[field]
    parent, _, child = field.partition(".")
    if child and child in NESTED_PATHS.get(parent, {}):
        return NESTED_PATHS[parent][child]
    return field


def flatten_security_config(config: Mapping[str, Any]) -> Iterator[tuple[str, Any]]:
    """Yield ``(store_path, value)`` for every field present in ``config``.

    Nested objects expand to one pair per present key. Unknown fields are
    skipped.
    """
    for field, value in config.items():
        if field in NESTED_PATHS:
            if not isinstance(value, Mapping):
                logger.debug("Skipping non-object value for %s", field)
                continue
            for key, path in NESTED_PATHS[field].items():
                if key in value:
                    yield path, value[key]
        elif field in FIELD_PATHS:
            yield FIELD_PATHS[field], value
        else:
            logger.warning("Ignoring unknown security field: %s", field)


def flatten_section(section: Mapping[str, Any], paths: Mapping[str, str]) -> Iterator[tuple[str, Any]]:
    """Yield ``(store_path, value)`` for the keys of an exported server/ui section."""
    for key, path in paths.items():
        if key in section:
            yield path, section[key]
