"""Value objects exchanged by the settings manager.

``SecurityConfig`` is the wire shape consumed by the process server. It is a
``TypedDict`` rather than a pydantic model because the generator must pass
wrongly-typed store values through untouched; type checking is the
validator's job. Everything with a fixed shape is a pydantic model, dumped
with camelCase aliases so exported JSON matches the server's field names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping, TypedDict

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

Platform = Literal["windows", "macos", "linux", "unknown"]
Severity = Literal["low", "medium", "high"]
SecurityLevel = Literal["low", "medium", "high"]


# ── Server security configuration ────────────────────────────────────────────


class ResourceLimits(TypedDict, total=False):
    maxCpuPercent: int  # 0..100, 0 = unlimited
    maxMemoryMB: int
    maxFileDescriptors: int
    maxCpuTime: int  # seconds
    maxProcesses: int


class NamespaceFlags(TypedDict, total=False):
    pid: bool
    network: bool
    mount: bool
    uts: bool
    ipc: bool
    user: bool


class SecurityConfig(TypedDict, total=False):
    """Security configuration for the process server.

    Produced complete by ``ServerConfigGenerator``; accepted partial by
    ``ValidationEngine``.
    """

    # executable control
    allowedExecutables: list[str]
    blockSetuidExecutables: bool
    blockShellInterpreters: bool
    additionalBlockedExecutables: list[str]

    # argument control
    maxArgumentCount: int
    maxArgumentLength: int
    blockedArgumentPatterns: list[str]

    # environment control
    additionalBlockedEnvVars: list[str]
    allowedEnvVars: list[str]
    maxEnvVarCount: int

    # working directory control
    allowedWorkingDirectories: list[str]
    blockedWorkingDirectories: list[str]

    # resource limits
    defaultResourceLimits: ResourceLimits
    maximumResourceLimits: ResourceLimits
    strictResourceEnforcement: bool

    # process limits
    maxConcurrentProcesses: int
    maxConcurrentProcessesPerAgent: int
    maxProcessLifetime: int
    maxTotalProcesses: int

    # rate limiting
    maxLaunchesPerMinute: int
    maxLaunchesPerHour: int
    rateLimitCooldownSeconds: int

    # termination control
    allowProcessTermination: bool
    allowGroupTermination: bool
    allowForcedTermination: bool
    requireTerminationConfirmation: bool

    # I/O control
    allowStdinInput: bool
    allowOutputCapture: bool
    maxOutputBufferSize: int
    blockBinaryStdin: bool

    # isolation
    enableChroot: bool
    chrootDirectory: str
    enableNamespaces: bool
    namespaces: NamespaceFlags
    enableSeccomp: bool
    seccompProfile: Literal["strict", "moderate", "permissive"]

    # network control
    blockNetworkAccess: bool
    allowedNetworkDestinations: list[str]
    blockedNetworkDestinations: list[str]

    # audit & monitoring
    enableAuditLog: bool
    auditLogPath: str
    auditLogLevel: Literal["error", "warn", "info", "debug"]
    enableSecurityAlerts: bool
    securityAlertWebhook: str

    # confirmation & approval
    requireConfirmation: bool
    requireConfirmationFor: list[str]
    autoApproveAfterCount: int

    # time restrictions
    allowedTimeWindows: list[str]
    blockedTimeWindows: list[str]

    # advanced
    enableMAC: bool
    macProfile: str
    dropCapabilities: list[str]
    readOnlyFilesystem: bool
    tmpfsSize: int


# ── Pydantic models ──────────────────────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlatformCapabilities(_CamelModel):
    """Which sandboxing primitives the host supports. Immutable snapshot."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    platform: Platform
    platform_name: str
    architecture: str
    release: str

    supports_chroot: bool = False
    supports_namespaces: bool = False
    supports_seccomp: bool = False
    supports_mac: bool = Field(default=False, alias="supportsMAC")  # SELinux or AppArmor

    supports_file_descriptor_limits: bool = False
    supports_cpu_limits: bool = False
    supports_memory_limits: bool = False

    supports_setuid_blocking: bool = False
    supports_capabilities: bool = False  # Linux capabilities

    # Informational only; never changes the supports_* table.
    mac_type: Literal["selinux", "apparmor"] | None = None
    mac_enabled: bool = False


class PlatformMetadata(_CamelModel):
    platform: Platform
    platform_name: str
    architecture: str
    release: str
    runtime_version: str = Field(alias="nodeVersion")
    timestamp: str


class ValidationIssue(_CamelModel):
    """One validation error or warning.

    Errors carry a ``suggestion``; warnings carry a ``severity``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    setting: str
    message: str
    suggestion: str | None = None
    severity: Severity | None = None


class ValidationResult(_CamelModel):
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors


class FieldDiff(_CamelModel):
    """A setting whose store value differs from a preset's value."""

    setting: str
    old_value: Any = None
    new_value: Any = None


class ExportedConfiguration(_CamelModel):
    """Versioned snapshot written by export and read back by import."""

    version: str
    timestamp: str
    exported_by: str
    platform: Platform
    platform_name: str
    architecture: str
    release: str
    runtime_version: str = Field(alias="nodeVersion")
    platform_capabilities: PlatformCapabilities
    server: dict[str, Any] = Field(default_factory=dict)
    ui: dict[str, Any] = Field(default_factory=dict)
    security: dict[str, Any] = Field(default_factory=dict)


# ── Plain value objects ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConfigurationPreset:
    """A named, pre-validated bundle of SecurityConfig fields.

    ``config`` is deep-frozen (read-only mappings and tuples); use
    ``presets.thaw`` to get a plain, writable copy.
    """

    name: str
    description: str
    security_level: SecurityLevel
    config: Mapping[str, Any]


@dataclass(frozen=True)
class ConnectionSettings:
    """Client timeout and reconnect settings, as read from the store.

    Values are not coerced; ``validate_connection_settings`` checks them.
    """

    initialization_timeout: Any = 60000  # ms
    standard_request_timeout: Any = 30000  # ms
    max_retries: Any = 3
    retry_delay: Any = 2000  # ms
    log_level: Any = "info"
