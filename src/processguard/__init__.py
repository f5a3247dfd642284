"""processguard — settings manager for the sandboxed process server.

Key exports:
    SettingsManager — generate, validate, import/export and preset application
    ConfigurationStore — store protocol, with in-memory and YAML implementations
    ValidationEngine — rule-based SecurityConfig validation
    PlatformCapabilities — host sandboxing support snapshot
"""

from processguard.config import ManagerOptions, load_options
from processguard.errors import (
    ConfigParseError,
    ConfigShapeError,
    ConfigValidationError,
    ImportCancelledError,
    SettingsError,
    SettleTimeoutError,
)
from processguard.generator import ServerConfigGenerator
from processguard.manager import SettingsInternals, SettingsManager
from processguard.models import (
    ConfigurationPreset,
    ConnectionSettings,
    ExportedConfiguration,
    FieldDiff,
    PlatformCapabilities,
    SecurityConfig,
    ValidationIssue,
    ValidationResult,
)
from processguard.platform_detection import (
    detect_platform_capabilities,
    generate_platform_metadata,
    get_unsupported_reason,
    get_unsupported_settings,
    is_setting_supported,
)
from processguard.presets import PresetManager, get_preset, list_presets
from processguard.snapshot import ImportExportSerializer
from processguard.store import (
    ConfigurationChangeEvent,
    ConfigurationStore,
    ConfigurationTarget,
    InMemoryConfigurationStore,
    YamlConfigurationStore,
)
from processguard.validation import ValidationEngine, validate_connection_settings

__all__ = [
    "ConfigParseError",
    "ConfigShapeError",
    "ConfigValidationError",
    "ConfigurationChangeEvent",
    "ConfigurationPreset",
    "ConfigurationStore",
    "ConfigurationTarget",
    "ConnectionSettings",
    "ExportedConfiguration",
    "FieldDiff",
    "ImportCancelledError",
    "ImportExportSerializer",
    "InMemoryConfigurationStore",
    "ManagerOptions",
    "PlatformCapabilities",
    "PresetManager",
    "SecurityConfig",
    "ServerConfigGenerator",
    "SettingsError",
    "SettingsInternals",
    "SettingsManager",
    "SettleTimeoutError",
    "ValidationEngine",
    "ValidationIssue",
    "ValidationResult",
    "YamlConfigurationStore",
    "detect_platform_capabilities",
    "generate_platform_metadata",
    "get_preset",
    "get_unsupported_reason",
    "get_unsupported_settings",
    "is_setting_supported",
    "list_presets",
    "load_options",
    "validate_connection_settings",
]
