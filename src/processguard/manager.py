"""SettingsManager — the single entry point for the command and view layers.

Binds one platform capability snapshot and one store subscription for its
lifetime and wires the generator, validator, preset manager and snapshot
serializer to the same store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from processguard.config import ManagerOptions, load_options
from processguard.generator import ServerConfigGenerator
from processguard.models import (
    ConfigurationPreset,
    ConnectionSettings,
    FieldDiff,
    PlatformCapabilities,
    SecurityConfig,
    ValidationResult,
)
from processguard.platform_detection import detect_platform_capabilities
from processguard.presets import ConfirmCallback, PresetManager, get_preset, list_presets
from processguard.schema import SECTION
from processguard.snapshot import ImportExportSerializer
from processguard.store import (
    ConfigurationChangeEvent,
    ConfigurationStore,
    ConfigurationTarget,
    InMemoryConfigurationStore,
    YamlConfigurationStore,
    write_settings,
)
from processguard.validation import ValidationEngine, validate_connection_settings

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[ConfigurationChangeEvent], None]


def open_store(options: ManagerOptions) -> ConfigurationStore:
    if options.settings_path is not None:
        return YamlConfigurationStore(options.settings_path)
    return InMemoryConfigurationStore()


class SettingsManager:
    """Synchronizes the settings store with the process server's SecurityConfig.

    Use as a context manager (``with`` or ``async with``) or call
    ``dispose()`` explicitly; disposal is idempotent.
    """

    def __init__(
        self,
        store: ConfigurationStore | None = None,
        *,
        options: ManagerOptions | None = None,
        capabilities: PlatformCapabilities | None = None,
    ) -> None:
        self.options = options or load_options()
        self.store = store if store is not None else open_store(self.options)
        self._capabilities = capabilities or detect_platform_capabilities()

        self._engine = ValidationEngine(self._capabilities)
        self._generator = ServerConfigGenerator(self.store)
        self._presets = PresetManager(self.store, self._engine, self.options)
        self._serializer = ImportExportSerializer(
            self.store, self._generator, self._engine, self._capabilities, self.options
        )

        self._callbacks: list[ChangeCallback] = []
        self._unsubscribe: Callable[[], None] | None = self.store.on_did_change(self._on_store_change)
        self.internal = SettingsInternals(self)

    # ── Lifecycle ────────────────────────────────────────────────────────

    @property
    def disposed(self) -> bool:
        return self._unsubscribe is None

    def dispose(self) -> None:
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        self._callbacks.clear()
        logger.debug("Settings manager disposed")

    def __enter__(self) -> SettingsManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    async def __aenter__(self) -> SettingsManager:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.dispose()

    # ── Change notification ──────────────────────────────────────────────

    def on_configuration_changed(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register ``callback`` for changes under the ``mcp-process`` section.

        Returns a function that unregisters it.
        """
        self._callbacks.append(callback)

        def remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return remove

    def _on_store_change(self, event: ConfigurationChangeEvent) -> None:
        if not event.affects_configuration(SECTION):
            return
        for callback in list(self._callbacks):
            callback(event)

    # ── Configuration ────────────────────────────────────────────────────

    def get_platform_capabilities(self) -> PlatformCapabilities:
        return self._capabilities

    def generate_server_config(self) -> SecurityConfig:
        return self._generator.generate()

    def validate_configuration(self, config: Mapping[str, Any] | None = None) -> ValidationResult:
        """Validate ``config``, or the currently generated config if omitted."""
        return self._engine.validate(self.generate_server_config() if config is None else config)

    def get_connection_settings(self) -> ConnectionSettings:
        return self._generator.connection_settings()

    def validate_connection_settings(self) -> ValidationResult:
        return validate_connection_settings(self.get_connection_settings())

    # ── Import / export ──────────────────────────────────────────────────

    def export_configuration(self) -> str:
        return self._serializer.export()

    async def import_configuration(
        self,
        json_text: str,
        skip_warnings: bool = False,
        confirm: Callable[[str], Any] | None = None,
    ) -> None:
        await self._serializer.import_json(json_text, skip_warnings=skip_warnings, confirm=confirm)

    # ── Presets ──────────────────────────────────────────────────────────

    def list_presets(self) -> list[ConfigurationPreset]:
        return list_presets()

    def get_preset(self, name: str) -> ConfigurationPreset | None:
        return get_preset(name)

    async def apply_preset(
        self,
        preset: ConfigurationPreset | str,
        confirm: ConfirmCallback | None = None,
    ) -> bool:
        """Apply a preset (or preset name). Returns False if declined.

        Raises:
            KeyError: ``preset`` names no known preset.
        """
        if isinstance(preset, str):
            found = get_preset(preset)
            if found is None:
                raise KeyError(f"Unknown preset: {preset}")
            preset = found
        return await self._presets.apply(preset, confirm)


class SettingsInternals:
    """Lower-level operations for tooling and tests.

    Nothing here validates or asks for confirmation.
    """

    def __init__(self, manager: SettingsManager) -> None:
        self._manager = manager

    def preset_diff(self, preset: ConfigurationPreset) -> list[FieldDiff]:
        return self._manager._presets.diff(preset)

    async def apply_preset_settings(self, preset: ConfigurationPreset) -> int:
        return await self._manager._presets.write(preset)

    async def write_setting(
        self,
        path: str,
        value: Any,
        target: ConfigurationTarget = ConfigurationTarget.GLOBAL,
    ) -> None:
        """Write one store path and wait for it to settle. ``None`` resets it."""
        options = self._manager.options
        await write_settings(
            self._manager.store,
            [(path, value)],
            target=target,
            timeout=options.settle_timeout,
            poll_interval=options.poll_interval,
        )

    async def reset_setting(
        self, path: str, target: ConfigurationTarget = ConfigurationTarget.GLOBAL
    ) -> None:
        await self.write_setting(path, None, target)
