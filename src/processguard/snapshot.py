"""Versioned JSON snapshots of the full configuration.

Export captures the generated SecurityConfig together with the server and UI
settings and a description of the exporting host. Import checks the payload
in a fixed order and only writes once every check has passed:

    parse → root object → platform mismatch prompt → section shapes
          → validate → warnings prompt → write server, ui, security
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from processguard.config import ManagerOptions
from processguard.errors import (
    ConfigParseError,
    ConfigShapeError,
    ConfigValidationError,
    ImportCancelledError,
)
from processguard.generator import ServerConfigGenerator
from processguard.models import ExportedConfiguration, PlatformCapabilities, ValidationIssue
from processguard.platform_detection import generate_platform_metadata
from processguard.presets import ask
from processguard.schema import (
    SERVER_PATHS,
    UI_PATHS,
    flatten_section,
    flatten_security_config,
)
from processguard.store import ConfigurationStore, write_settings
from processguard.validation import ValidationEngine

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"
EXPORTED_BY = "processguard"

_PLATFORM_MARKERS = ("not supported on", "only supported on")


def _reject_constant(name: str) -> Any:
    raise ConfigParseError(f"{name} is not a valid JSON value")


def _is_platform_warning(issue: ValidationIssue) -> bool:
    return any(marker in issue.message for marker in _PLATFORM_MARKERS)


def render_warnings_message(warnings: list[ValidationIssue]) -> str:
    """Import confirmation text, platform warnings listed apart from the rest."""
    platform = [w for w in warnings if _is_platform_warning(w)]
    other = [w for w in warnings if not _is_platform_warning(w)]

    parts = ["Configuration has warnings:", ""]
    if platform:
        parts.append("Platform-specific warnings:")
        parts += [f"• {w.setting}: {w.message}" for w in platform]
        parts.append("")
    if other:
        parts.append("Other warnings:")
        parts += [f"• {w.setting}: {w.message} ({w.severity})" for w in other]
        parts.append("")
    parts.append("Continue with import?")
    return "\n".join(parts)


class ImportExportSerializer:
    def __init__(
        self,
        store: ConfigurationStore,
        generator: ServerConfigGenerator,
        engine: ValidationEngine,
        capabilities: PlatformCapabilities,
        options: ManagerOptions | None = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self._engine = engine
        self._capabilities = capabilities
        self._options = options or ManagerOptions()

    # ── Export ───────────────────────────────────────────────────────────

    def snapshot(self) -> ExportedConfiguration:
        caps = self._capabilities
        metadata = generate_platform_metadata()
        return ExportedConfiguration(
            version=EXPORT_VERSION,
            timestamp=metadata.timestamp,
            exported_by=EXPORTED_BY,
            platform=caps.platform,
            platform_name=caps.platform_name,
            architecture=caps.architecture,
            release=caps.release,
            runtime_version=metadata.runtime_version,
            platform_capabilities=caps,
            server=self._generator.server_settings(),
            ui=self._generator.ui_settings(),
            security=dict(self._generator.generate()),
        )

    def export(self) -> str:
        """Pretty-printed JSON snapshot of the current configuration."""
        data = self.snapshot().model_dump(mode="json", by_alias=True)
        return json.dumps(data, indent=2)

    # ── Import ───────────────────────────────────────────────────────────

    async def import_json(
        self,
        text: str,
        skip_warnings: bool = False,
        confirm: Callable[[str], Any] | None = None,
    ) -> int:
        """Validate and apply a snapshot produced by ``export``.

        ``confirm`` is asked about a platform mismatch and about validation
        warnings unless ``skip_warnings`` is set; with no callback the import
        proceeds. Returns the number of settings written.

        Raises:
            ConfigParseError: ``text`` is not valid JSON.
            ConfigShapeError: The document is not an object, has no
                ``security`` section, or a section is not an object.
            ConfigValidationError: The security section has errors.
            ImportCancelledError: A confirmation was declined.
        """
        if self._options.non_interactive:
            skip_warnings = True
        prompt = None if skip_warnings else confirm

        try:
            data = json.loads(text, parse_constant=_reject_constant)
        except json.JSONDecodeError as e:
            raise ConfigParseError(str(e)) from e

        if not isinstance(data, dict):
            raise ConfigShapeError("Invalid configuration: root must be an object")

        source_platform = data.get("platform")
        if prompt is not None and source_platform and source_platform != self._capabilities.platform:
            source = data.get("platformName") or source_platform
            message = (
                f"This configuration was exported from {source} but you are running on "
                f"{self._capabilities.platform_name}. Some platform-specific settings may "
                "not work correctly. Continue?"
            )
            if not await ask(prompt, message):
                raise ImportCancelledError()

        security = data.get("security")
        if security is None:
            raise ConfigShapeError("Invalid configuration: missing 'security' section")
        for name in ("security", "server", "ui"):
            section = data.get(name)
            if section is not None and not isinstance(section, Mapping):
                raise ConfigShapeError(f"Invalid configuration: '{name}' must be an object")

        result = self._engine.validate(security)
        if not result.valid:
            raise ConfigValidationError(result)

        if prompt is not None and result.warnings:
            if not await ask(prompt, render_warnings_message(result.warnings)):
                raise ImportCancelledError()

        pairs = [
            *flatten_section(data.get("server") or {}, SERVER_PATHS),
            *flatten_section(data.get("ui") or {}, UI_PATHS),
            *flatten_security_config(security),
        ]
        written = await write_settings(
            self._store,
            pairs,
            timeout=self._options.settle_timeout,
            poll_interval=self._options.poll_interval,
        )
        logger.info(
            "Imported configuration from %s (%d settings)", source_platform or "unknown", written
        )
        return written
