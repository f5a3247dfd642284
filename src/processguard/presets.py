"""Built-in configuration presets and their application to the store.

The catalog lives in ``data/presets.yaml``. It is read once per process,
checked (unique names, distinct configs, each valid) and frozen; there is no
way to change it at runtime.
"""

from __future__ import annotations

import functools
import importlib.resources
import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType
from typing import Any

import yaml

from processguard.config import ManagerOptions
from processguard.errors import ConfigValidationError
from processguard.models import ConfigurationPreset, FieldDiff
from processguard.platform_detection import build_capabilities
from processguard.schema import SETTING_DEFAULTS, flatten_security_config
from processguard.store import ConfigurationStore, values_equal, write_settings
from processguard.validation import ValidationEngine

logger = logging.getLogger(__name__)

PRESETS_RESOURCE = "data/presets.yaml"
_SECURITY_LEVELS = ("low", "medium", "high")
_MAX_DISPLAYED_CHANGES = 10

# Receives the rendered diff message, returns whether to proceed.
ConfirmCallback = Callable[[str], "bool | Awaitable[bool]"]


def freeze(value: Any) -> Any:
    """Recursively convert dicts to read-only mappings and lists to tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of ``freeze``: plain, writable dicts and lists."""
    if isinstance(value, Mapping):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(v) for v in value]
    return value


# ── Catalog ──────────────────────────────────────────────────────────────────


def _parse_entry(entry: Any) -> ConfigurationPreset:
    if not isinstance(entry, dict):
        raise ValueError(f"Preset entry must be a mapping, got {type(entry).__name__}")
    try:
        name = entry["name"]
        description = entry["description"]
        level = entry["security_level"]
        config = entry["config"]
    except KeyError as e:
        raise ValueError(f"Preset entry is missing {e.args[0]!r}") from e
    if level not in _SECURITY_LEVELS:
        raise ValueError(f"Preset {name!r} has invalid security_level {level!r}")
    if not isinstance(config, dict):
        raise ValueError(f"Preset {name!r} config must be a mapping")
    return ConfigurationPreset(
        name=str(name),
        description=str(description).strip(),
        security_level=level,
        config=freeze(config),
    )


def parse_catalog(text: str) -> tuple[ConfigurationPreset, ...]:
    """Parse and check a preset catalog document.

    Raises:
        ValueError: Duplicate names, duplicate configs, or an entry that
            fails validation.
    """
    raw = yaml.safe_load(text) or {}
    presets = tuple(_parse_entry(e) for e in raw.get("presets") or [])

    # Errors never depend on the platform; warnings are not checked here.
    engine = ValidationEngine(build_capabilities("unknown", platform_name="unknown"))
    seen_names: set[str] = set()
    seen_configs: dict[str, str] = {}
    for preset in presets:
        key = preset.name.lower()
        if key in seen_names:
            raise ValueError(f"Duplicate preset name: {preset.name}")
        seen_names.add(key)

        fingerprint = json.dumps(thaw(preset.config), sort_keys=True)
        if fingerprint in seen_configs:
            raise ValueError(
                f"Preset {preset.name!r} has the same config as {seen_configs[fingerprint]!r}"
            )
        seen_configs[fingerprint] = preset.name

        result = engine.validate(thaw(preset.config))
        if not result.valid:
            problems = ", ".join(f"{e.setting}: {e.message}" for e in result.errors)
            raise ValueError(f"Preset {preset.name!r} is invalid: {problems}")
    return presets


@functools.cache
def load_presets() -> tuple[ConfigurationPreset, ...]:
    """The built-in catalog, loaded once per process."""
    text = importlib.resources.files("processguard").joinpath(PRESETS_RESOURCE).read_text()
    presets = parse_catalog(text)
    logger.debug("Loaded %d presets: %s", len(presets), ", ".join(p.name for p in presets))
    return presets


def list_presets() -> list[ConfigurationPreset]:
    return list(load_presets())


def get_preset(name: str) -> ConfigurationPreset | None:
    """Look up a preset by name, ignoring case."""
    wanted = name.strip().lower()
    for preset in load_presets():
        if preset.name.lower() == wanted:
            return preset
    return None


# ── Diff rendering ───────────────────────────────────────────────────────────


def format_value_for_display(value: Any) -> str:
    if value is None:
        return "(not set)"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return f'"{value}"' if value else "(empty)"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        if len(value) <= 3:
            return "[" + ", ".join(format_value_for_display(v) for v in value) + "]"
        return f"[{len(value)} items]"
    if isinstance(value, Mapping):
        return json.dumps(thaw(value))
    return str(value)


def render_diff_message(preset: ConfigurationPreset, diff: list[FieldDiff]) -> str:
    """Confirmation text: preset summary followed by the pending changes."""
    lines = [
        f'Apply "{preset.name}" preset?',
        "",
        preset.description,
        "",
        f"Security Level: {preset.security_level.upper()}",
        "",
    ]
    if not diff:
        lines.append("No changes needed - current settings already match this preset.")
        return "\n".join(lines)

    lines += [f"This will change {len(diff)} setting(s):", ""]
    for change in diff[:_MAX_DISPLAYED_CHANGES]:
        old = format_value_for_display(change.old_value)
        new = format_value_for_display(change.new_value)
        lines += [f"• {change.setting}", f"  {old} → {new}", ""]
    if len(diff) > _MAX_DISPLAYED_CHANGES:
        lines.append(f"... and {len(diff) - _MAX_DISPLAYED_CHANGES} more changes")
    return "\n".join(lines).rstrip() + "\n"


async def ask(confirm: Callable[[str], Any], message: str) -> bool:
    """Call a sync or async confirmation callback."""
    answer = confirm(message)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


# ── Application ──────────────────────────────────────────────────────────────


class PresetManager:
    """Diffs presets against the store and writes them into it."""

    def __init__(
        self,
        store: ConfigurationStore,
        engine: ValidationEngine,
        options: ManagerOptions | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._options = options or ManagerOptions()

    def diff(self, preset: ConfigurationPreset) -> list[FieldDiff]:
        """One entry per preset field whose store value differs."""
        changes: list[FieldDiff] = []
        for path, new_value in flatten_security_config(thaw(preset.config)):
            current = self._store.get(path, SETTING_DEFAULTS.get(path))
            if not values_equal(current, new_value):
                changes.append(FieldDiff(setting=path, old_value=current, new_value=new_value))
        return changes

    async def apply(
        self,
        preset: ConfigurationPreset,
        confirm: ConfirmCallback | None = None,
    ) -> bool:
        """Validate, optionally confirm, then write ``preset``.

        Returns False when the confirmation callback declines; nothing is
        written in that case.

        Raises:
            ConfigValidationError: The preset config has validation errors.
            SettleTimeoutError: A write did not become visible in time.
        """
        result = self._engine.validate(thaw(preset.config))
        if not result.valid:
            raise ConfigValidationError(result)

        if confirm is not None and not self._options.non_interactive:
            message = render_diff_message(preset, self.diff(preset))
            if not await ask(confirm, message):
                logger.info("Preset %s declined", preset.name)
                return False

        await self.write(preset)
        return True

    async def write(self, preset: ConfigurationPreset) -> int:
        """Write every preset field without validation or confirmation."""
        written = await write_settings(
            self._store,
            flatten_security_config(thaw(preset.config)),
            timeout=self._options.settle_timeout,
            poll_interval=self._options.poll_interval,
        )
        logger.info("Applied preset %s (%d settings)", preset.name, written)
        return written
