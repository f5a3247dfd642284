"""Configuration stores — the host's hierarchical settings, abstracted.

A store is keyed by dotted paths (``process.maxConcurrentProcesses``) and
layered by target: workspace-folder values shadow workspace values, which
shadow global values, which shadow the declared defaults from
``processguard.schema``.

Writes are asynchronous and may become visible some time after ``update``
returns. Callers that write then read use ``write_settings`` which waits for
each value to settle.
"""

from __future__ import annotations

import asyncio
import copy
import enum
import json
import logging
import os
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from processguard.errors import SettleTimeoutError
from processguard.schema import SECTION, SETTING_DEFAULTS

logger = logging.getLogger(__name__)


class ConfigurationTarget(str, enum.Enum):
    GLOBAL = "global"
    WORKSPACE = "workspace"
    WORKSPACE_FOLDER = "workspaceFolder"


# Highest precedence first.
_PRECEDENCE = (
    ConfigurationTarget.WORKSPACE_FOLDER,
    ConfigurationTarget.WORKSPACE,
    ConfigurationTarget.GLOBAL,
)


@dataclass(frozen=True)
class SettingInspection:
    key: str
    default_value: Any = None
    global_value: Any = None
    workspace_value: Any = None
    workspace_folder_value: Any = None


@dataclass(frozen=True)
class ConfigurationChangeEvent:
    paths: frozenset[str]

    def affects_configuration(self, section: str) -> bool:
        """True if any changed path equals or lies under ``section``.

        ``section`` may be given relative to the store or prefixed with the
        extension section name (``mcp-process.server``).
        """
        if section == SECTION:
            return bool(self.paths)
        if section.startswith(SECTION + "."):
            section = section[len(SECTION) + 1 :]
        return any(p == section or p.startswith(section + ".") for p in self.paths)


ChangeListener = Callable[[ConfigurationChangeEvent], None]


@runtime_checkable
class ConfigurationStore(Protocol):
    def get(self, path: str, default: Any = None) -> Any: ...

    def inspect(self, path: str) -> SettingInspection: ...

    async def update(
        self,
        path: str,
        value: Any,
        target: ConfigurationTarget = ConfigurationTarget.GLOBAL,
    ) -> None: ...

    def on_did_change(self, listener: ChangeListener) -> Callable[[], None]: ...


class _LayeredStore:
    """Shared layering, default resolution and change fan-out."""

    def __init__(self, defaults: dict[str, Any] | None = None) -> None:
        self._defaults = dict(SETTING_DEFAULTS if defaults is None else defaults)
        self._layers: dict[ConfigurationTarget, dict[str, Any]] = {
            target: {} for target in ConfigurationTarget
        }
        self._listeners: list[ChangeListener] = []

    def get(self, path: str, default: Any = None) -> Any:
        """Effective value for ``path``; ``None`` counts as unset."""
        for target in _PRECEDENCE:
            value = self._layers[target].get(path)
            if value is not None:
                return copy.deepcopy(value)
        declared = self._defaults.get(path)
        if declared is not None:
            return copy.deepcopy(declared)
        return default

    def inspect(self, path: str) -> SettingInspection:
        return SettingInspection(
            key=path,
            default_value=copy.deepcopy(self._defaults.get(path)),
            global_value=copy.deepcopy(self._layers[ConfigurationTarget.GLOBAL].get(path)),
            workspace_value=copy.deepcopy(self._layers[ConfigurationTarget.WORKSPACE].get(path)),
            workspace_folder_value=copy.deepcopy(
                self._layers[ConfigurationTarget.WORKSPACE_FOLDER].get(path)
            ),
        )

    async def update(
        self,
        path: str,
        value: Any,
        target: ConfigurationTarget = ConfigurationTarget.GLOBAL,
    ) -> None:
        """Write ``value`` at ``path`` in ``target``.

        ``None`` resets the field: the declared default is written explicitly
        into the target layer (or the key removed if there is no default).
        """
        if value is None:
            value = copy.deepcopy(self._defaults.get(path))
        await self._write(path, copy.deepcopy(value), ConfigurationTarget(target))

    def on_did_change(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _write(self, path: str, value: Any, target: ConfigurationTarget) -> None:
        self._apply(path, value, target)

    def _apply(self, path: str, value: Any, target: ConfigurationTarget) -> None:
        layer = self._layers[target]
        if value is None:
            layer.pop(path, None)
        else:
            layer[path] = value
        logger.debug("Setting %s updated in %s scope", path, target.value)
        self._notify(ConfigurationChangeEvent(frozenset({path})))

    def _notify(self, event: ConfigurationChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Configuration change listener failed")


class InMemoryConfigurationStore(_LayeredStore):
    """Dict-backed store.

    With ``settle_delay > 0`` writes become visible only after that many
    seconds, mimicking a host whose ``update`` resolves before the new value
    is readable.
    """

    def __init__(
        self,
        values: dict[str, Any] | None = None,
        *,
        defaults: dict[str, Any] | None = None,
        settle_delay: float = 0.0,
    ) -> None:
        super().__init__(defaults)
        self.settle_delay = settle_delay
        for path, value in (values or {}).items():
            self._layers[ConfigurationTarget.GLOBAL][path] = copy.deepcopy(value)

    async def _write(self, path: str, value: Any, target: ConfigurationTarget) -> None:
        if self.settle_delay > 0:
            loop = asyncio.get_running_loop()
            loop.call_later(self.settle_delay, self._apply, path, value, target)
            return
        self._apply(path, value, target)


class YamlConfigurationStore(_LayeredStore):
    """Store persisted to a YAML file, one mapping of dotted paths per target::

        global:
          process.maxConcurrentProcesses: 5
          security.advanced.enableChroot: true
        workspace: {}

    Values are kept whole under their full path, so a mapping stored as a
    setting's value reads back as that mapping. The file is read once at
    construction; every write rewrites it off the event loop.
    """

    def __init__(self, path: Path | str, *, defaults: dict[str, Any] | None = None) -> None:
        super().__init__(defaults)
        self.path = Path(path)
        self._save_lock = asyncio.Lock()
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        with open(self.path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Settings file must contain a mapping: {self.path}")
        for target in ConfigurationTarget:
            section = raw.get(target.value) or {}
            if not isinstance(section, dict):
                raise ValueError(f"Settings scope '{target.value}' must be a mapping: {self.path}")
            self._layers[target] = {str(path): value for path, value in section.items()}
        logger.info("Loaded settings from %s", self.path)

    def _save(self) -> None:
        data = {
            target.value: dict(self._layers[target])
            for target in ConfigurationTarget
            if self._layers[target]
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as f:
            yaml.safe_dump(data, f, sort_keys=True, default_flow_style=False)
        os.replace(tmp, self.path)

    async def _write(self, path: str, value: Any, target: ConfigurationTarget) -> None:
        async with self._save_lock:
            self._apply(path, value, target)
            await asyncio.to_thread(self._save)


# ── Settled writes ───────────────────────────────────────────────────────────


def values_equal(a: Any, b: Any) -> bool:
    # JSON comparison keeps True and 1 distinct.
    return json.dumps(a, sort_keys=True, default=str) == json.dumps(b, sort_keys=True, default=str)


async def wait_for_value(
    store: ConfigurationStore,
    path: str,
    expected: Any,
    *,
    timeout: float = 30.0,
    poll_interval: float = 0.1,
) -> None:
    """Poll until ``store.get(path)`` equals ``expected``.

    Returns immediately if it already does. Raises ``SettleTimeoutError``
    if the value has not settled after ``timeout`` seconds.
    """
    if values_equal(store.get(path), expected):
        return

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        await asyncio.sleep(poll_interval)
        if values_equal(store.get(path), expected):
            return

    actual = store.get(path)
    if not values_equal(actual, expected):
        raise SettleTimeoutError(path, expected, actual, timeout)


async def write_settings(
    store: ConfigurationStore,
    pairs: Iterable[tuple[str, Any]],
    *,
    target: ConfigurationTarget = ConfigurationTarget.GLOBAL,
    timeout: float = 30.0,
    poll_interval: float = 0.1,
) -> int:
    """Write each ``(path, value)`` and wait for it to become readable.

    Not transactional: a failure partway leaves earlier writes applied.
    Returns the number of settings written.
    """
    count = 0
    for path, value in pairs:
        await store.update(path, value, target)
        expected = store.inspect(path).default_value if value is None else value
        await wait_for_value(store, path, expected, timeout=timeout, poll_interval=poll_interval)
        count += 1
    return count
