"""Build the server's SecurityConfig from the configuration store."""

from __future__ import annotations

import copy
import logging
from typing import Any

from processguard.models import ConnectionSettings, SecurityConfig
from processguard.schema import (
    CONNECTION_PATHS,
    FIELD_PATHS,
    NESTED_PATHS,
    SERVER_PATHS,
    SETTING_DEFAULTS,
    UI_PATHS,
)
from processguard.store import ConfigurationStore

logger = logging.getLogger(__name__)

# Allow-all wildcard the server expects in place of an empty allowlist.
ALLOW_ALL = "*"


class ServerConfigGenerator:
    """Reads every security setting and assembles a complete SecurityConfig.

    Never fails: unset and null values resolve to the declared default and
    wrongly-typed values pass through unchanged for the validator to report.
    Each call returns a fresh value; repeated calls against an unchanged
    store are equal.
    """

    def __init__(self, store: ConfigurationStore) -> None:
        self._store = store

    def _get(self, path: str) -> Any:
        return self._store.get(path, copy.deepcopy(SETTING_DEFAULTS.get(path)))

    def generate(self) -> SecurityConfig:
        config: dict[str, Any] = {field: self._get(path) for field, path in FIELD_PATHS.items()}
        for field, paths in NESTED_PATHS.items():
            config[field] = {key: self._get(path) for key, path in paths.items()}

        allowed = config["allowedExecutables"]
        if isinstance(allowed, list) and not allowed:
            logger.debug("Empty executable allowlist, substituting %r", ALLOW_ALL)
            config["allowedExecutables"] = [ALLOW_ALL]

        return SecurityConfig(**config)  # type: ignore[typeddict-item]

    def server_settings(self) -> dict[str, Any]:
        return {key: self._get(path) for key, path in SERVER_PATHS.items()}

    def ui_settings(self) -> dict[str, Any]:
        return {key: self._get(path) for key, path in UI_PATHS.items()}

    def connection_settings(self) -> ConnectionSettings:
        return ConnectionSettings(
            **{attr: self._get(path) for attr, path in CONNECTION_PATHS.items()}
        )
