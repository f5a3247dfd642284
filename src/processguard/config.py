"""Runtime options for the settings manager itself.

These are not user security settings; they control where settings are
persisted and how long writes may take to settle.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes")


class ManagerOptions(BaseModel):
    settings_path: Path | None = None  # None = in-memory store
    settle_timeout: float = Field(default=30.0, gt=0)  # seconds
    poll_interval: float = Field(default=0.1, gt=0)  # seconds
    # Skip every interactive confirmation (imports act as skip_warnings=True).
    non_interactive: bool = False


def load_options(**overrides: Any) -> ManagerOptions:
    """Build options from keyword overrides plus environment variables.

    Environment variables win over the defaults but not over explicit
    overrides that are not None.

    Raises:
        ValueError: If a value (including an environment value) is invalid.
    """
    raw: dict[str, Any] = {}

    settings_path = os.environ.get("PROCESSGUARD_SETTINGS_PATH")
    if settings_path:
        raw["settings_path"] = settings_path

    settle_timeout = os.environ.get("PROCESSGUARD_SETTLE_TIMEOUT")
    if settle_timeout:
        raw["settle_timeout"] = settle_timeout

    non_interactive = os.environ.get("PROCESSGUARD_NONINTERACTIVE")
    if non_interactive is not None:
        raw["non_interactive"] = non_interactive.lower() in _TRUTHY

    raw.update({k: v for k, v in overrides.items() if v is not None})
    options = ManagerOptions(**raw)
    logger.debug(
        "Manager options: settings_path=%s settle_timeout=%.1fs non_interactive=%s",
        options.settings_path,
        options.settle_timeout,
        options.non_interactive,
    )
    return options
