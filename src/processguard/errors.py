"""Exceptions raised by the settings manager.

Validation problems in configuration *data* are never raised; they are
returned as a ``ValidationResult``. The exceptions below cover the import
path (malformed JSON, wrong shape, failed validation), user cancellation
and writes that never become visible in the store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from processguard.models import ValidationResult


class SettingsError(ValueError):
    """Base class for settings manager failures."""


class ConfigParseError(SettingsError):
    """Import payload is not syntactically valid JSON."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid JSON: {detail}")


class ConfigShapeError(SettingsError):
    """Import payload parsed, but its top-level shape is wrong."""


class ConfigValidationError(SettingsError):
    """Security payload failed validation; lists every offending setting."""

    def __init__(self, result: ValidationResult) -> None:
        self.result = result
        lines = "\n".join(f"• {e.setting}: {e.message}" for e in result.errors)
        super().__init__(
            f"Configuration validation failed:\n\n{lines}\n\n"
            "Please fix these errors in the configuration file and try again."
        )

    @property
    def settings(self) -> list[str]:
        return [e.setting for e in self.result.errors]


class ImportCancelledError(SettingsError):
    def __init__(self) -> None:
        super().__init__("Import cancelled by user")


class SettleTimeoutError(SettingsError):
    """A store write did not become visible within the settle timeout."""

    def __init__(self, path: str, expected: object, actual: object, timeout: float) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Timeout waiting for {path} to change to {expected!r}, "
            f"got {actual!r} after {timeout:.1f}s"
        )
