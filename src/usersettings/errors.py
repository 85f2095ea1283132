"""Exceptions raised by the settings engine.

Store failures are not wrapped: whatever the store adapter raises (``apsw.Error`` for
the SQLite store) is logged and re-raised unchanged.
"""

from typing import Any


class SettingsError(Exception):
    """Base class for all usersettings errors."""


class IdentityError(SettingsError, ValueError):
    """A dimension of the addressing tuple has neither a name nor a GUID."""

    def __init__(self, operation: str, identity: Any, missing: list[str]) -> None:
        self.operation = operation
        self.identity = identity
        self.missing = missing
        super().__init__(
            f"{operation}: identity {identity} lacks a name or GUID for "
            f"{', '.join(missing)}"
        )


class ValueBoundsError(SettingsError, ValueError):
    """A bounded string value is longer than its column allows."""

    def __init__(self, value: str, limit: int) -> None:
        self.value = value
        self.length = len(value)
        self.limit = limit
        super().__init__(
            f"str_val cannot hold more than {limit} characters; "
            f"got [{value}] of length {self.length}"
        )


class ValueTypeError(SettingsError, TypeError):
    """A value does not have the Python type of the slot it is written to."""

    def __init__(self, slot: Any, value: Any) -> None:
        self.slot = slot
        self.value = value
        super().__init__(
            f"{slot.column} cannot hold {type(value).__name__} value {value!r}"
        )


class OwnershipError(SettingsError, PermissionError):
    """An altered record does not belong to the acting user."""

    def __init__(self, owner: str | None, current: str) -> None:
        self.owner = owner
        self.current = current
        super().__init__(
            f"Altered user setting record belongs to {owner!r}, not to current user {current!r}"
        )


class ConfigurationError(SettingsError):
    """A required collaborator was not supplied."""
