"""Configuration registry and type system.

Every configurable setting is declared here with its key, type, default and
description. The registry is the single source of truth for what settings exist.
Values are stored in the ``app_setting`` table next to the settings data.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import apsw


class ConfigType(Enum):
    STRING = "string"
    INT = "int"
    BOOL = "bool"


@dataclass(frozen=True, slots=True)
class ConfigEntry:
    key: str
    type: ConfigType
    default: str | int | bool
    description: str


# ---------------------------------------------------------------------------
# Registry -- every known setting
# ---------------------------------------------------------------------------

REGISTRY: list[ConfigEntry] = [
    # -- settings --
    ConfigEntry("settings.enabled", ConfigType.BOOL, False, "Enable loading and saving settings"),
    ConfigEntry(
        "settings.app_name",
        ConfigType.STRING,
        "",
        "Application name stamped on records (empty: name of the running script)",
    ),
    # -- store --
    ConfigEntry(
        "store.delete_batch_size", ConfigType.INT, 500, "Records deleted per bulk-delete round"
    ),
]

# Fast lookup by key
_REGISTRY_MAP: dict[str, ConfigEntry] = {e.key: e for e in REGISTRY}


def resolve_entry(key: str) -> ConfigEntry | None:
    """Look up a registry entry by key."""
    return _REGISTRY_MAP.get(key)


# ---------------------------------------------------------------------------
# Value parsing / serialization
# ---------------------------------------------------------------------------


def parse_value(entry: ConfigEntry, raw: str) -> str | int | bool:
    """Parse a raw string value according to the entry's type."""
    match entry.type:
        case ConfigType.STRING:
            return raw
        case ConfigType.INT:
            return int(raw)
        case ConfigType.BOOL:
            return raw.lower() in ("true", "1", "yes", "on")


def serialize_value(entry: ConfigEntry, value: str | int | bool) -> str:
    """Serialize a typed value to a string for storage."""
    match entry.type:
        case ConfigType.BOOL:
            return "true" if value else "false"
        case _:
            return str(value)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

# Mapping from registry keys to Flask app.config keys
KEY_MAP: dict[str, str] = {
    "settings.enabled": "USERSETTINGS_ENABLED",
    "settings.app_name": "USERSETTINGS_APP_NAME",
    "store.delete_batch_size": "USERSETTINGS_DELETE_BATCH_SIZE",
}


def load_config(conn: apsw.Connection) -> dict[str, Any]:
    """Effective value of every registry entry, stored values over defaults.

    A database without the ``app_setting`` table yields the defaults.
    """
    try:
        rows = conn.execute("SELECT key, value FROM app_setting").fetchall()
    except apsw.SQLError:
        rows = []

    db_values = {str(r[0]): str(r[1]) for r in rows}
    values: dict[str, Any] = {}
    for entry in REGISTRY:
        raw = db_values.get(entry.key)
        values[entry.key] = parse_value(entry, raw) if raw is not None else entry.default
    return values


def store_value(conn: apsw.Connection, key: str, raw: str) -> None:
    """Upsert a raw value into app_setting."""
    entry = resolve_entry(key)
    description = entry.description if entry else ""
    conn.execute(
        "INSERT INTO app_setting (key, value, description) VALUES (?, ?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, raw, description),
    )


def read_raw_values(conn: apsw.Connection) -> dict[str, str]:
    """Read all app_setting rows into a dict."""
    rows = conn.execute("SELECT key, value FROM app_setting ORDER BY key").fetchall()
    return {str(r[0]): str(r[1]) for r in rows}
