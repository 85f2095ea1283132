"""User setting record, value slots and addressing identity."""

import uuid as uuid_lib
from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

# Sentinel identity of the shared "common" namespace.
COMMON_USER_NAME = "+"
COMMON_MODULE_NAME = "+"
COMMON_USER_GUID = uuid_lib.UUID(int=0)
COMMON_MODULE_GUID = uuid_lib.UUID(int=0)

STR_VAL_MAX_LENGTH = 256

# Identity columns per dimension: (name column, guid column)
USER_COLUMNS = ("user_name", "user_guid")
MODULE_COLUMNS = ("module_name", "module_guid")
SETTING_COLUMNS = ("setting_name", "setting_guid")
IDENTITY_COLUMNS = USER_COLUMNS + MODULE_COLUMNS + SETTING_COLUMNS

GUID_COLUMNS = frozenset({"user_guid", "module_guid", "setting_guid", "guid_val"})


class ValueSlot(Enum):
    STR = "str_val"
    TXT = "txt_val"
    INT = "int_val"
    BOOL = "bool_val"
    GUID = "guid_val"
    DECIMAL = "decimal_val"
    DATETIME = "date_time_val"

    @property
    def column(self) -> str:
        return self.value

    def accepts(self, value: Any) -> bool:
        """Whether ``value`` can be stored in this slot without conversion."""
        match self:
            case ValueSlot.INT:
                return isinstance(value, int) and not isinstance(value, bool)
            case ValueSlot.BOOL:
                return isinstance(value, bool)
            case ValueSlot.GUID:
                return isinstance(value, uuid_lib.UUID)
            case ValueSlot.DECIMAL:
                return isinstance(value, Decimal)
            case ValueSlot.DATETIME:
                return isinstance(value, datetime)
            case _:
                return isinstance(value, str)


VALUE_COLUMNS = tuple(slot.column for slot in ValueSlot)

ALL_COLUMNS = (
    ("id", "app_name") + IDENTITY_COLUMNS + ("last_access_time",) + VALUE_COLUMNS
)


class RecordStatus(Enum):
    """Lifecycle status of a record as seen by a store update hook."""

    CREATED = "created"
    ALTERED = "altered"
    UNCHANGED = "unchanged"
    DELETED = "deleted"


@dataclass
class SettingValues:
    """The seven value slots of one setting; all ``None`` means "delete"."""

    str_val: str | None = None
    txt_val: str | None = None
    int_val: int | None = None
    bool_val: bool | None = None
    guid_val: uuid_lib.UUID | None = None
    decimal_val: Decimal | None = None
    date_time_val: datetime | None = None

    @staticmethod
    def single(slot: ValueSlot, value: Any) -> "SettingValues":
        """Payload with exactly one slot populated."""
        return SettingValues(**{slot.column: value})

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def get(self, slot: ValueSlot) -> Any:
        return getattr(self, slot.column)

    def non_empty(self) -> dict[ValueSlot, Any]:
        return {slot: self.get(slot) for slot in ValueSlot if self.get(slot) is not None}


@dataclass
class UserSetting:
    id: str = field(default_factory=lambda: str(uuid_lib.uuid4()))
    app_name: str | None = None
    user_name: str | None = None
    user_guid: uuid_lib.UUID | None = None
    module_name: str | None = None
    module_guid: uuid_lib.UUID | None = None
    setting_name: str | None = None
    setting_guid: uuid_lib.UUID | None = None
    last_access_time: datetime | None = None
    str_val: str | None = None
    txt_val: str | None = None
    int_val: int | None = None
    bool_val: bool | None = None
    guid_val: uuid_lib.UUID | None = None
    decimal_val: Decimal | None = None
    date_time_val: datetime | None = None

    @property
    def values(self) -> SettingValues:
        return SettingValues(**{col: getattr(self, col) for col in VALUE_COLUMNS})

    def assign_values(self, values: SettingValues) -> None:
        """Overwrite all seven slots; slots missing from ``values`` become ``None``."""
        for col in VALUE_COLUMNS:
            setattr(self, col, getattr(values, col))

    def identity_key(self) -> tuple[Any, ...]:
        return tuple(getattr(self, col) for col in IDENTITY_COLUMNS)

    @staticmethod
    def from_columns(columns: tuple[str, ...], row: tuple[Any, ...]) -> "UserSetting":
        """Build a (possibly partially projected) record from a storage row."""
        data = {col: _from_storage(col, raw) for col, raw in zip(columns, row, strict=True)}
        return UserSetting(**data)

    def to_row(self) -> tuple[Any, ...]:
        """Storage values in ``ALL_COLUMNS`` order."""
        return tuple(to_storage(col, getattr(self, col)) for col in ALL_COLUMNS)


@dataclass(frozen=True)
class SettingIdentity:
    """Addressing tuple: (user, module, setting), each by name and/or GUID."""

    user_name: str | None = None
    user_guid: uuid_lib.UUID | None = None
    module_name: str | None = None
    module_guid: uuid_lib.UUID | None = None
    setting_name: str | None = None
    setting_guid: uuid_lib.UUID | None = None

    @staticmethod
    def of(
        user: str | uuid_lib.UUID | None,
        module: str | uuid_lib.UUID | None,
        setting: str | uuid_lib.UUID | None,
        user_guid: uuid_lib.UUID | None = None,
        module_guid: uuid_lib.UUID | None = None,
        setting_guid: uuid_lib.UUID | None = None,
    ) -> "SettingIdentity":
        """Build an identity from positional parts.

        A ``str`` part is a name and a ``UUID`` part is a GUID. The keyword GUIDs
        complete the name+GUID form; an explicit keyword wins over a positional UUID.
        """
        user_name, user_guid = _split_part(user, user_guid)
        module_name, module_guid = _split_part(module, module_guid)
        setting_name, setting_guid = _split_part(setting, setting_guid)
        return SettingIdentity(
            user_name, user_guid, module_name, module_guid, setting_name, setting_guid
        )

    @staticmethod
    def common(setting: str | uuid_lib.UUID | None) -> "SettingIdentity":
        """Identity inside the common namespace (sentinel user and module)."""
        setting_name, setting_guid = _split_part(setting, None)
        return SettingIdentity(
            COMMON_USER_NAME,
            COMMON_USER_GUID,
            COMMON_MODULE_NAME,
            COMMON_MODULE_GUID,
            setting_name,
            setting_guid,
        )

    def missing_dimensions(self) -> list[str]:
        """Names of the dimensions that have neither a name nor a GUID."""
        missing = []
        for dim, (name_col, guid_col) in (
            ("user", USER_COLUMNS),
            ("module", MODULE_COLUMNS),
            ("setting", SETTING_COLUMNS),
        ):
            if not getattr(self, name_col) and getattr(self, guid_col) is None:
                missing.append(dim)
        return missing

    def stamp(self, record: UserSetting) -> None:
        """Copy the identity fields onto a record."""
        for col in IDENTITY_COLUMNS:
            setattr(record, col, getattr(self, col))

    def __str__(self) -> str:
        def part(name: str | None, guid: uuid_lib.UUID | None) -> str:
            if name and guid is not None:
                return f"{name}|{guid}"
            if guid is not None:
                return str(guid)
            return name or "?"

        return "/".join(
            (
                part(self.user_name, self.user_guid),
                part(self.module_name, self.module_guid),
                part(self.setting_name, self.setting_guid),
            )
        )


def _split_part(
    part: str | uuid_lib.UUID | None, guid: uuid_lib.UUID | None
) -> tuple[str | None, uuid_lib.UUID | None]:
    if isinstance(part, uuid_lib.UUID):
        return None, guid if guid is not None else part
    return part or None, guid


# ---------------------------------------------------------------------------
# Storage conversion
# ---------------------------------------------------------------------------


def to_storage(column: str, value: Any) -> Any:
    """Convert a Python value to its SQLite representation."""
    if value is None:
        return None
    if column in GUID_COLUMNS:
        return str(value)
    if column == "decimal_val":
        return str(value)
    if column in ("last_access_time", "date_time_val"):
        return value.isoformat()
    if column == "bool_val":
        return 1 if value else 0
    return value


def _from_storage(column: str, raw: Any) -> Any:
    if raw is None:
        return None
    if column in GUID_COLUMNS:
        return uuid_lib.UUID(str(raw))
    if column == "decimal_val":
        return Decimal(str(raw))
    if column in ("last_access_time", "date_time_val"):
        return datetime.fromisoformat(str(raw))
    if column == "bool_val":
        return bool(raw)
    if column == "int_val":
        return int(raw)
    return str(raw)
