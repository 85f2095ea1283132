"""Settings engine: identity resolution, duplicate healing, upsert and bulk delete.

Loading logic for every addressed operation is
``(user name OR guid) AND (module name OR guid) AND (setting name OR guid)``.
When several records match one identity, the first in load order is kept and the
others are deleted as a side effect of the call.

Reads and writes are not serialised: two concurrent first writes for the same identity
can both create a record. The next read or write for that identity removes the extra one.
"""

import logging
import sys
import uuid as uuid_lib
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from usersettings.directory import (
    DirectoryLookup,
    env_or_directory_user_name,
    resolve_user_name,
)
from usersettings.errors import IdentityError, ValueBoundsError, ValueTypeError
from usersettings.models.setting import (
    ALL_COLUMNS,
    COMMON_USER_GUID,
    COMMON_USER_NAME,
    STR_VAL_MAX_LENGTH,
    SettingIdentity,
    SettingValues,
    UserSetting,
    ValueSlot,
)
from usersettings.predicate import build_query
from usersettings.store import SettingStore

log = logging.getLogger(__name__)

DELETE_BATCH_SIZE = 500

Part = str | uuid_lib.UUID | None


class LookupStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    DISABLED = "disabled"


@dataclass
class Lookup:
    """Outcome of a single-identity read."""

    status: LookupStatus
    record: UserSetting | None = None

    @property
    def found(self) -> bool:
        return self.status == LookupStatus.FOUND

    def value(self, slot: ValueSlot) -> Any:
        return getattr(self.record, slot.column) if self.record else None

    @property
    def values(self) -> SettingValues:
        return self.record.values if self.record else SettingValues()


class SettingsService:
    """Typed get/set/delete of user settings over a ``SettingStore``.

    Usage:
        service = SettingsService(SQLiteStore(get_standalone_db), enabled=True)
        service.set_int("alice", "grid", "page_size", 50)
        service.get_int("alice", "grid", "page_size")  # 50

    Identity parts are names (``str``) or GUIDs (``uuid.UUID``); pass the keyword
    GUIDs to address a dimension by name OR GUID.
    """

    def __init__(
        self,
        store: SettingStore,
        enabled: bool | Callable[[], bool] = False,
        app_name: str | None = None,
        delete_batch_size: int = DELETE_BATCH_SIZE,
        directory: DirectoryLookup | None = None,
    ) -> None:
        if delete_batch_size <= 0:
            raise ValueError("delete_batch_size must be positive")
        self.store = store
        self._enabled = enabled
        self._app_name = app_name or None
        self.delete_batch_size = delete_batch_size
        self.directory = directory

    @staticmethod
    def from_config(
        store: SettingStore,
        values: dict[str, Any],
        directory: DirectoryLookup | None = None,
    ) -> "SettingsService":
        """Build a service from ``config.load_config`` output."""
        return SettingsService(
            store,
            enabled=bool(values["settings.enabled"]),
            app_name=str(values["settings.app_name"]),
            delete_batch_size=int(values["store.delete_batch_size"]),
            directory=directory,
        )

    # -- configuration -------------------------------------------------------

    @property
    def enabled(self) -> bool:
        if callable(self._enabled):
            return bool(self._enabled())
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool | Callable[[], bool]) -> None:
        self._enabled = value

    @property
    def app_name(self) -> str:
        if self._app_name:
            return self._app_name
        return Path(sys.argv[0]).stem or "python"

    # -- user names ----------------------------------------------------------

    def directory_user_name(self, raw_name: str | None) -> str | None:
        """Canonical directory name for ``raw_name``; None without a directory."""
        return resolve_user_name(self.directory, raw_name)

    def env_or_directory_user_name(self) -> str:
        """Directory name of the OS user running this process, else the login name."""
        return env_or_directory_user_name(self.directory)

    # -- core ----------------------------------------------------------------

    def _require_identity(self, operation: str, identity: SettingIdentity) -> None:
        missing = identity.missing_dimensions()
        if missing:
            raise IdentityError(operation, identity, missing)

    def _discard_duplicates(self, records: list[UserSetting], context: Any) -> None:
        if len(records) > 1:
            log.warning("Removing %d duplicate setting(s) for %s", len(records) - 1, context)
            self.store.delete(records[1:])

    def resolve(
        self,
        identity: SettingIdentity,
        slots: Iterable[ValueSlot] = tuple(ValueSlot),
        operation: str = "resolve",
    ) -> Lookup:
        """Load the record for ``identity`` with only ``slots`` populated."""
        self._require_identity(operation, identity)
        if not self.enabled:
            return Lookup(LookupStatus.DISABLED)

        query = build_query(identity)
        columns = query.columns + tuple(slot.column for slot in slots)
        try:
            records = self.store.load(query.predicate, columns)
            if not records:
                return Lookup(LookupStatus.NOT_FOUND)
            self._discard_duplicates(records, identity)
            return Lookup(LookupStatus.FOUND, records[0])
        except Exception:
            log.exception("Exception in loading user settings: %s(%s)", operation, identity)
            raise

    def upsert(
        self,
        identity: SettingIdentity,
        values: SettingValues,
        operation: str = "upsert",
    ) -> bool:
        """Create or replace the record for ``identity``.

        All seven slots are overwritten with ``values``; slots left ``None`` are
        cleared, never merged with what was stored. An empty payload deletes the
        record. Returns False only when the feature is disabled.
        """
        self._require_identity(operation, identity)
        for slot, value in values.non_empty().items():
            if not slot.accepts(value):
                raise ValueTypeError(slot, value)
        if values.str_val is not None and len(values.str_val) > STR_VAL_MAX_LENGTH:
            raise ValueBoundsError(values.str_val, STR_VAL_MAX_LENGTH)
        if not self.enabled:
            return False

        query = build_query(identity)
        try:
            records = self.store.load(query.predicate, ALL_COLUMNS)

            if values.is_empty():
                self.store.delete(records)
                return True

            if records:
                record = records[0]
                record.last_access_time = datetime.now(UTC)
                self._discard_duplicates(records, identity)
            else:
                record = UserSetting()

            identity.stamp(record)
            record.app_name = self.app_name
            record.assign_values(values)
            self.store.replace(record)
            return True
        except Exception:
            log.exception("%s(%s, %s) failed", operation, identity, values)
            raise

    def delete(self, identity: SettingIdentity, operation: str = "delete") -> bool:
        """Delete every record matching the (possibly partial) identity.

        Works in rounds of ``delete_batch_size`` until a round finds nothing. An identity
        with no constrained dimension deletes the whole table.
        """
        if not self.enabled:
            return False

        query = build_query(identity)
        deleted = 0
        try:
            while True:
                batch = self.store.load(
                    query.predicate, query.columns, limit=self.delete_batch_size
                )
                if not batch:
                    break
                self.store.delete(batch)
                deleted += len(batch)
        except Exception:
            log.exception("%s(%s) failed after %d record(s)", operation, identity, deleted)
            raise

        log.info("%s(%s) removed %d record(s)", operation, identity, deleted)
        return True

    def _load_all(
        self,
        identity: SettingIdentity,
        operation: str,
        order_by: Iterable[str] | None = None,
    ) -> list[UserSetting] | None:
        if not self.enabled:
            return None

        query = build_query(identity)
        try:
            records = self.store.load(query.predicate, ALL_COLUMNS, order_by=order_by)

            kept: dict[tuple[Any, ...], UserSetting] = {}
            extras: list[UserSetting] = []
            for record in records:
                key = record.identity_key()
                if key in kept:
                    extras.append(record)
                else:
                    kept[key] = record
            if extras:
                log.warning("Removing %d duplicate setting(s) under %s", len(extras), identity)
                self.store.delete(extras)

            return list(kept.values())
        except Exception:
            log.exception("%s(%s) failed", operation, identity)
            raise

    # -- whole-payload access ------------------------------------------------

    def get_settings(
        self,
        user: Part,
        module: Part,
        setting: Part,
        *,
        user_guid: uuid_lib.UUID | None = None,
        module_guid: uuid_lib.UUID | None = None,
        setting_guid: uuid_lib.UUID | None = None,
    ) -> Lookup:
        identity = SettingIdentity.of(user, module, setting, user_guid, module_guid, setting_guid)
        return self.resolve(identity, operation="get_settings")

    def set_settings(
        self,
        user: Part,
        module: Part,
        setting: Part,
        values: SettingValues,
        *,
        user_guid: uuid_lib.UUID | None = None,
        module_guid: uuid_lib.UUID | None = None,
        setting_guid: uuid_lib.UUID | None = None,
    ) -> bool:
        identity = SettingIdentity.of(user, module, setting, user_guid, module_guid, setting_guid)
        return self.upsert(identity, values, operation="set_settings")

    def get_common_settings(self, setting: str | uuid_lib.UUID) -> Lookup:
        return self.resolve(SettingIdentity.common(setting), operation="get_common_settings")

    def set_common_settings(self, setting: str | uuid_lib.UUID, values: SettingValues) -> bool:
        return self.upsert(SettingIdentity.common(setting), values, operation="set_common_settings")

    # -- single-slot access --------------------------------------------------

    def get_value(
        self,
        slot: ValueSlot,
        user: Part,
        module: Part,
        setting: Part,
        *,
        user_guid: uuid_lib.UUID | None = None,
        module_guid: uuid_lib.UUID | None = None,
        setting_guid: uuid_lib.UUID | None = None,
    ) -> Any:
        identity = SettingIdentity.of(user, module, setting, user_guid, module_guid, setting_guid)
        return self.resolve(identity, (slot,), operation=f"get_{slot.name.lower()}").value(slot)

    def set_value(
        self,
        slot: ValueSlot,
        user: Part,
        module: Part,
        setting: Part,
        value: Any,
        *,
        user_guid: uuid_lib.UUID | None = None,
        module_guid: uuid_lib.UUID | None = None,
        setting_guid: uuid_lib.UUID | None = None,
    ) -> bool:
        # Clears the other six slots of this identity (upsert never merges).
        identity = SettingIdentity.of(user, module, setting, user_guid, module_guid, setting_guid)
        return self.upsert(
            identity, SettingValues.single(slot, value), operation=f"set_{slot.name.lower()}"
        )

    def get_common_value(self, slot: ValueSlot, setting: str | uuid_lib.UUID) -> Any:
        lookup = self.resolve(
            SettingIdentity.common(setting), (slot,), operation=f"get_common_{slot.name.lower()}"
        )
        return lookup.value(slot)

    def set_common_value(self, slot: ValueSlot, setting: str | uuid_lib.UUID, value: Any) -> bool:
        return self.upsert(
            SettingIdentity.common(setting),
            SettingValues.single(slot, value),
            operation=f"set_common_{slot.name.lower()}",
        )

    def get_str(self, user: Part, module: Part, setting: Part, **guids: Any) -> str | None:
        return self.get_value(ValueSlot.STR, user, module, setting, **guids)

    def set_str(self, user: Part, module: Part, setting: Part, value: str, **guids: Any) -> bool:
        return self.set_value(ValueSlot.STR, user, module, setting, value, **guids)

    def get_txt(self, user: Part, module: Part, setting: Part, **guids: Any) -> str | None:
        return self.get_value(ValueSlot.TXT, user, module, setting, **guids)

    def set_txt(self, user: Part, module: Part, setting: Part, value: str, **guids: Any) -> bool:
        return self.set_value(ValueSlot.TXT, user, module, setting, value, **guids)

    def get_int(self, user: Part, module: Part, setting: Part, **guids: Any) -> int | None:
        return self.get_value(ValueSlot.INT, user, module, setting, **guids)

    def set_int(self, user: Part, module: Part, setting: Part, value: int, **guids: Any) -> bool:
        return self.set_value(ValueSlot.INT, user, module, setting, value, **guids)

    def get_bool(self, user: Part, module: Part, setting: Part, **guids: Any) -> bool | None:
        return self.get_value(ValueSlot.BOOL, user, module, setting, **guids)

    def set_bool(self, user: Part, module: Part, setting: Part, value: bool, **guids: Any) -> bool:
        return self.set_value(ValueSlot.BOOL, user, module, setting, value, **guids)

    def get_guid(
        self, user: Part, module: Part, setting: Part, **guids: Any
    ) -> uuid_lib.UUID | None:
        return self.get_value(ValueSlot.GUID, user, module, setting, **guids)

    def set_guid(
        self, user: Part, module: Part, setting: Part, value: uuid_lib.UUID, **guids: Any
    ) -> bool:
        return self.set_value(ValueSlot.GUID, user, module, setting, value, **guids)

    def get_decimal(self, user: Part, module: Part, setting: Part, **guids: Any) -> Decimal | None:
        return self.get_value(ValueSlot.DECIMAL, user, module, setting, **guids)

    def set_decimal(
        self, user: Part, module: Part, setting: Part, value: Decimal, **guids: Any
    ) -> bool:
        return self.set_value(ValueSlot.DECIMAL, user, module, setting, value, **guids)

    def get_datetime(
        self, user: Part, module: Part, setting: Part, **guids: Any
    ) -> datetime | None:
        return self.get_value(ValueSlot.DATETIME, user, module, setting, **guids)

    def set_datetime(
        self, user: Part, module: Part, setting: Part, value: datetime, **guids: Any
    ) -> bool:
        return self.set_value(ValueSlot.DATETIME, user, module, setting, value, **guids)

    def get_common_str(self, setting: str | uuid_lib.UUID) -> str | None:
        return self.get_common_value(ValueSlot.STR, setting)

    def set_common_str(self, setting: str | uuid_lib.UUID, value: str) -> bool:
        return self.set_common_value(ValueSlot.STR, setting, value)

    def get_common_txt(self, setting: str | uuid_lib.UUID) -> str | None:
        return self.get_common_value(ValueSlot.TXT, setting)

    def set_common_txt(self, setting: str | uuid_lib.UUID, value: str) -> bool:
        return self.set_common_value(ValueSlot.TXT, setting, value)

    def get_common_int(self, setting: str | uuid_lib.UUID) -> int | None:
        return self.get_common_value(ValueSlot.INT, setting)

    def set_common_int(self, setting: str | uuid_lib.UUID, value: int) -> bool:
        return self.set_common_value(ValueSlot.INT, setting, value)

    def get_common_bool(self, setting: str | uuid_lib.UUID) -> bool | None:
        return self.get_common_value(ValueSlot.BOOL, setting)

    def set_common_bool(self, setting: str | uuid_lib.UUID, value: bool) -> bool:
        return self.set_common_value(ValueSlot.BOOL, setting, value)

    def get_common_guid(self, setting: str | uuid_lib.UUID) -> uuid_lib.UUID | None:
        return self.get_common_value(ValueSlot.GUID, setting)

    def set_common_guid(self, setting: str | uuid_lib.UUID, value: uuid_lib.UUID) -> bool:
        return self.set_common_value(ValueSlot.GUID, setting, value)

    def get_common_decimal(self, setting: str | uuid_lib.UUID) -> Decimal | None:
        return self.get_common_value(ValueSlot.DECIMAL, setting)

    def set_common_decimal(self, setting: str | uuid_lib.UUID, value: Decimal) -> bool:
        return self.set_common_value(ValueSlot.DECIMAL, setting, value)

    def get_common_datetime(self, setting: str | uuid_lib.UUID) -> datetime | None:
        return self.get_common_value(ValueSlot.DATETIME, setting)

    def set_common_datetime(self, setting: str | uuid_lib.UUID, value: datetime) -> bool:
        return self.set_common_value(ValueSlot.DATETIME, setting, value)

    # -- listing -------------------------------------------------------------

    def all_settings_by_user(
        self, user: str | uuid_lib.UUID | None, user_guid: uuid_lib.UUID | None = None
    ) -> list[UserSetting] | None:
        """All settings of a user (name OR guid); None when the feature is disabled."""
        identity = SettingIdentity.of(user, None, None, user_guid=user_guid)
        if not identity.user_name and identity.user_guid is None:
            raise IdentityError("all_settings_by_user", identity, ["user"])
        return self._load_all(identity, "all_settings_by_user")

    def all_settings_by_module(
        self, module: str | uuid_lib.UUID | None, module_guid: uuid_lib.UUID | None = None
    ) -> list[UserSetting] | None:
        """All settings of a module (name OR guid); None when the feature is disabled."""
        identity = SettingIdentity.of(None, module, None, module_guid=module_guid)
        if not identity.module_name and identity.module_guid is None:
            raise IdentityError("all_settings_by_module", identity, ["module"])
        return self._load_all(identity, "all_settings_by_module")

    def all_setting_names(self, user_name: str, module_name: str) -> list[str | None] | None:
        """Setting names of one user and module, ordered by name."""
        identity = SettingIdentity(user_name=user_name or None, module_name=module_name or None)
        missing = [dim for dim, name in (("user", user_name), ("module", module_name)) if not name]
        if missing:
            raise IdentityError("all_setting_names", identity, missing)

        records = self._load_all(identity, "all_setting_names", order_by=("setting_name",))
        if records is None:
            return None
        return [record.setting_name for record in records]

    def all_common_settings(self) -> list[UserSetting] | None:
        return self.all_settings_by_user(COMMON_USER_NAME, COMMON_USER_GUID)

    # -- bulk delete ---------------------------------------------------------

    def delete_settings(
        self,
        user: Part = None,
        module: Part = None,
        setting: Part = None,
        *,
        user_guid: uuid_lib.UUID | None = None,
        module_guid: uuid_lib.UUID | None = None,
        setting_guid: uuid_lib.UUID | None = None,
    ) -> bool:
        """Delete every setting matching the given parts; omitted parts match anything."""
        identity = SettingIdentity.of(user, module, setting, user_guid, module_guid, setting_guid)
        return self.delete(identity, operation="delete_settings")

    def delete_settings_by_user(
        self, user: str | uuid_lib.UUID | None, user_guid: uuid_lib.UUID | None = None
    ) -> bool:
        identity = SettingIdentity.of(user, None, None, user_guid=user_guid)
        if not identity.user_name and identity.user_guid is None:
            return False
        return self.delete(identity, operation="delete_settings_by_user")

    def delete_settings_by_module(
        self, module: str | uuid_lib.UUID | None, module_guid: uuid_lib.UUID | None = None
    ) -> bool:
        identity = SettingIdentity.of(None, module, None, module_guid=module_guid)
        if not identity.module_name and identity.module_guid is None:
            return False
        return self.delete(identity, operation="delete_settings_by_module")

    def delete_all_settings(self) -> bool:
        return self.delete(SettingIdentity(), operation="delete_all_settings")

    def delete_common_settings(self, setting: str | uuid_lib.UUID | None) -> bool:
        if not setting:
            return False
        return self.delete(SettingIdentity.common(setting), operation="delete_common_settings")

    def delete_all_common_settings(self) -> bool:
        return self.delete(SettingIdentity.common(None), operation="delete_all_common_settings")
