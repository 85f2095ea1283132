import uuid
from datetime import UTC, datetime
from decimal import Decimal

import apsw
import pytest

from usersettings.models.setting import RecordStatus, SettingIdentity, UserSetting
from usersettings.predicate import MATCH_ALL, build_query


def _full_record(**overrides):
    data = dict(
        app_name="tests",
        user_name="alice",
        user_guid=uuid.UUID("11111111-2222-3333-4444-555555555555"),
        module_name="grid",
        setting_name="pref",
        last_access_time=datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC),
        str_val="s",
        txt_val="t",
        int_val=-3,
        bool_val=True,
        guid_val=uuid.UUID("66666666-7777-8888-9999-000000000000"),
        decimal_val=Decimal("0.0000000001"),
        date_time_val=datetime(2026, 5, 6, 7, 8, 9),
    )
    data.update(overrides)
    return UserSetting(**data)


def test_replace_and_load_keep_every_column(store):
    record = _full_record()
    store.replace(record)

    [loaded] = store.load(MATCH_ALL, [f for f in record.__dataclass_fields__])
    assert loaded == record


def test_load_projects_requested_columns(store):
    store.replace(_full_record())
    [loaded] = store.load(MATCH_ALL, ["int_val"])
    assert loaded.int_val == -3
    assert loaded.str_val is None
    assert loaded.user_name is None
    assert loaded.id


def test_load_rejects_unknown_columns(store):
    with pytest.raises(ValueError):
        store.load(MATCH_ALL, ["no_such_column"])


def test_load_keeps_insertion_order_and_limit(store):
    for i in range(5):
        store.replace(_full_record(int_val=i))
    loaded = store.load(MATCH_ALL, ["int_val"], limit=3)
    assert [r.int_val for r in loaded] == [0, 1, 2]


def test_update_keeps_position(store):
    records = [_full_record(int_val=i) for i in range(3)]
    for record in records:
        store.replace(record)
    records[0].int_val = 10
    store.replace(records[0])

    assert [r.int_val for r in store.load(MATCH_ALL, ["int_val"])] == [10, 1, 2]


def test_load_order_by(store):
    for name in ("b", "c", "a"):
        store.replace(_full_record(setting_name=name))
    loaded = store.load(MATCH_ALL, ["setting_name"], order_by=["setting_name"])
    assert [r.setting_name for r in loaded] == ["a", "b", "c"]


def test_predicate_filters_by_guid(store):
    store.replace(_full_record())
    store.replace(_full_record(user_name="bob", user_guid=None))
    identity = SettingIdentity(user_guid=uuid.UUID("11111111-2222-3333-4444-555555555555"))
    loaded = store.load(build_query(identity).predicate, ["user_name"])
    assert [r.user_name for r in loaded] == ["alice"]


def test_delete_by_id(store):
    keep, drop = _full_record(), _full_record()
    store.replace(keep)
    store.replace(drop)
    store.delete([drop])
    assert [r.id for r in store.load(MATCH_ALL, [])] == [keep.id]


def test_hooks_see_created_altered_deleted(store):
    seen = []
    store.add_update_hook(lambda record, status: seen.append(status))

    record = _full_record()
    store.replace(record)
    store.replace(record)
    store.delete([record])

    assert seen == [RecordStatus.CREATED, RecordStatus.ALTERED, RecordStatus.DELETED]


def test_hook_failure_aborts_write(store):
    def refuse(record, status):
        raise PermissionError("no")

    store.add_update_hook(refuse)
    with pytest.raises(PermissionError):
        store.replace(_full_record())
    assert store.count() == 0


def test_sqlite_store_failure_propagates(tmp_path):
    from usersettings.db import connect
    from usersettings.store import SQLiteStore

    conn = connect(str(tmp_path / "empty.sqlite3"))
    store = SQLiteStore(lambda: conn)
    with pytest.raises(apsw.SQLError):
        store.load(MATCH_ALL, ["int_val"])
    conn.close()
