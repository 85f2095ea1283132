import uuid

import pytest

from usersettings.models.setting import SettingIdentity, UserSetting
from usersettings.predicate import MATCH_ALL, build_query
from usersettings.services.settings_service import SettingsService
from usersettings.store import MemoryStore

USER_GUID = uuid.UUID("5b0c1f64-6a9e-4d5f-8f3b-7c2e1a0d9e01")


def _count(store, *parts, **guids):
    return store.count(build_query(SettingIdentity.of(*parts, **guids)).predicate)


def _seed(service):
    for user in ("alice", "bob"):
        for module in ("grid", "chart"):
            for setting in ("width", "height"):
                service.set_int(user, module, setting, 1)
    service.set_common_str("theme", "dark")
    service.set_common_str("lang", "en")


def test_delete_by_user_leaves_other_users(service, store):
    _seed(service)
    assert service.delete_settings_by_user("alice") is True

    assert _count(store, "alice", None, None) == 0
    assert _count(store, "bob", None, None) == 4
    assert len(service.all_common_settings()) == 2


def test_delete_by_module_and_setting_across_users(service, store):
    _seed(service)
    assert service.delete_settings(None, "grid", "width")

    assert _count(store, None, "grid", "width") == 0
    assert _count(store, None, "grid", "height") == 2
    assert _count(store, None, "chart", "width") == 2


def test_delete_by_module(service, store):
    _seed(service)
    service.delete_settings_by_module("chart")
    assert _count(store, None, "chart", None) == 0
    assert _count(store, None, "grid", None) == 4


def test_delete_by_user_guid(service, store):
    service.set_int(USER_GUID, "grid", "width", 1)
    service.set_int("carol", "grid", "width", 1)
    service.delete_settings_by_user(None, USER_GUID)
    assert store.count() == 1


def test_repeated_delete_is_a_no_op(service, store):
    _seed(service)
    service.delete_settings("alice", "grid")
    remaining = store.count()

    assert service.delete_settings("alice", "grid") is True
    assert store.count() == remaining


def test_delete_without_any_part_returns_false(service, store):
    _seed(service)
    assert service.delete_settings_by_user(None) is False
    assert service.delete_settings_by_module("") is False
    assert service.delete_common_settings(None) is False
    assert store.count() == 10


def test_delete_common_settings(service, store):
    _seed(service)
    service.delete_common_settings("theme")
    assert service.get_common_str("theme") is None
    assert service.get_common_str("lang") == "en"

    service.delete_all_common_settings()
    assert service.all_common_settings() == []
    assert store.count() == 8


def test_delete_all_settings(service, store):
    _seed(service)
    assert service.delete_all_settings()
    assert store.count(MATCH_ALL) == 0


class BatchCountingStore(MemoryStore):
    def __init__(self):
        super().__init__()
        self.batches = []

    def delete(self, records):
        self.batches.append(len(records))
        super().delete(records)


@pytest.mark.parametrize("total, expected", [(0, []), (5, [5]), (12, [5, 5, 2])])
def test_delete_runs_in_bounded_rounds(total, expected):
    store = BatchCountingStore()
    for i in range(total):
        store.replace(UserSetting(user_name="alice", module_name="m", setting_name=f"s{i}"))
    store.replace(UserSetting(user_name="bob", module_name="m", setting_name="s"))

    service = SettingsService(store, enabled=True, delete_batch_size=5)
    service.delete_settings_by_user("alice")

    assert store.batches == expected
    assert store.count() == 1


def test_default_batch_size_is_500(store):
    assert SettingsService(store).delete_batch_size == 500


class FailingDeleteStore(MemoryStore):
    def delete(self, records):
        raise OSError("disk unavailable")


def test_store_failure_is_logged_and_reraised(caplog):
    store = FailingDeleteStore()
    store.replace(UserSetting(user_name="alice", module_name="m", setting_name="s"))
    service = SettingsService(store, enabled=True)

    with pytest.raises(OSError, match="disk unavailable"):
        service.delete_settings_by_user("alice")
    assert "delete_settings_by_user" in caplog.text
