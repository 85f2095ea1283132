import pytest

import usersettings
from usersettings import close_default, create_service, get_default, init_default
from usersettings.config import (
    REGISTRY,
    load_config,
    parse_value,
    resolve_entry,
    serialize_value,
    store_value,
)
from usersettings.db import connect, get_schema_version
from usersettings.directory import StaticDirectory, env_or_directory_user_name, resolve_user_name
from usersettings.errors import OwnershipError
from usersettings.ownership import CurrentUser
from usersettings.services.settings_service import SettingsService
from usersettings.store import MemoryStore


def test_defaults_when_nothing_stored(db):
    values = load_config(db)
    assert values == {
        "settings.enabled": False,
        "settings.app_name": "",
        "store.delete_batch_size": 500,
    }


def test_defaults_without_app_setting_table(tmp_path):
    conn = connect(str(tmp_path / "bare.sqlite3"))
    assert load_config(conn)["settings.enabled"] is False
    conn.close()


def test_stored_values_override_defaults(db):
    store_value(db, "settings.enabled", "true")
    store_value(db, "store.delete_batch_size", "50")
    values = load_config(db)
    assert values["settings.enabled"] is True
    assert values["store.delete_batch_size"] == 50


@pytest.mark.parametrize("raw, expected", [("true", True), ("ON", True), ("0", False)])
def test_parse_bool(raw, expected):
    assert parse_value(resolve_entry("settings.enabled"), raw) is expected


def test_serialize_round_trip():
    for entry in REGISTRY:
        assert parse_value(entry, serialize_value(entry, entry.default)) == entry.default


def test_schema_version(db):
    assert get_schema_version(db) == 1


def test_create_service_reads_config(db):
    store_value(db, "settings.enabled", "true")
    store_value(db, "settings.app_name", "crm")
    service = create_service(db)

    assert service.enabled is True
    assert service.app_name == "crm"
    assert service.set_int("alice", "grid", "width", 3)
    assert service.get_int("alice", "grid", "width") == 3


def test_create_service_with_guard(db):
    store_value(db, "settings.enabled", "true")
    service = create_service(db, current_user=lambda: CurrentUser("bob"))
    service.set_int("bob", "grid", "width", 3)

    intruder = create_service(db, current_user=lambda: CurrentUser("eve"))
    with pytest.raises(OwnershipError):
        intruder.set_int("bob", "grid", "width", 4)


# ---------------------------------------------------------------------------
# Default service lifecycle
# ---------------------------------------------------------------------------


@pytest.fixture
def no_default():
    close_default()
    yield
    close_default()


def test_default_must_be_initialised(no_default):
    with pytest.raises(RuntimeError):
        get_default()


def test_default_lifecycle(no_default):
    service = SettingsService(MemoryStore())
    assert init_default(service) is service
    assert get_default() is service
    assert usersettings.get_default() is service

    # Re-initialising with the same instance is allowed, a different one is not
    init_default(service)
    with pytest.raises(RuntimeError):
        init_default(SettingsService(MemoryStore()))

    close_default()
    with pytest.raises(RuntimeError):
        get_default()


# ---------------------------------------------------------------------------
# Directory lookup
# ---------------------------------------------------------------------------


def test_resolve_user_name():
    directory = StaticDirectory({"asmith": "Alice Smith"})
    assert resolve_user_name(directory, "ASmith") == "Alice Smith"
    assert resolve_user_name(directory, "nobody") is None
    assert resolve_user_name(directory, "") is None


def test_env_or_directory_user_name(monkeypatch):
    monkeypatch.setattr("getpass.getuser", lambda: "asmith")
    assert env_or_directory_user_name(StaticDirectory({"asmith": "Alice Smith"})) == "Alice Smith"
    assert env_or_directory_user_name(StaticDirectory({})) == "asmith"
