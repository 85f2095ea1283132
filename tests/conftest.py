"""
Pytest configuration and shared fixtures for usersettings tests.
"""
import pytest

from usersettings.db import connect, init_db_on
from usersettings.services.settings_service import SettingsService
from usersettings.store import MemoryStore, SQLiteStore


@pytest.fixture
def db(tmp_path):
    """A fresh apsw database with the schema applied."""
    conn = connect(str(tmp_path / "usersettings.sqlite3"))
    init_db_on(conn)
    yield conn
    conn.close()


@pytest.fixture
def sqlite_store(db):
    return SQLiteStore(lambda: db)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """Every engine test runs against both store adapters."""
    if request.param == "memory":
        return request.getfixturevalue("memory_store")
    return request.getfixturevalue("sqlite_store")


@pytest.fixture
def service(store):
    return SettingsService(store, enabled=True, app_name="tests")
