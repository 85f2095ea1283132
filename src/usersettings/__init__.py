"""usersettings - per-application user/module/setting key-value store."""

import logging
import threading

import apsw

from usersettings.directory import DirectoryLookup
from usersettings.ownership import CurrentUserProvider, OwnershipGuard
from usersettings.services.settings_service import Lookup, LookupStatus, SettingsService

log = logging.getLogger(__name__)

_default: SettingsService | None = None
_default_lock = threading.Lock()


def create_service(
    conn: apsw.Connection | None = None,
    current_user: CurrentUserProvider | None = None,
    directory: DirectoryLookup | None = None,
) -> SettingsService:
    """Build a SQLite-backed service configured from the ``app_setting`` table.

    Without ``conn`` the standalone connection is used. With a ``current_user``
    provider the ownership guard is registered on the store. ``directory`` backs
    the service's user name lookups.
    """
    from usersettings.config import load_config
    from usersettings.db import get_standalone_db
    from usersettings.store import SQLiteStore

    db = conn if conn is not None else get_standalone_db()
    store = SQLiteStore(lambda: db)
    if current_user is not None:
        store.add_update_hook(OwnershipGuard(current_user).on_update)
    return SettingsService.from_config(store, load_config(db), directory=directory)


def init_default(service: SettingsService) -> SettingsService:
    """Install the process-wide default service; call once at startup."""
    global _default
    with _default_lock:
        if _default is not None and _default is not service:
            raise RuntimeError("Default settings service already initialised")
        _default = service
    log.info("Default settings service initialised (enabled=%s)", service.enabled)
    return service


def get_default() -> SettingsService:
    """Return the default service installed by ``init_default``."""
    service = _default
    if service is None:
        raise RuntimeError("Default settings service not initialised; call init_default() first")
    return service


def close_default() -> None:
    """Forget the default service (teardown / tests)."""
    global _default
    with _default_lock:
        _default = None
    log.info("Default settings service closed")


__all__ = [
    "Lookup",
    "LookupStatus",
    "SettingsService",
    "close_default",
    "create_service",
    "get_default",
    "init_default",
]
