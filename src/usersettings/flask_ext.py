"""Flask integration: per-request connection and current user from ``g.user``."""

import logging
from typing import Any

from flask import Flask, current_app, g

from usersettings.config import KEY_MAP, load_config
from usersettings.db import close_db, get_db
from usersettings.ownership import CurrentUser, OwnershipGuard
from usersettings.services.settings_service import SettingsService
from usersettings.store import SQLiteStore

log = logging.getLogger(__name__)

EXTENSION_KEY = "usersettings"


def current_user_from_g() -> CurrentUser | None:
    """Acting user from ``g.user`` (an object with ``username`` and optional ``domain``)."""
    user = g.get("user")
    if user is None:
        return None
    return CurrentUser(login=str(user.username), domain=getattr(user, "domain", None) or None)


def init_app(app: Flask, guard_ownership: bool = False) -> SettingsService:
    """Register the settings service on ``app``.

    The service reads through the request's connection. Config comes from
    ``app.config`` keys, falling back to the ``app_setting`` table.
    """
    app.teardown_appcontext(close_db)

    store = SQLiteStore(get_db)
    if guard_ownership:
        store.add_update_hook(OwnershipGuard(current_user_from_g).on_update)

    with app.app_context():
        values = load_config(get_db())
    for key, flask_key in KEY_MAP.items():
        if flask_key in app.config:
            values[key] = app.config[flask_key]
        else:
            app.config[flask_key] = values[key]

    service = SettingsService(
        store,
        enabled=lambda: bool(current_app.config[KEY_MAP["settings.enabled"]]),
        app_name=str(values["settings.app_name"]),
        delete_batch_size=int(values["store.delete_batch_size"]),
    )
    app.extensions[EXTENSION_KEY] = service
    log.info("usersettings registered on %s", app.name)
    return service


def get_service(app: Any = None) -> SettingsService:
    """The service registered on ``app`` (default: the current app)."""
    target = app or current_app
    return target.extensions[EXTENSION_KEY]
