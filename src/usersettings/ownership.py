"""Ownership guard for user setting records.

A created record is stamped with the acting user; an altered record must still belong to
the acting user.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from usersettings.errors import ConfigurationError, OwnershipError
from usersettings.models.setting import RecordStatus, UserSetting

log = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


@dataclass(frozen=True)
class CurrentUser:
    login: str
    domain: str | None = None


CurrentUserProvider = Callable[[], CurrentUser | None]


def canonical_user_name(user: CurrentUser | None) -> str:
    """``domain\\login`` when a domain is set, ``login`` otherwise, ``Anonymous`` for no user."""
    if user is None:
        return ANONYMOUS
    if not user.domain:
        return user.login
    return f"{user.domain}\\{user.login}"


class OwnershipGuard:
    """Update hook binding a record's ``user_name`` to the acting user."""

    def __init__(self, current_user: CurrentUserProvider | None) -> None:
        if current_user is None:
            raise ConfigurationError(
                "OwnershipGuard needs a current-user provider: pass a callable returning "
                "CurrentUser | None (for Flask apps, usersettings.flask_ext.current_user_from_g)"
            )
        self._current_user = current_user

    def on_update(self, record: UserSetting, status: RecordStatus) -> None:
        current = canonical_user_name(self._current_user())

        if status == RecordStatus.CREATED:
            record.user_name = current
        elif status == RecordStatus.ALTERED:
            owner = record.user_name
            if owner != current and not (not owner and not current):
                log.warning("Rejected edit of setting %s by %s (owner %s)", record.id, current, owner)
                raise OwnershipError(owner, current)
