"""Record store contract and its SQLite and in-memory adapters."""

import copy
from collections.abc import Callable, Iterable
from typing import Protocol

import apsw

from usersettings.db import transaction_on
from usersettings.models.setting import ALL_COLUMNS, RecordStatus, UserSetting
from usersettings.predicate import MATCH_ALL, Predicate

UpdateHook = Callable[[UserSetting, RecordStatus], None]


class SettingStore(Protocol):
    """Protocol that all stores must implement."""

    def load(
        self,
        predicate: Predicate,
        columns: Iterable[str],
        *,
        limit: int | None = None,
        order_by: Iterable[str] | None = None,
    ) -> list[UserSetting]:
        """Load records matching ``predicate``, projected to ``columns`` (plus id).

        Without ``order_by`` records come back in insertion order.
        """
        ...

    def replace(self, record: UserSetting) -> None:
        """Insert the record, or overwrite every column of the stored one."""
        ...

    def delete(self, records: list[UserSetting]) -> None:
        """Delete the given records by id."""
        ...

    def add_update_hook(self, hook: UpdateHook) -> None:
        """Register a callable run before each record is written or deleted."""
        ...


def _projection(columns: Iterable[str]) -> tuple[str, ...]:
    wanted = set(columns)
    unknown = wanted - set(ALL_COLUMNS)
    if unknown:
        raise ValueError(f"Unknown user_setting column(s): {', '.join(sorted(unknown))}")
    # Keep table order so projections are stable; id is always loaded.
    return ("id",) + tuple(col for col in ALL_COLUMNS if col in wanted and col != "id")


class SQLiteStore:
    """Store backed by the ``user_setting`` table through apsw."""

    def __init__(self, connect: Callable[[], apsw.Connection]) -> None:
        self._connect = connect
        self._hooks: list[UpdateHook] = []

    def add_update_hook(self, hook: UpdateHook) -> None:
        self._hooks.append(hook)

    def _run_hooks(self, record: UserSetting, status: RecordStatus) -> None:
        for hook in self._hooks:
            hook(record, status)

    def load(
        self,
        predicate: Predicate,
        columns: Iterable[str],
        *,
        limit: int | None = None,
        order_by: Iterable[str] | None = None,
    ) -> list[UserSetting]:
        projection = _projection(columns)
        clause, params = predicate.to_sql()

        sql = f"SELECT {', '.join(projection)} FROM user_setting WHERE {clause}"
        if order_by:
            order_cols = _projection(order_by)[1:]
            sql += " ORDER BY " + ", ".join(f"{col} ASC" for col in order_cols) + ", rowid"
        else:
            sql += " ORDER BY rowid"
        if limit:
            sql += " LIMIT ?"
            params.append(limit)

        db = self._connect()
        rows = db.execute(sql, params).fetchall()
        return [UserSetting.from_columns(projection, row) for row in rows]

    def _exists(self, db: apsw.Connection, record_id: str) -> bool:
        row = db.execute("SELECT 1 FROM user_setting WHERE id = ?", (record_id,)).fetchone()
        return row is not None

    def replace(self, record: UserSetting) -> None:
        db = self._connect()
        status = RecordStatus.ALTERED if self._exists(db, record.id) else RecordStatus.CREATED
        self._run_hooks(record, status)

        placeholders = ", ".join("?" for _ in ALL_COLUMNS)
        updates = ", ".join(f"{col} = excluded.{col}" for col in ALL_COLUMNS if col != "id")
        with transaction_on(db) as cursor:
            cursor.execute(
                f"INSERT INTO user_setting ({', '.join(ALL_COLUMNS)}) VALUES ({placeholders}) "
                f"ON CONFLICT(id) DO UPDATE SET {updates}",
                record.to_row(),
            )

    def delete(self, records: list[UserSetting]) -> None:
        if not records:
            return
        for record in records:
            self._run_hooks(record, RecordStatus.DELETED)

        db = self._connect()
        with transaction_on(db) as cursor:
            cursor.executemany(
                "DELETE FROM user_setting WHERE id = ?",
                [(record.id,) for record in records],
            )

    def count(self, predicate: Predicate = MATCH_ALL) -> int:
        clause, params = predicate.to_sql()
        row = self._connect().execute(
            f"SELECT COUNT(*) FROM user_setting WHERE {clause}", params
        ).fetchone()
        return int(row[0]) if row else 0


class MemoryStore:
    """Store keeping records in a dict, in insertion order.

    Loads return copies projected to the requested columns, like the SQLite store.
    """

    def __init__(self) -> None:
        self._records: dict[str, UserSetting] = {}
        self._hooks: list[UpdateHook] = []

    def add_update_hook(self, hook: UpdateHook) -> None:
        self._hooks.append(hook)

    def _run_hooks(self, record: UserSetting, status: RecordStatus) -> None:
        for hook in self._hooks:
            hook(record, status)

    def load(
        self,
        predicate: Predicate,
        columns: Iterable[str],
        *,
        limit: int | None = None,
        order_by: Iterable[str] | None = None,
    ) -> list[UserSetting]:
        projection = _projection(columns)
        matches = [r for r in self._records.values() if predicate.matches(r)]
        if order_by:
            order_cols = _projection(order_by)[1:]
            # Stable sort keeps insertion order between equal keys; None sorts first.
            matches.sort(
                key=lambda r: tuple(
                    (getattr(r, col) is not None, getattr(r, col) or "") for col in order_cols
                )
            )
        if limit:
            matches = matches[:limit]
        return [
            UserSetting(**{col: getattr(r, col) for col in projection}) for r in matches
        ]

    def replace(self, record: UserSetting) -> None:
        status = RecordStatus.ALTERED if record.id in self._records else RecordStatus.CREATED
        self._run_hooks(record, status)
        self._records[record.id] = copy.deepcopy(record)

    def delete(self, records: list[UserSetting]) -> None:
        for record in records:
            self._run_hooks(record, RecordStatus.DELETED)
        for record in records:
            self._records.pop(record.id, None)

    def count(self, predicate: Predicate = MATCH_ALL) -> int:
        return sum(1 for r in self._records.values() if predicate.matches(r))

    def all(self) -> list[UserSetting]:
        return [copy.deepcopy(r) for r in self._records.values()]
