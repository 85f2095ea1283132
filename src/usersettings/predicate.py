"""Identity predicates: (name OR guid) per dimension, ANDed across dimensions.

A predicate renders to an SQL ``WHERE`` fragment for the SQLite store and evaluates
directly against a record for the in-memory store.
"""

import uuid as uuid_lib
from dataclasses import dataclass
from typing import Any

from usersettings.models.setting import (
    MODULE_COLUMNS,
    SETTING_COLUMNS,
    USER_COLUMNS,
    SettingIdentity,
    UserSetting,
    to_storage,
)


@dataclass(frozen=True)
class Eq:
    column: str
    value: Any

    def to_sql(self) -> tuple[str, list[Any]]:
        return f"{self.column} = ?", [to_storage(self.column, self.value)]

    def matches(self, record: UserSetting) -> bool:
        actual = getattr(record, self.column)
        return actual is not None and actual == self.value


@dataclass(frozen=True)
class AnyOf:
    terms: tuple["Predicate", ...]

    def to_sql(self) -> tuple[str, list[Any]]:
        return _join(self.terms, " OR ")

    def matches(self, record: UserSetting) -> bool:
        return any(term.matches(record) for term in self.terms)


@dataclass(frozen=True)
class AllOf:
    """Conjunction; with no terms it matches every record."""

    terms: tuple["Predicate", ...] = ()

    def to_sql(self) -> tuple[str, list[Any]]:
        if not self.terms:
            return "1 = 1", []
        return _join(self.terms, " AND ")

    def matches(self, record: UserSetting) -> bool:
        return all(term.matches(record) for term in self.terms)


Predicate = Eq | AnyOf | AllOf

MATCH_ALL = AllOf()


def _join(terms: tuple[Predicate, ...], op: str) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for term in terms:
        clause, term_params = term.to_sql()
        clauses.append(f"({clause})" if isinstance(term, AnyOf | AllOf) else clause)
        params.extend(term_params)
    return op.join(clauses), params


@dataclass(frozen=True)
class Query:
    predicate: Predicate
    # Columns of the constrained dimensions, for a minimal projection
    columns: tuple[str, ...]


def name_or_guid(
    name: str | None,
    name_column: str,
    guid: uuid_lib.UUID | None,
    guid_column: str,
) -> Predicate | None:
    """Match fragment for one dimension, or ``None`` when it is unconstrained."""
    by_name = Eq(name_column, name) if name else None
    by_guid = Eq(guid_column, guid) if guid is not None else None

    if by_name and by_guid:
        return AnyOf((by_name, by_guid))
    return by_name or by_guid


def build_query(identity: SettingIdentity) -> Query:
    """AND the fragments of every constrained dimension of ``identity``.

    Unconstrained dimensions are left out; with none constrained the result is the
    match-all predicate.
    """
    terms: list[Predicate] = []
    columns: list[str] = []

    for name_col, guid_col in (USER_COLUMNS, MODULE_COLUMNS, SETTING_COLUMNS):
        name = getattr(identity, name_col)
        guid = getattr(identity, guid_col)
        fragment = name_or_guid(name, name_col, guid, guid_col)
        if fragment is None:
            continue
        terms.append(fragment)
        if name:
            columns.append(name_col)
        if guid is not None:
            columns.append(guid_col)

    if len(terms) == 1:
        return Query(terms[0], tuple(columns))
    return Query(AllOf(tuple(terms)), tuple(columns))
