"""Database connection and transaction handling using APSW."""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import apsw

log = logging.getLogger(__name__)

_standalone_db: apsw.Connection | None = None


def get_db_path() -> str:
    """Resolve the database path.

    Priority:
      1. USERSETTINGS_DB environment variable
      2. Flask current_app.config["DATABASE_PATH"] (if in app context)
      3. instance/usersettings.sqlite3 relative to project root (fallback)
    """
    import os

    db_path = os.environ.get("USERSETTINGS_DB")
    if db_path:
        return db_path

    try:
        from flask import current_app

        return current_app.config["DATABASE_PATH"]
    except (RuntimeError, KeyError):
        pass

    source_root = Path(__file__).parent.parent.parent
    return str(source_root / "instance" / "usersettings.sqlite3")


def _configure_connection(conn: apsw.Connection) -> None:
    """Apply standard PRAGMAs to a connection."""
    conn.execute("PRAGMA busy_timeout = 5000;")
    conn.execute("PRAGMA journal_mode = WAL;")


def connect(db_path: str) -> apsw.Connection:
    """Open and configure a new connection, creating the parent directory."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = apsw.Connection(db_path)
    _configure_connection(conn)
    return conn


def get_db() -> apsw.Connection:
    """Get the database connection for the current request (Flask context)."""
    from flask import g

    if "usersettings_db" not in g:
        g.usersettings_db = connect(get_db_path())
    return g.usersettings_db


def close_db(e: BaseException | None = None) -> None:
    """Close the database connection at the end of the request."""
    from flask import g

    db = g.pop("usersettings_db", None)
    if db is not None:
        db.close()


# ---------------------------------------------------------------------------
# Standalone DB access (no Flask context required)
# ---------------------------------------------------------------------------


def get_standalone_db() -> apsw.Connection:
    """Get a database connection without Flask context.

    Used by the CLI and by services created outside a web app.
    The connection is cached at module level.
    """
    global _standalone_db
    if _standalone_db is None:
        _standalone_db = connect(get_db_path())
    return _standalone_db


def close_standalone_db() -> None:
    """Close the standalone database connection."""
    global _standalone_db
    if _standalone_db is not None:
        _standalone_db.close()
        _standalone_db = None


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@contextmanager
def transaction_on(db: apsw.Connection) -> Generator[apsw.Cursor]:
    """Context manager for a write transaction on the given connection.

    Automatically commits on success, rolls back on exception.
    """
    cursor = db.cursor()
    cursor.execute("BEGIN IMMEDIATE;")
    try:
        yield cursor
        cursor.execute("COMMIT;")
    except Exception:
        cursor.execute("ROLLBACK;")
        raise


# ---------------------------------------------------------------------------
# Schema initialisation
# ---------------------------------------------------------------------------


def init_db_on(conn: apsw.Connection) -> None:
    """Create the schema on an open connection (idempotent)."""
    schema_path = Path(__file__).parent / "schema.sql"
    with open(schema_path) as f:
        for _ in conn.execute(f.read()):
            pass


def init_db_at(db_path: str) -> None:
    """Initialize the database schema at the given path.

    Works without Flask context.
    """
    conn = connect(db_path)
    try:
        init_db_on(conn)
    finally:
        conn.close()
    log.info("Schema initialised at %s", db_path)


def get_schema_version(conn: apsw.Connection) -> int:
    """Get the current schema version from db_metadata."""
    try:
        row = conn.execute("SELECT value FROM db_metadata WHERE key = 'schema_version'").fetchone()
        return int(row[0]) if row else 0
    except apsw.SQLError:
        return 0
