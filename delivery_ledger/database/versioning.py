import logging
import sqlite3

from ..constants import TABLE_SCHEMA_VERSION

_log = logging.getLogger(__name__)


def _ensure_table(conn: sqlite3.Connection):
    # single-row table; the CHECK keeps a second stamp out
    conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {TABLE_SCHEMA_VERSION}(
            id INTEGER PRIMARY KEY CHECK (id=1),
            version TEXT NOT NULL
        );
    """)


def get_current_version(conn: sqlite3.Connection) -> str | None:
    """Version stamped on the ledger file, or None for a fresh database."""
    _ensure_table(conn)
    row = conn.execute(f"SELECT version FROM {TABLE_SCHEMA_VERSION} WHERE id=1;").fetchone()
    return row[0] if row else None


def set_current_version(conn: sqlite3.Connection, version: str):
    _ensure_table(conn)
    conn.execute(
        f"INSERT INTO {TABLE_SCHEMA_VERSION}(id, version) VALUES (1, ?) "
        "ON CONFLICT(id) DO UPDATE SET version=excluded.version;",
        (version,),
    )
    conn.commit()


def ensure_version(conn: sqlite3.Connection, version: str) -> bool:
    """
    Stamps `version` on the ledger when it carries another one (or none).
    Returns True when the stamp changed. A database written by a newer
    release is left alone and reported, since its tables may hold columns
    this build does not know.
    """
    current = get_current_version(conn)
    if current == version:
        return False
    if current is not None and _as_tuple(current) > _as_tuple(version):
        _log.warning("Ledger schema %s is newer than %s; keeping its stamp", current, version)
        return False
    _log.info("Stamping ledger schema %s (was %s)", version, current)
    set_current_version(conn, version)
    return True


def _as_tuple(version: str) -> tuple:
    parts = []
    for piece in version.split("."):
        parts.append(int(piece) if piece.isdigit() else 0)
    return tuple(parts)
