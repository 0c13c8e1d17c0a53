"""Local store schema definition and initialization."""

SCHEMA_VERSION = 2

_SCHEMA_STATEMENTS = [
    # Generic key/value pairs (lockout counters, cached sheet tables)
    """CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        stored_at INTEGER NOT NULL DEFAULT 0
    )""",

    """CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER NOT NULL
    )""",
]


def _get_schema_version(conn) -> int:
    row = conn.execute(
        "SELECT name FROM sqlite_master "
        "WHERE type = 'table' AND name = 'schema_version'"
    ).fetchone()
    if not row:
        return 0
    row = conn.execute("SELECT MAX(version) AS v FROM schema_version").fetchone()
    return row["v"] or 0


def _migrate_v1_to_v2(conn):
    """v1 stored values without a timestamp column."""
    columns = {
        r["name"] for r in conn.execute("PRAGMA table_info(kv_store)")
    }
    if "stored_at" not in columns:
        conn.execute(
            "ALTER TABLE kv_store "
            "ADD COLUMN stored_at INTEGER NOT NULL DEFAULT 0"
        )


def initialize_database(db_connection):
    """Create the local tables, applying migrations to older files."""
    with db_connection.get_connection() as conn:
        version = _get_schema_version(conn)

        if version == 0:
            for stmt in _SCHEMA_STATEMENTS:
                conn.execute(stmt)
            # A v1 kv_store may predate the version table
            _migrate_v1_to_v2(conn)
        elif version < SCHEMA_VERSION:
            if version < 2:
                _migrate_v1_to_v2(conn)

        if version < SCHEMA_VERSION:
            conn.execute("DELETE FROM schema_version")
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
