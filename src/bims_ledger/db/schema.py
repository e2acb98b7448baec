"""Schema creation for the block store.

The ``idx`` primary key is the ordering constraint the append path relies
on: two writers racing for the same index cannot both commit.
"""

from __future__ import annotations

import sqlite3

from bims_ledger.db.connection import connection_scope

BLOCKCHAIN_TABLE = """
    CREATE TABLE IF NOT EXISTS blockchain (
        idx INTEGER PRIMARY KEY CHECK (idx >= 0),
        timestamp TEXT NOT NULL,
        transaction_json TEXT NOT NULL,
        previous_hash TEXT NOT NULL,
        hash TEXT NOT NULL
    )
"""


def create_tables(cursor: sqlite3.Cursor) -> None:
    """Create all tables if they do not exist yet."""
    cursor.execute(BLOCKCHAIN_TABLE)


def init_schema() -> None:
    """Create the schema in the configured database (idempotent)."""
    with connection_scope(write=True) as conn:
        create_tables(conn.cursor())
