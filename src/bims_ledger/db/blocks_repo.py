"""Block repository operations for the SQLite backend.

Blocks are written once and never updated.  ``transaction_json`` holds the
key-sorted payload and ``timestamp`` the exact canonical string that was
hashed, so a stored block re-hashes byte-for-byte.
"""

from __future__ import annotations

import json
import sqlite3
from typing import NoReturn

from bims_ledger.db.connection import connection_scope
from bims_ledger.db.errors import (
    BlockIndexConflictError,
    DatabaseError,
    DatabaseOperationContext,
    DatabaseReadError,
    DatabaseWriteError,
)
from bims_ledger.ledger.blocks import Block

_SELECT_BLOCK_FIELDS = """
    SELECT idx, timestamp, transaction_json, previous_hash, hash
    FROM blockchain
"""


def _raise_read_error(operation: str, exc: Exception, *, details: str | None = None) -> NoReturn:
    """Raise a typed repository read error while preserving chained cause."""
    if isinstance(exc, DatabaseError):
        raise exc
    raise DatabaseReadError(
        context=DatabaseOperationContext(operation=operation, details=details),
        cause=exc,
    ) from exc


def _raise_write_error(operation: str, exc: Exception, *, details: str | None = None) -> NoReturn:
    """Raise a typed repository write error while preserving chained cause."""
    if isinstance(exc, DatabaseError):
        raise exc
    raise DatabaseWriteError(
        context=DatabaseOperationContext(operation=operation, details=details),
        cause=exc,
    ) from exc


def _row_to_block(row: tuple) -> Block:
    index, timestamp, transaction_json, previous_hash, digest = row
    return Block.from_dict(
        {
            "index": index,
            "timestamp": timestamp,
            "transaction": json.loads(transaction_json),
            "previousHash": previous_hash,
            "hash": digest,
        }
    )


def fetch_chain() -> list[Block]:
    """Return every stored block ordered by index."""
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute(f"{_SELECT_BLOCK_FIELDS} ORDER BY idx ASC")
            rows = cursor.fetchall()
        return [_row_to_block(row) for row in rows]
    except Exception as exc:
        _raise_read_error("blocks.fetch_chain", exc)


def get_block(index: int) -> Block | None:
    """Return the block stored at ``index``, or ``None``."""
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute(f"{_SELECT_BLOCK_FIELDS} WHERE idx = ?", (index,))
            row = cursor.fetchone()
        return _row_to_block(row) if row else None
    except Exception as exc:
        _raise_read_error("blocks.get_block", exc, details=f"index={index}")


def count_blocks() -> int:
    """Number of stored blocks, genesis included."""
    try:
        with connection_scope() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM blockchain")
            row = cursor.fetchone()
        return int(row[0]) if row else 0
    except Exception as exc:
        _raise_read_error("blocks.count_blocks", exc)


def insert_block(block: Block) -> None:
    """Persist ``block``.

    Raises:
        BlockIndexConflictError: If a block with the same index exists,
            i.e. another writer won the race for this position.
        DatabaseWriteError: On any other storage failure.
    """
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO blockchain (idx, timestamp, transaction_json, previous_hash, hash)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    block.index,
                    block.timestamp,
                    json.dumps(block.transaction, ensure_ascii=False, sort_keys=True),
                    block.previous_hash,
                    block.hash,
                ),
            )
    except sqlite3.IntegrityError as exc:
        if "UNIQUE" in str(exc):
            raise BlockIndexConflictError(block.index, cause=exc) from exc
        _raise_write_error("blocks.insert_block", exc, details=f"index={block.index}")
    except Exception as exc:
        _raise_write_error("blocks.insert_block", exc, details=f"index={block.index}")


def clear_chain() -> int:
    """Delete every block.  Returns the number of rows removed."""
    try:
        with connection_scope(write=True) as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM blockchain")
            return cursor.rowcount
    except Exception as exc:
        _raise_write_error("blocks.clear_chain", exc)
