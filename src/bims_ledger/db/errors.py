"""Typed exceptions for the block store.

Repository modules signal infrastructure failures (SQLite connection/query
errors) with these types instead of collapsing them into ``None``/``False``.
API boundaries map them to HTTP 5xx responses.

:exc:`BlockIndexConflictError` is the one *expected* failure: it means a
concurrent writer already claimed the index, and the caller should re-read
the chain and retry.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class DatabaseOperationContext:
    """Structured operation metadata carried by repository exceptions.

    Attributes:
        operation: Stable operation identifier (for example
            ``"blocks.insert_block"``).
        details: Optional human-readable context for logs and debugging.
    """

    operation: str
    details: str | None = None


class DatabaseError(RuntimeError):
    """Base exception for DB-layer failures."""


class DatabaseOperationError(DatabaseError):
    """Base exception for repository operation failures.

    Args:
        context: Structured operation metadata.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        *,
        context: DatabaseOperationContext,
        cause: Exception | None = None,
    ) -> None:
        message = context.operation
        if context.details:
            message = f"{message}: {context.details}"
        super().__init__(message)
        self.context = context
        self.cause = cause


class DatabaseReadError(DatabaseOperationError):
    """Repository read/query failure."""


class DatabaseWriteError(DatabaseOperationError):
    """Repository mutation/transaction failure."""


class BlockIndexConflictError(DatabaseWriteError):
    """A block with the same index is already stored."""

    def __init__(self, index: int, *, cause: Exception | None = None) -> None:
        super().__init__(
            context=DatabaseOperationContext(
                operation="blocks.insert_block",
                details=f"index {index} already exists",
            ),
            cause=cause,
        )
        self.index = index
