"""The inventory state-transition function.

Two entry points make the trust boundary explicit:

- :func:`apply_or_reject` — **strict**.  Used when admitting a new
  transaction.  Every business rule is checked; the first violation is
  returned as a :class:`ProcessResult` with a human-readable reason.
- :func:`apply_assume_valid` — **trusted**.  Used only when replaying blocks
  that are already committed.  Re-creating an existing SKU is merged instead
  of rejected, so replay stays idempotent.  The genesis anchor is a no-op
  here; it is never admitted through the strict path.

Neither raises for an ordinary rejection, and neither mutates the inventory
when it rejects.  :func:`process_transaction` keeps the older flag-driven
call shape (``suppress_errors`` + ``on_error`` callback) as a thin wrapper.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from bims_ledger.ledger.errors import InvalidTransactionError
from bims_ledger.ledger.inventory import Inventory, Product
from bims_ledger.ledger.transactions import (
    DEFAULT_CATEGORY,
    CreateItem,
    Genesis,
    Move,
    StockIn,
    StockOut,
    Transaction,
    parse_transaction,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of applying one transaction.

    Attributes:
        accepted: True when the inventory was updated.
        reason:   Rejection message when ``accepted`` is False.
    """

    accepted: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.accepted


_ACCEPTED = ProcessResult(accepted=True)


def _reject(reason: str) -> ProcessResult:
    return ProcessResult(accepted=False, reason=reason)


def _insufficient(location: str, available: int) -> ProcessResult:
    return _reject(f"Insufficient stock at {location}. Only {available} available.")


def _create_product(transaction: CreateItem) -> Product:
    return Product(
        product_name=transaction.item_name,
        price=transaction.price or 0,
        category=transaction.category or DEFAULT_CATEGORY,
    )


def _check_preconditions(transaction: Transaction) -> ProcessResult | None:
    """Field-level checks applied only on the strict path."""
    if isinstance(transaction, Genesis):
        return _reject("GENESIS transactions cannot be submitted.")
    if transaction.quantity <= 0:
        return _reject("Quantity must be a positive whole number.")
    if isinstance(transaction, CreateItem) and transaction.price is not None:
        if not math.isfinite(transaction.price):
            return _reject("Price must be a finite number.")
        if transaction.price < 0:
            return _reject("Price cannot be negative.")
    return None


def _apply(transaction: Transaction, inventory: Inventory, *, trusted: bool) -> ProcessResult:
    if isinstance(transaction, Genesis):
        return _ACCEPTED

    sku = transaction.item_sku

    if isinstance(transaction, CreateItem):
        product = inventory.get(sku)
        if product is None:
            product = inventory.add(sku, _create_product(transaction))
        elif not trusted:
            return _reject(f"Product SKU {sku} already exists.")
        product.credit(transaction.to_location, transaction.quantity)
        return _ACCEPTED

    product = inventory.get(sku)
    if product is None:
        return _reject(f"Product {sku} not found.")

    if isinstance(transaction, Move):
        if transaction.from_location == transaction.to_location:
            return _reject("Cannot move item to its current location.")
        available = product.quantity_at(transaction.from_location)
        if available < transaction.quantity:
            return _insufficient(transaction.from_location, available)
        product.debit(transaction.from_location, transaction.quantity)
        product.credit(transaction.to_location, transaction.quantity)
        return _ACCEPTED

    if isinstance(transaction, StockIn):
        product.credit(transaction.location, transaction.quantity)
        return _ACCEPTED

    if isinstance(transaction, StockOut):
        available = product.quantity_at(transaction.location)
        if available < transaction.quantity:
            return _insufficient(transaction.location, available)
        product.debit(transaction.location, transaction.quantity)
        return _ACCEPTED

    # Unreachable while the Transaction union is closed.
    return _reject(f"Unsupported transaction type: {type(transaction).__name__}.")


def apply_or_reject(
    transaction: Transaction | Mapping[str, Any], inventory: Inventory
) -> ProcessResult:
    """Strictly apply ``transaction`` to ``inventory``.

    Malformed payloads, GENESIS payloads, non-positive quantities and
    negative or non-finite prices are rejected here in addition to the stock
    rules.

    Returns:
        ``ProcessResult(accepted=True)`` after mutating ``inventory``, or a
        rejection carrying the reason (``inventory`` untouched).
    """
    try:
        parsed = parse_transaction(transaction)
    except InvalidTransactionError as exc:
        return _reject(exc.message)

    failed = _check_preconditions(parsed)
    if failed is not None:
        return failed
    return _apply(parsed, inventory, trusted=False)


def apply_assume_valid(
    transaction: Transaction | Mapping[str, Any], inventory: Inventory
) -> bool:
    """Apply an already-committed transaction during replay.

    A stored payload that no longer deserialises, or that would break a
    stock rule, is skipped and logged at DEBUG; replay carries on.

    Returns:
        True when the inventory was updated.
    """
    try:
        parsed = parse_transaction(transaction)
    except InvalidTransactionError as exc:
        logger.debug("Replay skipped malformed transaction: %s", exc.message)
        return False

    result = _apply(parsed, inventory, trusted=True)
    if not result.accepted:
        logger.debug("Replay skipped transaction: %s", result.reason)
    return result.accepted


def process_transaction(
    transaction: Transaction | Mapping[str, Any],
    inventory: Inventory,
    suppress_errors: bool = False,
    on_error: Callable[[str], None] | None = None,
) -> bool:
    """Flag-driven wrapper over the two entry points.

    ``suppress_errors=True`` selects the trusted replay path and never calls
    ``on_error``.  Otherwise the strict path runs and ``on_error`` (when
    given) receives the rejection message.
    """
    if suppress_errors:
        return apply_assume_valid(transaction, inventory)

    result = apply_or_reject(transaction, inventory)
    if not result.accepted and on_error is not None:
        on_error(result.reason or "Transaction rejected.")
    return result.accepted
