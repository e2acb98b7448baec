"""Ledger service — the single write path onto the stored chain.

The sequence for every submission is:

1. Ensure the genesis block exists.
2. Re-read the **full** chain from storage.
3. Validate the candidate against a projection replayed from that chain.
4. Build the next block, linked to the current tip.
5. Insert it.  The ``idx`` primary key guarantees that if another writer got
   there first the insert fails with :exc:`BlockIndexConflictError`; the
   service then starts again from step 2 (up to
   ``config.ledger.append_max_attempts`` times).

No in-process lock is taken; correctness rests on steps 2 and 5.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from bims_ledger.db import blocks_repo
from bims_ledger.db.errors import BlockIndexConflictError
from bims_ledger.ledger.blocks import Block, create_genesis_block, next_block
from bims_ledger.ledger.errors import ChainStructureError, InvalidTransactionError
from bims_ledger.ledger.inventory import Inventory
from bims_ledger.ledger.replay import rebuild, rebuild_state_at
from bims_ledger.ledger.timestamps import format_timestamp, parse_timestamp
from bims_ledger.ledger.transactions import parse_transaction
from bims_ledger.ledger.validator import validate_transaction
from bims_ledger.ledger.verifier import ChainVerifyResult, verify_chain

logger = logging.getLogger(__name__)


class AppendConflictError(RuntimeError):
    """Every append attempt lost the race for the next block index."""


@dataclass(frozen=True)
class Actor:
    """Identity stamped onto submitted transactions."""

    user_id: int | str | None = None
    user_name: str | None = None
    employee_id: str | None = None

    def as_payload(self) -> dict[str, Any]:
        stamped = {
            "userId": self.user_id,
            "userName": self.user_name,
            "employeeId": self.employee_id,
        }
        return {key: value for key, value in stamped.items() if value is not None}


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of :func:`submit_transaction`.

    Exactly one of ``block`` (accepted and stored) and ``error`` (rejected,
    nothing written) is set.
    """

    block: Block | None = None
    error: str | None = None

    @property
    def accepted(self) -> bool:
        return self.block is not None


@dataclass
class InventorySnapshot:
    """Point-in-time inventory with headline figures."""

    snapshot_time: str
    inventory: Inventory
    transaction_count: int
    total_units: int = field(init=False)
    total_value: float = field(init=False)

    def __post_init__(self) -> None:
        self.total_units = self.inventory.total_units()
        self.total_value = self.inventory.total_value()

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshotTime": self.snapshot_time,
            "kpis": {
                "totalValue": self.total_value,
                "totalUnits": self.total_units,
                "transactionCount": self.transaction_count,
            },
            "inventory": self.inventory.to_dict(),
        }


def get_or_create_genesis() -> Block:
    """Return the stored genesis block, creating it on first use.

    Two callers can both find the chain empty.  The loser's insert fails on
    the primary key and it re-reads the winner's genesis instead of failing.

    Raises:
        ChainStructureError: If the conflict occurred but no genesis block
            can be read back.
    """
    existing = blocks_repo.get_block(0)
    if existing is not None:
        return existing

    logger.info("No genesis block found. Creating one...")
    genesis = create_genesis_block()
    try:
        blocks_repo.insert_block(genesis)
    except BlockIndexConflictError:
        logger.info("Genesis block already created by another writer; re-reading it.")
        existing = blocks_repo.get_block(0)
        if existing is None:
            raise ChainStructureError("Genesis insert conflicted but no genesis block exists.")
        return existing

    logger.info("Genesis block created.")
    return genesis


def load_chain() -> list[Block]:
    """Ensure genesis exists and return the full chain ordered by index."""
    get_or_create_genesis()
    return blocks_repo.fetch_chain()


def submit_transaction(
    payload: Mapping[str, Any],
    *,
    actor: Actor | None = None,
) -> SubmissionResult:
    """Validate ``payload`` against the stored chain and append it.

    Args:
        payload: Wire transaction (``txType`` plus kind-specific fields).
        actor:   Identity to stamp on the transaction; overrides any actor
                 fields already present in ``payload``.

    Returns:
        :class:`SubmissionResult` with the stored block, or the rejection
        reason.  Rejected transactions are never hashed or written.

    Raises:
        ChainStructureError: If the stored chain cannot be extended.
        AppendConflictError: If every attempt lost the index race.
        DatabaseError: On storage failures.
    """
    from bims_ledger.config import config

    stamped = dict(payload)
    if actor is not None:
        stamped.update(actor.as_payload())

    try:
        transaction = parse_transaction(stamped)
    except InvalidTransactionError as exc:
        logger.info("Transaction rejected: %s", exc.message)
        return SubmissionResult(error=exc.message)

    attempts = max(1, config.ledger.append_max_attempts)
    for attempt in range(1, attempts + 1):
        chain = load_chain()

        result = validate_transaction(transaction, chain)
        if not result.success:
            return SubmissionResult(error=result.error)

        block = next_block(chain, transaction)
        try:
            blocks_repo.insert_block(block)
        except BlockIndexConflictError:
            logger.warning(
                "Block index %s was taken by another writer (attempt %d/%d); revalidating.",
                block.index,
                attempt,
                attempts,
            )
            continue

        logger.info("Block %s (%s) added to chain.", block.index, block.tx_type)
        return SubmissionResult(block=block)

    raise AppendConflictError(
        f"Could not append transaction after {attempts} attempts; the chain is under contention."
    )


def verify_ledger() -> ChainVerifyResult:
    """Verify the full stored chain."""
    result = verify_chain(load_chain())
    if result.is_valid:
        logger.info("Chain is valid (%d blocks).", result.block_count)
    else:
        logger.error("CHAIN IS INVALID: %s", result.error_detail)
    return result


def current_inventory() -> Inventory:
    """Rebuild the present-day inventory from the stored chain."""
    return rebuild(load_chain())


def snapshot_at(cutoff: str | datetime) -> InventorySnapshot:
    """Inventory as it stood at ``cutoff``.

    Raises:
        InvalidTimestampError: If ``cutoff`` cannot be parsed.
    """
    target = parse_timestamp(cutoff)
    state = rebuild_state_at(load_chain(), target)
    logger.info("Snapshot generated for %s.", format_timestamp(target))
    return InventorySnapshot(
        snapshot_time=cutoff if isinstance(cutoff, str) else format_timestamp(target),
        inventory=state.inventory,
        transaction_count=state.transaction_count,
    )


def reset_chain() -> Block:
    """Delete every block and start a fresh chain.  Returns the new genesis."""
    removed = blocks_repo.clear_chain()
    logger.warning("Chain wiped (%d blocks removed).", removed)
    return get_or_create_genesis()
