"""Rebuild the inventory projection by replaying the chain.

Replay always starts from an empty :class:`Inventory`, skips position 0
(genesis) whatever it contains, and folds the remaining blocks in order
through the trusted processor path.  The same prefix of blocks always yields
the same projection, so live validation and historical snapshots agree.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from bims_ledger.ledger.blocks import Block
from bims_ledger.ledger.errors import InvalidTimestampError
from bims_ledger.ledger.inventory import Inventory
from bims_ledger.ledger.processor import apply_assume_valid
from bims_ledger.ledger.timestamps import parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class StateSnapshot:
    """Result of a time-bounded replay.

    Attributes:
        inventory:         Projection as of the cutoff.
        transaction_count: Non-genesis blocks at or before the cutoff.
    """

    inventory: Inventory
    transaction_count: int


def rebuild(blocks: Sequence[Block]) -> Inventory:
    """Fold every non-genesis block into a fresh inventory."""
    inventory = Inventory()
    for block in blocks[1:]:
        if block.transaction:
            apply_assume_valid(block.transaction, inventory)
    return inventory


def rebuild_state_at(blocks: Sequence[Block], cutoff: str | datetime) -> StateSnapshot:
    """Replay up to and including the last block stamped at or before ``cutoff``.

    Blocks are assumed to be in ascending index (and therefore time) order;
    the fold stops at the first block strictly after the cutoff.

    Args:
        blocks: The full chain ordered by index.
        cutoff: ISO-8601 string or datetime; naive values are UTC.

    Raises:
        InvalidTimestampError: If ``cutoff`` cannot be parsed.
    """
    target = parse_timestamp(cutoff)
    inventory = Inventory()
    transaction_count = 0

    for block in blocks[1:]:
        try:
            stamped = parse_timestamp(block.timestamp)
        except InvalidTimestampError:
            # Later blocks cannot be ordered against the cutoff either.
            logger.warning(
                "Block %s has an unreadable timestamp %r; snapshot stops before it.",
                block.index,
                block.timestamp,
            )
            break
        if stamped > target:
            break
        if block.transaction:
            apply_assume_valid(block.transaction, inventory)
            transaction_count += 1

    return StateSnapshot(inventory=inventory, transaction_count=transaction_count)
