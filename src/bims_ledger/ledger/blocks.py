"""Block construction.

A block pairs one transaction with its position and integrity metadata::

    {
      "index":        3,
      "timestamp":    "2024-01-15T10:30:00.000Z",
      "transaction":  {"itemSku": "SKU-1", "quantity": 4, "txType": "MOVE", ...},
      "previousHash": "9f2c...",
      "hash":         "b94f..."
    }

``hash`` is the SHA-256 of the canonical serialisation of the other four
fields (see :func:`block_digest`).  The genesis block has index 0, a
``{"txType": "GENESIS"}`` payload and ``previousHash == "0"``.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from bims_ledger.ledger.errors import ChainStructureError
from bims_ledger.ledger.hashing import calculate_hash, sort_keys
from bims_ledger.ledger.timestamps import canonicalize_timestamp, format_timestamp, utc_now
from bims_ledger.ledger.transactions import GENESIS, transaction_payload

GENESIS_PREVIOUS_HASH = "0"


@dataclass(frozen=True)
class Block:
    """One immutable, hash-linked ledger record.

    ``transaction`` is the key-sorted wire payload exactly as it was hashed.
    ``timestamp`` is kept as the canonical string; stores that hand back
    datetimes should go through :meth:`from_dict`.
    """

    index: int
    timestamp: str
    transaction: dict[str, Any]
    previous_hash: str
    hash: str

    @property
    def is_genesis(self) -> bool:
        return self.index == 0

    @property
    def tx_type(self) -> str | None:
        return self.transaction.get("txType")

    def hashed_fields(self) -> dict[str, Any]:
        """The four fields covered by the block digest, in wire form."""
        return {
            "index": self.index,
            "timestamp": self.timestamp,
            "transaction": self.transaction,
            "previousHash": self.previous_hash,
        }

    def to_dict(self) -> dict[str, Any]:
        """Wire/JSON representation (camelCase)."""
        return {**copy.deepcopy(self.hashed_fields()), "hash": self.hash}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Block:
        """Build a block from a stored/wire mapping **without** re-hashing.

        Accepts either ``previousHash`` or ``previous_hash``.  A datetime
        ``timestamp`` is rendered to the canonical string; string
        timestamps are kept exactly as stored.
        """
        timestamp = data["timestamp"]
        if isinstance(timestamp, datetime):
            timestamp = format_timestamp(timestamp)
        previous_hash = data.get("previousHash", data.get("previous_hash"))
        return cls(
            index=int(data["index"]),
            timestamp=timestamp,
            transaction=dict(data.get("transaction") or {}),
            previous_hash=previous_hash if previous_hash is not None else "",
            hash=data.get("hash") or "",
        )


def block_digest(
    index: int,
    timestamp: str | datetime,
    transaction: Mapping[str, Any],
    previous_hash: str,
) -> str:
    """Digest of a block's content fields.

    ``timestamp`` is re-rendered canonically and ``transaction`` is
    key-sorted, so the creation path and the verification path feed the
    hasher byte-identical input.
    """
    return calculate_hash(
        {
            "index": index,
            "timestamp": canonicalize_timestamp(timestamp),
            "transaction": sort_keys(dict(transaction)),
            "previousHash": previous_hash,
        }
    )


def create_block(
    index: int,
    transaction: Mapping[str, Any],
    previous_hash: str,
    *,
    timestamp: datetime | None = None,
) -> Block:
    """Build and hash a new block stamped with the current instant.

    Args:
        index:         Position in the chain (0 for genesis).
        transaction:   Wire payload or parsed transaction model.
        previous_hash: Digest of the preceding block (``"0"`` for genesis).
        timestamp:     Override for the creation instant (tests, imports).

    Returns:
        The assembled :class:`Block` including its digest.
    """
    stamp = format_timestamp(timestamp if timestamp is not None else utc_now())
    payload = sort_keys(copy.deepcopy(transaction_payload(transaction)))
    digest = block_digest(index, stamp, payload, previous_hash)
    return Block(
        index=index,
        timestamp=stamp,
        transaction=payload,
        previous_hash=previous_hash,
        hash=digest,
    )


def create_genesis_block(*, timestamp: datetime | None = None) -> Block:
    """Build the index-0 anchor block."""
    return create_block(0, {"txType": GENESIS}, GENESIS_PREVIOUS_HASH, timestamp=timestamp)


def next_block(
    chain: Sequence[Block],
    transaction: Mapping[str, Any],
    *,
    timestamp: datetime | None = None,
) -> Block:
    """Build the block that would extend ``chain`` with ``transaction``.

    Does not validate the transaction; callers run the validator first.

    Raises:
        ChainStructureError: If ``chain`` is empty or its tip has no digest.
    """
    if not chain:
        raise ChainStructureError("Cannot extend an empty chain; a genesis block is required.")
    tip = chain[-1]
    if not tip.hash or not tip.hash.strip():
        raise ChainStructureError(f"Block {tip.index} is missing its hash; the chain is corrupt.")
    return create_block(tip.index + 1, transaction, tip.hash.strip(), timestamp=timestamp)
