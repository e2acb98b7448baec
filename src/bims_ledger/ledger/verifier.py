"""Chain integrity verification.

The verifier is the chain's only tamper-detection mechanism.  It can be run
at any time against the full persisted sequence, not just at append time.

For every block after genesis two assertions are made, in order:

1. **Link** — ``previousHash`` equals the predecessor's ``hash``.
2. **Digest** — ``hash`` equals the digest recomputed from the block's
   stored index, canonically re-rendered timestamp, key-sorted transaction
   and trimmed ``previousHash``.

The genesis block at position 0 gets the digest check only.  That goes one
step beyond a walk over positions 1..n, which would never notice a rewritten
anchor; tampering with block 0 is reported as ``failed_index=0``.

Digests are compared with surrounding whitespace ignored; fixed-width
storage columns may pad them.  Verification stops at the first failure; it
does not collect every violation.  The core never attempts repair.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from bims_ledger.ledger.blocks import Block, block_digest
from bims_ledger.ledger.errors import InvalidTimestampError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainVerifyResult:
    """Result of :func:`verify_chain`.

    Attributes:
        status: One of:
            - ``"ok"``      — every block links and hashes correctly.
            - ``"empty"``   — no blocks were supplied.
            - ``"invalid"`` — a link or digest check failed.
        block_count:   Number of blocks inspected in total.
        failed_index:  ``index`` of the first failing block, else ``None``.
        error_detail:  Human-readable reason, else ``None``.
    """

    status: Literal["ok", "empty", "invalid"]
    block_count: int
    failed_index: int | None = None
    error_detail: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.status != "invalid"


def verify_chain(blocks: Sequence[Block]) -> ChainVerifyResult:
    """Walk ``blocks`` checking link and digest integrity end to end.

    The genesis block (position 0) has no predecessor, so only its own
    digest is checked.

    Args:
        blocks: The full chain ordered by index.

    Returns:
        A :class:`ChainVerifyResult`.  Never raises for malformed blocks;
        those are reported as ``"invalid"``.
    """
    if not blocks:
        return ChainVerifyResult(status="empty", block_count=0)

    genesis_failure = _check_genesis(blocks[0], len(blocks))
    if genesis_failure is not None:
        return genesis_failure

    for position in range(1, len(blocks)):
        current = blocks[position]
        previous = blocks[position - 1]

        recorded_link = (current.previous_hash or "").strip()
        expected_link = (previous.hash or "").strip()
        if recorded_link != expected_link:
            logger.error(
                "Chain invalid: previousHash mismatch at block %s. Expected %s but found %s.",
                current.index,
                expected_link,
                recorded_link,
            )
            return ChainVerifyResult(
                status="invalid",
                block_count=len(blocks),
                failed_index=current.index,
                error_detail=(
                    f"previousHash mismatch at block {current.index}: "
                    f"expected {expected_link!r}, found {recorded_link!r}."
                ),
            )

        try:
            recalculated = block_digest(
                current.index,
                current.timestamp,
                current.transaction,
                recorded_link,
            )
        except (InvalidTimestampError, TypeError, ValueError) as exc:
            logger.error("Chain invalid: block %s cannot be re-hashed: %s", current.index, exc)
            return ChainVerifyResult(
                status="invalid",
                block_count=len(blocks),
                failed_index=current.index,
                error_detail=f"Block {current.index} cannot be re-hashed: {exc}",
            )

        recorded_hash = (current.hash or "").strip()
        if recorded_hash != recalculated:
            logger.error(
                "Chain invalid: hash mismatch at block %s. Expected %s but got %s.",
                current.index,
                recorded_hash,
                recalculated,
            )
            return ChainVerifyResult(
                status="invalid",
                block_count=len(blocks),
                failed_index=current.index,
                error_detail=(
                    f"Hash mismatch at block {current.index}: "
                    f"recorded {recorded_hash!r}, recalculated {recalculated!r}."
                ),
            )

    return ChainVerifyResult(status="ok", block_count=len(blocks))


def _check_genesis(genesis: Block, block_count: int) -> ChainVerifyResult | None:
    """Re-hash the anchor block; a rewritten genesis would otherwise only be
    caught when block 1 exists."""
    try:
        recalculated = block_digest(
            genesis.index,
            genesis.timestamp,
            genesis.transaction,
            (genesis.previous_hash or "").strip(),
        )
    except (InvalidTimestampError, TypeError, ValueError) as exc:
        logger.error("Chain invalid: genesis block cannot be re-hashed: %s", exc)
        return ChainVerifyResult(
            status="invalid",
            block_count=block_count,
            failed_index=genesis.index,
            error_detail=f"Genesis block cannot be re-hashed: {exc}",
        )
    recorded_hash = (genesis.hash or "").strip()
    if recorded_hash != recalculated:
        logger.error(
            "Chain invalid: hash mismatch at genesis block. Expected %s but got %s.",
            recorded_hash,
            recalculated,
        )
        return ChainVerifyResult(
            status="invalid",
            block_count=block_count,
            failed_index=genesis.index,
            error_detail=(
                f"Hash mismatch at genesis block: "
                f"recorded {recorded_hash!r}, recalculated {recalculated!r}."
            ),
        )
    return None


def is_chain_valid(blocks: Sequence[Block]) -> bool:
    """Boolean form of :func:`verify_chain`."""
    return verify_chain(blocks).is_valid
