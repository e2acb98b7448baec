"""Ledger package — hash-linked block chain and inventory state machine.

The chain is the **authoritative record** of every inventory movement.  The
inventory figures shown anywhere else are a projection rebuilt from it.

Public surface
--------------
- :func:`create_genesis_block` / :func:`create_block` — build blocks.
- :func:`is_chain_valid` / :func:`verify_chain` — tamper detection.
- :func:`validate_transaction` — admit or reject a candidate transaction.
- :func:`rebuild` / :func:`rebuild_state_at` — full and point-in-time replay.
- :func:`apply_or_reject` / :func:`apply_assume_valid` /
  :func:`process_transaction` — the state-transition function.
- :func:`calculate_hash` — canonical SHA-256 digest.

Usage example
-------------
::

    from bims_ledger.ledger import create_genesis_block, next_block, validate_transaction

    chain = [create_genesis_block()]
    tx = {"txType": "CREATE_ITEM", "itemSku": "SKU-1", "quantity": 10,
          "toLocation": "Warehouse"}
    result = validate_transaction(tx, chain)
    if result.success:
        chain.append(next_block(chain, tx))
"""

from bims_ledger.ledger.blocks import (
    GENESIS_PREVIOUS_HASH,
    Block,
    block_digest,
    create_block,
    create_genesis_block,
    next_block,
)
from bims_ledger.ledger.errors import (
    ChainStructureError,
    InvalidTimestampError,
    InvalidTransactionError,
    LedgerError,
)
from bims_ledger.ledger.hashing import calculate_hash, canonicalize
from bims_ledger.ledger.inventory import Inventory, Product
from bims_ledger.ledger.processor import (
    ProcessResult,
    apply_assume_valid,
    apply_or_reject,
    process_transaction,
)
from bims_ledger.ledger.replay import StateSnapshot, rebuild, rebuild_state_at
from bims_ledger.ledger.timestamps import format_timestamp, parse_timestamp
from bims_ledger.ledger.transactions import parse_transaction
from bims_ledger.ledger.validator import ValidationResult, validate_transaction
from bims_ledger.ledger.verifier import ChainVerifyResult, is_chain_valid, verify_chain

__all__ = [
    "GENESIS_PREVIOUS_HASH",
    "Block",
    "ChainStructureError",
    "ChainVerifyResult",
    "InvalidTimestampError",
    "InvalidTransactionError",
    "Inventory",
    "LedgerError",
    "ProcessResult",
    "Product",
    "StateSnapshot",
    "ValidationResult",
    "apply_assume_valid",
    "apply_or_reject",
    "block_digest",
    "calculate_hash",
    "canonicalize",
    "create_block",
    "create_genesis_block",
    "format_timestamp",
    "is_chain_valid",
    "next_block",
    "parse_timestamp",
    "parse_transaction",
    "process_transaction",
    "rebuild",
    "rebuild_state_at",
    "validate_transaction",
    "verify_chain",
]
