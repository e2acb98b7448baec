"""Admission check for new transactions."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from bims_ledger.ledger.blocks import Block
from bims_ledger.ledger.processor import apply_or_reject
from bims_ledger.ledger.replay import rebuild
from bims_ledger.ledger.transactions import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """``success`` plus the first rejection reason, if any."""

    success: bool
    error: str | None = None


def validate_transaction(
    transaction: Transaction | Mapping[str, Any], existing_blocks: Sequence[Block]
) -> ValidationResult:
    """Decide whether ``transaction`` may extend ``existing_blocks``.

    The projection is rebuilt from ``existing_blocks`` on every call; pass
    the full chain as just read from storage, never a cached one.  The
    candidate is applied to that throwaway projection, so nothing observable
    is mutated.
    """
    inventory = rebuild(existing_blocks)
    result = apply_or_reject(transaction, inventory)
    if not result.accepted:
        logger.info("Transaction rejected: %s", result.reason)
        return ValidationResult(success=False, error=result.reason)
    return ValidationResult(success=True)
