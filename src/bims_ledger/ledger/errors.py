"""Exception hierarchy for the ledger core.

Ordinary validation rejections (insufficient stock, duplicate SKU, ...) are
**not** exceptions: the processor and validator return them as data.  The
types below cover faults where the caller cannot safely proceed.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base exception for ledger-core failures."""


class InvalidTransactionError(LedgerError):
    """Raised when a payload does not match any known transaction variant.

    Attributes:
        message: Human-readable description of the first problem found.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ChainStructureError(LedgerError):
    """Raised for structural faults, e.g. an empty chain where a genesis
    block is required, or a tip block without a digest.

    Distinct from integrity faults (tampering), which the verifier reports as
    a failed :class:`~bims_ledger.ledger.verifier.ChainVerifyResult`.
    """


class InvalidTimestampError(LedgerError, ValueError):
    """Raised when an instant cannot be parsed as ISO-8601."""
