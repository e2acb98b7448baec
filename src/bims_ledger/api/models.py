"""
Pydantic models for API responses.

Request bodies for ``POST /api/blockchain`` are accepted as raw JSON objects
and parsed by :func:`bims_ledger.ledger.transactions.parse_transaction`, so
that the wire payload reaches the hasher exactly as the ledger stores it.

Field names follow the camelCase wire format used inside blocks.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bims_ledger.ledger.blocks import Block


class BlockResponse(BaseModel):
    """
    One ledger block.

    Attributes:
        index: Position in the chain (0 = genesis)
        timestamp: Canonical UTC timestamp that was hashed
        transaction: Key-sorted transaction payload
        previousHash: Digest of the preceding block ("0" for genesis)
        hash: Digest of this block
    """

    model_config = ConfigDict(populate_by_name=True)

    index: int
    timestamp: str
    transaction: dict[str, Any]
    previous_hash: str = Field(alias="previousHash")
    hash: str

    @classmethod
    def from_block(cls, block: Block) -> "BlockResponse":
        return cls(**block.to_dict())


class VerifyResponse(BaseModel):
    """Chain verification outcome."""

    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(alias="isValid")
    message: str
    block_count: int = Field(alias="blockCount")
    failed_index: int | None = Field(default=None, alias="failedIndex")


class Kpis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_value: float = Field(alias="totalValue")
    total_units: int = Field(alias="totalUnits")
    transaction_count: int = Field(alias="transactionCount")


class SnapshotResponse(BaseModel):
    """Point-in-time inventory with KPIs."""

    model_config = ConfigDict(populate_by_name=True)

    snapshot_time: str = Field(alias="snapshotTime")
    kpis: Kpis
    inventory: dict[str, dict[str, Any]]


class ResetResponse(BaseModel):
    message: str
    chain: list[BlockResponse]


class LowStockPredictionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str | None
    stock: int
    days_to_empty: int = Field(alias="daysToEmpty")
