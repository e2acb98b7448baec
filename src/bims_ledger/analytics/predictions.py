"""Predictive low-stock warnings.

Consumption velocity is the total ``STOCK_OUT`` quantity per SKU over a
trailing window, spread evenly across the window's days.  A SKU is flagged
when its current total stock would run out within the threshold.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from bims_ledger.ledger.blocks import Block
from bims_ledger.ledger.errors import InvalidTimestampError
from bims_ledger.ledger.replay import rebuild_state_at
from bims_ledger.ledger.timestamps import parse_timestamp, utc_now
from bims_ledger.ledger.transactions import STOCK_OUT


@dataclass(frozen=True)
class LowStockPrediction:
    sku: str
    name: str | None
    stock: int
    days_to_empty: int

    def to_dict(self) -> dict:
        return {
            "id": self.sku,
            "name": self.name,
            "stock": self.stock,
            "daysToEmpty": self.days_to_empty,
        }


def stock_out_velocity(
    blocks: Sequence[Block], *, since: datetime
) -> dict[str, int]:
    """Total ``STOCK_OUT`` quantity per SKU in blocks stamped after ``since``."""
    totals: dict[str, int] = defaultdict(int)
    for block in blocks[1:]:
        tx = block.transaction
        if tx.get("txType") != STOCK_OUT:
            continue
        try:
            stamped = parse_timestamp(block.timestamp)
        except InvalidTimestampError:
            continue
        if stamped > since:
            totals[tx.get("itemSku")] += int(tx.get("quantity") or 0)
    return dict(totals)


def low_stock_predictions(
    blocks: Sequence[Block],
    *,
    now: datetime | None = None,
    window_days: int = 30,
    threshold_days: int = 7,
) -> list[LowStockPrediction]:
    """SKUs expected to run out within ``threshold_days``, soonest first.

    SKUs without any recent ``STOCK_OUT`` are never flagged.
    """
    if len(blocks) <= 1:
        return []

    now = now or utc_now()
    inventory = rebuild_state_at(blocks, now).inventory
    velocity = stock_out_velocity(blocks, since=now - timedelta(days=window_days))

    predictions: list[LowStockPrediction] = []
    for sku, product in inventory.products.items():
        consumed = velocity.get(sku, 0)
        if consumed <= 0:
            continue
        daily_velocity = consumed / window_days
        days_to_empty = math.floor(product.total_stock / daily_velocity)
        if days_to_empty <= threshold_days:
            predictions.append(
                LowStockPrediction(
                    sku=sku,
                    name=product.product_name,
                    stock=product.total_stock,
                    days_to_empty=days_to_empty,
                )
            )

    predictions.sort(key=lambda prediction: prediction.days_to_empty)
    return predictions
