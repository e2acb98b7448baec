"""Anomaly scan over the full chain.

Three independent rule sets are applied to every non-genesis block:

- **Business rules** — activity outside business hours (UTC), stock moved
  straight from Supplier to Retailer, logistics moves performed by an Admin.
- **Statistical outliers** — a quantity above ``mean + sigma * stddev`` for
  its transaction type (population standard deviation) and above a floor.
- **Behavioural** — the first time a user performs a transaction type that
  is unusual for their role.

User roles come from the caller (user management lives outside the ledger);
without them only the role-independent rules fire.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from bims_ledger.ledger.blocks import Block
from bims_ledger.ledger.errors import InvalidTimestampError
from bims_ledger.ledger.timestamps import parse_timestamp
from bims_ledger.ledger.transactions import CREATE_ITEM, MOVE, STOCK_IN, STOCK_OUT

ROLE_ADMIN = "Admin"
ROLE_MANAGER = "Inventory Manager"
ROLE_AUDITOR = "Auditor"

_QUANTITY_TX_TYPES = (CREATE_ITEM, STOCK_IN, STOCK_OUT, MOVE)


@dataclass(frozen=True)
class QuantityStats:
    mean: float
    std_dev: float
    threshold: float


@dataclass
class Anomaly:
    block: Block
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"block": self.block.to_dict(), "reasons": list(self.reasons)}


@dataclass
class AnomalyReport:
    total_transactions: int
    basic_anomalies: list[Anomaly]
    statistical_outliers: list[Anomaly]
    behavioral_anomalies: list[Anomaly]

    @property
    def total_anomalies(self) -> int:
        """Distinct blocks flagged by at least one rule set."""
        flagged = {
            anomaly.block.hash
            for group in (self.basic_anomalies, self.statistical_outliers, self.behavioral_anomalies)
            for anomaly in group
        }
        return len(flagged)

    @property
    def percent_flagged(self) -> float:
        if self.total_transactions == 0:
            return 0.0
        return self.total_anomalies / self.total_transactions * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "totalAnomalies": self.total_anomalies,
                "totalTransactions": self.total_transactions,
                "percentOfTransactionsFlagged": self.percent_flagged,
            },
            "basicAnomalies": [a.to_dict() for a in self.basic_anomalies],
            "statisticalOutliers": [a.to_dict() for a in self.statistical_outliers],
            "behavioralAnomalies": [a.to_dict() for a in self.behavioral_anomalies],
        }


def quantity_stats(values: Sequence[float], *, sigma: float) -> QuantityStats:
    """Mean, population standard deviation and outlier threshold."""
    if not values:
        return QuantityStats(mean=0.0, std_dev=0.0, threshold=0.0)
    mean = sum(values) / len(values)
    std_dev = math.sqrt(sum((value - mean) ** 2 for value in values) / len(values))
    return QuantityStats(mean=mean, std_dev=std_dev, threshold=mean + sigma * std_dev)


def _business_rule_reasons(
    block: Block,
    role: str | None,
    *,
    business_hours_start: int,
    business_hours_end: int,
) -> list[str]:
    tx = block.transaction
    reasons: list[str] = []

    try:
        hour = parse_timestamp(block.timestamp).hour
    except InvalidTimestampError:
        hour = None
    if hour is not None and (hour < business_hours_start or hour > business_hours_end):
        reasons.append(f"Transaction occurred at an unusual time ({hour}:00 UTC).")

    if tx.get("txType") == MOVE and role == ROLE_ADMIN:
        reasons.append("Logistics (MOVE) operation performed by an Admin, not a Manager.")

    if (
        tx.get("txType") == MOVE
        and tx.get("fromLocation") == "Supplier"
        and tx.get("toLocation") == "Retailer"
    ):
        reasons.append("Logistics anomaly: Skipped Warehouse (Supplier -> Retailer).")

    return reasons


def _is_unusual_for_role(role: str | None, tx_type: str | None) -> bool:
    if role == ROLE_AUDITOR:
        # Auditors are read-only; any transaction is out of character.
        return True
    if role == ROLE_MANAGER:
        return tx_type == CREATE_ITEM
    return False


def anomaly_report(
    blocks: Sequence[Block],
    *,
    user_roles: Mapping[str, str] | None = None,
    sigma: float = 3.0,
    min_outlier_quantity: int = 10,
    business_hours_start: int = 6,
    business_hours_end: int = 22,
) -> AnomalyReport:
    """Scan ``blocks`` and group flagged blocks by rule set, newest first.

    Args:
        blocks:               Full chain ordered by index.
        user_roles:           ``{userName: role}`` for the behavioural and
                              Admin-move rules.
        sigma:                Standard deviations above the mean that make
                              a quantity an outlier.
        min_outlier_quantity: Quantities at or below this are never outliers.
    """
    user_roles = user_roles or {}
    transactions = [block for block in blocks if not block.is_genesis]

    quantities: dict[str, list[float]] = {tx_type: [] for tx_type in _QUANTITY_TX_TYPES}
    for block in transactions:
        tx_type = block.transaction.get("txType")
        quantity = block.transaction.get("quantity")
        if tx_type in quantities and isinstance(quantity, (int, float)):
            quantities[tx_type].append(quantity)
    stats = {tx_type: quantity_stats(values, sigma=sigma) for tx_type, values in quantities.items()}

    basic: list[Anomaly] = []
    outliers: list[Anomaly] = []
    behavioral: list[Anomaly] = []
    history: dict[str, set[str]] = {name: set() for name in user_roles}

    for block in transactions:
        tx = block.transaction
        tx_type = tx.get("txType")
        user_name = tx.get("userName")
        role = user_roles.get(user_name) if user_name else None

        reasons = _business_rule_reasons(
            block,
            role,
            business_hours_start=business_hours_start,
            business_hours_end=business_hours_end,
        )
        if reasons:
            basic.append(Anomaly(block=block, reasons=reasons))

        stat = stats.get(tx_type)
        quantity = tx.get("quantity")
        if (
            stat is not None
            and isinstance(quantity, (int, float))
            and quantity > stat.threshold
            and quantity > min_outlier_quantity
        ):
            outliers.append(
                Anomaly(
                    block=block,
                    reasons=[
                        f"Quantity ({quantity}) is a statistical outlier "
                        f"( > {sigma:g}x std. dev.) for {tx_type} transactions."
                    ],
                )
            )

        seen = history.get(user_name) if user_name else None
        if seen is not None:
            if tx_type not in seen and _is_unusual_for_role(role, tx_type):
                behavioral.append(
                    Anomaly(
                        block=block,
                        reasons=[
                            f"First time user '{user_name}' (Role: {role}) "
                            f"performed a '{tx_type}' action."
                        ],
                    )
                )
            seen.add(tx_type)

    return AnomalyReport(
        total_transactions=len(transactions),
        basic_anomalies=list(reversed(basic)),
        statistical_outliers=list(reversed(outliers)),
        behavioral_anomalies=list(reversed(behavioral)),
    )
