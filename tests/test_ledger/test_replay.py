"""Unit tests for full and point-in-time replay."""

from __future__ import annotations

import dataclasses
import logging
from datetime import timedelta

import pytest

from bims_ledger.ledger.errors import InvalidTimestampError
from bims_ledger.ledger.replay import rebuild, rebuild_state_at
from bims_ledger.ledger.timestamps import parse_timestamp


@pytest.mark.unit
def test_rebuild_applies_every_block(build_chain, warehouse_transactions):
    inventory = rebuild(build_chain(warehouse_transactions))

    assert inventory.to_dict() == {
        "SKU-1": {
            "productName": "Widget",
            "price": 2.5,
            "category": "Parts",
            "locations": {"Warehouse": 6, "Retailer": 4},
        }
    }


@pytest.mark.unit
def test_rebuild_of_genesis_only_chain_is_empty(build_chain):
    assert len(rebuild(build_chain([]))) == 0


@pytest.mark.unit
def test_rebuild_returns_a_fresh_projection_each_call(build_chain, warehouse_transactions):
    chain = build_chain(warehouse_transactions)

    first = rebuild(chain)
    first.get("SKU-1").credit("Warehouse", 100)

    assert rebuild(chain).quantity("SKU-1", "Warehouse") == 6


@pytest.mark.unit
def test_genesis_content_is_ignored(build_chain, warehouse_transactions):
    chain = build_chain(warehouse_transactions)
    chain[0] = dataclasses.replace(
        chain[0],
        transaction={"txType": "CREATE_ITEM", "itemSku": "GHOST", "quantity": 5, "toLocation": "X"},
    )

    inventory = rebuild(chain)

    assert "GHOST" not in inventory
    assert inventory.quantity("SKU-1", "Warehouse") == 6


@pytest.mark.unit
def test_cutoff_between_blocks(build_chain, warehouse_transactions):
    """Blocks are an hour apart; a cutoff after block 1 sees only the create."""
    chain = build_chain(warehouse_transactions)

    snapshot = rebuild_state_at(chain, parse_timestamp(chain[1].timestamp) + timedelta(minutes=30))

    assert snapshot.transaction_count == 1
    assert snapshot.inventory.get("SKU-1").locations == {"Warehouse": 10}


@pytest.mark.unit
def test_cutoff_equal_to_block_timestamp_includes_it(build_chain, warehouse_transactions):
    chain = build_chain(warehouse_transactions)

    snapshot = rebuild_state_at(chain, chain[1].timestamp)

    assert snapshot.transaction_count == 1


@pytest.mark.unit
def test_cutoff_at_last_block_equals_full_rebuild(build_chain, warehouse_transactions):
    chain = build_chain(warehouse_transactions)

    snapshot = rebuild_state_at(chain, chain[-1].timestamp)

    assert snapshot.inventory == rebuild(chain)
    assert snapshot.transaction_count == 2


@pytest.mark.unit
def test_cutoff_before_first_transaction_is_empty(build_chain, warehouse_transactions):
    chain = build_chain(warehouse_transactions)

    snapshot = rebuild_state_at(chain, "2000-01-01T00:00:00Z")

    assert len(snapshot.inventory) == 0
    assert snapshot.transaction_count == 0


@pytest.mark.unit
def test_invalid_cutoff_raises(build_chain):
    with pytest.raises(InvalidTimestampError):
        rebuild_state_at(build_chain([]), "not a date")


@pytest.mark.unit
def test_unreadable_block_timestamp_stops_the_snapshot(build_chain, warehouse_transactions, caplog):
    chain = build_chain(warehouse_transactions)
    chain[2] = dataclasses.replace(chain[2], timestamp="garbage")

    with caplog.at_level(logging.WARNING, logger="bims_ledger.ledger.replay"):
        snapshot = rebuild_state_at(chain, "2099-01-01T00:00:00Z")

    assert snapshot.transaction_count == 1
    assert "unreadable timestamp" in caplog.text
