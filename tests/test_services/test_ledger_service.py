"""Tests for the ledger service (the single write path onto the store).

Test organisation
-----------------
- :class:`TestGenesis`       — lazy creation and the creation race.
- :class:`TestSubmit`        — acceptance, rejection, actor stamping.
- :class:`TestAppendRace`    — retry on index conflict and giving up.
- :class:`TestReadPaths`     — verify, snapshot, inventory, reset.
"""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

import bims_ledger.config as config_module
from bims_ledger.db import blocks_repo
from bims_ledger.db.errors import BlockIndexConflictError
from bims_ledger.ledger.errors import ChainStructureError, InvalidTimestampError
from bims_ledger.services import ledger_service
from bims_ledger.services.ledger_service import Actor, AppendConflictError

CREATE = {
    "txType": "CREATE_ITEM",
    "itemSku": "SKU-1",
    "itemName": "Widget",
    "quantity": 10,
    "toLocation": "Warehouse",
    "price": 2,
}
MOVE = {
    "txType": "MOVE",
    "itemSku": "SKU-1",
    "quantity": 4,
    "fromLocation": "Warehouse",
    "toLocation": "Retailer",
}


# ── TestGenesis ───────────────────────────────────────────────────────────────


@pytest.mark.db
class TestGenesis:
    def test_created_on_first_use(self, test_db) -> None:
        genesis = ledger_service.get_or_create_genesis()

        assert genesis.index == 0
        assert blocks_repo.count_blocks() == 1

    def test_existing_genesis_is_reused(self, test_db) -> None:
        first = ledger_service.get_or_create_genesis()
        second = ledger_service.get_or_create_genesis()

        assert first == second
        assert blocks_repo.count_blocks() == 1

    def test_losing_the_creation_race_rereads_the_winner(self, test_db) -> None:
        winner = ledger_service.get_or_create_genesis()

        # First read sees an empty chain; the insert then collides with the winner.
        with patch.object(blocks_repo, "get_block", side_effect=[None, winner]):
            result = ledger_service.get_or_create_genesis()

        assert result == winner

    def test_conflict_without_readable_genesis_is_structural(self, test_db) -> None:
        with (
            patch.object(blocks_repo, "get_block", return_value=None),
            patch.object(blocks_repo, "insert_block", side_effect=BlockIndexConflictError(0)),
        ):
            with pytest.raises(ChainStructureError):
                ledger_service.get_or_create_genesis()


# ── TestSubmit ────────────────────────────────────────────────────────────────


@pytest.mark.db
class TestSubmit:
    def test_accepted_transaction_is_stored(self, test_db) -> None:
        result = ledger_service.submit_transaction(CREATE)

        assert result.accepted
        assert result.error is None
        assert result.block.index == 1
        assert blocks_repo.get_block(1) == result.block

    def test_scenario_rejection_is_not_written(self, test_db) -> None:
        ledger_service.submit_transaction(CREATE)
        ledger_service.submit_transaction(MOVE)

        result = ledger_service.submit_transaction(
            {"txType": "STOCK_OUT", "itemSku": "SKU-1", "quantity": 10, "location": "Warehouse"}
        )

        assert not result.accepted
        assert result.error == "Insufficient stock at Warehouse. Only 6 available."
        assert blocks_repo.count_blocks() == 3

    def test_malformed_payload_is_rejected_without_touching_storage(self, test_db) -> None:
        with patch.object(blocks_repo, "insert_block") as mock_insert:
            result = ledger_service.submit_transaction({"txType": "TELEPORT"})

        assert result.error == "Unknown transaction type: 'TELEPORT'."
        mock_insert.assert_not_called()

    def test_actor_is_stamped_onto_the_transaction(self, test_db) -> None:
        payload = {**CREATE, "userName": "spoofed"}
        result = ledger_service.submit_transaction(
            payload, actor=Actor(user_id=7, user_name="alice", employee_id="E-7")
        )

        transaction = result.block.transaction
        assert transaction["userId"] == 7
        assert transaction["userName"] == "alice"
        assert transaction["employeeId"] == "E-7"

    def test_actor_without_fields_adds_nothing(self, test_db) -> None:
        result = ledger_service.submit_transaction(CREATE, actor=Actor())
        assert "userName" not in result.block.transaction

    def test_payload_is_not_mutated(self, test_db) -> None:
        payload = dict(CREATE)
        ledger_service.submit_transaction(payload, actor=Actor(user_name="alice"))
        assert payload == CREATE

    def test_genesis_payload_is_refused(self, test_db) -> None:
        ledger_service.get_or_create_genesis()

        result = ledger_service.submit_transaction({"txType": "GENESIS", "anything": "junk"})

        assert result.error == "GENESIS transactions cannot be submitted."
        assert [block.tx_type for block in ledger_service.load_chain()] == ["GENESIS"]

    def test_infinite_price_is_refused(self, test_db) -> None:
        result = ledger_service.submit_transaction({**CREATE, "price": float("inf")})

        assert result.error == "Price must be a finite number."
        assert blocks_repo.count_blocks() == 1


# ── TestAppendRace ────────────────────────────────────────────────────────────


@pytest.mark.db
class TestAppendRace:
    def test_conflict_is_retried_against_the_longer_chain(self, test_db, caplog) -> None:
        ledger_service.get_or_create_genesis()
        real_insert = blocks_repo.insert_block
        calls = {"n": 0}

        def insert_with_one_conflict(block):
            calls["n"] += 1
            if calls["n"] == 1:
                raise BlockIndexConflictError(block.index)
            real_insert(block)

        with (
            patch.object(blocks_repo, "insert_block", side_effect=insert_with_one_conflict),
            caplog.at_level(logging.WARNING, logger="bims_ledger.services.ledger_service"),
        ):
            result = ledger_service.submit_transaction(CREATE)

        assert result.accepted
        assert calls["n"] == 2
        assert "attempt 1/" in caplog.text

    def test_revalidation_after_conflict_can_reject(self, test_db) -> None:
        """Another writer drained the stock while this append was in flight."""
        ledger_service.submit_transaction(CREATE)
        drain = {"txType": "STOCK_OUT", "itemSku": "SKU-1", "quantity": 10, "location": "Warehouse"}
        real_insert = blocks_repo.insert_block
        state = {"raced": False}

        def competing_insert(block):
            if not state["raced"]:
                state["raced"] = True
                from bims_ledger.ledger.blocks import next_block

                real_insert(next_block(blocks_repo.fetch_chain(), drain))
                raise BlockIndexConflictError(block.index)
            real_insert(block)

        with patch.object(blocks_repo, "insert_block", side_effect=competing_insert):
            result = ledger_service.submit_transaction(dict(drain))

        assert result.error == "Insufficient stock at Warehouse. Only 0 available."
        assert blocks_repo.count_blocks() == 3

    def test_gives_up_after_configured_attempts(self, test_db, monkeypatch) -> None:
        ledger_service.get_or_create_genesis()
        monkeypatch.setattr(config_module.config.ledger, "append_max_attempts", 2)

        with patch.object(
            blocks_repo, "insert_block", side_effect=BlockIndexConflictError(1)
        ) as mock_insert:
            with pytest.raises(AppendConflictError):
                ledger_service.submit_transaction(CREATE)

        assert mock_insert.call_count == 2


# ── TestReadPaths ─────────────────────────────────────────────────────────────


@pytest.mark.db
class TestReadPaths:
    def test_verify_ledger_on_fresh_store(self, test_db) -> None:
        result = ledger_service.verify_ledger()

        assert result.status == "ok"
        assert result.block_count == 1

    def test_verify_ledger_detects_tampering(self, test_db, temp_db_path) -> None:
        import sqlite3

        ledger_service.submit_transaction(CREATE)
        with sqlite3.connect(temp_db_path) as conn:
            conn.execute(
                "UPDATE blockchain SET transaction_json = replace(transaction_json, '10', '99') "
                "WHERE idx = 1"
            )
        conn.close()

        result = ledger_service.verify_ledger()

        assert not result.is_valid
        assert result.failed_index == 1

    def test_current_inventory(self, test_db) -> None:
        ledger_service.submit_transaction(CREATE)
        ledger_service.submit_transaction(MOVE)

        inventory = ledger_service.current_inventory()

        assert inventory.get("SKU-1").locations == {"Warehouse": 6, "Retailer": 4}

    def test_snapshot_kpis(self, test_db) -> None:
        ledger_service.submit_transaction(CREATE)
        ledger_service.submit_transaction(MOVE)

        snapshot = ledger_service.snapshot_at("2999-01-01T00:00:00Z")
        body = snapshot.to_dict()

        assert body["snapshotTime"] == "2999-01-01T00:00:00Z"
        assert body["kpis"] == {"totalValue": 20, "totalUnits": 10, "transactionCount": 2}
        assert body["inventory"]["SKU-1"]["locations"] == {"Warehouse": 6, "Retailer": 4}

    def test_snapshot_in_the_past_is_empty(self, test_db) -> None:
        ledger_service.submit_transaction(CREATE)

        snapshot = ledger_service.snapshot_at("2000-01-01T00:00:00Z")

        assert snapshot.transaction_count == 0
        assert snapshot.total_units == 0

    def test_snapshot_rejects_bad_cutoff(self, test_db) -> None:
        with pytest.raises(InvalidTimestampError):
            ledger_service.snapshot_at("whenever")

    def test_reset_chain_starts_over(self, test_db) -> None:
        ledger_service.submit_transaction(CREATE)

        genesis = ledger_service.reset_chain()

        assert genesis.index == 0
        assert blocks_repo.fetch_chain() == [genesis]
