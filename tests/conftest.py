"""
Shared pytest fixtures for the ledger test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary SQLite block stores
- FastAPI TestClient instances
- Chain builders with explicit, deterministic timestamps

Every database fixture is function-scoped so tests never share a chain.
"""

import shutil
import tempfile
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from bims_ledger.config import use_test_database
from bims_ledger.db.schema import init_schema
from bims_ledger.ledger.blocks import Block, create_genesis_block, next_block

# Fixed instant the chain builders count forward from.
BASE_TIME = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)

# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """
    Create a temporary database file for testing.

    Uses the config system's use_test_database context manager so every
    repository call in the test hits the temporary file.

    Yields:
        Path to temporary database file
    """
    temp_dir = tempfile.mkdtemp()
    temp_db = Path(temp_dir) / "test_bims.db"

    with use_test_database(temp_db):
        yield temp_db

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def test_db(temp_db_path: Path) -> Generator[None, None, None]:
    """
    Initialize a test database with schema but no blocks.

    Args:
        temp_db_path: Path to temporary database (from fixture)
    """
    init_schema()
    yield


# ============================================================================
# FASTAPI TEST CLIENT FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def test_client(test_db) -> TestClient:
    """
    Create a FastAPI TestClient bound to the temporary block store.

    Example:
        def test_chain(test_client):
            response = test_client.get("/api/blockchain")
            assert response.status_code == 200
    """
    from bims_ledger.api.server import app

    return TestClient(app)


# ============================================================================
# CHAIN FIXTURES
# ============================================================================


@pytest.fixture
def build_chain() -> Callable[..., list[Block]]:
    """
    Return a helper that builds an in-memory chain from raw transactions.

    Block ``n`` is stamped ``BASE_TIME + n * step``; the genesis block is
    stamped ``BASE_TIME``.  No validation is applied.

    Example:
        chain = build_chain([{"txType": "CREATE_ITEM", ...}])
    """

    def _build(
        transactions: list[dict],
        *,
        start: datetime = BASE_TIME,
        step: timedelta = timedelta(hours=1),
    ) -> list[Block]:
        chain = [create_genesis_block(timestamp=start)]
        for offset, transaction in enumerate(transactions, start=1):
            chain.append(next_block(chain, transaction, timestamp=start + offset * step))
        return chain

    return _build


@pytest.fixture
def warehouse_transactions() -> list[dict]:
    """Create SKU-1 with 10 units in the Warehouse, then move 4 to the Retailer."""
    return [
        {
            "txType": "CREATE_ITEM",
            "itemSku": "SKU-1",
            "itemName": "Widget",
            "quantity": 10,
            "toLocation": "Warehouse",
            "price": 2.5,
            "category": "Parts",
        },
        {
            "txType": "MOVE",
            "itemSku": "SKU-1",
            "quantity": 4,
            "fromLocation": "Warehouse",
            "toLocation": "Retailer",
        },
    ]
