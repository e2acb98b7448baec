"""Blockchain endpoints (read chain, submit, verify, time travel, reset).

Authentication and roles are handled by whatever sits in front of this API.
The acting user may be passed through ``X-User-Id`` / ``X-User-Name`` /
``X-Employee-Id`` headers and is stamped onto submitted transactions.
"""

from typing import Any

from fastapi import APIRouter, Body, Header, Query
from fastapi.responses import JSONResponse

from bims_ledger.api.models import (
    BlockResponse,
    ResetResponse,
    SnapshotResponse,
    VerifyResponse,
)
from bims_ledger.ledger.errors import InvalidTimestampError
from bims_ledger.services import ledger_service

router = APIRouter(prefix="/api/blockchain", tags=["blockchain"])


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": message})


@router.get("", response_model=list[BlockResponse])
def get_chain():
    """Return the entire chain ordered by index."""
    return [BlockResponse.from_block(block) for block in ledger_service.load_chain()]


@router.post("", response_model=BlockResponse, status_code=201)
def add_block(
    payload: dict[str, Any] = Body(...),
    x_user_id: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
    x_employee_id: str | None = Header(default=None),
):
    """
    Validate a transaction against the current chain and append it.

    Returns 400 with the rejection reason when the transaction is invalid;
    nothing is written in that case.
    """
    actor = ledger_service.Actor(
        user_id=x_user_id, user_name=x_user_name, employee_id=x_employee_id
    )
    result = ledger_service.submit_transaction(payload, actor=actor)
    if not result.accepted:
        return _bad_request(result.error)
    return BlockResponse.from_block(result.block)


@router.get("/verify", response_model=VerifyResponse)
def verify():
    """Verify link and digest integrity of the whole chain."""
    result = ledger_service.verify_ledger()
    if result.is_valid:
        return VerifyResponse(
            is_valid=True,
            message="Blockchain integrity verified.",
            block_count=result.block_count,
        )
    body = VerifyResponse(
        is_valid=False,
        message="CRITICAL: Chain has been tampered with!",
        block_count=result.block_count,
        failed_index=result.failed_index,
    )
    return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))


@router.get("/state-at", response_model=SnapshotResponse)
def state_at(timestamp: str | None = Query(default=None)):
    """Inventory snapshot as of ``timestamp`` (ISO-8601)."""
    if not timestamp:
        return _bad_request('A valid "timestamp" query parameter is required.')
    try:
        snapshot = ledger_service.snapshot_at(timestamp)
    except InvalidTimestampError as exc:
        return _bad_request(str(exc))
    return snapshot.to_dict()


@router.get("/inventory")
def inventory():
    """Current inventory rebuilt from the full chain."""
    return ledger_service.current_inventory().to_dict()


@router.delete("", response_model=ResetResponse)
def clear_chain():
    """Wipe the chain and start again from a fresh genesis block."""
    genesis = ledger_service.reset_chain()
    return ResetResponse(message="Blockchain cleared", chain=[BlockResponse.from_block(genesis)])
