"""Health and root endpoints.

The version string is read from ``bims_ledger.__version__``, resolved at
import time via ``importlib.metadata``.
"""

from fastapi import APIRouter

from bims_ledger import __version__
from bims_ledger.db import blocks_repo

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint showing API identity and current version."""
    return {"message": "BIMS Ledger API", "version": __version__}


@router.get("/health")
async def health_check():
    """Health check endpoint with the stored block count."""
    return {"status": "ok", "blocks": blocks_repo.count_blocks()}
