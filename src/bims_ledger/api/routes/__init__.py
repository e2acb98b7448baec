"""API route modules.

Each module exposes an ``APIRouter``; :func:`register_routes` mounts them all.
"""

from fastapi import FastAPI

from bims_ledger.api.routes import analytics, blockchain, health


def register_routes(app: FastAPI) -> None:
    """Register all API routes with the FastAPI app."""
    app.include_router(health.router)
    app.include_router(blockchain.router)
    app.include_router(analytics.router)
