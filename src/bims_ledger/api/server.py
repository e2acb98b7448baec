"""
FastAPI backend server for the ledger.

This module initializes and configures the FastAPI application. It sets up:
- The block store schema on startup
- CORS middleware for cross-origin requests from dashboard frontends
- Handlers that turn storage and chain failures into JSON 500 responses
- All API route endpoints (chain, verification, time travel, analytics)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bims_ledger import __version__
from bims_ledger.api.routes import register_routes
from bims_ledger.db.errors import DatabaseError
from bims_ledger.db.schema import init_schema
from bims_ledger.ledger.errors import ChainStructureError
from bims_ledger.services.ledger_service import AppendConflictError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_schema()
    logger.info("Block store ready.")
    yield


# ============================================================================
# APPLICATION INITIALIZATION
# ============================================================================

app = FastAPI(title="BIMS Ledger", version=__version__, lifespan=lifespan)

# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

# Restrict allow_origins to the dashboard's origin in production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# ERROR HANDLERS
# ============================================================================


@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"message": "Ledger storage failure."})


@app.exception_handler(ChainStructureError)
async def chain_structure_error_handler(request: Request, exc: ChainStructureError):
    logger.error("Chain structure error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"message": str(exc)})


@app.exception_handler(AppendConflictError)
async def append_conflict_handler(request: Request, exc: AppendConflictError):
    logger.error("Append gave up: %s", exc)
    return JSONResponse(status_code=500, content={"message": str(exc)})


# ============================================================================
# ROUTE REGISTRATION
# ============================================================================

register_routes(app)

# ============================================================================
# SERVER STARTUP
# ============================================================================


def start_server(host: str | None = None, port: int | None = None) -> None:
    """
    Start the uvicorn ASGI server.

    Args:
        host: Interface to bind to (default: ``config.server.host``)
        port: Port to listen on (default: ``config.server.port``)
    """
    import uvicorn

    from bims_ledger.config import config, configure_logging

    configure_logging()
    host = host or config.server.host
    port = port or config.server.port
    logger.info("Starting BIMS Ledger API on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    start_server()
