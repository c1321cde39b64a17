"""
Attention Engine API Server - ranked queue and triage over HTTP.
"""
# ruff: noqa: S104
# S104: Development server binding (guarded by __name__ check)

import logging
import os

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.priority_router import router as priority_router
from api.triage_router import router as triage_router
from attention import __version__
from attention import db as db_module
from attention.observability import CorrelationIdMiddleware, configure_logging
from attention.state_store import get_store

logger = logging.getLogger(__name__)

# FastAPI app initialization
app = FastAPI(
    title="Attention Engine API",
    description="Unified priority queue and triage workflow",
    version=__version__,
)

# CORS middleware - configurable via CORS_ORIGINS env var
# Dev default: allow all origins; Production: set CORS_ORIGINS to comma-separated list
cors_origins_env = os.getenv("CORS_ORIGINS", "*")
cors_origins = (
    ["*"] if cors_origins_env == "*" else [o.strip() for o in cors_origins_env.split(",")]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(priority_router, prefix="/api")
app.include_router(triage_router, prefix="/api")


# ==== DB Startup ====
@app.on_event("startup")
async def converge_schema_on_startup():
    """Open the store (which converges the schema) and log DB info."""
    db_path = db_module.get_db_path()
    logger.info("=== Attention Engine Startup ===")
    logger.info(f"DB path: {db_path}")
    store = get_store()
    with db_module.get_connection(store.db_path) as conn:
        logger.info(f"DB schema version (user_version): {db_module.get_schema_version(conn)}")


@app.get("/api/health")
async def health():
    """Liveness plus schema version."""
    store = get_store()
    with db_module.get_connection(store.db_path) as conn:
        version = db_module.get_schema_version(conn)
    return {"status": "ok", "version": __version__, "schema_version": version}


# ==== Main ====


def main():
    """Run the server."""
    log_format = os.environ.get("LOG_FORMAT")
    configure_logging(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        json_format=(log_format == "json") if log_format else None,
    )
    port = int(os.environ.get("PORT", 8420))
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
