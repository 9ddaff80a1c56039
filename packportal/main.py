"""FastAPI application for the packaging portal.

Run locally with::

    uvicorn packportal.main:app --reload --port 8000

Routers
-------
/api/loads      -- release / hold, release validation, customs document, packing list
/api/inventory  -- SAP sync, spreadsheet upload, DestinyDatos catalog
/api/orders     -- purchase-order PDF extraction
/api/products   -- bulk product export / import
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from packportal import db, storage
from packportal.config import ANTHROPIC_API_KEY, SAP_ENDPOINT
from packportal.routers import inventory, loads, orders, products

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    try:
        await db.init_db()
    except Exception:
        logger.warning("Could not connect to PostgreSQL; load and inventory routes will fail", exc_info=True)

    logger.info(
        "Packaging portal ready (database=%s, storage=%s, SAP=%s, extraction=%s)",
        "connected" if db.is_connected() else "unavailable",
        storage.backend_name(),
        SAP_ENDPOINT,
        "enabled" if ANTHROPIC_API_KEY else "disabled",
    )
    yield

    try:
        await db.close_db()
    except Exception:
        logger.warning("Closing the database pool failed", exc_info=True)
    logger.info("Packaging portal stopped.")


app = FastAPI(
    title="Packaging Portal",
    description=(
        "Release and hold load pallets, generate customs documents and "
        "packing lists, and reconcile inventory with SAP."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# The portal UI is served from a different origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (loads, inventory, orders, products):
    app.include_router(module.router)


@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Liveness probe; also reports whether the store is reachable."""
    return {
        "status": "ok",
        "database": "connected" if db.is_connected() else "unavailable",
        "storage": storage.backend_name(),
    }
