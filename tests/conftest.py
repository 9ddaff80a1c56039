"""Pytest configuration and fixtures for packportal tests.

Provides an in-memory stand-in for the ``packportal.db`` helpers so the
services and routers can be exercised without PostgreSQL.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, AsyncGenerator
from uuid import UUID

import httpx
import pytest
import pytest_asyncio

from packportal import db, storage


class FakeDB:
    """Mirrors the subset of ``packportal.db`` the services call."""

    def __init__(self) -> None:
        self.loads: dict[UUID, dict[str, Any]] = {}
        self.load_pallets: dict[UUID, dict[str, Any]] = {}
        self.update_calls: list[tuple[list[UUID], dict[str, Any]]] = []
        self.document_pallets: dict[UUID, list[dict[str, Any]]] = {}
        self.po_rows: list[dict[str, Any]] = []
        self.destinations: dict[str, dict[str, Any]] = {}

        self.sap_batches: list[list[dict[str, Any]]] = []
        self.stale_deleted_for: list[datetime] = []
        self.fail_batch_at: int | None = None

        self.assigned: list[dict[str, Any]] = []
        self.kept_assigned_ids: list[UUID] | None = None
        self.inventory: list[dict[str, Any]] = []
        self.fail_mirror = False
        self.replaced_with: list[dict[str, Any]] | None = None

        self.products: dict[UUID, dict[str, Any]] = {}
        self.product_updates: list[tuple[UUID, dict[str, Any]]] = []
        self.fail_updates = False

    # -- loads -------------------------------------------------------------

    def add_load_pallets(self, load_id: UUID, count: int) -> list[UUID]:
        ids = []
        for _ in range(count):
            lp_id = uuid.uuid4()
            self.load_pallets[lp_id] = {
                "id": lp_id,
                "load_id": load_id,
                "pallet_id": uuid.uuid4(),
                "destination": None,
                "release_number": None,
                "release_pdf_url": None,
                "is_on_hold": False,
            }
            ids.append(lp_id)
        return ids

    async def get_load(self, load_id):
        return self.loads.get(load_id)

    async def get_load_pallets_by_ids(self, ids):
        return [dict(self.load_pallets[i]) for i in ids if i in self.load_pallets]

    async def update_load_pallets(self, ids, fields):
        if self.fail_updates:
            raise ConnectionError("connection reset by peer")
        self.update_calls.append((list(ids), dict(fields)))
        updated = 0
        for lp_id in ids:
            row = self.load_pallets.get(lp_id)
            if row is not None:
                row.update(fields)
                updated += 1
        return updated

    async def get_load_document_pallets(self, load_id, destination=None):
        rows = self.document_pallets.get(load_id, [])
        if destination is not None:
            rows = [r for r in rows if r.get("destination") == destination]
        return [dict(r) for r in rows]

    async def get_po_info(self, customer_lots):
        return [dict(r) for r in self.po_rows if r["customer_lot"] in customer_lots]

    async def get_destination(self, code):
        return self.destinations.get(code)

    # -- SAP snapshot ------------------------------------------------------

    async def insert_sap_inventory_batch(self, rows):
        if self.fail_batch_at is not None and len(self.sap_batches) == self.fail_batch_at:
            raise RuntimeError("duplicate key value violates unique constraint")
        self.sap_batches.append(list(rows))
        return len(rows)

    async def delete_stale_sap_inventory(self, synced_at):
        self.stale_deleted_for.append(synced_at)
        return 7

    # -- inventory_pallets -------------------------------------------------

    async def get_assigned_pallets(self):
        if self.fail_mirror:
            raise ConnectionError("inventory_pallets unavailable")
        return [dict(a) for a in self.assigned]

    async def delete_unassigned_available_pallets(self, assigned_ids):
        self.kept_assigned_ids = list(assigned_ids)
        before = len(self.inventory)
        self.inventory = [r for r in self.inventory if r.get("status") != "available"]
        return before - len(self.inventory)

    async def insert_inventory_pallets(self, rows):
        self.inventory.extend(rows)
        return len(rows)

    async def replace_available_inventory(self, rows):
        self.replaced_with = list(rows)
        return 3, len(rows)

    # -- products ----------------------------------------------------------

    async def list_products(self):
        return [dict(p) for p in self.products.values()]

    async def update_product(self, product_id, fields):
        self.product_updates.append((product_id, dict(fields)))
        if product_id not in self.products:
            return False
        self.products[product_id].update(fields)
        return True


_DB_FUNCTIONS = (
    "get_load",
    "get_load_pallets_by_ids",
    "update_load_pallets",
    "get_load_document_pallets",
    "get_po_info",
    "get_destination",
    "insert_sap_inventory_batch",
    "delete_stale_sap_inventory",
    "get_assigned_pallets",
    "delete_unassigned_available_pallets",
    "insert_inventory_pallets",
    "replace_available_inventory",
    "list_products",
    "update_product",
)


@pytest.fixture
def fake_db(monkeypatch) -> FakeDB:
    """Replace every ``packportal.db`` helper with the in-memory fake."""
    fake = FakeDB()
    for name in _DB_FUNCTIONS:
        monkeypatch.setattr(db, name, getattr(fake, name))
    return fake


@pytest.fixture
def uploads(monkeypatch) -> list[tuple[str, str, bytes]]:
    """Capture object-storage uploads instead of writing anywhere."""
    captured: list[tuple[str, str, bytes]] = []

    async def fake_upload(bucket, path, data, content_type="application/pdf"):
        captured.append((bucket, path, data))
        return storage.build_storage_path(bucket, path)

    monkeypatch.setattr(storage, "upload_file", fake_upload)
    return captured


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the app (lifespan not run, so no DB pool)."""
    from packportal.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
