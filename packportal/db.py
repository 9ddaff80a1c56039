"""PostgreSQL data-access layer for the packaging portal.

Uses asyncpg for async connection pooling and provides the CRUD helpers
the release, document and inventory services need. Every helper issues a
single statement (or one atomic ``executemany``); nothing here spans a
transaction across calls.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

import asyncpg

from packportal.config import DATABASE_URL

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS products (
  id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
  customer_item TEXT,
  item_description TEXT,
  customer TEXT,
  item_type TEXT,
  tipo_empaque TEXT,
  pt_code TEXT,
  pieces_per_pallet INT,
  print_card TEXT,
  print_card_url TEXT,
  customer_tech_spec_url TEXT,
  dp_sales_csr_names TEXT,
  activa BOOLEAN DEFAULT true,
  created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS purchase_orders (
  id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
  po_number TEXT NOT NULL,
  customer_lot TEXT,
  product_id UUID REFERENCES products(id),
  sales_order_number TEXT,
  price_per_thousand NUMERIC,
  pieces_per_pallet INT,
  piezas_por_paquete INT,
  quantity NUMERIC,
  status TEXT NOT NULL DEFAULT 'pending',
  pdf_url TEXT,
  created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS inventory_pallets (
  id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
  pt_code TEXT NOT NULL,
  description TEXT NOT NULL,
  stock NUMERIC NOT NULL DEFAULT 0,
  unit TEXT NOT NULL DEFAULT 'MIL',
  gross_weight NUMERIC,
  net_weight NUMERIC,
  traceability TEXT NOT NULL DEFAULT '',
  bfx_order TEXT,
  customer_lot TEXT,
  pieces INT,
  pallet_type TEXT,
  status TEXT NOT NULL DEFAULT 'available',
  fecha DATE NOT NULL DEFAULT CURRENT_DATE,
  is_virtual BOOLEAN NOT NULL DEFAULT false,
  created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS sap_inventory (
  id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
  pt_code TEXT NOT NULL,
  description TEXT NOT NULL,
  stock NUMERIC NOT NULL DEFAULT 0,
  unit TEXT NOT NULL,
  gross_weight NUMERIC,
  net_weight NUMERIC,
  traceability TEXT NOT NULL DEFAULT '',
  bfx_order TEXT,
  pieces INT,
  pallet_type TEXT,
  status TEXT NOT NULL,
  fecha DATE NOT NULL,
  raw_data JSONB,
  synced_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS customer_locations (
  code TEXT PRIMARY KEY,
  name TEXT NOT NULL,
  address TEXT,
  city TEXT,
  state TEXT,
  zip_code TEXT
);

CREATE TABLE IF NOT EXISTS shipping_loads (
  id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
  load_number TEXT NOT NULL,
  shipping_date DATE NOT NULL,
  invoice_number TEXT,
  release_number TEXT,
  status TEXT NOT NULL DEFAULT 'assembling',
  total_pallets INT NOT NULL DEFAULT 0,
  created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS load_pallets (
  id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
  load_id UUID NOT NULL REFERENCES shipping_loads(id) ON DELETE CASCADE,
  pallet_id UUID NOT NULL REFERENCES inventory_pallets(id),
  destination TEXT,
  quantity NUMERIC NOT NULL,
  release_number TEXT,
  release_pdf_url TEXT,
  is_on_hold BOOLEAN NOT NULL DEFAULT false,
  delivery_date DATE,
  created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
  UNIQUE (load_id, pallet_id)
);

CREATE INDEX IF NOT EXISTS idx_load_pallets_load ON load_pallets(load_id);
CREATE INDEX IF NOT EXISTS idx_load_pallets_pallet ON load_pallets(pallet_id);
CREATE INDEX IF NOT EXISTS idx_sap_inventory_synced ON sap_inventory(synced_at);
CREATE INDEX IF NOT EXISTS idx_inventory_status ON inventory_pallets(status);
CREATE INDEX IF NOT EXISTS idx_po_customer_lot ON purchase_orders(customer_lot);
"""

# Columns the release / hold operations are allowed to write.
_LOAD_PALLET_UPDATABLE = {"release_number", "destination", "is_on_hold", "release_pdf_url"}

# Columns the bulk product import is allowed to write.
PRODUCT_UPDATABLE = (
    "customer_item",
    "item_description",
    "customer",
    "item_type",
    "tipo_empaque",
    "pt_code",
    "pieces_per_pallet",
    "print_card",
    "print_card_url",
    "customer_tech_spec_url",
    "dp_sales_csr_names",
    "activa",
)

_SAP_COLUMNS = (
    "pt_code", "description", "stock", "unit", "gross_weight", "net_weight",
    "traceability", "bfx_order", "pieces", "pallet_type", "status", "fecha",
    "raw_data", "synced_at",
)

_INVENTORY_COLUMNS = (
    "pt_code", "description", "stock", "unit", "gross_weight", "net_weight",
    "traceability", "bfx_order", "customer_lot", "pieces", "pallet_type",
    "status", "fecha",
)

# ---------------------------------------------------------------------------
# Connection management
# ---------------------------------------------------------------------------


async def init_db() -> None:
    """Create the connection pool and ensure the schema exists."""
    global _pool
    if not DATABASE_URL:
        logger.warning("DATABASE_URL not set -- store-backed endpoints will be unavailable")
        return

    _pool = await asyncpg.create_pool(DATABASE_URL, min_size=2, max_size=10)
    async with _pool.acquire() as conn:
        await conn.execute(_SCHEMA_SQL)
    logger.info("Database pool created and schema initialized")


async def close_db() -> None:
    """Drain and close the connection pool."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    """Return the active pool or raise if not initialized."""
    if _pool is None:
        raise RuntimeError("Database not initialized -- call init_db() first")
    return _pool


def is_connected() -> bool:
    return _pool is not None


def _affected(status: str) -> int:
    """Parse the row count out of an asyncpg command tag ("UPDATE 3")."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, IndexError):
        return 0


def _insert_sql(table: str, columns: Iterable[str], casts: dict[str, str] | None = None) -> str:
    casts = casts or {}
    cols = list(columns)
    placeholders = ", ".join(
        f"${i}{casts.get(c, '')}" for i, c in enumerate(cols, start=1)
    )
    return f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({placeholders})"


# ---------------------------------------------------------------------------
# Helpers: Loads and load pallets
# ---------------------------------------------------------------------------


async def get_load(load_id: UUID) -> dict[str, Any] | None:
    pool = get_pool()
    row = await pool.fetchrow("SELECT * FROM shipping_loads WHERE id = $1", load_id)
    return dict(row) if row else None


async def get_load_pallets_by_ids(ids: list[UUID]) -> list[dict[str, Any]]:
    pool = get_pool()
    rows = await pool.fetch(
        "SELECT * FROM load_pallets WHERE id = ANY($1::uuid[])", ids,
    )
    return [dict(r) for r in rows]


async def update_load_pallets(ids: list[UUID], fields: dict[str, Any]) -> int:
    """Apply ``fields`` to every row in ``ids`` with ONE statement.

    Returns the number of rows updated.
    """
    unknown = set(fields) - _LOAD_PALLET_UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update load_pallets columns: {', '.join(sorted(unknown))}")
    if not fields:
        return 0

    columns = list(fields)
    assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=2))
    pool = get_pool()
    status = await pool.execute(
        f"UPDATE load_pallets SET {assignments} WHERE id = ANY($1::uuid[])",
        ids,
        *(fields[c] for c in columns),
    )
    return _affected(status)


async def get_load_document_pallets(
    load_id: UUID, destination: str | None = None,
) -> list[dict[str, Any]]:
    """Return the pallets of a load flattened into the generator input shape.

    ``quantity`` and ``destination`` come from the assignment row, everything
    else from the inventory pallet.
    """
    pool = get_pool()
    sql = """SELECT ip.pt_code, ip.description, lp.destination,
                    lp.quantity, ip.gross_weight, ip.net_weight, ip.pieces,
                    ip.unit, ip.customer_lot, ip.bfx_order,
                    lp.release_number, lp.is_on_hold
             FROM load_pallets lp
             JOIN inventory_pallets ip ON ip.id = lp.pallet_id
             WHERE lp.load_id = $1"""
    args: list[Any] = [load_id]
    if destination is not None:
        sql += " AND lp.destination = $2"
        args.append(destination)
    sql += " ORDER BY ip.description, lp.created_at"
    rows = await pool.fetch(sql, *args)
    return [dict(r) for r in rows]


async def get_po_info(customer_lots: list[str]) -> list[dict[str, Any]]:
    """PO reference rows for the given customer PO numbers."""
    if not customer_lots:
        return []
    pool = get_pool()
    rows = await pool.fetch(
        """SELECT po.customer_lot, po.sales_order_number, po.price_per_thousand,
                  po.pieces_per_pallet, po.piezas_por_paquete, p.customer_item
           FROM purchase_orders po
           LEFT JOIN products p ON p.id = po.product_id
           WHERE po.customer_lot = ANY($1::text[])
           ORDER BY po.created_at""",
        customer_lots,
    )
    return [dict(r) for r in rows]


async def get_destination(code: str) -> dict[str, Any] | None:
    pool = get_pool()
    row = await pool.fetchrow("SELECT * FROM customer_locations WHERE code = $1", code)
    return dict(row) if row else None


# ---------------------------------------------------------------------------
# Helpers: SAP inventory snapshot
# ---------------------------------------------------------------------------


async def insert_sap_inventory_batch(rows: list[dict[str, Any]]) -> int:
    """Insert one batch of snapshot rows atomically."""
    if not rows:
        return 0
    pool = get_pool()
    sql = _insert_sql("sap_inventory", _SAP_COLUMNS, {"raw_data": "::jsonb"})
    await pool.executemany(
        sql,
        [
            tuple(
                json.dumps(r[c], default=str) if c == "raw_data" else r[c]
                for c in _SAP_COLUMNS
            )
            for r in rows
        ],
    )
    return len(rows)


async def delete_stale_sap_inventory(synced_at: datetime) -> int:
    """Delete every snapshot row not stamped with ``synced_at``."""
    pool = get_pool()
    status = await pool.execute(
        "DELETE FROM sap_inventory WHERE synced_at <> $1", synced_at,
    )
    return _affected(status)


# ---------------------------------------------------------------------------
# Helpers: inventory_pallets
# ---------------------------------------------------------------------------


async def get_assigned_pallets() -> list[dict[str, Any]]:
    """Pallets currently referenced by any load assignment."""
    pool = get_pool()
    rows = await pool.fetch(
        """SELECT DISTINCT lp.pallet_id, ip.traceability
           FROM load_pallets lp
           JOIN inventory_pallets ip ON ip.id = lp.pallet_id"""
    )
    return [dict(r) for r in rows]


async def delete_unassigned_available_pallets(assigned_ids: list[UUID]) -> int:
    pool = get_pool()
    status = await pool.execute(
        """DELETE FROM inventory_pallets
           WHERE status = 'available'
             AND is_virtual = false
             AND NOT (id = ANY($1::uuid[]))""",
        assigned_ids,
    )
    return _affected(status)


async def insert_inventory_pallets(rows: list[dict[str, Any]]) -> int:
    if not rows:
        return 0
    pool = get_pool()
    await pool.executemany(
        _insert_sql("inventory_pallets", _INVENTORY_COLUMNS),
        [tuple(r.get(c) for c in _INVENTORY_COLUMNS) for r in rows],
    )
    return len(rows)


async def replace_available_inventory(rows: list[dict[str, Any]]) -> tuple[int, int]:
    """Swap all ``available`` pallets for ``rows``. Returns (deleted, inserted)."""
    pool = get_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            status = await conn.execute(
                "DELETE FROM inventory_pallets WHERE status = 'available'"
            )
            if rows:
                await conn.executemany(
                    _insert_sql("inventory_pallets", _INVENTORY_COLUMNS),
                    [tuple(r.get(c) for c in _INVENTORY_COLUMNS) for r in rows],
                )
    return _affected(status), len(rows)


# ---------------------------------------------------------------------------
# Helpers: Products
# ---------------------------------------------------------------------------


async def list_products() -> list[dict[str, Any]]:
    pool = get_pool()
    rows = await pool.fetch("SELECT * FROM products ORDER BY customer_item NULLS LAST")
    return [dict(r) for r in rows]


async def update_product(product_id: UUID, fields: dict[str, Any]) -> bool:
    """Update a single product. Returns False when no row matched."""
    unknown = set(fields) - set(PRODUCT_UPDATABLE)
    if unknown:
        raise ValueError(f"Cannot update products columns: {', '.join(sorted(unknown))}")
    if not fields:
        return True
    columns = list(fields)
    assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=2))
    pool = get_pool()
    status = await pool.execute(
        f"UPDATE products SET {assignments} WHERE id = $1",
        product_id,
        *(fields[c] for c in columns),
    )
    return _affected(status) > 0
