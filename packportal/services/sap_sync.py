"""Replace the local inventory snapshot with the SAP ``vwStockDestiny`` feed.

Order of operations:
  1. GET the feed (fixed timeout). Non-2xx or a non-array body is fatal, as
     is a record whose fields cannot be read as text, numbers or flags.
  2. Insert the transformed rows in sequential batches, all stamped with
     the same ``synced_at``. Any failed batch aborts the sync.
  3. Delete every row carrying an older ``synced_at``.
  4. Best effort: mirror the ``available`` rows into ``inventory_pallets``
     without touching pallets that a load currently holds.

Inserting before deleting means readers never see an empty inventory; old
and new rows coexist until step 3 finishes.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from packportal import db
from packportal.config import INSERT_BATCH_SIZE, SAP_ENDPOINT, SAP_TIMEOUT_SECONDS
from packportal.models.inventory import SapInventoryItem, SapInventoryRow, SyncResult

logger = logging.getLogger(__name__)


class SapSyncError(RuntimeError):
    """The primary snapshot could not be fetched or stored."""


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


def parse_feed_date(value: Optional[str], today: date) -> date:
    """ISO date (time part allowed) or ``today`` when missing/unparseable."""
    if not value:
        return today
    text = value.strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.debug("Unparseable SAP fecha %r, using today", value)
        return today


def _first_not_none(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def transform_item(raw: dict[str, Any], synced_at: datetime) -> SapInventoryRow:
    """Map one feed record to a ``sap_inventory`` row."""
    item = SapInventoryItem.model_validate(raw)
    stock = _first_not_none(item.totalUnits, item.cantidad)
    return SapInventoryRow(
        pt_code=item.claveProducto or "",
        description=item.nombreProducto or "",
        stock=stock if stock is not None else 0,
        unit=item.uom or item.unidad or "MIL",
        gross_weight=item.pesoBruto,
        net_weight=item.pesoNeto,
        traceability=item.lote or "",
        bfx_order=item.po or None,
        pieces=round(item.cajas) if item.cajas is not None else None,
        pallet_type="CASES",
        status="assigned" if item.asignadoAentrega is True else "available",
        fecha=parse_feed_date(item.fecha, synced_at.date()),
        raw_data=raw,
        synced_at=synced_at,
    )


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


async def fetch_json_array(
    url: str, client: Optional[httpx.AsyncClient] = None, source: str = "SAP",
) -> list[Any]:
    """GET ``url`` and return its JSON array body, raising ``SapSyncError``."""
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=SAP_TIMEOUT_SECONDS) as own_client:
                resp = await own_client.get(url)
        else:
            resp = await client.get(url, timeout=SAP_TIMEOUT_SECONDS)
    except httpx.HTTPError as exc:
        logger.error("%s endpoint unreachable: %s", source, exc)
        raise SapSyncError(f"{source} API unavailable ({exc.__class__.__name__})") from exc

    if not resp.is_success:
        logger.error("%s endpoint returned HTTP %d", source, resp.status_code)
        raise SapSyncError(f"{source} API unavailable (status: {resp.status_code})")

    try:
        data = resp.json()
    except ValueError as exc:
        raise SapSyncError(f"Unexpected {source} response format") from exc
    if not isinstance(data, list):
        raise SapSyncError(f"Unexpected {source} response format")
    return data


# ---------------------------------------------------------------------------
# Mirror pass
# ---------------------------------------------------------------------------


def _mirror_row(row: SapInventoryRow) -> dict[str, Any]:
    return {
        "pt_code": row.pt_code,
        "description": row.description,
        "stock": row.stock,
        "unit": row.unit,
        "gross_weight": row.gross_weight,
        "net_weight": row.net_weight,
        "traceability": row.traceability,
        "bfx_order": row.bfx_order,
        "customer_lot": None,
        "pieces": row.pieces,
        "pallet_type": row.pallet_type,
        "status": "available",
        "fecha": row.fecha,
    }


async def mirror_available_pallets(rows: list[SapInventoryRow]) -> int:
    """Refresh the ``available`` pallets from the snapshot.

    The set of assigned pallets is read fresh here, never cached; a pallet
    assigned between this read and the delete is not protected.
    """
    assigned = await db.get_assigned_pallets()
    assigned_ids = [a["pallet_id"] for a in assigned]
    held_traceability = {a["traceability"] for a in assigned if a.get("traceability")}

    deleted = await db.delete_unassigned_available_pallets(assigned_ids)
    fresh = [
        _mirror_row(r) for r in rows
        if r.status == "available" and r.traceability not in held_traceability
    ]
    inserted = await db.insert_inventory_pallets(fresh)
    logger.info(
        "Mirrored SAP snapshot: %d pallet(s) removed, %d inserted, %d assigned kept",
        deleted, inserted, len(assigned_ids),
    )
    return inserted


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


async def sync_sap_inventory(
    client: Optional[httpx.AsyncClient] = None,
    batch_size: int = INSERT_BATCH_SIZE,
    mirror: bool = True,
) -> SyncResult:
    raw_items = await fetch_json_array(SAP_ENDPOINT, client)

    synced_at = datetime.now(timezone.utc)
    rows = []
    for index, item in enumerate(raw_items):
        try:
            rows.append(transform_item(item if isinstance(item, dict) else {}, synced_at))
        except ValidationError as exc:
            logger.error("SAP record %d rejected: %s", index, exc)
            raise SapSyncError(f"Invalid SAP record at position {index}") from exc
    logger.info("SAP feed returned %d record(s)", len(rows))

    inserted = 0
    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        try:
            inserted += await db.insert_sap_inventory_batch([r.model_dump() for r in batch])
        except Exception as exc:
            logger.exception("SAP inventory insert failed at batch starting %d", start)
            raise SapSyncError(f"Failed to insert inventory: {exc}") from exc

    try:
        removed = await db.delete_stale_sap_inventory(synced_at)
    except Exception as exc:
        logger.exception("Cleanup of previous SAP snapshot failed")
        raise SapSyncError(f"Failed to cleanup previous snapshot: {exc}") from exc
    logger.info("SAP snapshot %s: %d inserted, %d stale removed", synced_at.isoformat(), inserted, removed)

    result = SyncResult(success=True, count=inserted, synced_at=synced_at)
    if mirror:
        try:
            result.mirrored = await mirror_available_pallets(rows)
        except Exception as exc:
            logger.warning("Mirroring SAP snapshot into inventory_pallets failed", exc_info=True)
            result.mirror_error = str(exc) or exc.__class__.__name__
    return result
