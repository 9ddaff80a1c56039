"""Assemble generator inputs for a shipping load from the store.

Every call re-reads the load, its pallets and the PO reference rows, so a
document always reflects the current assignment state.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from uuid import UUID

from packportal import db
from packportal.exporters import generate_customs_document, generate_packing_list_pdf
from packportal.models.inventory import Destination, LoadInfo, Pallet, POInfo
from packportal.services.customs import build_customs_summary
from packportal.services.packing_list import CustomerPOResolver, build_packing_list, default_customer_po

logger = logging.getLogger(__name__)


class LoadNotFoundError(LookupError):
    pass


def whole_pieces(value: Any) -> int:
    """NUMERIC piece counts to an int, rounding half up rather than truncating."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def pallet_from_row(row: dict[str, Any]) -> Pallet:
    data = dict(row)
    data["quantity"] = whole_pieces(data.get("quantity") or 0)
    if data.get("pieces") is not None:
        data["pieces"] = whole_pieces(data["pieces"])
    for key in ("gross_weight", "net_weight"):
        if data.get(key) is not None:
            data[key] = float(data[key])
    return Pallet.model_validate(data)


def po_info_map(rows: list[dict[str, Any]]) -> dict[str, POInfo]:
    """Index PO rows by customer PO; the first row per PO wins."""
    result: dict[str, POInfo] = {}
    for row in rows:
        lot = row.get("customer_lot")
        if not lot or lot in result:
            continue
        data = dict(row)
        if data.get("price_per_thousand") is not None:
            data["price_per_thousand"] = float(data["price_per_thousand"])
        result[lot] = POInfo.model_validate(data)
    return result


async def get_load_info(load_id: UUID) -> LoadInfo:
    load = await db.get_load(load_id)
    if load is None:
        raise LoadNotFoundError(f"Load {load_id} not found")
    return LoadInfo(
        load_number=load["load_number"],
        shipping_date=str(load["shipping_date"]),
        release_number=load.get("release_number"),
        invoice_number=load.get("invoice_number") or "",
    )


async def _pallets_and_orders(
    load_id: UUID, destination: Optional[str] = None,
) -> tuple[list[Pallet], dict[str, POInfo]]:
    pallets = [pallet_from_row(r) for r in await db.get_load_document_pallets(load_id, destination)]
    # bfx_order is the packing-list fallback key when a pallet has no customer PO
    lots = sorted(
        {p.customer_lot for p in pallets if p.customer_lot}
        | {p.bfx_order for p in pallets if p.bfx_order}
    )
    orders = po_info_map(await db.get_po_info(lots))
    return pallets, orders


async def customs_document_for_load(load_id: UUID) -> tuple[str, bytes]:
    load = await get_load_info(load_id)
    pallets, orders = await _pallets_and_orders(load_id)
    if not pallets:
        raise LoadNotFoundError(f"Load {load.load_number} has no pallets")
    summary = build_customs_summary(pallets, orders)
    return generate_customs_document(summary, load)


async def packing_list_for_load(
    load_id: UUID,
    destination_code: str,
    client_name: Optional[str] = None,
    sales_person: Optional[str] = None,
    resolve_customer_po: CustomerPOResolver = default_customer_po,
) -> tuple[str, bytes]:
    load = await get_load_info(load_id)
    location = await db.get_destination(destination_code)
    if location is None:
        raise LoadNotFoundError(f"Destination {destination_code} not found")
    destination = Destination.model_validate(location)

    pallets, orders = await _pallets_and_orders(load_id, destination_code)
    if not pallets:
        raise LoadNotFoundError(
            f"Load {load.load_number} has no pallets for {destination.name}",
        )
    packing = build_packing_list(pallets, orders, resolve_customer_po)
    return generate_packing_list_pdf(
        packing, load, destination,
        client_code=destination.code,
        client_name=client_name,
        sales_person=sales_person,
    )
