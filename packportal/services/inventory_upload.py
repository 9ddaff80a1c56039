"""Inventory spreadsheet upload.

Reads the plant's stock export (first sheet, header row first) and
replaces every ``available`` pallet with its rows. Stock is reported in
thousands and stored in pieces.
"""
from __future__ import annotations

import io
import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional

from openpyxl import load_workbook

from packportal import db
from packportal.models.inventory import InventoryPalletRow, InventoryUploadResult

logger = logging.getLogger(__name__)

_EXCEL_EPOCH = date(1970, 1, 1)
# Excel serial for 1970-01-01
_EXCEL_UNIX_OFFSET = 25569


class InventoryUploadError(ValueError):
    """The spreadsheet could not be read or has no data rows."""


def parse_excel_date(value: Any, today: Optional[date] = None) -> date:
    today = today or date.today()
    if value is None or value == "":
        return today
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _EXCEL_EPOCH + timedelta(days=int(value) - _EXCEL_UNIX_OFFSET)
    text = str(value).strip()
    for parse in (datetime.fromisoformat, lambda t: datetime.strptime(t, "%m/%d/%Y")):
        try:
            return parse(text).date()
        except ValueError:
            continue
    return today


def unit_for_pallet_type(pallet_type: Optional[str]) -> str:
    kind = (pallet_type or "").strip().upper()
    if kind == "CASES":
        return "bags"
    if kind == "ROLLS":
        return "Impressions"
    return "MIL"


def _float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", ""))
    except ValueError:
        return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_inventory_row(row: dict[str, Any], today: Optional[date] = None) -> InventoryPalletRow:
    pallet_type = _text(row.get("Pallet")) or "CASES"
    pieces = _float(row.get("Piezas"))
    return InventoryPalletRow(
        fecha=parse_excel_date(row.get("Production Date"), today),
        pt_code=_text(row.get("PT")) or _text(row.get("Codigo")) or "",
        description=_text(row.get("Descripción")) or "",
        stock=(_float(row.get("Stock")) or 0) * 1000,
        unit=unit_for_pallet_type(pallet_type),
        gross_weight=_float(row.get("Peso bruto")) or None,
        net_weight=_float(row.get("Peso neto")) or None,
        traceability=_text(row.get("Trazabilidad")) or "",
        bfx_order=_text(row.get("Sales Order")),
        customer_lot=_text(row.get("Customer PO Number")),
        pieces=int(pieces) if pieces else None,
        pallet_type=pallet_type,
        status="available",
    )


def read_inventory_sheet(file_bytes: bytes) -> list[dict[str, Any]]:
    """First worksheet as a list of ``{header: value}`` dicts."""
    try:
        wb = load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    except Exception as exc:
        raise InventoryUploadError("File is not a readable .xlsx workbook") from exc

    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        names = [str(h).strip() if h is not None else "" for h in header]
        records = []
        for values in rows:
            if values is None or all(v is None or v == "" for v in values):
                continue
            records.append({n: v for n, v in zip(names, values) if n})
        return records
    finally:
        wb.close()


async def upload_inventory(file_bytes: bytes) -> InventoryUploadResult:
    records = read_inventory_sheet(file_bytes)
    if not records:
        raise InventoryUploadError("The spreadsheet has no inventory rows")

    pallets = [parse_inventory_row(r).model_dump() for r in records]
    deleted, inserted = await db.replace_available_inventory(pallets)
    logger.info(
        "Inventory upload: %d pallet(s) inserted, %d previous available removed",
        inserted, deleted,
    )
    return InventoryUploadResult(count=inserted, replaced=deleted)
