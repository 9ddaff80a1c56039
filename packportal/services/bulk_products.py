"""Bulk product export / import through a single-sheet workbook.

The export carries every editable column plus the product id; the import
updates products row by row, keyed on that id. A bad row is counted as an
error and never stops the remaining rows.
"""
from __future__ import annotations

import io
import logging
from datetime import date
from typing import Any, Optional
from uuid import UUID

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from packportal import db
from packportal.models.release import BulkImportResult

logger = logging.getLogger(__name__)

ID_LABEL = "ID (do not modify)"

# (products column, sheet header)
EXPORT_COLUMNS: list[tuple[str, str]] = [
    ("id", ID_LABEL),
    ("customer_item", "Item Code"),
    ("item_description", "Item Description"),
    ("customer", "Final Customer"),
    ("item_type", "Item Type"),
    ("tipo_empaque", "Tipo Empaque"),
    ("pt_code", "PT Number"),
    ("pieces_per_pallet", "Pieces/Pallet"),
    ("print_card", "PC Number"),
    ("print_card_url", "PC PDF URL"),
    ("customer_tech_spec_url", "Customer Spec URL"),
    ("dp_sales_csr_names", "DP Sales/CSR"),
    ("activa", "Active (TRUE/FALSE)"),
]

SHEET_TITLE = "Products"
MIN_COL_WIDTH = 15

HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")


def export_filename(today: Optional[date] = None) -> str:
    return f"products_export_{(today or date.today()).isoformat()}.xlsx"


def _export_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def build_products_workbook(products: list[dict[str, Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    ws.append([label for _, label in EXPORT_COLUMNS])
    for cell in ws[1]:
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT

    for product in products:
        ws.append([_export_value(product.get(key)) for key, _ in EXPORT_COLUMNS])

    for idx, (_, label) in enumerate(EXPORT_COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = max(len(label), MIN_COL_WIDTH)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


async def export_products() -> tuple[str, bytes]:
    products = await db.list_products()
    logger.info("Exporting %d product(s)", len(products))
    return export_filename(), build_products_workbook(products)


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def parse_import_row(row: dict[str, Any]) -> tuple[UUID, dict[str, Any]]:
    """Return ``(product_id, fields)``. Raises ``ValueError`` on a bad row.

    Columns missing from the sheet are left alone; empty cells clear the
    column.
    """
    raw_id = row.get(ID_LABEL)
    if raw_id is None or str(raw_id).strip() == "":
        raise ValueError("missing product id")
    product_id = UUID(str(raw_id).strip())

    fields: dict[str, Any] = {}
    for key, label in EXPORT_COLUMNS:
        if key == "id" or label not in row:
            continue
        value = row[label]
        text = "" if value is None else str(value).strip()
        if key == "pieces_per_pallet":
            fields[key] = int(float(text.replace(",", ""))) if text else None
        elif key == "activa":
            fields[key] = text.upper() == "TRUE"
        else:
            fields[key] = text or None
    return product_id, fields


def read_import_rows(file_bytes: bytes) -> list[dict[str, Any]]:
    wb = load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    try:
        rows = wb.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        names = [str(h).strip() if h is not None else "" for h in header]
        return [
            {n: v for n, v in zip(names, values) if n}
            for values in rows
            if values and any(v not in (None, "") for v in values)
        ]
    finally:
        wb.close()


async def import_products(file_bytes: bytes) -> BulkImportResult:
    """Apply an edited export. Raises ``ValueError`` if the file is unreadable."""
    try:
        rows = read_import_rows(file_bytes)
    except Exception as exc:
        raise ValueError("Could not parse the Excel file.") from exc

    updated = 0
    errors = 0
    for index, row in enumerate(rows, start=2):
        try:
            product_id, fields = parse_import_row(row)
            if await db.update_product(product_id, fields):
                updated += 1
            else:
                logger.warning("Product import row %d: id %s not found", index, product_id)
                errors += 1
        except Exception:
            logger.warning("Product import row %d failed", index, exc_info=True)
            errors += 1

    message = f"{updated} products updated"
    if errors:
        message += f", {errors} errors"
    logger.info("Product import: %s", message)
    return BulkImportResult(updated=updated, errors=errors, message=message + ".")
