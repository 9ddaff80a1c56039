"""Customs document workbook for a shipping load.

Single sheet ("Customs Document"):
  1. Destination header, product description row and a Tarima/Bruto/Neto
     column group per product, one row per pallet slot
  2. Per-product detail blocks (pricing, weights, customs valuation)
  3. Load summary (product value, freight, totals, weights, destinations)
"""

from __future__ import annotations

import io
import logging
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from packportal.models.inventory import LoadInfo
from packportal.services.customs import CustomsSummary, ProductSummary
from packportal.utils import (
    capitalize_first,
    document_date,
    format_count,
    format_currency,
    format_weight,
)

logger = logging.getLogger(__name__)

SHEET_TITLE = "Customs Document"
COLUMN_WIDTH = 15
WIDTH_COLUMNS = 20


BOLD = Font(bold=True)

Row = list[Any]


def customs_filename(load: LoadInfo) -> str:
    return f"{load.load_number}.{document_date(load.shipping_date)}.xlsx"


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


def _ordered_products(summary: CustomsSummary) -> list[ProductSummary]:
    """Products in display order: grouped by destination, first-seen order."""
    ordered: list[ProductSummary] = []
    for products in summary.by_destination().values():
        ordered.extend(products)
    return ordered


def _pallet_grid(products: list[ProductSummary]) -> list[Row]:
    rows: list[Row] = []

    header: Row = []
    names: Row = []
    labels: Row = []
    for product in products:
        header.extend(["", "", capitalize_first(product.destination), ""])
        names.extend([product.description, "", "", ""])
        labels.extend(["Tarima", "Bruto", "Neto", ""])
    rows.extend([header, names, labels])

    max_pallets = max((len(p.pallets) for p in products), default=0)
    for i in range(max_pallets):
        row: Row = []
        for product in products:
            if i < len(product.pallets):
                line = product.pallets[i]
                row.extend([
                    line.label,
                    format_weight(line.gross_weight),
                    format_weight(line.net_weight),
                    "",
                ])
            else:
                row.extend(["", "", "", ""])
        rows.append(row)

    rows.append([])
    totals: Row = []
    for product in products:
        totals.extend([
            product.total_pallets or "",
            format_weight(product.total_gross_weight),
            format_weight(product.total_net_weight),
            "",
        ])
    rows.append(totals)
    rows.append([])
    return rows


def _detail_block(product: ProductSummary) -> list[Row]:
    shipped_label = "Total de cajas emb." if product.is_bags else "Total de rollos emb."
    return [
        [product.description],
        ["SAP", "", product.sap_number or "-"],
        ["Número de Pedido", "", product.po_number or "-"],
        ["Release", "", product.release_number or "-"],
        ["Piezas por caja", "", format_count(product.pieces_per_package)],
        ["Cajas por tarima", "", product.boxes_per_pallet],
        ["Total piezas x tarima", "", format_count(product.pieces_per_pallet)],
        [shipped_label, "", product.total_boxes_or_rolls],
        ["Total piezas embar.", "", format_count(product.total_pieces)],
        ["Precio por pieza", "", format_currency(product.price_per_piece, 5)],
        ["Precio por millar", "Normal", format_currency(product.price_per_thousand)],
        ["Total $", "", format_currency(product.total_price)],
        ["", "Bruto", "Neto"],
        ["", format_weight(product.total_gross_weight), format_weight(product.total_net_weight)],
        ["CE", f"{product.customs_equivalent:.9f}", "Valor aduana"],
        ["valor aduanal", product.customs_rate, format_currency(product.customs_value)],
        [],
    ]


def _summary_block(summary: CustomsSummary) -> list[Row]:
    return [
        [
            "$ Producto", format_currency(summary.total_product_value), "",
            "Total Tarimas", summary.total_pallets,
        ],
        [
            "Flete", format_currency(summary.freight_cost),
            format_currency(summary.freight_cost, 4),
            "Total de Cajas", summary.total_boxes or "-",
        ],
        [
            "Total", format_currency(summary.total_with_freight),
            format_currency(summary.total_with_freight),
            "Total de bobinas", summary.total_rolls or "-",
        ],
        [],
        [
            "Bruto", format_weight(summary.total_gross_weight), "",
            *(capitalize_first(d) for d in summary.destinations),
        ],
        ["Neto", format_weight(summary.total_net_weight)],
    ]


def build_customs_rows(summary: CustomsSummary) -> list[Row]:
    """The full sheet as a list of rows, top to bottom."""
    products = _ordered_products(summary)
    rows = _pallet_grid(products)
    for product in products:
        rows.extend(_detail_block(product))
    rows.append([])
    rows.extend(_summary_block(summary))
    return rows


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def generate_customs_document(summary: CustomsSummary, load: LoadInfo) -> tuple[str, bytes]:
    """Render the customs workbook.

    Returns ``(filename, xlsx_bytes)``; nothing is written to disk.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    rows = build_customs_rows(summary)
    for row in rows:
        ws.append(row)

    # Product description rows are bold in both the header and detail blocks
    descriptions = {p.description for p in summary.products}
    for row_cells in ws.iter_rows(min_row=2, max_row=ws.max_row):
        for cell in row_cells:
            if cell.value in descriptions:
                cell.font = BOLD

    for col in range(1, WIDTH_COLUMNS + 1):
        ws.column_dimensions[get_column_letter(col)].width = COLUMN_WIDTH

    buf = io.BytesIO()
    wb.save(buf)
    filename = customs_filename(load)
    logger.info(
        "Generated customs document %s: %d product(s), %d row(s)",
        filename, len(summary.products), len(rows),
    )
    return filename, buf.getvalue()
