"""Letter-landscape packing list PDF for one destination of a load.

Layout, top to bottom:
  1. Header: company mark, "PACKING LIST" title, form revision code
  2. Ship-to block (left) and load metadata (right)
  3. Product table PO# / LOT# / ITEM# / DESCRIPTION / QUANTITY / UNITS / PALLETS
     closed by a bold TOTAL row
"""

from __future__ import annotations

import io
import logging
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from packportal.config import COMPANY_NAME, PACKING_LIST_REVISION
from packportal.models.inventory import Destination, LoadInfo
from packportal.services.packing_list import PackingList
from packportal.utils import document_date, format_count, sanitize_filename_part

logger = logging.getLogger(__name__)

HEADER_FILL = colors.HexColor("#1F3864")
TOTAL_FILL = colors.HexColor("#D9E1F2")

TABLE_HEADERS = ["PO#", "LOT#", "ITEM#", "DESCRIPTION", "QUANTITY", "UNITS", "PALLETS"]
COL_WIDTHS = [32 * mm, 28 * mm, 34 * mm, 90 * mm, 28 * mm, 20 * mm, 20 * mm]


def packing_list_filename(destination_name: str, load: LoadInfo) -> str:
    dest = sanitize_filename_part(destination_name)
    return f"PL_{dest}_{load.load_number}.{document_date(load.shipping_date)}.pdf"


def _ship_to_lines(
    destination: Destination,
    client_code: Optional[str],
    client_name: Optional[str],
    sales_person: Optional[str],
) -> list[str]:
    lines = [f"<b>SHIP TO:</b> {escape(destination.name)}"]
    if destination.address:
        lines.append(escape(destination.address))
    city_state = ", ".join(p for p in (destination.city, destination.state) if p)
    if destination.zip_code:
        city_state = f"{city_state} {destination.zip_code}".strip()
    if city_state:
        lines.append(escape(city_state))
    client = " - ".join(p for p in (client_code or destination.code, client_name) if p)
    if client:
        lines.append(f"<b>CLIENT:</b> {escape(client)}")
    if sales_person:
        lines.append(f"<b>SALES PERSON:</b> {escape(sales_person)}")
    return lines


def _metadata_lines(load: LoadInfo, release_numbers: list[str]) -> list[str]:
    return [
        f"<b>LOAD #:</b> {escape(load.load_number)}",
        f"<b>INVOICE #:</b> {escape(load.invoice_number or '-')}",
        f"<b>RELEASE #:</b> {escape(', '.join(release_numbers) or '-')}",
        f"<b>DATE:</b> {document_date(load.shipping_date)}",
    ]


def _product_table(packing: PackingList, cell_style: ParagraphStyle) -> Table:
    data: list[list] = [TABLE_HEADERS]
    for group in packing.groups:
        data.append([
            group.customer_po,
            group.lot_number,
            group.item_number,
            Paragraph(escape(group.description), cell_style),
            format_count(group.quantity),
            group.unit.upper(),
            str(group.pallets),
        ])
    data.append([
        "TOTAL", "", "", "",
        format_count(packing.total_quantity), "",
        str(packing.total_pallets),
    ])

    table = Table(data, colWidths=COL_WIDTHS, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (0, 0), (-1, 0), "CENTER"),
        ("ALIGN", (4, 1), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("BACKGROUND", (0, -1), (-1, -1), TOTAL_FILL),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]))
    return table


def generate_packing_list_pdf(
    packing: PackingList,
    load: LoadInfo,
    destination: Destination,
    client_code: Optional[str] = None,
    client_name: Optional[str] = None,
    sales_person: Optional[str] = None,
) -> tuple[str, bytes]:
    """Render the packing list. Returns ``(filename, pdf_bytes)``."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(letter),
        leftMargin=12 * mm, rightMargin=12 * mm,
        topMargin=12 * mm, bottomMargin=12 * mm,
        title=f"Packing List {load.load_number}",
    )

    styles = getSampleStyleSheet()
    company_style = ParagraphStyle("Company", parent=styles["Normal"], fontSize=14,
                                   fontName="Helvetica-Bold", textColor=HEADER_FILL)
    title_style = ParagraphStyle("PLTitle", parent=styles["Title"], fontSize=20,
                                 alignment=TA_CENTER, spaceAfter=0)
    revision_style = ParagraphStyle("Revision", parent=styles["Normal"], fontSize=8,
                                    alignment=TA_RIGHT, textColor=colors.grey)
    info_style = ParagraphStyle("Info", parent=styles["Normal"], fontSize=10, leading=13)
    meta_style = ParagraphStyle("Meta", parent=info_style, alignment=TA_RIGHT)
    cell_style = ParagraphStyle("Cell", parent=styles["Normal"], fontSize=9, leading=11)

    page_width = landscape(letter)[0] - 24 * mm

    header = Table(
        [[
            Paragraph(escape(COMPANY_NAME), company_style),
            Paragraph("PACKING LIST", title_style),
            Paragraph(escape(PACKING_LIST_REVISION), revision_style),
        ]],
        colWidths=[page_width * 0.3, page_width * 0.4, page_width * 0.3],
    )
    header.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("LINEBELOW", (0, 0), (-1, 0), 1.5, HEADER_FILL),
    ]))

    ship_to = [
        Paragraph(line, info_style)
        for line in _ship_to_lines(destination, client_code, client_name, sales_person)
    ]
    metadata = [Paragraph(line, meta_style) for line in _metadata_lines(load, packing.release_numbers)]
    address_block = Table([[ship_to, metadata]], colWidths=[page_width * 0.6, page_width * 0.4])
    address_block.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))

    elements = [
        header,
        Spacer(1, 6 * mm),
        address_block,
        Spacer(1, 8 * mm),
        _product_table(packing, cell_style),
    ]
    doc.build(elements)

    filename = packing_list_filename(destination.name, load)
    logger.info(
        "Generated packing list %s: %d group(s), %d pallet(s)",
        filename, len(packing.groups), packing.total_pallets,
    )
    return filename, buffer.getvalue()
