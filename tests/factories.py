"""Builders for test data."""

from __future__ import annotations

import io
from typing import Any

from openpyxl import Workbook

from packportal.models.inventory import Pallet, POInfo


def make_pallet(**overrides: Any) -> Pallet:
    data: dict[str, Any] = {
        "pt_code": "PT-10422",
        "description": "WICKET BAG 8X4X16",
        "destination": "salinas",
        "quantity": 50000,
        "gross_weight": 420.0,
        "net_weight": 400.0,
        "pieces": 50,
        "unit": "bags",
        "customer_lot": "PO-1",
    }
    data.update(overrides)
    return Pallet(**data)


def make_po(**overrides: Any) -> POInfo:
    data: dict[str, Any] = {
        "customer_lot": "PO-1",
        "sales_order_number": "SO-100",
        "price_per_thousand": 20.0,
        "pieces_per_pallet": 50000,
        "piezas_por_paquete": 1000,
        "customer_item": "CI-7",
    }
    data.update(overrides)
    return POInfo(**data)


def xlsx_bytes(header: list[str], rows: list[list[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
