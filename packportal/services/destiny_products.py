"""Product catalog from the internal ``DestinyDatos`` endpoint."""
from __future__ import annotations

import logging
import math
import re
from typing import Any, Optional

import httpx

from packportal.config import DESTINY_DATOS_ENDPOINT
from packportal.models.inventory import DestinyProduct
from packportal.services.sap_sync import fetch_json_array
from packportal.utils import normalize_code

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")

# Checked in order; the first keyword found in tipoEmpaque wins.
_PRODUCT_LINES: list[tuple[tuple[str, ...], str]] = [
    (("wicket",), "bag_wicket"),
    (("sello lateral",), "bag_no_wicket_zipper"),
    (("zipper",), "bag_zipper"),
    (("bobina",), "film"),
    (("stand up pouch", "laminado"), "pouch"),
]


def map_tipo_empaque(tipo_empaque: Optional[str]) -> Optional[str]:
    """Packaging type from SAP to a product line, or None when unknown."""
    if not tipo_empaque:
        return None
    lowered = tipo_empaque.lower()
    for keywords, line in _PRODUCT_LINES:
        if any(k in lowered for k in keywords):
            return line
    return None


def split_nombre_producto(value: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """``"CI-123 Wicket bag 8x4"`` -> ``("CI-123", "Wicket bag 8x4")``."""
    normalized = _WS_RE.sub(" ", (value or "").strip())
    if not normalized:
        return None, None
    item, _, description = normalized.partition(" ")
    return item, description.strip() or None


def _nullable_number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def _nullable_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def parse_destiny_item(item: dict[str, Any]) -> DestinyProduct:
    per_pallet = _nullable_number(item.get("unidadesPorTarima"))
    per_box = _nullable_number(item.get("piezasTotalePorCaja"))
    customer_item, description = split_nombre_producto(_nullable_text(item.get("nombreProducto")))
    tipo = _nullable_text(item.get("tipoEmpaque"))
    return DestinyProduct(
        codigoProducto=_nullable_text(item.get("codigoProducto")),
        customer_item=customer_item,
        item_description=description,
        printCard=_nullable_text(item.get("printCard")),
        tipoEmpaque=tipo,
        product_line=map_tipo_empaque(tipo),
        unidadesPorTarima=per_pallet,
        piezasTotalePorCaja=per_box,
        paquetePorCaja=_nullable_number(item.get("paquetePorCaja")),
        piezasPorPaquete=_nullable_number(item.get("piezasPorPaquete")),
        piecesPerPallet=per_pallet * per_box if per_pallet is not None and per_box is not None else None,
    )


async def fetch_destiny_products(
    client: Optional[httpx.AsyncClient] = None,
    endpoint: str = DESTINY_DATOS_ENDPOINT,
) -> list[DestinyProduct]:
    payload = await fetch_json_array(endpoint, client, source="DestinyDatos")
    products = [parse_destiny_item(item) for item in payload if isinstance(item, dict)]
    logger.info("DestinyDatos returned %d product(s)", len(products))
    return products


def find_destiny_product(
    products: list[DestinyProduct], code: Optional[str],
) -> Optional[DestinyProduct]:
    """Look up a product by ``codigoProducto`` (trimmed, case-insensitive)."""
    wanted = normalize_code(code)
    if not wanted:
        return None
    for product in products:
        if normalize_code(product.codigoProducto) == wanted:
            return product
    return None
