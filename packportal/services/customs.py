"""Customs valuation for a shipping load.

Pallets are grouped by description and destination. Each group is priced
from the PO reference data of its first pallet, and the declared customs
value uses a per-kilo rate truncated (not rounded) to two decimals before
being multiplied back by the net weight.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

from packportal.models.inventory import Pallet, POInfo
from packportal.utils import truncate_cents

logger = logging.getLogger(__name__)

FREIGHT_COST = 5000  # USD for a full truck
FULL_LOAD_PALLETS = 24

# Pallets holding fewer boxes/rolls than this are listed by their count.
PARTIAL_PALLET_PIECES = 50

DEFAULT_PIECES_PER_PALLET = 50000
DEFAULT_PIECES_PER_PACKAGE = 1000
DEFAULT_BOXES_PER_PALLET = 50


@dataclass
class PalletLine:
    label: int | str
    gross_weight: float
    net_weight: float


@dataclass
class ProductSummary:
    description: str
    destination: str
    unit: str
    sap_number: str | None
    po_number: str | None
    release_number: str | None
    pieces_per_package: int
    boxes_per_pallet: int
    pieces_per_pallet: int
    price_per_thousand: float
    pallets: list[PalletLine] = field(default_factory=list)
    total_pallets: int = 0
    total_gross_weight: float = 0.0
    total_net_weight: float = 0.0
    total_pieces: int = 0
    total_boxes_or_rolls: int = 0
    total_price: float = 0.0
    customs_equivalent: float = 0.0
    customs_value: float = 0.0

    @property
    def price_per_piece(self) -> float:
        return self.price_per_thousand / 1000

    @property
    def customs_rate(self) -> float:
        """Per-kilo rate actually used for the declared value."""
        return truncate_cents(self.customs_equivalent)

    @property
    def is_bags(self) -> bool:
        return self.unit == "bags"


@dataclass
class CustomsSummary:
    products: list[ProductSummary]
    total_pallets: int
    total_product_value: float
    freight_cost: float
    total_gross_weight: float
    total_net_weight: float
    total_boxes: int
    total_rolls: int

    @property
    def total_with_freight(self) -> float:
        return self.total_product_value + self.freight_cost

    @property
    def destinations(self) -> list[str]:
        return list(dict.fromkeys(p.destination for p in self.products))

    def by_destination(self) -> dict[str, list[ProductSummary]]:
        grouped: dict[str, list[ProductSummary]] = {}
        for product in self.products:
            grouped.setdefault(product.destination, []).append(product)
        return grouped


def group_key(pallet: Pallet) -> str:
    return f"{pallet.description}__{pallet.destination or 'tbd'}"


def is_partial(pallet: Pallet) -> bool:
    return (pallet.pieces or 0) < PARTIAL_PALLET_PIECES


def partial_label(pallet: Pallet) -> str:
    return f"{pallet.pieces or 0} {'bxs' if pallet.unit == 'bags' else 'rolls'}"


def freight_for(total_pallets: int) -> float:
    """Prorated freight for a partial truck.

    A full load (24 pallets or more) computes to zero here.
    """
    if total_pallets < FULL_LOAD_PALLETS:
        return (total_pallets / FULL_LOAD_PALLETS) * FREIGHT_COST
    return 0


def apply_customs_valuation(product: ProductSummary) -> None:
    product.total_price = (product.total_pieces / 1000) * product.price_per_thousand
    if product.total_net_weight > 0:
        product.customs_equivalent = product.total_price / product.total_net_weight
        product.customs_value = truncate_cents(product.customs_equivalent) * product.total_net_weight


def _new_summary(pallet: Pallet, order: POInfo | None) -> ProductSummary:
    price_per_thousand = (order.price_per_thousand if order else None) or 0
    pieces_per_pallet = (order.pieces_per_pallet if order else None) or DEFAULT_PIECES_PER_PALLET
    pieces_per_package = (order.piezas_por_paquete if order else None) or DEFAULT_PIECES_PER_PACKAGE
    return ProductSummary(
        description=pallet.description,
        destination=pallet.destination or "TBD",
        unit=pallet.unit,
        sap_number=order.sales_order_number if order else None,
        po_number=pallet.customer_lot,
        release_number=None,
        pieces_per_package=pieces_per_package,
        boxes_per_pallet=(pieces_per_pallet // pieces_per_package) or DEFAULT_BOXES_PER_PALLET,
        pieces_per_pallet=pieces_per_pallet,
        price_per_thousand=float(price_per_thousand),
    )


def build_customs_summary(
    pallets: list[Pallet],
    order_info: Mapping[str, POInfo],
) -> CustomsSummary:
    """Group, accumulate and value the pallets of a load."""
    groups: dict[str, ProductSummary] = {}

    for pallet in pallets:
        key = group_key(pallet)
        if key not in groups:
            order = order_info.get(pallet.customer_lot) if pallet.customer_lot else None
            groups[key] = _new_summary(pallet, order)
        group = groups[key]

        partial = is_partial(pallet)
        label: int | str = partial_label(pallet) if partial else len(group.pallets) + 1
        group.pallets.append(PalletLine(
            label=label,
            gross_weight=pallet.gross_weight or 0,
            net_weight=pallet.net_weight or 0,
        ))

        group.total_pallets = sum(1 for p in group.pallets if isinstance(p.label, int))
        group.total_gross_weight += pallet.gross_weight or 0
        group.total_net_weight += pallet.net_weight or 0
        group.total_pieces += pallet.quantity
        group.total_boxes_or_rolls += (pallet.pieces or 0) if partial else group.boxes_per_pallet

    products = list(groups.values())
    for product in products:
        apply_customs_valuation(product)

    total_pallets = len(pallets)
    summary = CustomsSummary(
        products=products,
        total_pallets=total_pallets,
        total_product_value=sum(p.total_price for p in products),
        freight_cost=freight_for(total_pallets),
        total_gross_weight=sum(p.total_gross_weight for p in products),
        total_net_weight=sum(p.total_net_weight for p in products),
        total_boxes=sum(p.total_boxes_or_rolls for p in products if p.is_bags),
        total_rolls=sum(p.total_boxes_or_rolls for p in products if not p.is_bags),
    )
    logger.info(
        "Customs summary: %d pallet(s) in %d product group(s), value=%.2f freight=%.2f",
        total_pallets, len(products), summary.total_product_value, summary.freight_cost,
    )
    return summary
