"""Packing list grouping for one destination of a shipping load."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Mapping

from packportal.models.inventory import Pallet, POInfo

logger = logging.getLogger(__name__)

CustomerPOResolver = Callable[[Pallet], str]


def default_customer_po(pallet: Pallet) -> str:
    return pallet.customer_lot or pallet.bfx_order or "-"


@dataclass
class PackingGroup:
    customer_po: str
    description: str
    unit: str
    lot_number: str = "-"
    item_number: str = "-"
    quantity: int = 0
    pallets: int = 0
    gross_weight: float = 0.0
    net_weight: float = 0.0
    release_numbers: list[str] = field(default_factory=list)


@dataclass
class PackingList:
    groups: list[PackingGroup]
    total_pallets: int
    total_quantity: int
    total_gross_weight: float
    total_net_weight: float
    release_numbers: list[str]


def build_packing_list(
    pallets: list[Pallet],
    po_info: Mapping[str, POInfo],
    resolve_customer_po: CustomerPOResolver = default_customer_po,
) -> PackingList:
    """Group pallets by (resolved customer PO, description).

    ``total_pallets`` is the number of pallet records passed in; it equals
    the sum of the per-group counts whenever grouping is complete.
    """
    groups: dict[tuple[str, str], PackingGroup] = {}

    for pallet in pallets:
        customer_po = resolve_customer_po(pallet)
        key = (customer_po, pallet.description)
        group = groups.get(key)
        if group is None:
            info = po_info.get(customer_po)
            group = PackingGroup(
                customer_po=customer_po,
                description=pallet.description,
                unit=pallet.unit,
                lot_number=(info.sales_order_number if info else None) or "-",
                item_number=(info.customer_item if info else None) or "-",
            )
            groups[key] = group

        group.quantity += pallet.quantity
        group.pallets += 1
        group.gross_weight += pallet.gross_weight or 0
        group.net_weight += pallet.net_weight or 0
        if pallet.release_number and pallet.release_number not in group.release_numbers:
            group.release_numbers.append(pallet.release_number)

    ordered = list(groups.values())
    release_numbers: list[str] = []
    for group in ordered:
        for number in group.release_numbers:
            if number not in release_numbers:
                release_numbers.append(number)

    packing = PackingList(
        groups=ordered,
        total_pallets=len(pallets),
        total_quantity=sum(g.quantity for g in ordered),
        total_gross_weight=sum(g.gross_weight for g in ordered),
        total_net_weight=sum(g.net_weight for g in ordered),
        release_numbers=release_numbers,
    )
    if packing.total_pallets != sum(g.pallets for g in ordered):
        logger.error(
            "Packing list pallet count mismatch: %d record(s) vs %d grouped",
            packing.total_pallets, sum(g.pallets for g in ordered),
        )
    return packing
