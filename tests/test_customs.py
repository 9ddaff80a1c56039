"""Customs grouping and valuation tests."""

import pytest

from factories import make_pallet, make_po
from packportal.services.customs import build_customs_summary, freight_for


class TestGrouping:
    """Pallets are grouped by description and destination."""

    def test_missing_destination_groups_as_tbd(self):
        summary = build_customs_summary(
            [make_pallet(destination=None), make_pallet(destination="")],
            {},
        )
        assert len(summary.products) == 1
        assert summary.products[0].destination == "TBD"

    def test_same_description_different_destination_splits(self):
        summary = build_customs_summary(
            [make_pallet(destination="salinas"), make_pallet(destination="yuma")],
            {},
        )
        assert [p.destination for p in summary.products] == ["salinas", "yuma"]

    def test_pricing_comes_from_first_pallet_lot(self):
        summary = build_customs_summary(
            [make_pallet(customer_lot="PO-1"), make_pallet(customer_lot="PO-2")],
            {"PO-1": make_po(), "PO-2": make_po(customer_lot="PO-2", price_per_thousand=99)},
        )
        product = summary.products[0]
        assert product.price_per_thousand == 20.0
        assert product.sap_number == "SO-100"
        assert product.po_number == "PO-1"


class TestPalletLabels:
    """Partial pallets are listed by their count instead of a number."""

    def test_full_and_partial_labels(self):
        summary = build_customs_summary(
            [
                make_pallet(pieces=50),
                make_pallet(pieces=50),
                make_pallet(pieces=12, quantity=12000, net_weight=100.0, gross_weight=110.0),
            ],
            {"PO-1": make_po()},
        )
        product = summary.products[0]
        assert [line.label for line in product.pallets] == [1, 2, "12 bxs"]
        assert product.total_pallets == 2

    def test_full_pallet_number_follows_position(self):
        summary = build_customs_summary(
            [make_pallet(pieces=12), make_pallet(pieces=60)],
            {},
        )
        assert [line.label for line in summary.products[0].pallets] == ["12 bxs", 2]

    def test_rolls_label(self):
        summary = build_customs_summary(
            [make_pallet(unit="Impressions", pieces=5)],
            {},
        )
        assert summary.products[0].pallets[0].label == "5 rolls"

    def test_missing_pieces_is_partial(self):
        summary = build_customs_summary([make_pallet(pieces=None)], {})
        product = summary.products[0]
        assert product.pallets[0].label == "0 bxs"
        assert product.total_pallets == 0
        assert product.total_boxes_or_rolls == 0


class TestValuation:
    """Price, customs equivalent and truncated customs value."""

    def test_end_to_end_load(self):
        pallets = [
            make_pallet(pieces=50),
            make_pallet(pieces=50),
            make_pallet(pieces=12, quantity=12000, net_weight=100.0, gross_weight=110.0),
        ]
        summary = build_customs_summary(pallets, {"PO-1": make_po()})
        product = summary.products[0]

        assert product.boxes_per_pallet == 50
        assert product.total_boxes_or_rolls == 2 * 50 + 12
        assert product.total_pieces == 112000
        assert product.total_price == pytest.approx(2240.0)
        assert product.total_net_weight == pytest.approx(900.0)
        assert product.total_gross_weight == pytest.approx(950.0)
        assert product.customs_equivalent == pytest.approx(2240.0 / 900.0)
        assert product.customs_rate == pytest.approx(2.48)
        assert product.customs_value == pytest.approx(2.48 * 900.0)

        assert summary.total_pallets == 3
        assert summary.total_boxes == 112
        assert summary.total_rolls == 0
        assert summary.freight_cost == pytest.approx(625.0)
        assert summary.total_with_freight == pytest.approx(2865.0)

    def test_customs_rate_is_truncated_not_rounded(self):
        # 1000 pieces at 12.349 per thousand over 1 kg -> rate 12.349
        summary = build_customs_summary(
            [make_pallet(quantity=1000, net_weight=1.0)],
            {"PO-1": make_po(price_per_thousand=12.349)},
        )
        product = summary.products[0]
        assert product.customs_rate == pytest.approx(12.34)
        assert product.customs_value == pytest.approx(12.34)

    def test_zero_net_weight_skips_customs(self):
        summary = build_customs_summary(
            [make_pallet(net_weight=None)],
            {"PO-1": make_po()},
        )
        product = summary.products[0]
        assert product.total_price == pytest.approx(1000.0)
        assert product.customs_equivalent == 0
        assert product.customs_value == 0

    def test_defaults_without_po(self):
        summary = build_customs_summary([make_pallet(customer_lot=None)], {})
        product = summary.products[0]
        assert product.price_per_thousand == 0
        assert product.pieces_per_pallet == 50000
        assert product.pieces_per_package == 1000
        assert product.boxes_per_pallet == 50
        assert product.total_price == 0
        assert product.sap_number is None

    def test_boxes_per_pallet_falls_back_to_50(self):
        summary = build_customs_summary(
            [make_pallet()],
            {"PO-1": make_po(pieces_per_pallet=500, piezas_por_paquete=1000)},
        )
        assert summary.products[0].boxes_per_pallet == 50

    def test_boxes_and_rolls_totals_split_by_unit(self):
        summary = build_customs_summary(
            [
                make_pallet(description="BAG", pieces=20),
                make_pallet(description="FILM", unit="Impressions", pieces=8),
            ],
            {},
        )
        assert summary.total_boxes == 20
        assert summary.total_rolls == 8


class TestFreight:
    """Freight is prorated below a full truck."""

    def test_half_truck(self):
        assert freight_for(12) == pytest.approx(2500.0)

    def test_full_truck_is_zero(self):
        assert freight_for(24) == 0

    def test_over_full_truck_is_zero(self):
        assert freight_for(30) == 0

    def test_summary_counts_every_pallet_record(self):
        pallets = [make_pallet(pieces=10) for _ in range(6)]
        summary = build_customs_summary(pallets, {})
        assert summary.total_pallets == 6
        assert summary.freight_cost == pytest.approx(1250.0)
