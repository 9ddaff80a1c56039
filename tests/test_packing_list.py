"""Packing list grouping and PDF tests."""

import pytest

from factories import make_pallet, make_po
from packportal.exporters import generate_packing_list_pdf
from packportal.exporters.packing_list_pdf import packing_list_filename
from packportal.models.inventory import Destination, LoadInfo
from packportal.services.packing_list import build_packing_list, default_customer_po

LOAD = LoadInfo(load_number="L-100", shipping_date="2025-03-15", invoice_number="INV-9")
DESTINATION = Destination(
    code="SAL", name="Salinas DC", address="1 Harvest Rd", city="Salinas", state="CA", zip_code="93901",
)


@pytest.fixture
def pallets():
    return [
        make_pallet(description="A", release_number="R1"),
        make_pallet(description="A", release_number="R1"),
        make_pallet(description="B", customer_lot=None, bfx_order="SO-9", release_number="R2"),
        make_pallet(description="C", customer_lot=None, bfx_order=None, quantity=1000),
    ]


class TestGrouping:

    def test_default_resolver(self):
        assert default_customer_po(make_pallet(customer_lot="PO-5")) == "PO-5"
        assert default_customer_po(make_pallet(customer_lot=None, bfx_order="SO-1")) == "SO-1"
        assert default_customer_po(make_pallet(customer_lot=None, bfx_order=None)) == "-"

    def test_groups_by_po_and_description(self, pallets):
        packing = build_packing_list(pallets, {"PO-1": make_po()})
        keys = [(g.customer_po, g.description) for g in packing.groups]
        assert keys == [("PO-1", "A"), ("SO-9", "B"), ("-", "C")]

        first = packing.groups[0]
        assert first.pallets == 2
        assert first.quantity == 100000
        assert first.lot_number == "SO-100"
        assert first.item_number == "CI-7"
        assert packing.groups[1].lot_number == "-"

    def test_total_pallets_matches_group_counts(self, pallets):
        packing = build_packing_list(pallets, {})
        assert packing.total_pallets == len(pallets)
        assert packing.total_pallets == sum(g.pallets for g in packing.groups)

    def test_unique_release_numbers(self, pallets):
        packing = build_packing_list(pallets, {})
        assert packing.release_numbers == ["R1", "R2"]

    def test_custom_resolver(self, pallets):
        packing = build_packing_list(pallets, {}, resolve_customer_po=lambda p: "ALL")
        assert {g.customer_po for g in packing.groups} == {"ALL"}
        assert len(packing.groups) == 3


class TestPackingListPdf:

    def test_filename_is_sanitized(self):
        assert packing_list_filename("Salinas DC #2", LOAD) == "PL_SALINAS_DC__2_L-100.15.03.2025.pdf"

    def test_renders_pdf(self, pallets):
        packing = build_packing_list(pallets, {"PO-1": make_po()})
        filename, content = generate_packing_list_pdf(
            packing, LOAD, DESTINATION, client_name="Fresh Farms & Co", sales_person="J. Ortega",
        )
        assert filename == "PL_SALINAS_DC_L-100.15.03.2025.pdf"
        assert content.startswith(b"%PDF")
        assert len(content) > 1000
