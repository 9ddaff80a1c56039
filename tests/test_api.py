"""HTTP-level tests for the routers (database and storage faked)."""

import json
import uuid
from datetime import datetime, timezone

import pytest

from factories import xlsx_bytes
from packportal.models.extraction import ExtractionFailure, ExtractionSuccess, POFields, ReleaseValidation
from packportal.models.inventory import SyncResult
from packportal.routers import loads as loads_router
from packportal.routers import orders as orders_router
from packportal.services import destiny_products, release as release_engine, sap_sync

LOAD_ID = uuid.UUID("9a7e0c55-0000-4000-8000-000000000003")

pytestmark = [pytest.mark.asyncio, pytest.mark.api]


async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    # lifespan is not run by the test client, so no pool exists
    assert body["database"] == "unavailable"


class TestReleaseEndpoints:

    async def test_release_with_document(self, client, fake_db, uploads):
        ids = fake_db.add_load_pallets(LOAD_ID, 2)
        resp = await client.post(
            f"/api/loads/{LOAD_ID}/release",
            data={
                "load_pallet_ids": [str(i) for i in ids],
                "release_number": "R-45871",
                "destination": "salinas",
            },
            files={"file": ("auth.pdf", b"%PDF-1.4 body", "application/pdf")},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["updated"] == 2
        assert body["release_pdf_url"].startswith(f"release-documents:batch-releases/{LOAD_ID}/")
        assert len(uploads) == 1

    async def test_release_without_selection(self, client, fake_db):
        resp = await client.post(
            f"/api/loads/{LOAD_ID}/release",
            data={"release_number": "R-1", "destination": "salinas"},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Please select at least one pallet"
        assert fake_db.update_calls == []

    async def test_release_rejects_non_pdf(self, client, fake_db, uploads):
        ids = fake_db.add_load_pallets(LOAD_ID, 1)
        resp = await client.post(
            f"/api/loads/{LOAD_ID}/release",
            data={"load_pallet_ids": [str(ids[0])], "release_number": "R-1", "destination": "salinas"},
            files={"file": ("auth.docx", b"PK..", "application/octet-stream")},
        )
        assert resp.status_code == 422
        assert uploads == []
        assert fake_db.update_calls == []

    async def test_release_store_failure_is_502(self, client, fake_db):
        ids = fake_db.add_load_pallets(LOAD_ID, 1)
        fake_db.fail_updates = True
        resp = await client.post(
            f"/api/loads/{LOAD_ID}/release",
            data={"load_pallet_ids": [str(ids[0])], "release_number": "R-1", "destination": "salinas"},
        )
        assert resp.status_code == 502

    async def test_hold(self, client, fake_db):
        ids = fake_db.add_load_pallets(LOAD_ID, 3)
        resp = await client.post(
            f"/api/loads/{LOAD_ID}/hold", json={"load_pallet_ids": [str(i) for i in ids]},
        )
        assert resp.status_code == 200
        assert resp.json()["updated"] == 3
        assert all(fake_db.load_pallets[i]["is_on_hold"] for i in ids)

    async def test_validate_release_needs_a_document(self, client):
        resp = await client.post(f"/api/loads/{LOAD_ID}/validate-release", data={"expected_products": "[]"})
        assert resp.status_code == 422

    async def test_validate_release_bad_expected_products(self, client):
        resp = await client.post(
            f"/api/loads/{LOAD_ID}/validate-release",
            data={"expected_products": "{not json", "pdf_url": "x.pdf"},
        )
        assert resp.status_code == 422

    async def test_validate_release_download_failure_degrades(self, client, monkeypatch):
        async def broken_download(stored_value, default_bucket=None):
            raise FileNotFoundError(stored_value)

        seen = {}

        async def fake_validate(pdf_bytes, expected):
            seen["pdf_bytes"] = pdf_bytes
            seen["expected"] = expected
            return ReleaseValidation(valid=True, message="manual")

        monkeypatch.setattr(loads_router.storage, "download_file", broken_download)
        monkeypatch.setattr(release_engine, "validate_against_document", fake_validate)
        resp = await client.post(
            f"/api/loads/{LOAD_ID}/validate-release",
            data={
                "expected_products": json.dumps([{"pt_code": "PT-1", "description": "Bag"}]),
                "pdf_url": "batch-releases/x/1_auth.pdf",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["valid"] is True
        assert seen["pdf_bytes"] == b""
        assert seen["expected"][0].pt_code == "PT-1"

    async def test_release_document_url(self, client, fake_db, monkeypatch):
        ids = fake_db.add_load_pallets(LOAD_ID, 1)
        fake_db.load_pallets[ids[0]]["release_pdf_url"] = "https://customer.example.com/rel.pdf"
        monkeypatch.setattr(loads_router.storage, "_get_client", lambda: None)

        resp = await client.get(f"/api/loads/{LOAD_ID}/pallets/{ids[0]}/release-document")
        assert resp.status_code == 200
        assert resp.json() == {"url": "https://customer.example.com/rel.pdf"}

    async def test_release_document_missing(self, client, fake_db):
        ids = fake_db.add_load_pallets(LOAD_ID, 1)
        resp = await client.get(f"/api/loads/{LOAD_ID}/pallets/{ids[0]}/release-document")
        assert resp.status_code == 404


class TestDocumentEndpoints:

    async def test_customs_document_unknown_load(self, client, fake_db):
        resp = await client.get(f"/api/loads/{LOAD_ID}/customs-document")
        assert resp.status_code == 404

    async def test_customs_document_download(self, client, fake_db):
        fake_db.loads[LOAD_ID] = {"load_number": "L-7", "shipping_date": "2025-03-15"}
        fake_db.document_pallets[LOAD_ID] = [{
            "description": "WICKET BAG", "destination": "SAL", "quantity": 50000,
            "gross_weight": 420, "net_weight": 400, "pieces": 50, "unit": "bags",
        }]
        resp = await client.get(f"/api/loads/{LOAD_ID}/customs-document")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(loads_router.XLSX_MEDIA_TYPE)
        assert 'filename="L-7.15.03.2025.xlsx"' in resp.headers["content-disposition"]

    async def test_packing_list_download(self, client, fake_db):
        fake_db.loads[LOAD_ID] = {"load_number": "L-7", "shipping_date": "2025-03-15"}
        fake_db.document_pallets[LOAD_ID] = [{
            "pt_code": "PT-1", "description": "WICKET BAG", "destination": "SAL", "quantity": 50000,
            "gross_weight": 420, "net_weight": 400, "pieces": 50, "unit": "bags", "customer_lot": "PO-1",
        }]
        fake_db.destinations["SAL"] = {"code": "SAL", "name": "Salinas DC", "city": "Salinas", "state": "CA"}
        resp = await client.get(f"/api/loads/{LOAD_ID}/packing-list", params={"destination": "SAL"})
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/pdf"
        assert 'filename="PL_SALINAS_DC_L-7.15.03.2025.pdf"' in resp.headers["content-disposition"]
        assert resp.content.startswith(b"%PDF")

    async def test_packing_list_requires_destination(self, client, fake_db):
        resp = await client.get(f"/api/loads/{LOAD_ID}/packing-list")
        assert resp.status_code == 422


class TestInventoryEndpoints:

    async def test_sync_sap(self, client, monkeypatch):
        async def fake_sync():
            return SyncResult(success=True, count=12, synced_at=datetime(2025, 3, 15, tzinfo=timezone.utc))

        monkeypatch.setattr(sap_sync, "sync_sap_inventory", fake_sync)
        resp = await client.post("/api/inventory/sync-sap")
        assert resp.status_code == 200
        assert resp.json()["count"] == 12

    async def test_sync_sap_unavailable(self, client, monkeypatch):
        async def fake_sync():
            raise sap_sync.SapSyncError("SAP API unavailable (status: 503)")

        monkeypatch.setattr(sap_sync, "sync_sap_inventory", fake_sync)
        resp = await client.post("/api/inventory/sync-sap")
        assert resp.status_code == 502
        assert resp.json()["detail"] == "SAP API unavailable (status: 503)"

    async def test_upload_rejects_csv(self, client, fake_db):
        resp = await client.post(
            "/api/inventory/upload", files={"file": ("stock.csv", b"PT,Stock\n", "text/csv")},
        )
        assert resp.status_code == 422
        assert fake_db.replaced_with is None

    async def test_upload(self, client, fake_db):
        content = xlsx_bytes(["PT", "Stock"], [["PT-1", 2]])
        resp = await client.post(
            "/api/inventory/upload", files={"file": ("stock.xlsx", content, "application/octet-stream")},
        )
        assert resp.status_code == 200
        assert resp.json() == {"count": 1, "replaced": 3}

    async def test_destiny_product_not_found(self, client, monkeypatch):
        async def fake_fetch():
            return [destiny_products.parse_destiny_item({"codigoProducto": "PT-1"})]

        monkeypatch.setattr(destiny_products, "fetch_destiny_products", fake_fetch)
        resp = await client.get("/api/inventory/destiny-products", params={"code": "PT-2"})
        assert resp.status_code == 404
        resp = await client.get("/api/inventory/destiny-products", params={"code": "pt-1"})
        assert resp.json()[0]["codigoProducto"] == "PT-1"


class TestOrderEndpoints:

    async def test_extract_po(self, client, uploads, monkeypatch):
        async def fake_extract(data):
            return ExtractionSuccess(fields=POFields(po_number="4500123456", quantity=250000))

        monkeypatch.setattr(orders_router, "extract_purchase_order", fake_extract)
        resp = await client.post(
            "/api/orders/extract-po", files={"file": ("PO 123.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["data"]["po_number"] == "4500123456"
        assert "kind" not in body["data"]
        assert uploads[0][0] == "po-documents"
        assert uploads[0][1].endswith("_PO 123.pdf")

    async def test_extract_po_failure_keeps_storage_path(self, client, uploads, monkeypatch):
        async def fake_extract(data):
            return ExtractionFailure(reason="AI service not configured")

        monkeypatch.setattr(orders_router, "extract_purchase_order", fake_extract)
        resp = await client.post(
            "/api/orders/extract-po", files={"file": ("po.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["error"] == "AI service not configured"
        assert detail["storage_path"].startswith("po-documents:")


class TestProductEndpoints:

    async def test_export(self, client, fake_db):
        resp = await client.get("/api/products/export")
        assert resp.status_code == 200
        assert "products_export_" in resp.headers["content-disposition"]

    async def test_import_unreadable(self, client, fake_db):
        resp = await client.post(
            "/api/products/import", files={"file": ("products.xlsx", b"garbage", "application/octet-stream")},
        )
        assert resp.status_code == 422
        assert resp.json()["detail"] == "Could not parse the Excel file."
