"""Router for inventory reconciliation.

Endpoints
---------
POST /api/inventory/sync-sap          -- Replace the snapshot from the SAP feed.
POST /api/inventory/upload            -- Replace available pallets from an .xlsx export.
GET  /api/inventory/destiny-products  -- Product catalog from DestinyDatos (optional ?code=).
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, UploadFile

from packportal.config import ALLOWED_SHEET_EXTENSIONS, MAX_FILE_SIZE_MB
from packportal.models.inventory import DestinyProduct, InventoryUploadResult, SyncResult
from packportal.services import destiny_products, inventory_upload, sap_sync

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


async def read_sheet_upload(file: UploadFile) -> bytes:
    if not file.filename:
        raise HTTPException(status_code=422, detail="Uploaded file has no filename.")
    ext = os.path.splitext(file.filename)[1].lower()
    if ext not in ALLOWED_SHEET_EXTENSIONS:
        raise HTTPException(
            status_code=422,
            detail=f"File '{file.filename}' has unsupported extension '{ext}'. "
                   f"Allowed: {', '.join(sorted(ALLOWED_SHEET_EXTENSIONS))}",
        )
    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=422, detail=f"File '{file.filename}' is empty.")
    if len(contents) > MAX_FILE_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=413,
            detail=f"File '{file.filename}' exceeds the {MAX_FILE_SIZE_MB} MB limit.",
        )
    return contents


@router.post("/sync-sap", response_model=SyncResult)
async def sync_sap() -> SyncResult:
    try:
        return await sap_sync.sync_sap_inventory()
    except sap_sync.SapSyncError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@router.post("/upload", response_model=InventoryUploadResult)
async def upload_inventory(file: UploadFile = File(...)) -> InventoryUploadResult:
    contents = await read_sheet_upload(file)
    try:
        result = await inventory_upload.upload_inventory(contents)
    except inventory_upload.InventoryUploadError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except Exception:
        logger.exception("Inventory upload of '%s' failed", file.filename)
        raise HTTPException(status_code=502, detail="Failed to upload inventory file")
    return result


@router.get("/destiny-products", response_model=list[DestinyProduct])
async def list_destiny_products(
    code: Optional[str] = Query(default=None, description="codigoProducto to look up"),
) -> list[DestinyProduct]:
    try:
        products = await destiny_products.fetch_destiny_products()
    except sap_sync.SapSyncError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    if code is None:
        return products
    match = destiny_products.find_destiny_product(products, code)
    if match is None:
        raise HTTPException(status_code=404, detail=f"Product '{code}' not found in DestinyDatos")
    return [match]
