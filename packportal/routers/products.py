"""Router for bulk product maintenance.

Endpoints
---------
GET  /api/products/export   -- Download every product as an editable .xlsx.
POST /api/products/import   -- Apply an edited export, row by row.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response

from packportal.models.release import BulkImportResult
from packportal.routers.inventory import read_sheet_upload
from packportal.routers.loads import XLSX_MEDIA_TYPE
from packportal.services import bulk_products

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])


@router.get("/export")
async def export_products() -> Response:
    try:
        filename, content = await bulk_products.export_products()
    except Exception:
        logger.exception("Product export failed")
        raise HTTPException(status_code=502, detail="Failed to export products")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=BulkImportResult)
async def import_products(file: UploadFile = File(...)) -> BulkImportResult:
    contents = await read_sheet_upload(file)
    try:
        return await bulk_products.import_products(contents)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
