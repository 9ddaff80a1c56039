"""Router for purchase-order PDF intake.

Endpoints
---------
POST /api/orders/extract-po   -- Store a PO PDF and extract its header fields.
"""
from __future__ import annotations

import logging
import time

from fastapi import APIRouter, File, HTTPException, UploadFile

from packportal import storage
from packportal.config import PO_DOCUMENTS_BUCKET
from packportal.models.extraction import ExtractionFailure
from packportal.models.release import POExtractionResponse
from packportal.routers.loads import read_pdf_upload
from packportal.services.document_extraction import extract_purchase_order

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("/extract-po", response_model=POExtractionResponse)
async def extract_po(file: UploadFile = File(...)) -> POExtractionResponse:
    """Upload the PO PDF to storage, then pull PO fields out of it.

    The stored reference is returned even when extraction fails so the
    operator can fill the order in by hand.
    """
    contents = await read_pdf_upload(file)

    path = f"{int(time.time() * 1000)}_{file.filename}"
    try:
        storage_path = await storage.upload_file(
            PO_DOCUMENTS_BUCKET, path, contents, "application/pdf",
        )
    except Exception:
        logger.exception("PO upload failed for '%s'", file.filename)
        raise HTTPException(status_code=502, detail="Failed to upload PO document")

    outcome = await extract_purchase_order(contents)
    if isinstance(outcome, ExtractionFailure):
        logger.warning("PO extraction failed for %s: %s", storage_path, outcome.reason)
        raise HTTPException(
            status_code=422,
            detail={"error": outcome.reason, "storage_path": storage_path},
        )

    return POExtractionResponse(
        success=True,
        storage_path=storage_path,
        data=outcome.fields.model_dump(exclude={"kind"}),
    )
