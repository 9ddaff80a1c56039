"""Router for shipping-load release workflows and generated documents.

Endpoints
---------
POST /api/loads/{load_id}/release            -- Release selected pallets (optional PDF).
POST /api/loads/{load_id}/hold               -- Put selected pallets on hold.
POST /api/loads/{load_id}/validate-release   -- Check a release PDF against the selection.
GET  /api/loads/{load_id}/pallets/{load_pallet_id}/release-document -- Signed URL of the release PDF.
GET  /api/loads/{load_id}/customs-document   -- Download the customs workbook (.xlsx).
GET  /api/loads/{load_id}/packing-list       -- Download one destination's packing list (.pdf).
"""
from __future__ import annotations

import json
import logging
import os
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import TypeAdapter, ValidationError

from packportal import db, storage
from packportal.config import ALLOWED_PDF_EXTENSIONS, MAX_FILE_SIZE_MB, RELEASE_DOCUMENTS_BUCKET
from packportal.models.extraction import ExpectedProduct, ReleaseValidation
from packportal.models.inventory import LoadPallet
from packportal.models.release import HoldRequest, ReleaseResponse
from packportal.services import load_documents, release as release_engine
from packportal.services.document_extraction import fetch_pdf

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/loads", tags=["loads"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_expected_products_adapter = TypeAdapter(list[ExpectedProduct])

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def read_pdf_upload(file: UploadFile) -> bytes:
    """Read an uploaded PDF, enforcing extension and size.

    Raises ``HTTPException`` 422 on a bad name or empty file, 413 when the
    file is larger than ``MAX_FILE_SIZE_MB``.
    """
    if not file.filename:
        raise HTTPException(status_code=422, detail="Uploaded file has no filename.")
    ext = os.path.splitext(file.filename)[1].lower()
    if ext not in ALLOWED_PDF_EXTENSIONS:
        raise HTTPException(
            status_code=422,
            detail=f"File '{file.filename}' has unsupported extension '{ext}'. Only PDF files are accepted.",
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


def _download(filename: str, content: bytes, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Release / hold
# ---------------------------------------------------------------------------


@router.post("/{load_id}/release", response_model=ReleaseResponse)
async def release_pallets(
    load_id: UUID,
    load_pallet_ids: list[UUID] = Form(default=[]),
    release_number: str = Form(default=""),
    destination: str = Form(default=""),
    file: Optional[UploadFile] = File(default=None),
) -> ReleaseResponse:
    """Release the selected pallets, optionally attaching the authorization PDF."""
    document = None
    if file is not None and file.filename:
        document = release_engine.ReleaseDocument(
            filename=file.filename,
            data=await read_pdf_upload(file),
            content_type=file.content_type or "application/pdf",
        )

    try:
        outcome = await release_engine.release(
            load_id, load_pallet_ids, release_number, destination, document,
        )
    except release_engine.ReleaseValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except release_engine.ReleaseError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    return ReleaseResponse(
        success=True,
        updated=outcome.updated,
        release_number=outcome.release_number,
        destination=outcome.destination,
        release_pdf_url=outcome.release_pdf_url,
        message=f"{outcome.updated} pallet(s) released with release #{outcome.release_number}",
    )


@router.post("/{load_id}/hold", response_model=ReleaseResponse)
async def hold_pallets(load_id: UUID, body: HoldRequest) -> ReleaseResponse:
    try:
        outcome = await release_engine.put_on_hold(body.load_pallet_ids)
    except release_engine.ReleaseValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except release_engine.ReleaseError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    logger.info("Load %s: %d pallet(s) put on hold", load_id, outcome.updated)
    return ReleaseResponse(
        success=True,
        updated=outcome.updated,
        message=f"{outcome.updated} pallet(s) put on hold",
    )


@router.post("/{load_id}/validate-release", response_model=ReleaseValidation)
async def validate_release(
    load_id: UUID,
    expected_products: str = Form(default="[]"),
    file: Optional[UploadFile] = File(default=None),
    pdf_url: Optional[str] = Form(default=None),
) -> ReleaseValidation:
    """Read a release PDF (upload or URL) and match it against the selection.

    ``expected_products`` is a JSON array of ``{pt_code, description,
    customer_lot}``. Extraction problems never fail the request.
    """
    try:
        expected = _expected_products_adapter.validate_python(json.loads(expected_products))
    except (ValueError, ValidationError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid expected_products: {exc}")

    if file is not None and file.filename:
        pdf_bytes = await read_pdf_upload(file)
    elif pdf_url:
        try:
            if pdf_url.startswith("http"):
                pdf_bytes = await fetch_pdf(pdf_url)
            else:
                pdf_bytes = await storage.download_file(pdf_url, RELEASE_DOCUMENTS_BUCKET)
        except Exception:
            logger.warning("Could not download release PDF for load %s", load_id, exc_info=True)
            pdf_bytes = b""
    else:
        raise HTTPException(status_code=422, detail="Provide a PDF file or pdf_url.")

    return await release_engine.validate_against_document(pdf_bytes, expected)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.get("/{load_id}/customs-document")
async def download_customs_document(load_id: UUID) -> Response:
    try:
        filename, content = await load_documents.customs_document_for_load(load_id)
    except load_documents.LoadNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    logger.info("Serving customs document %s for load %s", filename, load_id)
    return _download(filename, content, XLSX_MEDIA_TYPE)


@router.get("/{load_id}/packing-list")
async def download_packing_list(
    load_id: UUID,
    destination: str = Query(..., description="customer_locations.code of the destination"),
    client_name: Optional[str] = Query(default=None),
    sales_person: Optional[str] = Query(default=None),
) -> Response:
    try:
        filename, content = await load_documents.packing_list_for_load(
            load_id, destination, client_name=client_name, sales_person=sales_person,
        )
    except load_documents.LoadNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    logger.info("Serving packing list %s for load %s", filename, load_id)
    return _download(filename, content, "application/pdf")


@router.get("/{load_id}/pallets/{load_pallet_id}/release-document")
async def release_document_url(load_id: UUID, load_pallet_id: UUID) -> dict[str, str]:
    rows = [LoadPallet.model_validate(r) for r in await db.get_load_pallets_by_ids([load_pallet_id])]
    assignment = next((r for r in rows if r.load_id == load_id), None)
    if assignment is None:
        raise HTTPException(status_code=404, detail=f"Pallet {load_pallet_id} is not on load {load_id}")

    url = storage.get_signed_url(assignment.release_pdf_url, RELEASE_DOCUMENTS_BUCKET)
    if not url:
        raise HTTPException(status_code=404, detail="No release document attached to this pallet")
    return {"url": url}
