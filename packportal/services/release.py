"""Release / hold operations on the pallets of a shipping load.

Each operation validates its input before touching the store and then
issues exactly one batched update for the whole selection. Releasing
always clears the hold flag; putting on hold never clears a release
number, so a pallet can end up both released and on hold.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from uuid import UUID

from packportal import db, storage
from packportal.config import RELEASE_DOCUMENTS_BUCKET
from packportal.models.extraction import ExpectedProduct, ReleaseValidation
from packportal.services import document_extraction

logger = logging.getLogger(__name__)


class ReleaseValidationError(ValueError):
    """Missing or invalid input; nothing was written."""


class ReleaseError(RuntimeError):
    """The store or the object storage rejected the operation."""


@dataclass
class ReleaseDocument:
    filename: str
    data: bytes
    content_type: str = "application/pdf"


@dataclass
class ReleaseOutcome:
    updated: int
    release_number: str | None = None
    destination: str | None = None
    release_pdf_url: str | None = None


def validate_release_input(
    load_pallet_ids: list[UUID], release_number: str | None, destination: str | None,
) -> tuple[str, str]:
    """Return the cleaned (release_number, destination) or raise."""
    if not load_pallet_ids:
        raise ReleaseValidationError("Please select at least one pallet")
    cleaned = (release_number or "").strip()
    if not cleaned:
        raise ReleaseValidationError("Please enter a release number")
    if not destination or not destination.strip():
        raise ReleaseValidationError("Please select a destination")
    return cleaned, destination.strip()


def release_document_path(load_id: UUID, filename: str) -> str:
    return f"batch-releases/{load_id}/{int(time.time() * 1000)}_{filename}"


async def release(
    load_id: UUID,
    load_pallet_ids: list[UUID],
    release_number: str | None,
    destination: str | None,
    document: ReleaseDocument | None = None,
) -> ReleaseOutcome:
    """Release the selected pallets to ``destination``.

    The optional authorization PDF is uploaded first; the pallet rows are
    then updated in one statement with the release number, destination,
    ``is_on_hold = False`` and the document reference when there is one.
    """
    release_number, destination = validate_release_input(
        load_pallet_ids, release_number, destination,
    )

    storage_path: str | None = None
    if document is not None:
        if not document.data:
            raise ReleaseValidationError(f"File '{document.filename}' is empty")
        path = release_document_path(load_id, document.filename)
        try:
            storage_path = await storage.upload_file(
                RELEASE_DOCUMENTS_BUCKET, path, document.data, document.content_type,
            )
        except Exception as exc:
            logger.exception("Release document upload failed for load %s", load_id)
            raise ReleaseError("Failed to upload release document") from exc

    fields: dict[str, object] = {
        "release_number": release_number,
        "destination": destination,
        "is_on_hold": False,
    }
    if storage_path:
        fields["release_pdf_url"] = storage_path

    try:
        updated = await db.update_load_pallets(load_pallet_ids, fields)
    except Exception as exc:
        logger.exception("Releasing %d pallet(s) of load %s failed", len(load_pallet_ids), load_id)
        raise ReleaseError("Failed to release pallets") from exc

    logger.info(
        "Released %d pallet(s) of load %s to %s (release %s)",
        updated, load_id, destination, release_number,
    )
    return ReleaseOutcome(
        updated=updated,
        release_number=release_number,
        destination=destination,
        release_pdf_url=storage_path,
    )


async def put_on_hold(load_pallet_ids: list[UUID]) -> ReleaseOutcome:
    """Flag the selected pallets as on hold. Release data is left untouched."""
    if not load_pallet_ids:
        raise ReleaseValidationError("Please select at least one pallet")

    try:
        updated = await db.update_load_pallets(load_pallet_ids, {"is_on_hold": True})
    except Exception as exc:
        logger.exception("Putting %d pallet(s) on hold failed", len(load_pallet_ids))
        raise ReleaseError("Failed to update pallets") from exc

    logger.info("Placed %d pallet(s) on hold", updated)
    return ReleaseOutcome(updated=updated)


async def validate_against_document(
    pdf_bytes: bytes, expected_products: list[ExpectedProduct],
) -> ReleaseValidation:
    """Corroborate an authorization PDF before releasing. Never raises."""
    return await document_extraction.validate_release_document(pdf_bytes, expected_products)
