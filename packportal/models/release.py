"""Request / response models for the release and hold endpoints."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class HoldRequest(BaseModel):
    load_pallet_ids: list[UUID] = Field(..., description="Rows of load_pallets to put on hold")


class ReleaseResponse(BaseModel):
    success: bool
    updated: int
    release_number: Optional[str] = None
    destination: Optional[str] = None
    release_pdf_url: Optional[str] = None
    message: str = ""


class POExtractionResponse(BaseModel):
    success: bool
    storage_path: Optional[str] = None
    data: Optional[dict] = None
    error: Optional[str] = None


class BulkImportResult(BaseModel):
    updated: int = 0
    errors: int = 0
    message: str = ""
