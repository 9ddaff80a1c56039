"""Pydantic models for the document-extraction adapter.

Every adapter call returns ``ExtractionSuccess`` or ``ExtractionFailure``;
the ``status`` literal is the discriminator so callers never inspect raw
LLM payloads.
"""
from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ExpectedProduct(BaseModel):
    pt_code: str = ""
    description: str = ""
    customer_lot: Optional[str] = None


class ExtractedProduct(BaseModel):
    pt_code: Optional[str] = None
    description: Optional[str] = None
    customer_lot: Optional[str] = None
    quantity: Optional[float] = None


class ReleaseDocumentFields(BaseModel):
    kind: Literal["release"] = "release"
    release_number: Optional[str] = None
    destination: Optional[str] = None
    products: list[ExtractedProduct] = Field(default_factory=list)


class POFields(BaseModel):
    kind: Literal["purchase_order"] = "purchase_order"
    po_number: Optional[str] = None
    po_date: Optional[str] = None
    requested_delivery_date: Optional[str] = None
    product_code: Optional[str] = None
    item_id_code: Optional[str] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    total_price: Optional[float] = None
    notes: Optional[str] = None


class ExtractionSuccess(BaseModel):
    status: Literal["success"] = "success"
    fields: Annotated[Union[ReleaseDocumentFields, POFields], Field(discriminator="kind")]


class ExtractionFailure(BaseModel):
    status: Literal["failure"] = "failure"
    reason: str


ExtractionOutcome = Annotated[
    Union[ExtractionSuccess, ExtractionFailure], Field(discriminator="status")
]


class ReleaseValidation(BaseModel):
    """What the release dialog shows after checking an authorization PDF."""
    valid: bool = True
    release_number: Optional[str] = None
    matched_products: list[str] = Field(default_factory=list)
    unmatched_products: list[str] = Field(default_factory=list)
    message: str = ""
