"""Document-extraction adapter used by the release and PO workflows.

Wraps PDF reading and the LLM calls so that every outcome is either an
``ExtractionSuccess`` or an ``ExtractionFailure``. Extraction is an
enhancement: ``validate_release_document`` never raises and degrades to
manual release-number entry when anything goes wrong.
"""
from __future__ import annotations

import logging

import httpx
from thefuzz import fuzz

from packportal.config import ANTHROPIC_API_KEY, EXTRACTION_TIMEOUT_SECONDS
from packportal.models.extraction import (
    ExpectedProduct,
    ExtractedProduct,
    ExtractionFailure,
    ExtractionOutcome,
    ExtractionSuccess,
    ReleaseDocumentFields,
    ReleaseValidation,
)
from packportal.services import llm_extractor
from packportal.services.pdf_processor import read_pdf
from packportal.utils import normalize_code

logger = logging.getLogger(__name__)

# Minimum fuzzy ratio for two product descriptions to count as the same item
_FUZZY_THRESHOLD = 85

MANUAL_ENTRY_MESSAGE = "Could not auto-validate. Please enter release number manually."


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------


async def fetch_pdf(url: str) -> bytes:
    """Download a PDF given by URL (signed storage URL or external link)."""
    async with httpx.AsyncClient(timeout=EXTRACTION_TIMEOUT_SECONDS) as client:
        resp = await client.get(url)
    resp.raise_for_status()
    return resp.content


def _product_label(product: ExpectedProduct) -> str:
    return f"{product.pt_code} - {product.description}".strip(" -")


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def _matches(expected: ExpectedProduct, candidate: ExtractedProduct) -> bool:
    if expected.pt_code and candidate.pt_code:
        if normalize_code(expected.pt_code) == normalize_code(candidate.pt_code):
            return True

    if expected.customer_lot and candidate.customer_lot:
        same_po = normalize_code(expected.customer_lot) == normalize_code(candidate.customer_lot)
    else:
        same_po = None

    if expected.description and candidate.description:
        ratio = fuzz.token_sort_ratio(
            expected.description.upper(), candidate.description.upper(),
        )
        if ratio >= _FUZZY_THRESHOLD and same_po is not False:
            return True

    return False


def match_expected_products(
    expected: list[ExpectedProduct],
    extracted: list[ExtractedProduct],
) -> tuple[list[str], list[str]]:
    """Split expected products into (matched, unmatched) labels.

    A product matches on equal PT code, or on a fuzzy description match
    whose customer PO does not contradict it.
    """
    matched: list[str] = []
    unmatched: list[str] = []
    seen: set[str] = set()

    for product in expected:
        label = _product_label(product)
        if label in seen:
            continue
        seen.add(label)
        if any(_matches(product, c) for c in extracted):
            matched.append(label)
        else:
            unmatched.append(label)

    return matched, unmatched


# ---------------------------------------------------------------------------
# Adapter entry points
# ---------------------------------------------------------------------------


async def extract_release_document(pdf_bytes: bytes) -> ExtractionOutcome:
    if not ANTHROPIC_API_KEY:
        return ExtractionFailure(reason="AI service not configured")
    try:
        pdf = read_pdf(pdf_bytes)
        if not pdf["pages"]:
            return ExtractionFailure(reason="PDF has no readable pages")
        fields = await llm_extractor.extract_release_fields(pdf["pages"])
    except Exception as exc:
        logger.exception("Release document extraction failed")
        return ExtractionFailure(reason=str(exc) or exc.__class__.__name__)
    return ExtractionSuccess(fields=fields)


async def extract_purchase_order(pdf_bytes: bytes) -> ExtractionOutcome:
    if not ANTHROPIC_API_KEY:
        return ExtractionFailure(reason="AI service not configured")
    try:
        pdf = read_pdf(pdf_bytes)
        if not pdf["pages"]:
            return ExtractionFailure(reason="PDF has no readable pages")
        fields = await llm_extractor.extract_po_fields(pdf["pages"])
    except Exception as exc:
        logger.exception("Purchase order extraction failed")
        return ExtractionFailure(reason=str(exc) or exc.__class__.__name__)

    if not fields.po_number and not fields.product_code:
        return ExtractionFailure(
            reason="Could not extract data from PDF. Please check the document format.",
        )
    return ExtractionSuccess(fields=fields)


async def validate_release_document(
    pdf_bytes: bytes,
    expected_products: list[ExpectedProduct],
) -> ReleaseValidation:
    """Corroborate a release PDF against the pallets being released.

    Never raises: on any failure the result is valid with no release
    number so the operator can type it in.
    """
    outcome = await extract_release_document(pdf_bytes)

    if isinstance(outcome, ExtractionFailure):
        logger.warning("Release validation degraded to manual entry: %s", outcome.reason)
        return ReleaseValidation(valid=True, message=MANUAL_ENTRY_MESSAGE)

    fields = outcome.fields
    if not isinstance(fields, ReleaseDocumentFields):
        return ReleaseValidation(valid=True, message=MANUAL_ENTRY_MESSAGE)

    matched, unmatched = match_expected_products(expected_products, fields.products)
    valid = not unmatched

    if not fields.release_number:
        message = "No release number found in the document. Please enter it manually."
    elif valid:
        message = f"Release {fields.release_number} covers all {len(matched)} product(s)."
    else:
        message = (
            f"Release {fields.release_number} does not mention "
            f"{len(unmatched)} of the selected product(s)."
        )

    logger.info(
        "Release validation: release=%s matched=%d unmatched=%d",
        fields.release_number, len(matched), len(unmatched),
    )
    return ReleaseValidation(
        valid=valid,
        release_number=fields.release_number,
        matched_products=matched,
        unmatched_products=unmatched,
        message=message,
    )
