"""LLM-based field extraction from release authorizations and purchase orders.

Sends extracted text (or rendered page images for scans) to Anthropic
Claude and parses the JSON reply into typed models. The SDK client is
synchronous, so calls run in the default executor.
"""
from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
from functools import partial
from typing import Any

import anthropic

from packportal.config import (
    ANTHROPIC_API_KEY,
    EXTRACTION_TIMEOUT_SECONDS,
    LLM_MAX_TOKENS,
    LLM_MODEL_TEXT,
    LLM_MODEL_VISION,
)
from packportal.models.extraction import ExtractedProduct, POFields, ReleaseDocumentFields

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Anthropic client (synchronous -- wrapped in asyncio below)
# ---------------------------------------------------------------------------
_client = anthropic.Anthropic(api_key=ANTHROPIC_API_KEY, timeout=EXTRACTION_TIMEOUT_SECONDS)

# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

_RELEASE_PROMPT = """\
You are reading a customer's shipment release authorization for a packaging \
manufacturer (bags, pouches and film shipped on pallets).

INSTRUCTIONS:
- Find the release number (often labeled "Release #", "Release No.", "Rel#" or "Authorization").
- List every product line the document authorizes for shipment.
- For each product extract the PT code (internal code, usually starting with "PT"), \
the description, the customer PO number and the quantity if shown.
- If a field is not present set it to null. Do not guess.

Return ONLY a valid JSON object (no markdown fences, no commentary):
{
  "release_number": "R-45871",
  "destination": "Salinas",
  "products": [
    {"pt_code": "PT-10422", "description": "Wicket bag 8x4x16", "customer_lot": "4500123456", "quantity": 250000}
  ]
}
"""

_PO_PROMPT = """\
You are a data extraction assistant that extracts purchase order information \
from PDF documents. Be precise with numbers and dates.

Extract:
1. PO Number (often labeled "PO #", "Customer PO" or "Destiny PO#")
2. PO Date (YYYY-MM-DD)
3. Requested Delivery Date (YYYY-MM-DD or null)
4. Item/Product Code (the vendor item number or product SKU)
5. Item ID Code (look for "ID#" followed by a code like "62036-11/61494-16NZ")
6. Quantity as a number (1,250,000 -> 1250000)
7. Unit Price (price per thousand or per unit) as a number or null
8. Total Price as a number or null
9. Notes (special instructions) or null

Return ONLY a valid JSON object (no markdown fences, no commentary):
{
  "po_number": "string",
  "po_date": "YYYY-MM-DD",
  "requested_delivery_date": "YYYY-MM-DD or null",
  "product_code": "string",
  "item_id_code": "string or null",
  "quantity": 0,
  "unit_price": null,
  "total_price": null,
  "notes": null
}
"""

_RETRY_PROMPT = """\
Your previous response was not valid JSON. Please try again.
Return ONLY a raw JSON object (no markdown code fences, no extra text) \
following the schema I described earlier. If you are unsure about a field, \
set its value to null.
"""

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)

# ---------------------------------------------------------------------------
# Content builders
# ---------------------------------------------------------------------------


def _build_text_user_message(pages_data: list[dict[str, Any]], purpose: str) -> str:
    parts: list[str] = [f"Extract {purpose} data from the following document pages:\n"]

    for page in pages_data:
        page_num = page.get("page_num", "?")
        parts.append(f"\n--- PAGE {page_num} ---\n")
        if page.get("text"):
            parts.append(page["text"])
        for t_idx, table in enumerate(page.get("tables") or []):
            parts.append(f"\n[Table {t_idx + 1} on page {page_num}]")
            for row in table:
                parts.append(" | ".join(str(c) if c else "" for c in row))

    return "\n".join(parts)


def _build_vision_content_blocks(
    pages_data: list[dict[str, Any]], purpose: str,
) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = [{
        "type": "text",
        "text": f"Extract {purpose} data from the following scanned document pages:",
    }]
    for page in pages_data:
        image_bytes: bytes | None = page.get("image_bytes")
        if not image_bytes:
            continue
        blocks.append({
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": "image/png",
                "data": base64.standard_b64encode(image_bytes).decode("ascii"),
            },
        })
    return blocks


def extract_json_from_response(text: str) -> dict[str, Any]:
    """Pull the JSON object out of a model reply.

    Tolerates markdown fences and leading/trailing prose. Raises
    ``ValueError`` (or ``json.JSONDecodeError``) when no object is found.
    """
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object in LLM response")
    data = json.loads(text[start:end + 1])
    if not isinstance(data, dict):
        raise ValueError("LLM response JSON is not an object")
    return data


# ---------------------------------------------------------------------------
# Core LLM calls (synchronous, to be run in executor)
# ---------------------------------------------------------------------------


def _call_llm(
    model: str,
    system_prompt: str,
    user_content: str | list[dict[str, Any]],
    max_tokens: int,
) -> str:
    response = _client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system_prompt,
        messages=[{"role": "user", "content": user_content}],
    )
    return response.content[0].text


def _call_retry(
    model: str,
    system_prompt: str,
    original_message: Any,
    max_tokens: int,
) -> str:
    messages = [
        {"role": "user", "content": original_message},
        {"role": "assistant", "content": "I apologize, let me provide the correct JSON."},
        {"role": "user", "content": _RETRY_PROMPT},
    ]
    response = _client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system_prompt,
        messages=messages,
    )
    return response.content[0].text


async def _run_extraction(
    pages_data: list[dict[str, Any]],
    system_prompt: str,
    purpose: str,
) -> dict[str, Any]:
    """One extraction round trip with a single JSON-repair retry."""
    loop = asyncio.get_running_loop()

    is_vision = any(p.get("image_bytes") for p in pages_data)
    if is_vision:
        user_content: str | list[dict[str, Any]] = _build_vision_content_blocks(pages_data, purpose)
        model = LLM_MODEL_VISION
    else:
        user_content = _build_text_user_message(pages_data, purpose)
        model = LLM_MODEL_TEXT

    raw = await loop.run_in_executor(
        None, partial(_call_llm, model, system_prompt, user_content, LLM_MAX_TOKENS),
    )
    logger.info("%s LLM response: %d chars from %s", purpose, len(raw), model)

    try:
        return extract_json_from_response(raw)
    except (json.JSONDecodeError, ValueError) as first_err:
        logger.warning("%s JSON parse failed (%s), retrying", purpose, first_err)
        retry = await loop.run_in_executor(
            None, partial(_call_retry, model, system_prompt, user_content, LLM_MAX_TOKENS),
        )
        return extract_json_from_response(retry)


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in ("null", "none", "n/a"):
        return None
    return text or None


def _num_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").replace("$", "").strip())
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Public async interface
# ---------------------------------------------------------------------------


async def extract_release_fields(pages_data: list[dict[str, Any]]) -> ReleaseDocumentFields:
    """Release number, destination and product lines from a release PDF."""
    raw = await _run_extraction(pages_data, _RELEASE_PROMPT, "release authorization")
    products = [
        ExtractedProduct(
            pt_code=_str_or_none(p.get("pt_code")),
            description=_str_or_none(p.get("description")),
            customer_lot=_str_or_none(p.get("customer_lot")),
            quantity=_num_or_none(p.get("quantity")),
        )
        for p in (raw.get("products") or [])
        if isinstance(p, dict)
    ]
    return ReleaseDocumentFields(
        release_number=_str_or_none(raw.get("release_number")),
        destination=_str_or_none(raw.get("destination")),
        products=products,
    )


async def extract_po_fields(pages_data: list[dict[str, Any]]) -> POFields:
    """Header fields of a customer purchase order."""
    raw = await _run_extraction(pages_data, _PO_PROMPT, "purchase order")
    return POFields(
        po_number=_str_or_none(raw.get("po_number")),
        po_date=_str_or_none(raw.get("po_date")),
        requested_delivery_date=_str_or_none(raw.get("requested_delivery_date")),
        product_code=_str_or_none(raw.get("product_code")),
        item_id_code=_str_or_none(raw.get("item_id_code")),
        quantity=_num_or_none(raw.get("quantity")),
        unit_price=_num_or_none(raw.get("unit_price")),
        total_price=_num_or_none(raw.get("total_price")),
        notes=_str_or_none(raw.get("notes")),
    )
