"""Turn an uploaded PDF into pages the extraction prompts can consume.

Uses PyMuPDF (fitz) to decide whether a release authorization or PO is a
text PDF or a scan, pdfplumber for text + tables, and PyMuPDF again to
render scanned pages for the vision model.
"""
from __future__ import annotations

import io
import logging
from typing import Any

import fitz  # PyMuPDF
import pdfplumber

logger = logging.getLogger(__name__)

# Characters a page needs before we trust its text layer.
_TEXT_THRESHOLD = 50

# Release letters and POs are short; never send more than this to the LLM.
MAX_PAGES = 10


def _is_text_based(pdf_bytes: bytes) -> bool:
    """True when every page has a usable text layer."""
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            for page in doc:
                text = page.get_text("text") or ""
                if len(text.strip()) <= _TEXT_THRESHOLD:
                    return False
        return True
    except Exception:
        logger.exception("Could not inspect PDF text layer with PyMuPDF")
        return False


def _text_pages(pdf_bytes: bytes) -> list[dict[str, Any]]:
    pages: list[dict[str, Any]] = []
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        for idx, page in enumerate(pdf.pages[:MAX_PAGES]):
            tables = [
                [[str(cell).strip() if cell is not None else None for cell in row] for row in table]
                for table in (page.extract_tables() or [])
            ]
            pages.append({
                "page_num": idx + 1,
                "text": page.extract_text() or "",
                "tables": tables,
                "image_bytes": None,
            })
    return pages


def _image_pages(pdf_bytes: bytes) -> list[dict[str, Any]]:
    pages: list[dict[str, Any]] = []
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        for idx, page in enumerate(doc):
            if idx >= MAX_PAGES:
                break
            # 2x zoom keeps small print legible for the vision model.
            pixmap = page.get_pixmap(matrix=fitz.Matrix(2.0, 2.0))
            pages.append({
                "page_num": idx + 1,
                "text": "",
                "tables": [],
                "image_bytes": pixmap.tobytes(output="png"),
            })
    return pages


def read_pdf(file_bytes: bytes) -> dict[str, Any]:
    """Classify and read a PDF.

    Returns ``{"is_text_based": bool, "pages": [...]}`` where each page has
    ``page_num``, ``text``, ``tables`` and ``image_bytes`` (PNG, scans only).
    Raises ``ValueError`` on empty input; parsing errors propagate.
    """
    if not file_bytes:
        raise ValueError("PDF is empty")

    text_based = _is_text_based(file_bytes)
    pages = _text_pages(file_bytes) if text_based else _image_pages(file_bytes)
    logger.info(
        "Read %d page(s) from %s PDF (%d bytes)",
        len(pages), "text" if text_based else "scanned", len(file_bytes),
    )
    return {"is_text_based": text_based, "pages": pages}
