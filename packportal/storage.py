"""S3-compatible object storage for release, PO and tech-spec documents.

Stored references use the ``"bucket:path"`` format. Legacy rows may still
hold full public URLs (``.../storage/v1/object/public/<bucket>/<path>``);
``parse_bucket_and_path`` understands both. Falls back to local disk when
S3 credentials are not configured (local dev).
"""
from __future__ import annotations

import logging
import os
import re
from urllib.parse import unquote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from packportal.config import S3_ACCESS_KEY, S3_ENDPOINT, S3_REGION, S3_SECRET_KEY

logger = logging.getLogger(__name__)

_PUBLIC_URL_RE = re.compile(r"/storage/v1/object/public/([^/]+)/(.+)$")

_client = None


def _get_client():
    global _client
    if _client is not None:
        return _client

    if not S3_ENDPOINT or not S3_ACCESS_KEY:
        logger.warning("S3 credentials not configured -- storage will use local fallback")
        return None

    _client = boto3.client(
        "s3",
        endpoint_url=S3_ENDPOINT,
        aws_access_key_id=S3_ACCESS_KEY,
        aws_secret_access_key=S3_SECRET_KEY,
        region_name=S3_REGION,
        config=BotoConfig(signature_version="s3v4"),
    )
    logger.info("S3 client initialized: endpoint=%s", S3_ENDPOINT)
    return _client


# ---------------------------------------------------------------------------
# Local fallback (for development without S3)
# ---------------------------------------------------------------------------

_LOCAL_STORAGE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
    "output",
    "storage",
)


def backend_name() -> str:
    """``"s3"`` or ``"local"``, for the health check."""
    return "s3" if S3_ENDPOINT and S3_ACCESS_KEY else "local"


def _local_path(bucket: str, path: str) -> str:
    full_path = os.path.join(_LOCAL_STORAGE_DIR, bucket, path)
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    return full_path


# ---------------------------------------------------------------------------
# Stored-reference helpers
# ---------------------------------------------------------------------------


def build_storage_path(bucket: str, path: str) -> str:
    """Reference persisted in the database for an uploaded object."""
    return f"{bucket}:{path}"


def parse_bucket_and_path(
    stored_value: str, default_bucket: str | None = None,
) -> tuple[str, str] | None:
    """Split a stored reference into ``(bucket, path)``.

    Handles ``bucket:path``, legacy public URLs and, when ``default_bucket``
    is given, plain object paths. Returns None for anything else.
    """
    colon = stored_value.find(":")
    if colon > 0 and not stored_value.startswith("http") and not stored_value.startswith("/"):
        return stored_value[:colon], stored_value[colon + 1:]

    match = _PUBLIC_URL_RE.search(stored_value)
    if match:
        return match.group(1), unquote(match.group(2))

    if default_bucket and not stored_value.startswith("http"):
        return default_bucket, stored_value

    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def upload_file(
    bucket: str, path: str, data: bytes, content_type: str = "application/pdf",
) -> str:
    """Upload an object and return its ``bucket:path`` reference."""
    client = _get_client()

    if client is None:
        local = _local_path(bucket, path)
        with open(local, "wb") as f:
            f.write(data)
        logger.info("Local upload: %s (%d bytes)", local, len(data))
        return build_storage_path(bucket, path)

    try:
        client.put_object(Bucket=bucket, Key=path, Body=data, ContentType=content_type)
    except ClientError:
        logger.exception("S3 upload failed for %s/%s", bucket, path)
        raise
    logger.info("S3 upload: %s/%s (%d bytes)", bucket, path, len(data))
    return build_storage_path(bucket, path)


async def download_file(stored_value: str, default_bucket: str | None = None) -> bytes:
    parsed = parse_bucket_and_path(stored_value, default_bucket)
    if parsed is None:
        raise ValueError(f"Not a storage reference: {stored_value}")
    bucket, path = parsed

    client = _get_client()
    if client is None:
        with open(os.path.join(_LOCAL_STORAGE_DIR, bucket, path), "rb") as f:
            return f.read()

    try:
        response = client.get_object(Bucket=bucket, Key=path)
        return response["Body"].read()
    except ClientError:
        logger.exception("S3 download failed for %s/%s", bucket, path)
        raise


def get_signed_url(
    stored_value: str | None,
    default_bucket: str | None = None,
    expires_in: int = 3600,
) -> str | None:
    """Presigned URL for a stored reference.

    External http URLs that are not storage references are returned as-is.
    """
    if not stored_value:
        return None

    parsed = parse_bucket_and_path(stored_value, default_bucket)
    if parsed is None:
        return stored_value if stored_value.startswith("http") else None

    client = _get_client()
    if client is None:
        bucket, path = parsed
        return f"file://{os.path.join(_LOCAL_STORAGE_DIR, bucket, path)}"

    bucket, path = parsed
    try:
        return client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": path},
            ExpiresIn=expires_in,
        )
    except ClientError:
        logger.exception("Failed to generate presigned URL for %s/%s", bucket, path)
        return stored_value if stored_value.startswith("http") else None
