import os
from dotenv import load_dotenv

load_dotenv()

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
MAX_FILE_SIZE_MB = 20
ALLOWED_PDF_EXTENSIONS = {".pdf"}
ALLOWED_SHEET_EXTENSIONS = {".xlsx"}
LLM_MODEL_TEXT = "claude-haiku-4-5-20251001"
LLM_MODEL_VISION = "claude-sonnet-4-5-20250929"
LLM_MAX_TOKENS = 4096
EXTRACTION_TIMEOUT_SECONDS = float(os.getenv("EXTRACTION_TIMEOUT_SECONDS", "60"))

# Database (PostgreSQL)
DATABASE_URL = os.getenv("DATABASE_URL", "")

# S3-compatible object storage
S3_ENDPOINT = os.getenv("S3_ENDPOINT", "")
S3_ACCESS_KEY = os.getenv("S3_ACCESS_KEY", "")
S3_SECRET_KEY = os.getenv("S3_SECRET_KEY", "")
S3_REGION = os.getenv("S3_REGION", "us-east-1")
RELEASE_DOCUMENTS_BUCKET = "release-documents"
PO_DOCUMENTS_BUCKET = "po-documents"

# Internal SAP endpoints (plant network)
SAP_ENDPOINT = os.getenv("SAP_ENDPOINT", "http://172.16.10.31/api/vwStockDestiny")
DESTINY_DATOS_ENDPOINT = os.getenv("DESTINY_DATOS_ENDPOINT", "http://172.16.10.31/api/DestinyDatos")
SAP_TIMEOUT_SECONDS = 30
INSERT_BATCH_SIZE = 500

# Printed documents
COMPANY_NAME = os.getenv("COMPANY_NAME", "PACKAGING SOLUTIONS")
PACKING_LIST_REVISION = os.getenv("PACKING_LIST_REVISION", "FT-EM-07 REV. 02")
