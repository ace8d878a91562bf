"""Configuration and constants for the inventory admin client."""

import os
from pathlib import Path
from typing import Dict, Set, Tuple

from dotenv import load_dotenv

__all__ = [
    "API_URL",
    "HEADERS",
    "REQUEST_TIMEOUT",
    "MAX_RETRIES",
    "RETRY_BACKOFF_BASE",
    "MAX_RETRY_BACKOFF",
    "RETRY_STATUS_CODES",
    "COMMIT_MAX_WORKERS",
    "MAX_GENERAL_IMAGES",
    "MAX_IMAGE_SIZE",
    "ALLOWED_IMAGE_TYPES",
    "PREVIEW_DIR",
    "PREVIEW_SIZE",
    "LOW_STOCK_THRESHOLD",
    "CURRENCY",
    "LOG_DIR",
]

# Determine project root (parent of the 'inventory' package)
_THIS_DIR = Path(__file__).parent
_PROJECT_ROOT = _THIS_DIR.parent

load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

# Backend API base URL (no trailing slash)
API_URL = os.getenv("INVENTORY_API_URL", "http://localhost:8000").rstrip("/")

HEADERS = {
    "Accept": "application/json",
    "User-Agent": "inventory-admin/0.1.0",
}

# Request timeouts (seconds)
REQUEST_TIMEOUT = int(os.getenv("INVENTORY_REQUEST_TIMEOUT", "15"))

# Retry settings with exponential backoff.
# Only reads are retried; writes go out exactly once per commit.
MAX_RETRIES = int(os.getenv("INVENTORY_MAX_RETRIES", "3"))
RETRY_BACKOFF_BASE = 2.0  # 2^attempt seconds
MAX_RETRY_BACKOFF = 30.0
RETRY_STATUS_CODES: Set[int] = {429, 500, 502, 503, 504}

# Worker pool width for the concurrent calls inside one commit step
COMMIT_MAX_WORKERS = int(os.getenv("INVENTORY_COMMIT_WORKERS", "4"))

# Image staging limits (matches the upload picker: 10 files, 10MB each)
MAX_GENERAL_IMAGES = 10
MAX_IMAGE_SIZE = 10 * 1024 * 1024

# Pillow format name -> MIME type sent with the upload
ALLOWED_IMAGE_TYPES: Dict[str, str] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}

# Local preview thumbnails for staged images
PREVIEW_DIR = Path(os.getenv("INVENTORY_PREVIEW_DIR", str(_PROJECT_ROOT / "tmp" / "previews")))
PREVIEW_SIZE: Tuple[int, int] = (320, 320)

# List view
LOW_STOCK_THRESHOLD = 5
CURRENCY = "COP"

# Daily JSONL commit traces
LOG_DIR = Path(os.getenv("INVENTORY_LOG_DIR", str(_PROJECT_ROOT / "logs")))
