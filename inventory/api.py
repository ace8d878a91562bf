"""HTTP client for the product API.

Thin wrappers around the backend endpoints the editor needs. Reads are
retried with exponential backoff; writes go out exactly once and any
failure is raised as `APIError`.
"""

import random
import time
from typing import Any, Dict, List, Optional

import requests  # type: ignore[import-untyped]

from inventory.assets import StagedBinary
from inventory.config import (
    API_URL,
    HEADERS,
    MAX_RETRIES,
    MAX_RETRY_BACKOFF,
    REQUEST_TIMEOUT,
    RETRY_BACKOFF_BASE,
    RETRY_STATUS_CODES,
)
from inventory.logging_config import get_logger
from inventory.models import Category, Product

__all__ = ["APIError", "ProductAPI", "create_session"]

logger = get_logger("api")


class APIError(Exception):
    """A remote call failed (network error or non-2xx response)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.operation = operation


def create_session() -> requests.Session:
    """Create a requests Session with connection pooling and JSON headers."""
    session = requests.Session()
    session.headers.update(HEADERS)
    return session


def _error_detail(resp: requests.Response) -> Optional[str]:
    """The server's 'detail' message, when the error body is JSON."""
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return None


def _json(resp: requests.Response) -> Any:
    if not resp.content:
        return {}
    try:
        return resp.json()
    except ValueError:
        return {}


def _form_number(value: float) -> str:
    """Form field text for a number: 500.0 -> "500", 12.5 -> "12.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _backoff(attempt: int) -> float:
    return min(RETRY_BACKOFF_BASE ** attempt, MAX_RETRY_BACKOFF) + random.uniform(0, 1)


class ProductAPI:
    """Client for the products, variants, images and categories endpoints."""

    def __init__(
        self,
        base_url: str = API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or create_session()
        self.timeout = timeout
        self.max_retries = max_retries

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        retry: bool = False,
        **kwargs: Any,
    ) -> requests.Response:
        """Send one request and return the successful response.

        Args:
            operation: Name used in logs and errors (e.g. 'delete_variant')
            method: HTTP method
            path: Path below the base URL
            retry: Retry on connection errors, timeouts and RETRY_STATUS_CODES

        Raises:
            APIError: On any failure once retries (if enabled) are exhausted
        """
        url = f"{self.base_url}{path}"
        attempts = self.max_retries + 1 if retry else 1

        for attempt in range(attempts):
            can_retry = attempt < attempts - 1
            try:
                resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                if can_retry:
                    backoff = _backoff(attempt)
                    logger.warning(
                        f"{operation}: {type(e).__name__}, backing off {backoff:.1f}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(backoff)
                    continue
                logger.error(f"{operation}: {method} {url} failed: {e}")
                raise APIError(
                    f"{operation} failed: {e}. Check your connection and try again.",
                    operation=operation,
                ) from e
            except requests.exceptions.RequestException as e:
                logger.error(f"{operation}: {method} {url} failed: {e}")
                raise APIError(f"{operation} failed: {e}", operation=operation) from e

            if resp.status_code in RETRY_STATUS_CODES and can_retry:
                backoff = _backoff(attempt)
                logger.warning(
                    f"{operation}: received {resp.status_code}, backing off {backoff:.1f}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                time.sleep(backoff)
                continue

            if not resp.ok:
                detail = _error_detail(resp)
                logger.error(f"{operation}: {method} {url} -> HTTP {resp.status_code} {detail or resp.reason}")
                raise APIError(
                    f"{operation} failed: HTTP {resp.status_code} {detail or resp.reason or ''}".strip(),
                    status_code=resp.status_code,
                    detail=detail,
                    operation=operation,
                )
            return resp

        # Only reachable with attempts == 0
        raise APIError(f"{operation} failed: no attempts made", operation=operation)

    # --- reads ---

    def list_products(self) -> List[Product]:
        resp = self._request("list_products", "GET", "/products/", retry=True)
        return [Product.from_dict(item) for item in _json(resp) or []]

    def list_categories(self) -> List[Category]:
        resp = self._request("list_categories", "GET", "/categories", retry=True)
        return [Category.from_dict(item) for item in _json(resp) or []]

    # --- product ---

    def update_product_fields(self, product_id: str, fields: Dict[str, Any]) -> None:
        """PATCH only the given fields (name, description, price, stock, category_id)."""
        self._request("update_product_fields", "PATCH", f"/products/{product_id}", json=fields)

    # --- images ---

    def delete_image(self, image_id: str) -> None:
        self._request("delete_image", "DELETE", f"/products/images/{image_id}")

    def add_image(
        self, product_id: str, binary: StagedBinary, variant_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Upload an image; returns the created record ({'id', 'url'})."""
        data = {"variant_id": variant_id} if variant_id else None
        resp = self._request(
            "add_image",
            "POST",
            f"/products/{product_id}/images",
            data=data,
            files={"image": binary.as_upload()},
        )
        return _json(resp)

    # --- variants ---

    def update_variant_fields(self, variant_id: str, fields: Dict[str, Any]) -> None:
        """PATCH only the given fields (options, price, stock)."""
        self._request("update_variant_fields", "PATCH", f"/products/variants/{variant_id}", json=fields)

    def delete_variant(self, variant_id: str) -> None:
        self._request("delete_variant", "DELETE", f"/products/variants/{variant_id}")

    def set_variant_image(self, variant_id: str, product_id: str, binary: StagedBinary) -> Dict[str, Any]:
        """Upload or replace the variant's image; returns {'url'}."""
        resp = self._request(
            "set_variant_image",
            "POST",
            f"/products/variants/{variant_id}/image",
            data={"product_id": product_id},
            files={"image": binary.as_upload()},
        )
        return _json(resp)

    def create_variant(
        self,
        product_id: str,
        option_key: str,
        option_value: str,
        price: float = 0,
        stock: int = 0,
        binary: Optional[StagedBinary] = None,
    ) -> Dict[str, Any]:
        """Create a variant, with its image in the same request when given."""
        data = {
            "option_key": option_key,
            "option_value": option_value,
            "price": _form_number(price),
            "stock": _form_number(stock),
        }
        files = {"image": binary.as_upload()} if binary is not None else None
        resp = self._request(
            "create_variant",
            "POST",
            f"/products/{product_id}/variants",
            data=data,
            files=files,
        )
        return _json(resp)
