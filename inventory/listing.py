"""Inventory list view: persisted products, derived stock, and the entry
point for edit sessions.

The view only ever shows what the API returned. After any commit,
successful or not, it re-fetches the product list.
"""

from typing import Any, Dict, List, Optional

import pandas as pd

from inventory.api import APIError
from inventory.config import CURRENCY, LOW_STOCK_THRESHOLD
from inventory.logging_config import get_logger
from inventory.models import Product
from inventory.reconcile import CommitResult, EditSession, ReconciliationEngine

__all__ = [
    "total_stock",
    "thumbnail",
    "stock_badge",
    "format_price",
    "price_label",
    "matches_search",
    "InventoryView",
]

logger = get_logger("listing")

ROW_COLUMNS = ["id", "name", "category", "price", "stock", "stock_badge", "variants", "images"]


def total_stock(product: Product) -> int:
    """Sum of variant stock; the product's own stock when it has no variants."""
    if not product.variants:
        return product.stock or 0
    return sum(v.stock or 0 for v in product.variants)


def thumbnail(product: Product) -> Optional[str]:
    """First general image, else the first image of any kind."""
    general = product.general_images
    if general:
        return general[0].url
    if product.images:
        return product.images[0].url
    return None


def stock_badge(stock: int) -> str:
    if stock <= 0:
        return "out"
    if stock < LOW_STOCK_THRESHOLD:
        return "low"
    return "ok"


def format_price(value: Optional[float], currency: str = CURRENCY) -> str:
    """Whole-unit price with dot thousands separators: 1200 -> '$ 1.200 COP'."""
    amount = int(round(value or 0))
    return f"$ {amount:,}".replace(",", ".") + f" {currency}"


def price_label(product: Product) -> str:
    """Product price, or the min-max range of its variant prices."""
    prices = [v.price for v in product.variants if v.price is not None]
    if not product.variants:
        return format_price(product.price)
    if not prices:
        return "-"
    low, high = min(prices), max(prices)
    if low == high:
        return format_price(low)
    return f"{format_price(low)} - {format_price(high)}"


def matches_search(product: Product, search: str) -> bool:
    """Case-insensitive match on product or category name."""
    needle = search.strip().lower()
    if not needle:
        return True
    category_name = product.category.name if product.category else ""
    return needle in product.name.lower() or needle in category_name.lower()


class InventoryView:
    """Product list backed by the API, plus edit session hand-off."""

    def __init__(self, api, engine: Optional[ReconciliationEngine] = None):
        self.api = api
        self.engine = engine or ReconciliationEngine(api)
        self.products: List[Product] = []

    def reload(self) -> List[Product]:
        self.products = self.api.list_products()
        logger.info(f"Loaded {len(self.products)} products")
        return self.products

    def find(self, product_id: str) -> Optional[Product]:
        for product in self.products:
            if product.id == product_id:
                return product
        return None

    def filtered(self, search: str = "") -> List[Product]:
        return [p for p in self.products if matches_search(p, search)]

    def stats(self) -> Dict[str, int]:
        stocks = [total_stock(p) for p in self.products]
        return {
            "total": len(self.products),
            "with_stock": sum(1 for s in stocks if s > 0),
            "without_stock": sum(1 for s in stocks if s == 0),
        }

    def rows(self, search: str = "") -> List[Dict[str, Any]]:
        rows = []
        for product in self.filtered(search):
            stock = total_stock(product)
            rows.append({
                "id": product.id,
                "name": product.name,
                "category": product.category.name if product.category else "",
                "price": price_label(product),
                "stock": stock,
                "stock_badge": stock_badge(stock),
                "variants": len(product.variants),
                "images": len(product.general_images),
            })
        return rows

    def to_dataframe(self, search: str = "") -> pd.DataFrame:
        return pd.DataFrame(self.rows(search), columns=ROW_COLUMNS)

    # --- editing ---

    def open_editor(self, product_id: str) -> Optional[EditSession]:
        """Seed an edit session from the listed product, or None if unknown."""
        product = self.find(product_id)
        if product is None:
            logger.warning(f"Product {product_id} is not in the current list")
            return None
        return self.engine.begin_edit(product)

    def cancel(self, session: EditSession) -> None:
        self.engine.discard(session)

    def save(self, session: EditSession) -> CommitResult:
        """Commit the session, then re-fetch regardless of the outcome."""
        result = self.engine.commit(session)
        try:
            self.reload()
        except APIError as e:
            logger.warning(f"Reload after save failed, list may be stale: {e}")
        return result
