"""Shared fixtures for the inventory test suite."""

import threading
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

import pytest
from PIL import Image

from inventory.api import APIError
from inventory.assets import PreviewStore, StagedBinary
from inventory.models import Category, ImageRecord, Product, Variant
from inventory.reconcile import ReconciliationEngine


def make_image_bytes(color=(200, 30, 30), size=(40, 40), fmt: str = "PNG") -> bytes:
    """Render a small solid-color image in the given format."""
    output = BytesIO()
    Image.new("RGB", size, color).save(output, format=fmt)
    return output.getvalue()


class RecordingAPI:
    """Stand-in for ProductAPI that records calls instead of sending them.

    `fail_on` holds method names, or (method, first_arg) pairs, that raise
    APIError when called.
    """

    def __init__(self, products: Optional[List[Product]] = None, categories=None, fail_on=()):
        self.products = list(products or [])
        self.categories = list(categories or [])
        self.fail_on = set(fail_on)
        self.calls: List[Tuple[str, Tuple[Any, ...], Dict[str, Any]]] = []
        self.list_calls = 0
        self._lock = threading.Lock()

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self.calls.append((method, args, kwargs))
        if method in self.fail_on or (args and (method, args[0]) in self.fail_on):
            raise APIError(f"{method} failed: HTTP 500", status_code=500, operation=method)

    @property
    def methods(self) -> List[str]:
        return [call[0] for call in self.calls]

    def calls_to(self, method: str) -> List[Tuple[Tuple[Any, ...], Dict[str, Any]]]:
        return [(args, kwargs) for name, args, kwargs in self.calls if name == method]

    # --- reads ---

    def list_products(self) -> List[Product]:
        self.list_calls += 1
        if "list_products" in self.fail_on:
            raise APIError("list_products failed: HTTP 503", status_code=503, operation="list_products")
        return list(self.products)

    def list_categories(self) -> List[Category]:
        return list(self.categories)

    # --- writes ---

    def update_product_fields(self, product_id, fields):
        self._record("update_product_fields", product_id, fields)

    def delete_image(self, image_id):
        self._record("delete_image", image_id)

    def add_image(self, product_id, binary, variant_id=None):
        self._record("add_image", product_id, binary, variant_id=variant_id)
        return {"id": f"new-{binary.filename}", "url": f"http://cdn/{binary.filename}"}

    def update_variant_fields(self, variant_id, fields):
        self._record("update_variant_fields", variant_id, fields)

    def delete_variant(self, variant_id):
        self._record("delete_variant", variant_id)

    def set_variant_image(self, variant_id, product_id, binary):
        self._record("set_variant_image", variant_id, product_id, binary)
        return {"url": f"http://cdn/{binary.filename}"}

    def create_variant(self, product_id, option_key, option_value, price=0, stock=0, binary=None):
        self._record(
            "create_variant",
            product_id,
            option_key=option_key,
            option_value=option_value,
            price=price,
            stock=stock,
            binary=binary,
        )
        return {"id": "v-new", "image_url": None}


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest.fixture
def binary(png_bytes):
    return StagedBinary.from_bytes(png_bytes, "front.png")


@pytest.fixture
def other_binary():
    return StagedBinary.from_bytes(make_image_bytes((10, 120, 10), fmt="JPEG"), "side.jpg")


@pytest.fixture
def previews(tmp_path):
    store = PreviewStore(tmp_path / "previews", size=(16, 16))
    yield store
    store.release_all()


@pytest.fixture
def categories():
    return [
        Category(id="c1", name="Food"),
        Category(id="c2", name="Drinks"),
        Category(id="c3", name="Juices", parent_id="c2"),
        Category(id="c4", name="Snacks", parent_id="c1"),
    ]


@pytest.fixture
def product(categories):
    """Product with two general images and two variants, one with an image."""
    return Product(
        id="p1",
        name="Arepa Mix",
        description="Pre-cooked corn flour",
        price=1000,
        stock=10,
        category=categories[0],
        variants=[
            Variant(id="v1", options={"Flavor": "Classic"}, price=1000, stock=4),
            Variant(id="v2", options={"Flavor": "Cheese"}, price=1500, stock=0),
        ],
        images=[
            ImageRecord(id="img1", url="http://cdn/img1.jpg"),
            ImageRecord(id="img2", url="http://cdn/img2.jpg"),
            ImageRecord(id="img3", url="http://cdn/v1.jpg", variant_id="v1"),
        ],
    )


@pytest.fixture
def api(product, categories):
    return RecordingAPI(products=[product], categories=categories)


@pytest.fixture
def engine(api, previews):
    return ReconciliationEngine(api, previews=previews, max_workers=4)


@pytest.fixture
def session(engine, product):
    return engine.begin_edit(product)
