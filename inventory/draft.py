"""The product draft: one edit session's buffer of unsaved changes.

A `ProductDraft` is seeded from a persisted `Product` and holds the
scalar fields, the general image collection and the variant drafts.
`snapshot()` freezes the current state for the reconciliation engine, so
edits made while a commit is running never leak into it.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from inventory.assets import AssetRef, PreviewStore, StagedBinary
from inventory.config import MAX_GENERAL_IMAGES
from inventory.fields import clean_id, clean_text, parse_price, parse_stock
from inventory.logging_config import get_logger
from inventory.models import ImageRecord, Product
from inventory.variants import (
    ExistingVariantDraft,
    NewVariantDraft,
    SessionClosedError,
    VariantDraftSet,
)

__all__ = ["SCALAR_FIELDS", "GeneralImages", "DraftSnapshot", "ProductDraft"]

logger = get_logger("draft")

SCALAR_FIELDS = ("name", "description", "price", "stock", "category_id")

_COERCE = {
    "name": clean_text,
    "description": clean_text,
    "price": parse_price,
    "stock": parse_stock,
    "category_id": clean_id,
}


def _scalar_values(product: Product) -> Dict[str, Any]:
    return {
        "name": clean_text(product.name),
        "description": clean_text(product.description),
        "price": parse_price(product.price),
        "stock": parse_stock(product.stock),
        "category_id": clean_id(product.category_id),
    }


class GeneralImages:
    """Persisted general images plus pending removals and staged uploads."""

    def __init__(
        self,
        previews: PreviewStore,
        persisted: Iterable[ImageRecord] = (),
        max_staged: int = MAX_GENERAL_IMAGES,
    ):
        self._previews = previews
        self._persisted: Tuple[ImageRecord, ...] = tuple(persisted)
        self._removed: List[str] = []
        self._staged: List[AssetRef] = []
        self.max_staged = max_staged
        self._closed = False

    @property
    def persisted(self) -> Tuple[ImageRecord, ...]:
        return self._persisted

    @property
    def removed_ids(self) -> Tuple[str, ...]:
        return tuple(self._removed)

    @property
    def staged(self) -> Tuple[AssetRef, ...]:
        return tuple(self._staged)

    @property
    def visible(self) -> Tuple[ImageRecord, ...]:
        return tuple(img for img in self._persisted if img.id not in self._removed)

    @property
    def total(self) -> int:
        return len(self.visible) + len(self._staged)

    def close(self) -> None:
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError("Images of a closed edit session cannot be changed")

    def remove(self, image_id: str) -> bool:
        self._check_open()
        if image_id in self._removed or not any(img.id == image_id for img in self._persisted):
            logger.debug(f"Image {image_id} is not a visible general image")
            return False
        self._removed.append(image_id)
        return True

    def restore(self, image_id: str) -> bool:
        self._check_open()
        if image_id not in self._removed:
            return False
        self._removed.remove(image_id)
        return True

    def stage(self, binary: StagedBinary) -> bool:
        """Stage one upload. Selections beyond `max_staged` are dropped."""
        self._check_open()
        if len(self._staged) >= self.max_staged:
            logger.info(f"Ignoring {binary.filename}: at most {self.max_staged} new images per save")
            return False
        self._staged.append(AssetRef.empty().stage(binary, self._previews))
        return True

    def stage_many(self, binaries: Iterable[StagedBinary]) -> int:
        return sum(1 for binary in binaries if self.stage(binary))

    def unstage(self, index: int) -> bool:
        self._check_open()
        if not 0 <= index < len(self._staged):
            return False
        self._staged.pop(index).release(self._previews)
        return True

    def release_previews(self) -> None:
        self._staged = [ref.release(self._previews) for ref in self._staged]


@dataclass(frozen=True)
class DraftSnapshot:
    """Immutable view of a draft at the moment a commit starts."""

    product: Product
    name: Optional[str]
    description: Optional[str]
    price: Optional[float]
    stock: Optional[int]
    category_id: Optional[str]
    removed_image_ids: Tuple[str, ...]
    staged_images: Tuple[StagedBinary, ...]
    existing_variants: Tuple[ExistingVariantDraft, ...]
    new_variants: Tuple[NewVariantDraft, ...]

    @property
    def product_id(self) -> str:
        return self.product.id

    def changed_fields(self) -> Dict[str, Any]:
        """Scalar fields set to a value different from the product's.

        Unset (None) fields are omitted so the server keeps its value.
        """
        original = _scalar_values(self.product)
        changes: Dict[str, Any] = {}
        for name in SCALAR_FIELDS:
            value = getattr(self, name)
            if value is not None and value != original[name]:
                changes[name] = value
        return changes


class ProductDraft:
    """Edit buffer for one product. Owned by exactly one edit session."""

    def __init__(self, product: Product, previews: PreviewStore):
        self.product = product
        self._previews = previews
        self._values: Dict[str, Any] = _scalar_values(product)
        self.images = GeneralImages(previews, product.general_images)
        self.variants = VariantDraftSet.seed(product, previews)
        self._closed = False

    @property
    def name(self) -> Optional[str]:
        return self._values["name"]

    @property
    def description(self) -> Optional[str]:
        return self._values["description"]

    @property
    def price(self) -> Optional[float]:
        return self._values["price"]

    @property
    def stock(self) -> Optional[int]:
        return self._values["stock"]

    @property
    def category_id(self) -> Optional[str]:
        return self._values["category_id"]

    def set_field(self, name: str, value: Any) -> None:
        """Set one scalar field from editor input. Blank input means unset."""
        if self._closed:
            raise SessionClosedError(f"Edit session for product {self.product.id} is closed")
        coerce = _COERCE.get(name)
        if coerce is None:
            logger.debug(f"Ignoring unknown product field: {name}")
            return
        self._values[name] = coerce(value)

    def update(self, **fields: Any) -> None:
        for name, value in fields.items():
            self.set_field(name, value)

    @property
    def price_is_optional(self) -> bool:
        """Product price/stock are optional once the product has variants."""
        return self.variants.total > 0

    def snapshot(self) -> DraftSnapshot:
        return DraftSnapshot(
            product=self.product,
            removed_image_ids=self.images.removed_ids,
            staged_images=tuple(ref.binary for ref in self.images.staged if ref.binary is not None),
            existing_variants=self.variants.existing,
            new_variants=self.variants.new,
            **self._values,
        )

    def pending_changes(self) -> Dict[str, Any]:
        """Counts for the unsaved-changes banner."""
        snapshot = self.snapshot()
        return {
            "fields": sorted(snapshot.changed_fields()),
            "images_added": len(snapshot.staged_images),
            "images_removed": len(snapshot.removed_image_ids),
            "variants_added": sum(1 for d in snapshot.new_variants if d.is_complete),
            "variants_deleted": sum(1 for d in snapshot.existing_variants if d.marked_for_delete),
            "variant_images_changed": sum(
                1
                for d in snapshot.existing_variants
                if not d.marked_for_delete and (d.image.is_staged or d.image.removed_id)
            ),
        }

    def release_previews(self) -> None:
        self.images.release_previews()
        self.variants.release_previews()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Reject further edits. Previews stay until `release_previews`."""
        self._closed = True
        self.images.close()
        self.variants.close()
