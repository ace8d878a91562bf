"""Data models for records returned by the product API."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

__all__ = ["Category", "ImageRecord", "Variant", "Product"]


@dataclass(frozen=True)
class Category:
    """A catalog category. Subcategories point at their main category."""

    id: str
    name: str
    description: Optional[str] = None
    parent_id: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            description=data.get("description"),
            parent_id=str(data["parent_id"]) if data.get("parent_id") else None,
            image_url=data.get("image_url"),
        )


@dataclass(frozen=True)
class ImageRecord:
    """A persisted image. General images have no variant_id."""

    id: str
    url: str
    variant_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageRecord":
        return cls(
            id=str(data["id"]),
            url=data.get("url") or "",
            variant_id=str(data["variant_id"]) if data.get("variant_id") else None,
        )


@dataclass(frozen=True)
class Variant:
    id: str
    options: Dict[str, str] = field(default_factory=dict)
    price: Optional[float] = None
    stock: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Variant":
        return cls(
            id=str(data["id"]),
            options={str(k): str(v) for k, v in (data.get("options") or {}).items()},
            price=data.get("price"),
            stock=data.get("stock"),
        )

    @property
    def first_option(self) -> Tuple[str, str]:
        """The (key, value) pair shown in the editor, or ('', '')."""
        for key, value in self.options.items():
            return key, value
        return "", ""


@dataclass(frozen=True)
class Product:
    """A persisted product with its variants and images.

    Seeding an edit session reads from this record; it is never mutated.
    """

    id: str
    name: str
    description: Optional[str] = None
    price: Optional[float] = None
    stock: Optional[int] = None
    category: Optional[Category] = None
    variants: List[Variant] = field(default_factory=list)
    images: List[ImageRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        category = data.get("category")
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            description=data.get("description"),
            price=data.get("price"),
            stock=data.get("stock"),
            category=Category.from_dict(category) if category else None,
            variants=[Variant.from_dict(v) for v in data.get("product_variants") or []],
            images=[ImageRecord.from_dict(i) for i in data.get("product_images") or []],
        )

    @property
    def category_id(self) -> Optional[str]:
        return self.category.id if self.category else None

    @property
    def general_images(self) -> List[ImageRecord]:
        return [img for img in self.images if not img.variant_id]

    def images_for_variant(self, variant_id: str) -> List[ImageRecord]:
        return [img for img in self.images if img.variant_id == variant_id]
