"""Read-only category index used by the category selector.

Categories form a two-level tree: main categories (no parent) and their
subcategories. The index is rebuilt from the API whenever the selector
is shown; nothing here is ever written back.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from inventory.models import Category

__all__ = ["CategoryIndex"]


class CategoryIndex:
    """Lookup of category id -> Category."""

    def __init__(self, categories: Iterable[Category]):
        self._by_id: Dict[str, Category] = {}
        for category in categories:
            self._by_id[category.id] = category

    @classmethod
    def from_api(cls, api) -> "CategoryIndex":
        """Build the index from `api.list_categories()`."""
        return cls(api.list_categories())

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def get(self, category_id: Optional[str]) -> Optional[Category]:
        if not category_id:
            return None
        return self._by_id.get(category_id)

    def name(self, category_id: Optional[str]) -> Optional[str]:
        category = self.get(category_id)
        return category.name if category else None

    def main_categories(self) -> List[Category]:
        return [c for c in self._by_id.values() if not c.parent_id]

    def subcategories(self, parent_id: str) -> List[Category]:
        return [c for c in self._by_id.values() if c.parent_id == parent_id]

    def is_valid(self, category_id: Optional[str]) -> bool:
        """Whether a selection is acceptable. Empty means 'no category'."""
        return not category_id or str(category_id) in self._by_id

    def label(self, category_id: Optional[str]) -> str:
        """Full display path, e.g. 'Drinks / Juices'."""
        category = self.get(category_id)
        if category is None:
            return ""
        parent = self.get(category.parent_id)
        if parent is None:
            return category.name
        return f"{parent.name} / {category.name}"

    def options(self) -> List[Tuple[str, str]]:
        """(id, label) pairs in selector order.

        Each main category is followed by its subcategories. Orphaned
        subcategories (parent missing from the index) are not offered.
        """
        result: List[Tuple[str, str]] = []
        for main in self.main_categories():
            result.append((main.id, f"{main.name} (General)"))
            for sub in self.subcategories(main.id):
                result.append((sub.id, f"↳ {sub.name}"))
        return result
