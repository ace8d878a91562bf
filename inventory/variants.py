"""Variant drafts: the in-memory edits to a product's variants.

Existing drafts are backed by a remote variant id; new drafts only have a
session-local id until they are created at commit. Every record is a
frozen dataclass and edits replace the record in the set, so a tuple of
the current records is already an immutable snapshot.

Nothing in this module contacts the API.
"""

import itertools
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from inventory.assets import AssetRef, PreviewStore, StagedBinary
from inventory.fields import parse_price, parse_stock
from inventory.logging_config import get_logger
from inventory.models import Product, Variant

__all__ = [
    "EDITABLE_FIELDS",
    "SessionClosedError",
    "ExistingVariantDraft",
    "NewVariantDraft",
    "VariantDraftSet",
]

logger = get_logger("variants")

EDITABLE_FIELDS = ("option_key", "option_value", "price", "stock")


class SessionClosedError(Exception):
    """Raised when editing, committing or discarding a session that is not open."""


def _coerce_patch(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep editable keys only and parse numeric inputs."""
    patch: Dict[str, Any] = {}
    for key, value in fields.items():
        if key not in EDITABLE_FIELDS:
            logger.debug(f"Ignoring non-editable variant field: {key}")
            continue
        if key == "price":
            patch[key] = parse_price(value)
        elif key == "stock":
            patch[key] = parse_stock(value)
        else:
            patch[key] = "" if value is None else str(value)
    return patch


@dataclass(frozen=True)
class ExistingVariantDraft:
    remote_id: str
    option_key: str
    option_value: str
    price: Optional[float]
    stock: Optional[int]
    image: AssetRef = field(default_factory=AssetRef)
    marked_for_delete: bool = False
    original: Optional[Variant] = field(default=None, repr=False)

    @classmethod
    def from_variant(cls, variant: Variant, image: AssetRef) -> "ExistingVariantDraft":
        option_key, option_value = variant.first_option
        return cls(
            remote_id=variant.id,
            option_key=option_key,
            option_value=option_value,
            price=parse_price(variant.price),
            stock=parse_stock(variant.stock),
            image=image,
            original=variant,
        )

    def changed_fields(self) -> Dict[str, Any]:
        """Fields that differ from the seeded variant, in API shape.

        Unset values are omitted. Options are only sent when both key and
        value are filled in.
        """
        original = self.original or Variant(id=self.remote_id)
        changes: Dict[str, Any] = {}

        key = self.option_key.strip()
        value = self.option_value.strip()
        if key and value and (key, value) != original.first_option:
            changes["options"] = {key: value}
        if self.price is not None and self.price != parse_price(original.price):
            changes["price"] = self.price
        if self.stock is not None and self.stock != parse_stock(original.stock):
            changes["stock"] = self.stock
        return changes


@dataclass(frozen=True)
class NewVariantDraft:
    local_id: int
    option_key: str = ""
    option_value: str = ""
    price: Optional[float] = None
    stock: Optional[int] = None
    image: AssetRef = field(default_factory=AssetRef)

    @property
    def is_complete(self) -> bool:
        """Incomplete rows are skipped at commit, not reported."""
        return bool(self.option_key.strip() and self.option_value.strip())


class VariantDraftSet:
    """Existing and new variant drafts of one edit session.

    Unknown ids are caller bugs and every operation treats them as no-ops.
    Once closed, every edit raises `SessionClosedError`.
    """

    def __init__(self, previews: PreviewStore, existing: Optional[List[ExistingVariantDraft]] = None):
        self._previews = previews
        self._existing: List[ExistingVariantDraft] = list(existing or [])
        self._new: List[NewVariantDraft] = []
        self._local_ids: Iterator[int] = itertools.count(1)
        self._closed = False

    @classmethod
    def seed(cls, product: Product, previews: PreviewStore) -> "VariantDraftSet":
        """One existing draft per variant; its first image fills the slot."""
        drafts = []
        for variant in product.variants:
            images = product.images_for_variant(variant.id)
            image = AssetRef.persisted(images[0].id, images[0].url) if images else AssetRef.empty()
            drafts.append(ExistingVariantDraft.from_variant(variant, image))
        return cls(previews, drafts)

    # --- views ---

    @property
    def existing(self) -> Tuple[ExistingVariantDraft, ...]:
        return tuple(self._existing)

    @property
    def new(self) -> Tuple[NewVariantDraft, ...]:
        return tuple(self._new)

    @property
    def live_existing(self) -> Tuple[ExistingVariantDraft, ...]:
        return tuple(d for d in self._existing if not d.marked_for_delete)

    @property
    def total(self) -> int:
        """Variants the product will have after commit (as the editor counts them)."""
        return len(self.live_existing) + len(self._new)

    def get_existing(self, remote_id: str) -> Optional[ExistingVariantDraft]:
        for draft in self._existing:
            if draft.remote_id == remote_id:
                return draft
        return None

    def get_new(self, local_id: int) -> Optional[NewVariantDraft]:
        for draft in self._new:
            if draft.local_id == local_id:
                return draft
        return None

    def close(self) -> None:
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosedError("Variant drafts of a closed edit session cannot be changed")

    # --- existing variants ---

    def _update_existing(
        self, remote_id: str, change: Callable[[ExistingVariantDraft], ExistingVariantDraft]
    ) -> bool:
        self._check_open()
        for index, draft in enumerate(self._existing):
            if draft.remote_id == remote_id:
                self._existing[index] = change(draft)
                return True
        logger.debug(f"No existing variant draft with id {remote_id}")
        return False

    def patch_existing(self, remote_id: str, fields: Mapping[str, Any]) -> bool:
        patch = _coerce_patch(fields)
        return self._update_existing(remote_id, lambda d: replace(d, **patch))

    def mark_existing_deleted(self, remote_id: str) -> bool:
        """Flag for deletion; the draft stays in the set so it can be restored."""
        return self._update_existing(remote_id, lambda d: replace(d, marked_for_delete=True))

    def restore_existing(self, remote_id: str) -> bool:
        return self._update_existing(remote_id, lambda d: replace(d, marked_for_delete=False))

    def stage_existing_image(self, remote_id: str, binary: StagedBinary) -> bool:
        return self._update_existing(
            remote_id, lambda d: replace(d, image=d.image.stage(binary, self._previews))
        )

    def remove_existing_image(self, remote_id: str) -> bool:
        return self._update_existing(
            remote_id, lambda d: replace(d, image=d.image.mark_removed(self._previews))
        )

    def restore_existing_image(self, remote_id: str) -> bool:
        return self._update_existing(
            remote_id, lambda d: replace(d, image=d.image.restore(self._previews))
        )

    # --- new variants ---

    def _update_new(self, local_id: int, change: Callable[[NewVariantDraft], NewVariantDraft]) -> bool:
        self._check_open()
        for index, draft in enumerate(self._new):
            if draft.local_id == local_id:
                self._new[index] = change(draft)
                return True
        logger.debug(f"No new variant draft with local id {local_id}")
        return False

    def add_new(self) -> int:
        """Append a blank row and return its session-unique local id."""
        self._check_open()
        local_id = next(self._local_ids)
        self._new.append(NewVariantDraft(local_id=local_id))
        return local_id

    def patch_new(self, local_id: int, fields: Mapping[str, Any]) -> bool:
        patch = _coerce_patch(fields)
        return self._update_new(local_id, lambda d: replace(d, **patch))

    def remove_new(self, local_id: int) -> bool:
        self._check_open()
        draft = self.get_new(local_id)
        if draft is None:
            logger.debug(f"No new variant draft with local id {local_id}")
            return False
        draft.image.release(self._previews)
        self._new.remove(draft)
        return True

    def stage_new_image(self, local_id: int, binary: StagedBinary) -> bool:
        return self._update_new(
            local_id, lambda d: replace(d, image=d.image.stage(binary, self._previews))
        )

    def remove_new_image(self, local_id: int) -> bool:
        return self._update_new(
            local_id, lambda d: replace(d, image=d.image.mark_removed(self._previews))
        )

    # --- session end ---

    def release_previews(self) -> None:
        self._existing = [replace(d, image=d.image.release(self._previews)) for d in self._existing]
        self._new = [replace(d, image=d.image.release(self._previews)) for d in self._new]
