"""Image slots for the product editor.

An `AssetRef` is the pending state of one image slot: a persisted remote
image, a locally staged binary waiting for upload, a removed image, or
nothing. Transitions return new values and never touch the network.

Staged binaries get a preview thumbnail written by `PreviewStore`. Those
files are resources: they are released when the slot is re-staged,
cleared, or when the edit session closes.
"""

import threading
import uuid
from dataclasses import dataclass, replace
from io import BytesIO
from pathlib import Path
from typing import Dict, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from inventory.config import ALLOWED_IMAGE_TYPES, MAX_IMAGE_SIZE, PREVIEW_DIR, PREVIEW_SIZE
from inventory.logging_config import get_logger

__all__ = [
    "PERSISTED",
    "STAGED",
    "REMOVED",
    "EMPTY",
    "StagedBinary",
    "PreviewStore",
    "AssetRef",
]

logger = get_logger("assets")

PERSISTED = "persisted"
STAGED = "staged"
REMOVED = "removed"
EMPTY = "empty"


@dataclass(frozen=True)
class StagedBinary:
    """An image selected locally and not yet uploaded."""

    data: bytes
    filename: str
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_bytes(cls, data: bytes, filename: str) -> "StagedBinary":
        """Validate raw image bytes and wrap them for upload.

        Raises:
            ValueError: If the image is too large, unreadable, or not JPEG/PNG/WEBP
        """
        if len(data) > MAX_IMAGE_SIZE:
            size_mb = len(data) / (1024 * 1024)
            raise ValueError(
                f"Image too large ({size_mb:.1f}MB). "
                f"Maximum is {MAX_IMAGE_SIZE // (1024 * 1024)}MB per image."
            )
        try:
            with Image.open(BytesIO(data)) as img:
                image_format = img.format
        except (UnidentifiedImageError, OSError) as e:
            raise ValueError(f"Not a readable image: {filename}") from e

        content_type = ALLOWED_IMAGE_TYPES.get(image_format or "")
        if content_type is None:
            raise ValueError(
                f"Unsupported image type {image_format} for {filename}. "
                f"Use one of: {', '.join(ALLOWED_IMAGE_TYPES)}"
            )
        return cls(data=data, filename=filename, content_type=content_type)

    @classmethod
    def from_path(cls, path) -> "StagedBinary":
        path = Path(path)
        return cls.from_bytes(path.read_bytes(), path.name)

    def as_upload(self) -> Tuple[str, bytes, str]:
        """The (filename, content, content_type) tuple requests expects in `files=`."""
        return self.filename, self.data, self.content_type


class PreviewStore:
    """Creates and releases preview thumbnails for staged binaries.

    Each acquired preview is a PNG file under `preview_dir`; its URL is the
    file URI. One store serves every edit session of a client lifetime, so
    `active` must return to zero once sessions are closed.
    """

    def __init__(self, preview_dir: Optional[Path] = None, size: Tuple[int, int] = PREVIEW_SIZE):
        self.preview_dir = Path(preview_dir or PREVIEW_DIR)
        self.size = size
        self._files: Dict[str, Path] = {}
        self._lock = threading.Lock()

    @property
    def active(self) -> int:
        return len(self._files)

    def acquire(self, binary: StagedBinary) -> str:
        """Render a thumbnail for `binary` and return its preview URL."""
        self.preview_dir.mkdir(parents=True, exist_ok=True)
        path = (self.preview_dir / f"{uuid.uuid4().hex}.png").resolve()

        with Image.open(BytesIO(binary.data)) as img:
            img.thumbnail(self.size)
            # PNG keeps transparency; palette and CMYK images need converting
            if img.mode == "P":
                img = img.convert("RGBA")
            elif img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGB")
            img.save(path, format="PNG")

        url = path.as_uri()
        with self._lock:
            self._files[url] = path
        logger.debug(f"Preview acquired for {binary.filename}: {path.name}")
        return url

    def release(self, preview_url: Optional[str]) -> None:
        """Delete the preview file. Unknown or empty URLs are ignored."""
        if not preview_url:
            return
        with self._lock:
            path = self._files.pop(preview_url, None)
        if path is not None:
            path.unlink(missing_ok=True)
            logger.debug(f"Preview released: {path.name}")

    def release_all(self) -> None:
        with self._lock:
            paths = list(self._files.values())
            self._files.clear()
        for path in paths:
            path.unlink(missing_ok=True)


@dataclass(frozen=True)
class AssetRef:
    """Pending state of one image slot.

    `original_id`/`original_url` remember the persisted image the slot was
    seeded with, so a removal can be committed as a delete of that id and
    undone before commit.
    """

    kind: str = EMPTY
    remote_id: Optional[str] = None
    url: Optional[str] = None
    binary: Optional[StagedBinary] = None
    preview_url: Optional[str] = None
    original_id: Optional[str] = None
    original_url: Optional[str] = None

    def __post_init__(self) -> None:
        has_persisted = self.remote_id is not None
        has_staged = self.binary is not None
        if self.kind == PERSISTED:
            ok = has_persisted and not has_staged
        elif self.kind == STAGED:
            ok = has_staged and not has_persisted
        elif self.kind in (REMOVED, EMPTY):
            ok = not has_persisted and not has_staged
        else:
            raise ValueError(f"Unknown asset kind: {self.kind}")
        if not ok:
            raise ValueError(f"Inconsistent payload for {self.kind} asset")

    @classmethod
    def empty(cls) -> "AssetRef":
        return cls()

    @classmethod
    def persisted(cls, remote_id: str, url: str) -> "AssetRef":
        return cls(
            kind=PERSISTED,
            remote_id=remote_id,
            url=url,
            original_id=remote_id,
            original_url=url,
        )

    @property
    def is_persisted(self) -> bool:
        return self.kind == PERSISTED

    @property
    def is_staged(self) -> bool:
        return self.kind == STAGED

    @property
    def is_removed(self) -> bool:
        return self.kind == REMOVED

    @property
    def display_url(self) -> Optional[str]:
        """What the editor shows for this slot right now."""
        if self.kind == STAGED:
            return self.preview_url
        if self.kind == PERSISTED:
            return self.url
        return None

    @property
    def removed_id(self) -> Optional[str]:
        """The persisted image id to delete at commit, if any."""
        return self.original_id if self.kind == REMOVED else None

    def stage(self, binary: StagedBinary, previews: PreviewStore) -> "AssetRef":
        """Replace whatever the slot holds with a staged binary.

        If the new preview cannot be written the slot is left untouched.
        """
        preview_url = previews.acquire(binary)
        previews.release(self.preview_url)
        return replace(
            self,
            kind=STAGED,
            remote_id=None,
            url=None,
            binary=binary,
            preview_url=preview_url,
        )

    def mark_removed(self, previews: PreviewStore) -> "AssetRef":
        """Clear the slot.

        A persisted image becomes REMOVED. A staged binary is dropped: the
        slot goes back to EMPTY, or to REMOVED when it was covering a
        persisted image (the slot shows no image, so that one goes too).
        """
        if self.kind == PERSISTED:
            return replace(self, kind=REMOVED, remote_id=None, url=None)
        if self.kind == STAGED:
            previews.release(self.preview_url)
            kind = REMOVED if self.original_id else EMPTY
            return replace(self, kind=kind, binary=None, preview_url=None)
        return self

    def restore(self, previews: PreviewStore) -> "AssetRef":
        """Undo any pending change and return to the seeded state."""
        previews.release(self.preview_url)
        if self.original_id:
            return AssetRef.persisted(self.original_id, self.original_url or "")
        return AssetRef.empty()

    def release(self, previews: PreviewStore) -> "AssetRef":
        """Release the preview resource, keeping the pending change itself."""
        if self.preview_url is None:
            return self
        previews.release(self.preview_url)
        return replace(self, preview_url=None)
