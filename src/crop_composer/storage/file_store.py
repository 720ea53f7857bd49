"""
Module: storage.file_store

Purpose:
    File-backed implementations of the crop repository and the composition
    store. Both share one JSON database (db.json) guarded by portalocker,
    with binary payloads kept as separate files next to it:

        <root>/
        ├── db.json          # {"crops": [], "canvases": [], "images": []}
        ├── crops/           # crop previews, <cropId>.<ext>
        ├── images/          # original source images, <imageId>.<ext>
        ├── thumbnails/      # composition thumbnails, <canvasId>.<ext>
        └── uploads/         # finished exports

    Ids are compared as strings so records written with numeric ids still
    match string lookups.

Key Classes:
    - JsonDatabase: Locked access to db.json
    - FileCropRepository: CropRepository over the database
    - JsonCompositionStore: CompositionStore over the database

Dependencies:
    - Pillow: Sniffing the format of stored bitmaps
    - storage.file_locking: portalocker-guarded JSON access
    - core.utils.serialization: Document (de)serialization

Used By:
    - cli: Command line front end
    - storage.autosave: Via the CompositionStore contract
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, TypeVar

from PIL import Image, UnidentifiedImageError

from crop_composer.core.models.crops import Crop, EntityId
from crop_composer.core.models.document import CompositionDocument
from crop_composer.core.models.pages import now_ms
from crop_composer.core.schemas.validator import ValidationError
from crop_composer.core.utils.serialization import deserialize_document, serialize_document
from crop_composer.errors import (
    CompositionNotFoundError,
    CropNotFoundError,
    ImageNotFoundError,
    InvalidInputError,
    PersistenceError,
)

from .file_locking import locked_read_json, locked_read_modify_write_json
from .repository import CompositionStore, CompositionSummary, CropRepository

logger = logging.getLogger(__name__)

R = TypeVar("R")

DB_FILENAME = "db.json"
CROPS_DIR = "crops"
IMAGES_DIR = "images"
THUMBNAILS_DIR = "thumbnails"
UPLOADS_DIR = "uploads"

_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp", "GIF": "gif", "BMP": "bmp"}
_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def _empty_db() -> dict[str, Any]:
    return {"crops": [], "canvases": [], "images": []}


def _same_id(a: Any, b: Any) -> bool:
    return str(a) == str(b)


def _safe_name(value: Any) -> str:
    return _SAFE_NAME.sub("_", str(value)).strip("._") or "unnamed"


def _image_extension(data: bytes) -> str:
    """File extension for encoded bitmap bytes (png when unknown)."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return _EXTENSIONS.get(img.format or "", "png")
    except (UnidentifiedImageError, OSError):
        logger.debug("Could not identify image bytes, storing as .png")
        return "png"


# ─────────────────────────────────────────────────────────────────────────────
# Database
# ─────────────────────────────────────────────────────────────────────────────

class JsonDatabase:
    """
    Locked access to db.json plus the blob directories beside it.

    Args:
        root: Directory holding db.json and the blob folders
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.path = self.root / DB_FILENAME

    def read(self) -> dict[str, Any]:
        try:
            return locked_read_json(self.path, _empty_db)
        except OSError as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e

    def update(self, modifier: Callable[[dict[str, Any]], R]) -> R:
        """Run ``modifier`` on the database under an exclusive lock."""
        try:
            return locked_read_modify_write_json(self.path, modifier, _empty_db)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

    def blob_dir(self, name: str) -> Path:
        return self.root / name

    def write_blob(self, folder: str, filename: str, data: bytes) -> str:
        path = self.blob_dir(folder) / filename
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise PersistenceError(f"Cannot write {path}: {e}") from e
        return filename

    def read_blob(self, folder: str, filename: Optional[str]) -> Optional[bytes]:
        if not filename:
            return None
        path = self.blob_dir(folder) / filename
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Cannot read {path}: {e}") from e

    def delete_blob(self, folder: str, filename: Optional[str]) -> bool:
        if not filename:
            return False
        path = self.blob_dir(folder) / filename
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise PersistenceError(f"Cannot delete {path}: {e}") from e
        return True


# ─────────────────────────────────────────────────────────────────────────────
# Crops
# ─────────────────────────────────────────────────────────────────────────────

class FileCropRepository(CropRepository):
    """
    Crop records in db.json, previews and originals as files.

    Example:
        >>> repo = FileCropRepository(Path("data"))
        >>> repo.save_crops("img1", [crop], previews={crop.id: png_bytes})  # doctest: +SKIP
        1
    """

    def __init__(self, root: Path):
        self._db = JsonDatabase(root)

    @property
    def root(self) -> Path:
        return self._db.root

    def _find_record(self, crop_id: EntityId) -> dict[str, Any]:
        for record in self._db.read().get("crops", []):
            if _same_id(record.get("id"), crop_id):
                return record
        raise CropNotFoundError(crop_id)

    def get_crop(self, crop_id: EntityId) -> Crop:
        record = self._find_record(crop_id)
        try:
            return Crop.from_dict(record)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Corrupt crop record {crop_id!r}: {e}") from e

    def get_preview(self, crop_id: EntityId) -> bytes:
        try:
            record = self._find_record(crop_id)
        except CropNotFoundError:
            raise ImageNotFoundError(crop_id, f"no preview for crop {crop_id!r}") from None
        data = self._db.read_blob(CROPS_DIR, record.get("imageDataPath"))
        if data is None:
            raise ImageNotFoundError(crop_id, f"no preview for crop {crop_id!r}")
        return data

    def get_original_image(self, image_id: EntityId) -> bytes:
        for record in self._db.read().get("images", []):
            if _same_id(record.get("id"), image_id):
                data = self._db.read_blob(IMAGES_DIR, record.get("path"))
                if data is not None:
                    return data
                break
        raise ImageNotFoundError(image_id)

    def list_crops(self) -> list[Crop]:
        crops = []
        for record in self._db.read().get("crops", []):
            try:
                crops.append(Crop.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping corrupt crop record {record.get('id')!r}: {e}")
        return crops

    def save_crops(
        self,
        image_id: EntityId,
        crops: Sequence[Crop],
        *,
        previews: Optional[dict[EntityId, bytes]] = None,
        original: Optional[bytes] = None,
    ) -> int:
        previews = previews or {}
        preview_paths: dict[str, str] = {}
        for crop in crops:
            data = previews.get(crop.id)
            if data is not None:
                filename = f"{_safe_name(crop.id)}.{_image_extension(data)}"
                preview_paths[str(crop.id)] = self._db.write_blob(CROPS_DIR, filename, data)

        original_path = None
        if original is not None:
            filename = f"{_safe_name(image_id)}.{_image_extension(original)}"
            original_path = self._db.write_blob(IMAGES_DIR, filename, original)

        def modifier(db: dict[str, Any]) -> int:
            kept = [c for c in db.get("crops", []) if not _same_id(c.get("imageId"), image_id)]
            existing = {
                str(c.get("id")): c.get("imageDataPath")
                for c in db.get("crops", [])
                if _same_id(c.get("imageId"), image_id)
            }
            now = now_ms()
            new_records = []
            for crop in crops:
                record = crop.to_dict()
                record["imageId"] = image_id
                record["imageDataPath"] = preview_paths.get(str(crop.id), existing.get(str(crop.id)))
                record["updatedAt"] = now
                new_records.append(record)
            db["crops"] = kept + new_records

            if original_path is not None:
                images = db.setdefault("images", [])
                if not any(_same_id(i.get("id"), image_id) for i in images):
                    first = crops[0] if crops else None
                    images.append({
                        "id": image_id,
                        "path": original_path,
                        "width": first.original_image_width if first else None,
                        "height": first.original_image_height if first else None,
                        "createdAt": now,
                    })
            return len(new_records)

        count = self._db.update(modifier)
        logger.info(f"Saved {count} crop(s) for image {image_id!r}")
        return count

    def update_crop(self, image_id: EntityId, crop_id: EntityId, **changes: Any) -> Crop:
        def modifier(db: dict[str, Any]) -> Crop:
            for index, record in enumerate(db.get("crops", [])):
                if _same_id(record.get("id"), crop_id) and _same_id(record.get("imageId"), image_id):
                    current = Crop.from_dict(record)
                    try:
                        updated = Crop.from_dict({**current.to_dict(), **_camel(changes)})
                    except (TypeError, ValueError) as e:
                        raise InvalidInputError(f"Invalid crop update {changes!r}: {e}") from e
                    db["crops"][index] = {**record, **updated.to_dict(), "updatedAt": now_ms()}
                    return updated
            raise CropNotFoundError(crop_id)

        return self._db.update(modifier)

    def delete_crop(self, image_id: EntityId, crop_id: EntityId) -> bool:
        def modifier(db: dict[str, Any]) -> Optional[dict[str, Any]]:
            for index, record in enumerate(db.get("crops", [])):
                if _same_id(record.get("id"), crop_id) and _same_id(record.get("imageId"), image_id):
                    return db["crops"].pop(index)
            return None

        removed = self._db.update(modifier)
        if removed is None:
            return False
        self._db.delete_blob(CROPS_DIR, removed.get("imageDataPath"))
        logger.info(f"Deleted crop {crop_id!r} of image {image_id!r}")
        return True


_CROP_KEYS = {
    "original_image_width": "originalImageWidth",
    "original_image_height": "originalImageHeight",
    "image_id": "imageId",
}


def _camel(changes: dict[str, Any]) -> dict[str, Any]:
    return {_CROP_KEYS.get(key, key): value for key, value in changes.items()}


# ─────────────────────────────────────────────────────────────────────────────
# Compositions
# ─────────────────────────────────────────────────────────────────────────────

class JsonCompositionStore(CompositionStore):
    """
    Stored compositions in db.json, thumbnails and exports as files.

    A record holds the document fields (``mode``, ``pages``, or the legacy
    ``composition`` + ``placedItems``) next to its metadata (``id``,
    ``name``, ``createdAt``, ``updatedAt``, ``thumbnailPath``).
    """

    def __init__(self, root: Path, *, clock: Callable[[], int] = now_ms):
        self._db = JsonDatabase(root)
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._db.root

    def _find(self, db: dict[str, Any], composition_id: str) -> tuple[int, dict[str, Any]]:
        for index, record in enumerate(db.get("canvases", [])):
            if _same_id(record.get("id"), composition_id):
                return index, record
        raise CompositionNotFoundError(composition_id)

    def create(self, name: str = "Untitled", **meta: Any) -> str:
        def modifier(db: dict[str, Any]) -> str:
            canvases = db.setdefault("canvases", [])
            taken = {str(c.get("id")) for c in canvases}
            stamp = self._clock()
            new_id = str(stamp)
            while new_id in taken:
                stamp += 1
                new_id = str(stamp)
            canvases.append({**meta, "id": new_id, "name": name, "createdAt": stamp, "updatedAt": stamp})
            return new_id

        composition_id = self._db.update(modifier)
        logger.info(f"Created composition {composition_id} ({name!r})")
        return composition_id

    def load(self, composition_id: str) -> CompositionDocument:
        _, record = self._find(self._db.read(), composition_id)
        if "pages" not in record and "composition" not in record:
            raise PersistenceError(f"Composition {composition_id} has no saved document yet")
        try:
            document = deserialize_document(record)
        except ValidationError as e:
            raise PersistenceError(f"Composition {composition_id} is corrupt: {e}") from e
        logger.info(f"Loaded composition {composition_id} ({document.page_count} page(s))")
        return document

    def save(
        self,
        composition_id: str,
        document: CompositionDocument,
        *,
        thumbnail: Optional[bytes] = None,
    ) -> None:
        thumbnail_path = None
        if thumbnail is not None:
            filename = f"{_safe_name(composition_id)}.{_image_extension(thumbnail)}"
            thumbnail_path = self._db.write_blob(THUMBNAILS_DIR, filename, thumbnail)

        payload = serialize_document(document)

        def modifier(db: dict[str, Any]) -> None:
            index, record = self._find(db, composition_id)
            # The current shape replaces a legacy body on first save.
            record = {k: v for k, v in record.items() if k not in ("composition", "placedItems")}
            record.update(payload)
            if thumbnail_path is not None:
                record["thumbnailPath"] = thumbnail_path
            record["updatedAt"] = self._clock()
            db["canvases"][index] = record

        self._db.update(modifier)
        logger.info(f"Saved composition {composition_id} ({document.page_count} page(s))")

    def list_compositions(self) -> list[CompositionSummary]:
        summaries = []
        for record in self._db.read().get("canvases", []):
            created = int(record.get("createdAt") or 0)
            pages = record.get("pages")
            if isinstance(pages, list):
                page_count = len(pages)
            else:
                page_count = 1 if "composition" in record else 0
            summaries.append(
                CompositionSummary(
                    id=str(record.get("id")),
                    name=record.get("name") or "Untitled",
                    page_count=page_count,
                    created_at=created,
                    updated_at=int(record.get("updatedAt") or created),
                    has_thumbnail=bool(record.get("thumbnailPath")),
                )
            )
        return summaries

    def delete(self, composition_id: str) -> bool:
        def modifier(db: dict[str, Any]) -> Optional[dict[str, Any]]:
            try:
                index, _ = self._find(db, composition_id)
            except CompositionNotFoundError:
                return None
            return db["canvases"].pop(index)

        removed = self._db.update(modifier)
        if removed is None:
            return False
        self._db.delete_blob(THUMBNAILS_DIR, removed.get("thumbnailPath"))
        logger.info(f"Deleted composition {composition_id}")
        return True

    def get_thumbnail(self, composition_id: str) -> Optional[bytes]:
        _, record = self._find(self._db.read(), composition_id)
        return self._db.read_blob(THUMBNAILS_DIR, record.get("thumbnailPath"))

    def upload_export(self, composition_id: str, data: bytes, filename: str = "export.png") -> str:
        name = f"canvas-{_safe_name(composition_id)}-{self._clock()}-{_safe_name(filename)}"
        self._db.write_blob(UPLOADS_DIR, name, data)
        logger.info(f"Stored export {name}")
        return f"/{UPLOADS_DIR}/{name}"
