"""
Module: storage.repository

Purpose:
    Abstract collaborator contracts consumed by the composition engine:
    read/write access to crops and their bitmaps, and CRUD for stored
    compositions. Implementations handle the actual storage format.

Key Classes:
    - CropRepository: Crop records, crop previews, original images
    - CompositionStore: Stored compositions, thumbnails, export uploads
    - CompositionSummary: One entry of CompositionStore.list_compositions()

Dependencies:
    - core.models

Used By:
    - render.renderer: Crop and bitmap lookup
    - storage.autosave: Document persistence
    - storage.file_store: File-backed implementations
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from crop_composer.core.models.crops import Crop, EntityId
from crop_composer.core.models.document import CompositionDocument


class CropRepository(ABC):
    """
    Read/write access to crops.

    The engine itself only reads (get_crop, get_preview,
    get_original_image); the write operations serve the crop editor and
    the command line.
    """

    @abstractmethod
    def get_crop(self, crop_id: EntityId) -> Crop:
        """
        Look up one crop.

        Raises:
            CropNotFoundError: If no crop has this id
        """

    @abstractmethod
    def get_preview(self, crop_id: EntityId) -> bytes:
        """
        Encoded bitmap of the cropped region.

        Raises:
            ImageNotFoundError: If the crop has no stored preview
        """

    @abstractmethod
    def get_original_image(self, image_id: EntityId) -> bytes:
        """
        Encoded full-resolution source image.

        Raises:
            ImageNotFoundError: If the image is not stored
        """

    @abstractmethod
    def list_crops(self) -> list[Crop]:
        """All crops, in storage order."""

    @abstractmethod
    def save_crops(
        self,
        image_id: EntityId,
        crops: Sequence[Crop],
        *,
        previews: Optional[dict[EntityId, bytes]] = None,
        original: Optional[bytes] = None,
    ) -> int:
        """
        Replace every crop of one source image.

        Returns:
            Number of crops stored
        """

    @abstractmethod
    def update_crop(self, image_id: EntityId, crop_id: EntityId, **changes: Any) -> Crop:
        """
        Merge field changes into one crop.

        Raises:
            CropNotFoundError: If the crop does not belong to the image
        """

    @abstractmethod
    def delete_crop(self, image_id: EntityId, crop_id: EntityId) -> bool:
        """Delete one crop and its preview. Returns False if it did not exist."""


@dataclass(frozen=True, slots=True)
class CompositionSummary:
    """Listing entry for a stored composition."""

    id: str
    name: str
    page_count: int
    created_at: int
    updated_at: int
    has_thumbnail: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pageCount": self.page_count,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "hasThumbnail": self.has_thumbnail,
        }


class CompositionStore(ABC):
    """CRUD for stored compositions."""

    @abstractmethod
    def create(self, name: str = "Untitled", **meta: Any) -> str:
        """Create an empty record and return its id."""

    @abstractmethod
    def load(self, composition_id: str) -> CompositionDocument:
        """
        Load a stored document.

        Raises:
            CompositionNotFoundError: If no record has this id
            PersistenceError: If the record cannot be read or parsed
        """

    @abstractmethod
    def save(
        self,
        composition_id: str,
        document: CompositionDocument,
        *,
        thumbnail: Optional[bytes] = None,
    ) -> None:
        """
        Overwrite a stored document (and its thumbnail when given).

        Raises:
            CompositionNotFoundError: If no record has this id
            PersistenceError: If the write fails
        """

    @abstractmethod
    def list_compositions(self) -> list[CompositionSummary]:
        """Summaries of all stored compositions, oldest first."""

    @abstractmethod
    def delete(self, composition_id: str) -> bool:
        """Delete a record and its thumbnail. Returns False if it did not exist."""

    @abstractmethod
    def get_thumbnail(self, composition_id: str) -> Optional[bytes]:
        """Stored thumbnail bytes, or None."""

    @abstractmethod
    def upload_export(self, composition_id: str, data: bytes, filename: str = "export.png") -> str:
        """Store a finished export and return a retrievable URL."""
