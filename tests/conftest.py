import io
import itertools
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import pytest
from PIL import Image

# Add src to sys.path so we can import crop_composer
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

from crop_composer.core.models.crops import Crop, EntityId  # noqa: E402
from crop_composer.errors import CropNotFoundError, ImageNotFoundError  # noqa: E402
from crop_composer.storage.repository import CropRepository  # noqa: E402


RED = (255, 0, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)


def png_bytes(color=RED, size=(10, 10)) -> bytes:
    """Encode a solid-colour PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class MemoryCropRepository(CropRepository):
    """In-memory crop repository that counts bitmap reads."""

    def __init__(self):
        self.crops: dict[EntityId, Crop] = {}
        self.previews: dict[EntityId, bytes] = {}
        self.originals: dict[EntityId, bytes] = {}
        self.preview_reads = 0
        self.original_reads = 0

    def add(self, crop: Crop, preview: Optional[bytes] = None) -> Crop:
        self.crops[crop.id] = crop
        if preview is not None:
            self.previews[crop.id] = preview
        return crop

    def get_crop(self, crop_id: EntityId) -> Crop:
        try:
            return self.crops[crop_id]
        except KeyError:
            raise CropNotFoundError(crop_id) from None

    def get_preview(self, crop_id: EntityId) -> bytes:
        self.preview_reads += 1
        try:
            return self.previews[crop_id]
        except KeyError:
            raise ImageNotFoundError(crop_id) from None

    def get_original_image(self, image_id: EntityId) -> bytes:
        self.original_reads += 1
        try:
            return self.originals[image_id]
        except KeyError:
            raise ImageNotFoundError(image_id) from None

    def list_crops(self) -> list[Crop]:
        return list(self.crops.values())

    def save_crops(
        self,
        image_id: EntityId,
        crops: Sequence[Crop],
        *,
        previews: Optional[dict[EntityId, bytes]] = None,
        original: Optional[bytes] = None,
    ) -> int:
        for crop in crops:
            self.add(crop, (previews or {}).get(crop.id))
        if original is not None:
            self.originals[image_id] = original
        return len(crops)

    def update_crop(self, image_id: EntityId, crop_id: EntityId, **changes: Any) -> Crop:
        raise NotImplementedError

    def delete_crop(self, image_id: EntityId, crop_id: EntityId) -> bool:
        return self.crops.pop(crop_id, None) is not None


# Common test fixtures
@pytest.fixture
def repository() -> MemoryCropRepository:
    """Repository holding a red square crop "c1" and a blue square crop "c2"."""
    repo = MemoryCropRepository()
    repo.add(Crop(id="c1", x=0, y=0, width=10, height=10), png_bytes(RED))
    repo.add(Crop(id="c2", x=0, y=0, width=10, height=10), png_bytes(BLUE))
    return repo


@pytest.fixture
def id_factory():
    """Deterministic ids: id1, id2, ..."""
    counter = itertools.count(1)
    return lambda: f"id{next(counter)}"


@pytest.fixture
def wide_crop() -> Crop:
    """A 2:1 crop."""
    return Crop(id="wide", x=10, y=20, width=400, height=200)
