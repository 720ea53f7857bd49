"""
Module: core.models.crops

Purpose:
    The Crop model: a previously extracted sub-rectangle of a source image,
    with its own rotation and filter metadata. Crops are owned by the crop
    repository; the composition engine only reads them.

Key Classes:
    - Crop: Immutable crop record

Dependencies:
    - dataclasses (std)

Used By:
    - composer.state: Initial item sizing
    - render.renderer: Source sampling, filter, effective rotation
    - storage.repository: Crop repository contract
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

EntityId = Union[str, int]

DEFAULT_FILTER = "normal"


@dataclass(frozen=True, slots=True)
class Crop:
    """
    Rectangular fragment of a source image.

    Coordinates are source-image pixels. ``original_image_width`` and
    ``original_image_height`` record the source size the rectangle was
    measured against; when absent the decoded source size is used.

    Attributes:
        id: Crop identifier
        x: Left edge within the source image
        y: Top edge within the source image
        width: Width in source pixels (> 0)
        height: Height in source pixels (> 0)
        original_image_width: Source width the rectangle refers to
        original_image_height: Source height the rectangle refers to
        rotation: Source-level rotation in degrees
        filter: Named colour filter id (see render.filters)
        image_id: Source image reference, None when the source is unknown

    Example:
        >>> crop = Crop(id="c1", x=10, y=20, width=400, height=200)
        >>> crop.aspect_ratio
        2.0
    """

    id: EntityId
    x: float
    y: float
    width: float
    height: float
    original_image_width: Optional[int] = None
    original_image_height: Optional[int] = None
    rotation: float = 0.0
    filter: str = DEFAULT_FILTER
    image_id: Optional[EntityId] = None

    def __post_init__(self) -> None:
        """Validate crop on construction."""
        if self.width <= 0:
            raise ValueError(f"crop width must be > 0: {self.width}")
        if self.height <= 0:
            raise ValueError(f"crop height must be > 0: {self.height}")
        if self.original_image_width is not None and self.original_image_width <= 0:
            raise ValueError(
                f"original_image_width must be > 0: {self.original_image_width}"
            )
        if self.original_image_height is not None and self.original_image_height <= 0:
            raise ValueError(
                f"original_image_height must be > 0: {self.original_image_height}"
            )

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def center(self) -> tuple[float, float]:
        """Centre of the crop rectangle in source pixels."""
        return self.x + self.width / 2, self.y + self.height / 2

    # ─────────────────────────────────────────────────────────────────────────
    # Serialization
    # ─────────────────────────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "filter": self.filter,
            "imageId": self.image_id,
        }
        if self.original_image_width is not None:
            data["originalImageWidth"] = self.original_image_width
        if self.original_image_height is not None:
            data["originalImageHeight"] = self.original_image_height
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Crop:
        """
        Deserialize from a crop record.

        Raises:
            KeyError: If id or the rectangle fields are missing
            ValueError: If the rectangle is degenerate
        """
        return cls(
            id=data["id"],
            x=float(data.get("x") or 0),
            y=float(data.get("y") or 0),
            width=float(data["width"]),
            height=float(data["height"]),
            original_image_width=data.get("originalImageWidth") or None,
            original_image_height=data.get("originalImageHeight") or None,
            rotation=float(data.get("rotation") or 0),
            filter=data.get("filter") or DEFAULT_FILTER,
            image_id=data.get("imageId"),
        )
