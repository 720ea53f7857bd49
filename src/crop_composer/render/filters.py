"""
Module: render.filters

Purpose:
    Named crop filters expressed as chains of CSS filter functions and
    applied to RGBA bitmaps with the Filter Effects colour matrices.

    Each step works on float channels in [0, 1] and clamps its result, so a
    chain behaves like the browser applying the functions left to right.

Key Functions:
    - get_filter_chain(): Steps of a named filter
    - apply_filter(): Run a named filter over an RGBA image
    - apply_chain(): Run an explicit chain of steps

Dependencies:
    - numpy: Per-pixel colour matrices
    - Pillow: Image <-> array conversion

Used By:
    - render.renderer: Crop filter before compositing
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

NO_FILTER_IDS = frozenset({"", "normal", "none"})


@dataclass(frozen=True, slots=True)
class FilterStep:
    """One CSS filter function, e.g. ``sepia(0.4)``."""

    function: str
    amount: float

    def __str__(self) -> str:
        unit = "deg" if self.function == "hue-rotate" else ""
        return f"{self.function}({self.amount:g}{unit})"


@dataclass(frozen=True, slots=True)
class CropFilter:
    id: str
    name: str
    description: str
    steps: tuple[FilterStep, ...]

    @property
    def css(self) -> str:
        return " ".join(str(step) for step in self.steps) or "none"


def _filter(filter_id: str, name: str, description: str, *steps: tuple[str, float]) -> CropFilter:
    return CropFilter(filter_id, name, description, tuple(FilterStep(f, a) for f, a in steps))


FILTERS: dict[str, CropFilter] = {
    f.id: f
    for f in (
        _filter("normal", "Normal", "No filter"),
        _filter(
            "vintage", "Vintage", "Warm, retro aesthetic",
            ("sepia", 0.4), ("saturate", 1.5), ("hue-rotate", -20), ("contrast", 0.9),
        ),
        _filter(
            "noir", "Noir", "Classic black and white",
            ("grayscale", 1), ("brightness", 1.1), ("contrast", 1.2),
        ),
        _filter(
            "vivid", "Vivid", "Punchy, vibrant colors",
            ("saturate", 2), ("contrast", 1.1), ("brightness", 1.05),
        ),
        _filter(
            "dramatic", "Dramatic", "High contrast, moody",
            ("contrast", 1.4), ("brightness", 0.9), ("saturate", 0.8),
        ),
        _filter(
            "cinema", "Cinema", "Cinematic teal/orange hint",
            ("sepia", 0.2), ("contrast", 1.1), ("brightness", 1.1), ("saturate", 1.2),
        ),
        _filter(
            "faded", "Fade", "Soft, dreamy look",
            ("opacity", 0.8), ("brightness", 1.2), ("sepia", 0.1),
        ),
        _filter(
            "ghost", "Ghost", "See-through, ethereal look",
            ("opacity", 0.5), ("brightness", 1.1), ("saturate", 0.8),
        ),
        _filter(
            "glass", "Glass", "Clear, modern transparency",
            ("opacity", 0.7), ("brightness", 1.2), ("contrast", 0.8), ("saturate", 1.1),
        ),
    )
}


# ─────────────────────────────────────────────────────────────────────────────
# Colour matrices
# ─────────────────────────────────────────────────────────────────────────────

def _grayscale(amount: float) -> np.ndarray:
    s = 1.0 - min(max(amount, 0.0), 1.0)
    return np.array([
        [0.2126 + 0.7874 * s, 0.7152 - 0.7152 * s, 0.0722 - 0.0722 * s],
        [0.2126 - 0.2126 * s, 0.7152 + 0.2848 * s, 0.0722 - 0.0722 * s],
        [0.2126 - 0.2126 * s, 0.7152 - 0.7152 * s, 0.0722 + 0.9278 * s],
    ])


def _sepia(amount: float) -> np.ndarray:
    s = 1.0 - min(max(amount, 0.0), 1.0)
    return np.array([
        [0.393 + 0.607 * s, 0.769 - 0.769 * s, 0.189 - 0.189 * s],
        [0.349 - 0.349 * s, 0.686 + 0.314 * s, 0.168 - 0.168 * s],
        [0.272 - 0.272 * s, 0.534 - 0.534 * s, 0.131 + 0.869 * s],
    ])


def _saturate(amount: float) -> np.ndarray:
    s = max(amount, 0.0)
    return np.array([
        [0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s],
        [0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s],
    ])


def _hue_rotate(degrees: float) -> np.ndarray:
    rad = math.radians(degrees)
    c, s = math.cos(rad), math.sin(rad)
    return np.array([
        [0.213 + c * 0.787 - s * 0.213, 0.715 - c * 0.715 - s * 0.715, 0.072 - c * 0.072 + s * 0.928],
        [0.213 - c * 0.213 + s * 0.143, 0.715 + c * 0.285 + s * 0.140, 0.072 - c * 0.072 - s * 0.283],
        [0.213 - c * 0.213 - s * 0.787, 0.715 - c * 0.715 + s * 0.715, 0.072 + c * 0.928 + s * 0.072],
    ])


_MATRICES = {
    "grayscale": _grayscale,
    "sepia": _sepia,
    "saturate": _saturate,
    "hue-rotate": _hue_rotate,
}


def _apply_step(rgba: np.ndarray, step: FilterStep) -> None:
    """Apply one step in place to a float (h, w, 4) array."""
    rgb = rgba[..., :3]
    if step.function in _MATRICES:
        rgb[...] = rgb @ _MATRICES[step.function](step.amount).T
    elif step.function == "brightness":
        rgb *= max(step.amount, 0.0)
    elif step.function == "contrast":
        rgb[...] = (rgb - 0.5) * max(step.amount, 0.0) + 0.5
    elif step.function == "opacity":
        rgba[..., 3] *= min(max(step.amount, 0.0), 1.0)
    else:
        logger.warning(f"Unknown filter function {step.function!r}, skipped")
        return
    np.clip(rgba, 0.0, 1.0, out=rgba)


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────

def get_filter_chain(filter_id: Optional[str]) -> tuple[FilterStep, ...]:
    """
    Steps of a named filter.

    "normal", "none" and an empty id are the identity; unknown ids are
    logged and treated as the identity.
    """
    if filter_id is None or filter_id in NO_FILTER_IDS:
        return ()
    crop_filter = FILTERS.get(filter_id)
    if crop_filter is None:
        logger.warning(f"Unknown filter {filter_id!r}, rendering unfiltered")
        return ()
    return crop_filter.steps


def apply_chain(image: Image.Image, steps: Sequence[FilterStep]) -> Image.Image:
    """
    Run filter steps over an image.

    Args:
        image: Source image (converted to RGBA)
        steps: Steps applied left to right

    Returns:
        New RGBA image; the source is untouched
    """
    rgba_image = image.convert("RGBA")
    if not steps:
        return rgba_image
    data = np.asarray(rgba_image, dtype=np.float64) / 255.0
    for step in steps:
        _apply_step(data, step)
    out = np.rint(data * 255.0).astype(np.uint8)
    return Image.fromarray(out, "RGBA")


def apply_filter(image: Image.Image, filter_id: Optional[str]) -> Image.Image:
    """
    Run a named crop filter over an image.

    Example:
        >>> img = Image.new("RGBA", (1, 1), (200, 100, 50, 255))
        >>> apply_filter(img, "noir").getpixel((0, 0))[0] == apply_filter(img, "noir").getpixel((0, 0))[1]
        True
    """
    return apply_chain(image, get_filter_chain(filter_id))


def list_filters() -> list[CropFilter]:
    return list(FILTERS.values())
