"""
Module: render.renderer

Purpose:
    Rasterize one page of a composition with Pillow. Panel pages draw each
    assigned crop cover-fit into its panel rectangle with the assignment's
    zoom and pan; freeform pages draw each placed item clipped to its frame
    shape and stroke its border on top.

    Every item is drawn onto its own RGBA layer covering the item's
    bounding box, filtered, masked by its clip polygon and composited onto
    the page, so the page is only ever touched inside clip regions.

    Missing crops, previews or originals never abort a render: the item is
    logged and degrades (empty frame, unrotated preview).

Key Classes:
    - PageRenderer: Renders pages against a CropRepository

Key Functions:
    - render_page(): One-shot convenience wrapper
    - output_size(): Pixel size of a page at a scale

Dependencies:
    - Pillow: Affine resampling, polygon masks, strokes
    - render.filters: Crop colour filters
    - render.image_cache: Bitmap decoding and caching

Used By:
    - render.export: PNG/ZIP/PDF/thumbnail output
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Sequence

from PIL import Image, ImageChops, ImageColor, ImageDraw

from crop_composer.core.models.crops import Crop, EntityId
from crop_composer.core.models.items import BorderStyle, PlacedItem
from crop_composer.core.models.pages import CompositionMode, PanelAssignment, Page
from crop_composer.errors import CropNotFoundError, ImageNotFoundError
from crop_composer.geometry.polygon import Point, dash_segments, polygon_bounds
from crop_composer.geometry.shapes import manga_inset_box, shape_polygon
from crop_composer.layout.catalog import calculate_panel_positions, layout_or_default
from crop_composer.layout.models import PanelRect
from crop_composer.storage.repository import CropRepository

from .filters import apply_filter
from .image_cache import ImageCache

logger = logging.getLogger(__name__)

RESAMPLE = Image.Resampling.BICUBIC
TRANSPARENT = (0, 0, 0, 0)

# Dash pattern of the dashed border style, in multiples of the stroke width
DASH_ON = 3.0
DASH_OFF = 2.0
MANGA_INNER_RATIO = 0.6


def output_size(page: Page, scale: float = 1.0) -> tuple[int, int]:
    """Raster size of a page: round(page size * scale), at least 1x1."""
    return (
        max(1, round(page.page_width * scale)),
        max(1, round(page.page_height * scale)),
    )


def _rgba(color: str) -> tuple[int, int, int, int]:
    try:
        rgb = ImageColor.getrgb(color)
    except ValueError:
        logger.warning(f"Invalid colour {color!r}, using black")
        return (0, 0, 0, 255)
    if len(rgb) == 4:
        return rgb  # type: ignore[return-value]
    return (rgb[0], rgb[1], rgb[2], 255)


def _layer_box(
    polygon: Sequence[Point], page_size: tuple[int, int]
) -> Optional[tuple[int, int, int, int]]:
    """Integer bounding box of a polygon clipped to the page, or None if empty."""
    min_x, min_y, max_x, max_y = polygon_bounds(polygon)
    x0 = max(0, math.floor(min_x))
    y0 = max(0, math.floor(min_y))
    x1 = min(page_size[0], math.ceil(max_x))
    y1 = min(page_size[1], math.ceil(max_y))
    if x1 <= x0 or y1 <= y0:
        return None
    return x0, y0, x1, y1


class PageRenderer:
    """
    Renders pages to Pillow images.

    Args:
        repository: Crop and bitmap source
        cache: Bitmap cache; a private one is created when omitted

    Example:
        >>> renderer = PageRenderer(repository)  # doctest: +SKIP
        >>> image = renderer.render(page, CompositionMode.FREEFORM)  # doctest: +SKIP
        >>> image.size  # doctest: +SKIP
        (1240, 1754)
    """

    def __init__(self, repository: CropRepository, cache: Optional[ImageCache] = None):
        self.repository = repository
        self.cache = cache or ImageCache(repository)

    # ─────────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────────

    def render(
        self,
        page: Page,
        mode: CompositionMode,
        scale: float = 1.0,
    ) -> Image.Image:
        """
        Rasterize a page.

        Args:
            page: Page to render (items already folded in)
            mode: Which half of the page to draw
            scale: Output scale; 1.0 is page pixels

        Returns:
            RGB image of size output_size(page, scale)
        """
        if not (math.isfinite(scale) and scale > 0):
            raise ValueError(f"scale must be > 0: {scale}")

        size = output_size(page, scale)
        canvas = Image.new("RGBA", size, _rgba(page.background_color))

        if mode == CompositionMode.PANELS:
            self._render_panels(canvas, page, scale)
        else:
            for item in page.placed_items:
                self._render_item(canvas, item, scale)

        logger.debug(f"Rendered page {page.id!r} ({mode.value}) at {size[0]}x{size[1]}")
        return canvas.convert("RGB")

    # ─────────────────────────────────────────────────────────────────────────
    # Lookups
    # ─────────────────────────────────────────────────────────────────────────

    def _crop(self, crop_id: Optional[EntityId]) -> Optional[Crop]:
        if crop_id is None:
            return None
        try:
            return self.repository.get_crop(crop_id)
        except CropNotFoundError:
            logger.warning(f"Crop {crop_id!r} not found, rendering empty frame")
            return None

    def _preview(self, crop: Crop) -> Optional[Image.Image]:
        try:
            return self.cache.get_preview(crop)
        except (ImageNotFoundError, OSError) as e:
            logger.warning(f"No preview for crop {crop.id!r}: {e}")
            return None

    # ─────────────────────────────────────────────────────────────────────────
    # Compositing
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _composite(
        canvas: Image.Image,
        layer: Image.Image,
        polygon: Sequence[Point],
        origin: tuple[int, int],
        filter_id: Optional[str],
    ) -> None:
        """Filter a layer, clip it to a polygon and blend it onto the canvas."""
        ox, oy = origin
        layer = apply_filter(layer, filter_id)

        mask = Image.new("L", layer.size, 0)
        ImageDraw.Draw(mask).polygon([(x - ox, y - oy) for x, y in polygon], fill=255)
        layer.putalpha(ImageChops.multiply(layer.getchannel("A"), mask))

        canvas.alpha_composite(layer, dest=(ox, oy))

    # ─────────────────────────────────────────────────────────────────────────
    # Panel mode
    # ─────────────────────────────────────────────────────────────────────────

    def _render_panels(self, canvas: Image.Image, page: Page, scale: float) -> None:
        layout = layout_or_default(page.layout_id)
        rects = calculate_panel_positions(
            layout,
            page.page_width * scale,
            page.page_height * scale,
            page.margin * scale,
        )
        for rect in rects:
            if rect.index >= len(page.assignments):
                continue
            assignment = page.assignments[rect.index]
            if not assignment.is_assigned:
                continue
            crop = self._crop(assignment.crop_id)
            if crop is None:
                continue
            preview = self._preview(crop)
            if preview is None:
                continue
            self._draw_panel(canvas, rect, assignment, crop, preview, scale)

    def _draw_panel(
        self,
        canvas: Image.Image,
        rect: PanelRect,
        assignment: PanelAssignment,
        crop: Crop,
        preview: Image.Image,
        scale: float,
    ) -> None:
        """
        Draw a preview cover-fit into a panel.

        Forward mapping from preview pixel u to page point q:
        q = centre + zoom * (offset + R(rotation) * (u * s - drawn / 2)),
        with s the cover scale; the affine below is its inverse.
        """
        polygon = [
            (rect.x, rect.y),
            (rect.x + rect.width, rect.y),
            (rect.x + rect.width, rect.y + rect.height),
            (rect.x, rect.y + rect.height),
        ]
        box = _layer_box(polygon, canvas.size)
        if box is None or rect.width <= 0 or rect.height <= 0:
            return
        x0, y0, x1, y1 = box

        iw, ih = preview.size
        cover = max(rect.width / iw, rect.height / ih)
        cx, cy = rect.center
        zoom = assignment.zoom
        off_x = assignment.offset_x * scale
        off_y = assignment.offset_y * scale
        theta = math.radians(crop.rotation or 0.0)
        cos_t, sin_t = math.cos(theta), math.sin(theta)

        # Layer pixel (x, y) sits at page point (x + x0, y + y0).
        px = (x0 - cx) / zoom - off_x
        py = (y0 - cy) / zoom - off_y
        k = 1.0 / (zoom * cover)
        coeffs = (
            cos_t * k,
            sin_t * k,
            (cos_t * px + sin_t * py) / cover + iw / 2,
            -sin_t * k,
            cos_t * k,
            (-sin_t * px + cos_t * py) / cover + ih / 2,
        )
        layer = preview.transform(
            (x1 - x0, y1 - y0),
            Image.Transform.AFFINE,
            coeffs,
            resample=RESAMPLE,
            fillcolor=TRANSPARENT,
        )
        self._composite(canvas, layer, polygon, (x0, y0), crop.filter)

    # ─────────────────────────────────────────────────────────────────────────
    # Freeform mode
    # ─────────────────────────────────────────────────────────────────────────

    def _render_item(self, canvas: Image.Image, item: PlacedItem, scale: float) -> None:
        polygon = item.polygon(scale)
        crop = self._crop(item.crop_id)

        box = _layer_box(polygon, canvas.size)
        if crop is not None and box is not None:
            layer = self._item_layer(item, crop, box, scale)
            if layer is not None:
                self._composite(canvas, layer, polygon, (box[0], box[1]), crop.filter)

        self._draw_border(canvas, item, scale)

    def _item_layer(
        self,
        item: PlacedItem,
        crop: Crop,
        box: tuple[int, int, int, int],
        scale: float,
    ) -> Optional[Image.Image]:
        rotation = item.effective_rotation(crop)
        if rotation != 0 and crop.image_id is not None:
            try:
                original = self.cache.get_original(crop)
            except (ImageNotFoundError, OSError) as e:
                logger.warning(
                    f"Original for crop {crop.id!r} unavailable ({e}), "
                    f"drawing unrotated preview"
                )
            else:
                return self._rotated_layer(item, crop, original, rotation, box, scale)
            preview = self._preview(crop)
            if preview is None:
                return None
            return self._stretched_layer(item, preview, box, scale)

        preview = self._preview(crop)
        if preview is None:
            return None
        return self._contained_layer(item, preview, box, scale)

    @staticmethod
    def _contained_layer(
        item: PlacedItem,
        preview: Image.Image,
        box: tuple[int, int, int, int],
        scale: float,
    ) -> Image.Image:
        """Preview fitted inside the item box, aspect preserved, centred."""
        x0, y0, x1, y1 = box
        x, y = item.x * scale, item.y * scale
        w, h = item.width * scale, item.height * scale
        iw, ih = preview.size
        fit = min(w / iw, h / ih)
        draw_w, draw_h = iw * fit, ih * fit
        left = x + (w - draw_w) / 2
        top = y + (h - draw_h) / 2
        return _place(preview, (x1 - x0, y1 - y0), left - x0, top - y0, draw_w, draw_h)

    @staticmethod
    def _stretched_layer(
        item: PlacedItem,
        preview: Image.Image,
        box: tuple[int, int, int, int],
        scale: float,
    ) -> Image.Image:
        """Preview stretched over the whole item box, unrotated."""
        x0, y0, x1, y1 = box
        return _place(
            preview,
            (x1 - x0, y1 - y0),
            item.x * scale - x0,
            item.y * scale - y0,
            item.width * scale,
            item.height * scale,
        )

    @staticmethod
    def _rotated_layer(
        item: PlacedItem,
        crop: Crop,
        original: Image.Image,
        rotation: float,
        box: tuple[int, int, int, int],
        scale: float,
    ) -> Image.Image:
        """
        Re-derive a rotated crop from its full source image.

        The source is scaled so the crop rectangle matches the item box
        (independent x/y factors), moved so the crop centre lands on the
        item centre and rotated by -rotation about it. Pillow's AFFINE
        wants the inverse: page point -> source pixel.
        """
        x0, y0, x1, y1 = box
        w, h = item.width * scale, item.height * scale
        icx = item.x * scale + w / 2
        icy = item.y * scale + h / 2
        sx = w / crop.width
        sy = h / crop.height

        orig_w = crop.original_image_width or original.width
        orig_h = crop.original_image_height or original.height
        kx = original.width / orig_w
        ky = original.height / orig_h
        ccx, ccy = crop.center

        theta = math.radians(rotation)
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        dx0, dy0 = x0 - icx, y0 - icy
        coeffs = (
            kx * cos_t / sx,
            -kx * sin_t / sx,
            kx * (ccx + (cos_t * dx0 - sin_t * dy0) / sx),
            ky * sin_t / sy,
            ky * cos_t / sy,
            ky * (ccy + (sin_t * dx0 + cos_t * dy0) / sy),
        )
        return original.transform(
            (x1 - x0, y1 - y0),
            Image.Transform.AFFINE,
            coeffs,
            resample=RESAMPLE,
            fillcolor=TRANSPARENT,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Borders
    # ─────────────────────────────────────────────────────────────────────────

    @staticmethod
    def _draw_border(canvas: Image.Image, item: PlacedItem, scale: float) -> None:
        if item.border_style == BorderStyle.NONE or item.border_width <= 0:
            return

        color = _rgba(item.border_color)
        width = item.border_width * scale
        stroke = max(1, round(width))
        outer = item.polygon(scale)
        draw = ImageDraw.Draw(canvas)

        if item.border_style == BorderStyle.DASHED:
            for dash in dash_segments(outer, DASH_ON * width, DASH_OFF * width):
                draw.line(dash, fill=color, width=stroke, joint="curve")
            return

        draw.line(outer + [outer[0]], fill=color, width=stroke, joint="curve")

        if item.border_style == BorderStyle.MANGA:
            ix, iy, iw, ih = manga_inset_box(
                item.x, item.y, item.width, item.height, item.border_width
            )
            if iw <= 0 or ih <= 0:
                return
            inner = shape_polygon(
                item.shape, ix * scale, iy * scale, iw * scale, ih * scale
            )
            inner_stroke = max(1, round(width * MANGA_INNER_RATIO))
            draw.line(inner + [inner[0]], fill=color, width=inner_stroke, joint="curve")


def _place(
    image: Image.Image,
    size: tuple[int, int],
    left: float,
    top: float,
    width: float,
    height: float,
) -> Image.Image:
    """Transparent layer of ``size`` with ``image`` resampled into a sub-rectangle."""
    coeffs = (
        image.width / width,
        0.0,
        -left * image.width / width,
        0.0,
        image.height / height,
        -top * image.height / height,
    )
    return image.transform(
        size, Image.Transform.AFFINE, coeffs, resample=RESAMPLE, fillcolor=TRANSPARENT
    )


def render_page(
    page: Page,
    mode: CompositionMode,
    repository: CropRepository,
    *,
    scale: float = 1.0,
    cache: Optional[ImageCache] = None,
) -> Image.Image:
    """Render one page without keeping a renderer around."""
    return PageRenderer(repository, cache).render(page, mode, scale)
