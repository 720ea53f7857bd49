"""
Module: render.export

Purpose:
    Turn rendered pages into files: one encoded bitmap per page, a preview
    thumbnail, and the multi-page outputs (a directory of PNGs written in
    page order, a ZIP archive, or a single PDF with one page per
    composition page).

Key Functions:
    - export_page(): Encode one page at full size
    - generate_thumbnail(): Small lossy preview of a page, or None
    - document_thumbnail(): Preview of the first non-empty page, or None
    - thumbnail_scale(): Scale fitting a page into the thumbnail box
    - export_pages_to_directory(): One PNG per page, sequential
    - write_pages_zip(): All pages as PNGs in one archive
    - render_pages_to_pdf(): All pages in one PDF

Dependencies:
    - Pillow: Encoding
    - reportlab: PDF output
    - zipfile (std)

Used By:
    - render.service: Asynchronous export
    - storage.autosave: Thumbnails on save
    - cli
"""

from __future__ import annotations

import io
import logging
import time
import zipfile
from pathlib import Path
from typing import Callable, Optional

from PIL import Image
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from crop_composer.config import ComposerConfig
from crop_composer.core.models.document import CompositionDocument
from crop_composer.core.models.pages import CompositionMode, Page

from .renderer import PageRenderer

logger = logging.getLogger(__name__)

PDF_DPI = 150
POINTS_PER_INCH = 72

Sleep = Callable[[float], None]


def _px_to_pt(px: float, dpi: int = PDF_DPI) -> float:
    """Convert pixels at ``dpi`` to PDF points."""
    return px * POINTS_PER_INCH / dpi


def page_filename(index: int, extension: str = "png") -> str:
    """File name of page ``index`` (0-based) in multi-page exports."""
    return f"page-{index + 1}.{extension}"


def encode_image(image: Image.Image, fmt: str, quality: Optional[int] = None) -> bytes:
    """Encode an image with Pillow; ``quality`` applies to lossy formats."""
    buffer = io.BytesIO()
    params = {} if quality is None else {"quality": quality}
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# Single page
# ─────────────────────────────────────────────────────────────────────────────

def export_page(
    renderer: PageRenderer,
    page: Page,
    mode: CompositionMode,
    *,
    config: Optional[ComposerConfig] = None,
) -> bytes:
    """
    Render a page at full size and encode it.

    Returns:
        Encoded bytes in ``config.export_format`` (PNG by default)
    """
    config = config or ComposerConfig()
    image = renderer.render(page, mode, 1.0)
    data = encode_image(image, config.export_format)
    logger.info(f"Exported page {page.id!r} ({image.width}x{image.height}, {len(data)} bytes)")
    return data


def thumbnail_scale(page: Page, max_width: float, max_height: float) -> float:
    """Scale fitting the page into a box; never above 1."""
    return min(max_width / page.page_width, max_height / page.page_height, 1.0)


def has_visible_content(page: Page, mode: CompositionMode) -> bool:
    """True if the page has anything to draw in this mode."""
    if mode == CompositionMode.PANELS:
        return any(a.is_assigned for a in page.assignments)
    return len(page.placed_items) > 0


def generate_thumbnail(
    renderer: PageRenderer,
    page: Page,
    mode: CompositionMode,
    *,
    config: Optional[ComposerConfig] = None,
) -> Optional[bytes]:
    """
    Render a small lossy preview of a page.

    Returns:
        Encoded thumbnail, or None when the page has nothing to show
    """
    config = config or ComposerConfig()
    if not has_visible_content(page, mode):
        return None
    scale = thumbnail_scale(page, config.thumbnail_max_width, config.thumbnail_max_height)
    image = renderer.render(page, mode, scale)
    data = encode_image(image, config.thumbnail_format, config.thumbnail_quality)
    logger.debug(f"Thumbnail of page {page.id!r} at scale {scale:.3f} ({len(data)} bytes)")
    return data


# ─────────────────────────────────────────────────────────────────────────────
# Multi-page
# ─────────────────────────────────────────────────────────────────────────────

def export_pages_to_directory(
    renderer: PageRenderer,
    document: CompositionDocument,
    output_dir: Path,
    *,
    config: Optional[ComposerConfig] = None,
    sleep: Sleep = time.sleep,
) -> list[Path]:
    """
    Write one PNG per page, in page order, pausing between files.

    Args:
        renderer: Page renderer
        document: Snapshot to export
        output_dir: Target directory (created if missing)
        config: Encoding and inter-file delay
        sleep: Delay function (replaceable in tests)

    Returns:
        Written paths in page order
    """
    config = config or ComposerConfig()
    output_dir.mkdir(parents=True, exist_ok=True)
    extension = config.export_format.lower()

    paths = []
    for index, page in enumerate(document.pages):
        path = output_dir / page_filename(index, extension)
        path.write_bytes(export_page(renderer, page, document.mode, config=config))
        paths.append(path)
        if index < document.page_count - 1 and config.export_delay_s > 0:
            sleep(config.export_delay_s)

    logger.info(f"Exported {len(paths)} page(s) to {output_dir}")
    return paths


def write_pages_zip(
    renderer: PageRenderer,
    document: CompositionDocument,
    output_path: Path,
    *,
    config: Optional[ComposerConfig] = None,
) -> Path:
    """
    Export all pages into one ZIP archive.

    Creates a ZIP file with structure:
        composition.zip
        ├── page-1.png
        ├── page-2.png
        └── ...

    Returns:
        Path to created ZIP file (``.zip`` appended if missing)
    """
    config = config or ComposerConfig()
    if output_path.suffix != ".zip":
        output_path = output_path.with_suffix(".zip")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    extension = config.export_format.lower()

    logger.info(f"Creating ZIP export at {output_path}")
    with zipfile.ZipFile(output_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for index, page in enumerate(document.pages):
            data = export_page(renderer, page, document.mode, config=config)
            zf.writestr(page_filename(index, extension), data)
    return output_path


def render_pages_to_pdf(
    renderer: PageRenderer,
    document: CompositionDocument,
    output_path: Path,
    *,
    dpi: int = PDF_DPI,
) -> Path:
    """
    Export all pages into one PDF, each sized to its composition page.

    Page pixels are converted to points at ``dpi`` (150 matches the
    paper-size presets).

    Returns:
        Path to the PDF
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    pdf = canvas.Canvas(str(output_path))

    for page in document.pages:
        width_pt = _px_to_pt(page.page_width, dpi)
        height_pt = _px_to_pt(page.page_height, dpi)
        pdf.setPageSize((width_pt, height_pt))
        image = renderer.render(page, document.mode, 1.0)
        pdf.drawImage(ImageReader(image), 0, 0, width=width_pt, height=height_pt)
        pdf.showPage()

    pdf.save()
    logger.info(f"Rendered {document.page_count} page(s) to {output_path}")
    return output_path


def document_thumbnail(
    renderer: PageRenderer,
    document: CompositionDocument,
    *,
    config: Optional[ComposerConfig] = None,
) -> Optional[bytes]:
    """Thumbnail of the first page with visible content, or None."""
    for page in document.pages:
        if has_visible_content(page, document.mode):
            return generate_thumbnail(renderer, page, document.mode, config=config)
    return None
