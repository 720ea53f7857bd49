"""
Render Package

Page rasterization, crop filters, bitmap caching and export writers.
"""

from .filters import FILTERS, CropFilter, FilterStep, apply_filter, get_filter_chain, list_filters
from .image_cache import ImageCache, decode_image
from .renderer import PageRenderer, output_size, render_page
from .export import (
    encode_image,
    export_page,
    export_pages_to_directory,
    document_thumbnail,
    generate_thumbnail,
    page_filename,
    render_pages_to_pdf,
    thumbnail_scale,
    write_pages_zip,
)
from .service import ExportService
from .prefetch import OriginalPrefetcher

__all__ = [
    "FILTERS",
    "CropFilter",
    "FilterStep",
    "apply_filter",
    "get_filter_chain",
    "list_filters",
    "ImageCache",
    "decode_image",
    "PageRenderer",
    "output_size",
    "render_page",
    "encode_image",
    "export_page",
    "export_pages_to_directory",
    "document_thumbnail",
    "generate_thumbnail",
    "page_filename",
    "render_pages_to_pdf",
    "thumbnail_scale",
    "write_pages_zip",
    "ExportService",
    "OriginalPrefetcher",
]
