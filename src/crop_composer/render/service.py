"""
Module: render.service

Purpose:
    Asynchronous export. Each request snapshots the composition on the
    calling thread and renders that snapshot on a worker pool, so the live
    composition can keep changing while an export is in flight; the output
    reflects the moment the export was requested.

Key Classes:
    - ExportService: Thread pool-based export queue

Dependencies:
    - concurrent.futures: Thread pool execution
    - render.export, render.renderer

Used By:
    - cli
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Union

from crop_composer.composer.state import CompositionState
from crop_composer.config import ComposerConfig
from crop_composer.core.models.document import CompositionDocument
from crop_composer.errors import InvalidInputError, PageNotFoundError
from crop_composer.storage.repository import CropRepository

from .export import (
    export_page,
    export_pages_to_directory,
    generate_thumbnail,
    render_pages_to_pdf,
    write_pages_zip,
)
from .image_cache import ImageCache
from .renderer import PageRenderer

logger = logging.getLogger(__name__)

Source = Union[CompositionState, CompositionDocument]

EXPORT_KINDS = ("png", "zip", "pdf")


def snapshot(source: Source) -> CompositionDocument:
    """Immutable document for a state or a document."""
    if isinstance(source, CompositionState):
        return source.to_document()
    return source


class ExportService:
    """
    Renders snapshots on background threads.

    Usage:
        with ExportService(repository) as service:
            future = service.submit_page(state, 0)
            png_bytes = future.result()

    Args:
        repository: Crop and bitmap source
        config: Encoding, thumbnail box and worker count
        cache: Bitmap cache shared between renders
    """

    def __init__(
        self,
        repository: CropRepository,
        *,
        config: Optional[ComposerConfig] = None,
        cache: Optional[ImageCache] = None,
    ):
        self.config = config or ComposerConfig()
        self.cache = cache or ImageCache(repository, max_workers=self.config.render_workers)
        self.renderer = PageRenderer(repository, self.cache)
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.render_workers, thread_name_prefix="crop-export"
        )
        self._futures: List[Future] = []

    def _submit(self, fn, *args, **kwargs) -> Future:
        future = self._executor.submit(fn, *args, **kwargs)
        self._futures.append(future)
        return future

    @staticmethod
    def _page(document: CompositionDocument, index: int):
        if not 0 <= index < document.page_count:
            raise PageNotFoundError(index)
        return document.pages[index]

    def submit_page(self, source: Source, index: int) -> Future:
        """Full-size encoded bytes of one page."""
        document = snapshot(source)
        page = self._page(document, index)
        return self._submit(export_page, self.renderer, page, document.mode, config=self.config)

    def submit_thumbnail(self, source: Source, index: int = 0) -> Future:
        """Thumbnail bytes of one page, or None when it is empty."""
        document = snapshot(source)
        page = self._page(document, index)
        return self._submit(
            generate_thumbnail, self.renderer, page, document.mode, config=self.config
        )

    def submit_export_all(self, source: Source, output: Path, kind: str = "png") -> Future:
        """
        Export every page.

        Args:
            source: State or document to snapshot now
            output: Directory for "png", file path for "zip" and "pdf"
            kind: "png", "zip" or "pdf"

        Returns:
            Future of the written paths (png) or the written file
        """
        if kind not in EXPORT_KINDS:
            raise InvalidInputError(f"Unknown export kind {kind!r}; expected one of {EXPORT_KINDS}")
        document = snapshot(source)
        logger.info(f"Queued {kind} export of {document.page_count} page(s) to {output}")
        if kind == "png":
            return self._submit(
                export_pages_to_directory, self.renderer, document, output, config=self.config
            )
        if kind == "zip":
            return self._submit(write_pages_zip, self.renderer, document, output, config=self.config)
        return self._submit(render_pages_to_pdf, self.renderer, document, output)

    def wait_all(self, timeout: Optional[float] = None) -> int:
        """
        Wait for every queued export.

        Returns:
            Number of exports that completed without error
        """
        completed = 0
        for future in self._futures:
            try:
                future.result(timeout=timeout)
                completed += 1
            except Exception as e:
                logger.error(f"Export failed: {e}")
        self._futures.clear()
        return completed

    def shutdown(self) -> None:
        """Wait for queued exports and stop the pools."""
        self.wait_all()
        self._executor.shutdown(wait=True)
        self.cache.shutdown()

    def __enter__(self) -> "ExportService":
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()
