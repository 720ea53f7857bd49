"""
Module: render.prefetch

Purpose:
    Keeps a live view's rotated items backed by their original source
    images. After committed item changes every rotated item on the current
    page whose original is neither cached nor already queued is queued on
    the ImageCache worker pool. Page switches and document loads cancel the
    outstanding requests, as does close(); results for items deleted in the
    meantime are discarded by the cache.

Key Classes:
    - OriginalPrefetcher: CompositionState observer driving ImageCache.prefetch

Dependencies:
    - render.image_cache: Background loading
    - composer.events: Change notifications

Used By:
    - Live views rendering a CompositionState
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from PIL import Image

from crop_composer.composer.events import ChangeKind, StateChange
from crop_composer.composer.state import CompositionState
from crop_composer.core.models.crops import EntityId
from crop_composer.core.models.pages import CompositionMode
from crop_composer.errors import CropNotFoundError

from .image_cache import ImageCache

logger = logging.getLogger(__name__)

OnOriginal = Callable[[EntityId, Image.Image], None]

_REFRESH_KINDS = frozenset({
    ChangeKind.ITEMS_COMMITTED,
    ChangeKind.HISTORY,
    ChangeKind.MODE_CHANGED,
})
# Kinds after which the current page may be a different one
_CANCEL_KINDS = frozenset({
    ChangeKind.PAGE_SELECTED,
    ChangeKind.PAGES_CHANGED,
    ChangeKind.DOCUMENT_LOADED,
})


class OriginalPrefetcher:
    """
    Prefetches originals of rotated items on the current page.

    Args:
        state: Composition to observe
        cache: Cache whose pool loads the originals
        on_original: Called with (item_id, image) when an original arrives
            for an item that still exists; typically schedules a repaint
    """

    def __init__(
        self,
        state: CompositionState,
        cache: ImageCache,
        on_original: Optional[OnOriginal] = None,
    ):
        self.state = state
        self.cache = cache
        self._on_original = on_original
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    def start(self) -> None:
        """Subscribe and queue originals for the page shown now."""
        with self._lock:
            if self._unsubscribe is None:
                self._unsubscribe = self.state.subscribe(self._on_change)
        self.refresh()

    def close(self) -> int:
        """Stop observing; returns the number of cancelled requests."""
        with self._lock:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
        return self.cache.cancel_all()

    def _on_change(self, change: StateChange) -> None:
        if change.kind in _CANCEL_KINDS:
            cancelled = self.cache.cancel_all()
            if cancelled:
                logger.debug(f"Page changed, cancelled {cancelled} original fetch(es)")
            self.refresh()
        elif change.kind in _REFRESH_KINDS:
            self.refresh()

    def _is_live(self, item_id: EntityId) -> bool:
        return self.state.get_item(item_id) is not None

    def _ready(self, item_id: EntityId, image: Image.Image) -> None:
        if self._on_original is not None:
            self._on_original(item_id, image)

    def refresh(self) -> int:
        """
        Queue originals for rotated items that lack one.

        Crops with a prefetch already queued or running are skipped.

        Returns:
            Number of requests queued
        """
        if self.state.mode != CompositionMode.FREEFORM:
            return 0
        queued = 0
        for item in self.state.placed_items:
            if item.crop_id is None:
                continue
            try:
                crop = self.cache.repository.get_crop(item.crop_id)
            except CropNotFoundError:
                continue
            if crop.image_id is None or item.effective_rotation(crop) == 0:
                continue
            if self.cache.has_original(crop.id) or self.cache.is_pending(crop.id):
                continue
            self.cache.prefetch(item.id, crop, self._ready, self._is_live)
            queued += 1
        if queued:
            logger.debug(f"Queued {queued} original fetch(es)")
        return queued
