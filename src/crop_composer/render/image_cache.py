"""
Module: render.image_cache

Purpose:
    Decoding and caching of crop bitmaps. Original (full-resolution) source
    images are fetched lazily and cached per crop, so a second request for
    the same rotated crop never re-fetches. Concurrent requests for a crop
    share one fetch. Failed fetches are not cached.

    prefetch() loads originals on a worker pool for a live view. Results
    that arrive after the requesting item was removed, or after
    cancel_all(), are discarded.

Key Classes:
    - ImageCache: Preview and original cache over a CropRepository

Dependencies:
    - Pillow: Decoding
    - concurrent.futures: Background prefetch

Used By:
    - render.renderer: Bitmap lookup while rendering
    - render.service: Shared cache for asynchronous exports
    - render.prefetch: Originals for a live view
"""

from __future__ import annotations

import io
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from PIL import Image, UnidentifiedImageError

from crop_composer.core.models.crops import Crop, EntityId
from crop_composer.errors import ImageNotFoundError
from crop_composer.storage.repository import CropRepository

logger = logging.getLogger(__name__)

OnReady = Callable[[EntityId, Image.Image], None]
IsLive = Callable[[EntityId], bool]


def decode_image(data: bytes, label: object = "image") -> Image.Image:
    """
    Decode encoded bitmap bytes into a loaded RGBA image.

    Raises:
        ImageNotFoundError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise ImageNotFoundError(label, f"cannot decode {label!r}: {e}") from e


class ImageCache:
    """
    Per-crop cache of decoded previews and originals.

    Thread-safe; several renders may share one cache.

    Args:
        repository: Source of crop bitmaps
        max_workers: Threads used by prefetch()
    """

    def __init__(self, repository: CropRepository, *, max_workers: int = 2):
        self.repository = repository
        self._lock = threading.Lock()
        self._previews: dict[EntityId, Image.Image] = {}
        self._originals: dict[EntityId, Image.Image] = {}
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._loading: dict[EntityId, Future] = {}
        # item id -> (crop id, prefetch future)
        self._pending: dict[EntityId, tuple[EntityId, Future]] = {}
        self._generation = 0

    # ─────────────────────────────────────────────────────────────────────────
    # Synchronous access
    # ─────────────────────────────────────────────────────────────────────────

    def get_preview(self, crop: Crop) -> Image.Image:
        """
        Decoded preview of a crop.

        Raises:
            ImageNotFoundError: If the preview is missing or unreadable
        """
        with self._lock:
            cached = self._previews.get(crop.id)
        if cached is not None:
            return cached
        image = decode_image(self.repository.get_preview(crop.id), crop.id)
        with self._lock:
            self._previews[crop.id] = image
        return image

    def get_original(self, crop: Crop) -> Image.Image:
        """
        Decoded original source image of a crop.

        Raises:
            ImageNotFoundError: If the crop has no image id, or the image is
                missing or unreadable
            OSError: If the underlying store fails
        """
        if crop.image_id is None:
            raise ImageNotFoundError(crop.id, f"crop {crop.id!r} has no source image")
        with self._lock:
            cached = self._originals.get(crop.id)
            loading = self._loading.get(crop.id)
            if cached is None and loading is None:
                owner: Future = Future()
                self._loading[crop.id] = owner
        if cached is not None:
            return cached
        if loading is not None:
            return loading.result()

        try:
            image = decode_image(self.repository.get_original_image(crop.image_id), crop.image_id)
        except Exception as e:
            with self._lock:
                if self._loading.get(crop.id) is owner:
                    del self._loading[crop.id]
            owner.set_exception(e)
            raise
        with self._lock:
            # Skipped when invalidated while loading
            if self._loading.get(crop.id) is owner:
                del self._loading[crop.id]
                self._originals[crop.id] = image
        owner.set_result(image)
        logger.debug(f"Cached original for crop {crop.id!r} ({image.width}x{image.height})")
        return image

    def has_original(self, crop_id: EntityId) -> bool:
        with self._lock:
            return crop_id in self._originals

    def is_loading(self, crop_id: EntityId) -> bool:
        """True while a fetch of the crop's original is in flight."""
        with self._lock:
            return crop_id in self._loading

    def is_pending(self, crop_id: EntityId) -> bool:
        """True while a prefetch for the crop is queued or running."""
        with self._lock:
            return any(pending_crop == crop_id for pending_crop, _ in self._pending.values())

    def invalidate(self, crop_id: EntityId) -> None:
        """Forget cached bitmaps of one crop (after it was edited)."""
        with self._lock:
            self._previews.pop(crop_id, None)
            self._originals.pop(crop_id, None)
            self._loading.pop(crop_id, None)

    def clear(self) -> None:
        with self._lock:
            self._previews.clear()
            self._originals.clear()
            self._loading.clear()

    # ─────────────────────────────────────────────────────────────────────────
    # Background prefetch
    # ─────────────────────────────────────────────────────────────────────────

    def prefetch(
        self,
        item_id: EntityId,
        crop: Crop,
        on_ready: OnReady,
        is_live: IsLive = lambda item_id: True,
    ) -> Future:
        """
        Load a crop's original in the background.

        ``on_ready(item_id, image)`` is called on the worker thread only if
        the load succeeds, the item still exists (``is_live``) and no
        cancel_all() happened in between.

        Returns:
            Future resolving to the image, or to None when discarded
        """
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="crop-prefetch"
                )
            generation = self._generation
            future = self._executor.submit(
                self._prefetch_one, item_id, crop, on_ready, is_live, generation
            )
            self._pending[item_id] = (crop.id, future)
        future.add_done_callback(lambda f: self._forget(item_id, f))
        return future

    def _prefetch_one(
        self,
        item_id: EntityId,
        crop: Crop,
        on_ready: OnReady,
        is_live: IsLive,
        generation: int,
    ) -> Optional[Image.Image]:
        try:
            image = self.get_original(crop)
        except (ImageNotFoundError, OSError) as e:
            logger.warning(f"Prefetch of original for item {item_id!r} failed: {e}")
            return None
        with self._lock:
            stale = generation != self._generation
        if stale or not is_live(item_id):
            logger.debug(f"Discarding prefetched original for item {item_id!r}")
            return None
        on_ready(item_id, image)
        return image

    def _forget(self, item_id: EntityId, future: Future) -> None:
        with self._lock:
            entry = self._pending.get(item_id)
            if entry is not None and entry[1] is future:
                del self._pending[item_id]

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def cancel_all(self) -> int:
        """
        Cancel queued prefetches and mark running ones stale.

        Returns:
            Number of requests that were still pending
        """
        with self._lock:
            self._generation += 1
            pending = [future for _, future in self._pending.values()]
            self._pending.clear()
        for future in pending:
            future.cancel()
        if pending:
            logger.debug(f"Cancelled {len(pending)} pending prefetch(es)")
        return len(pending)

    def shutdown(self) -> None:
        """Cancel pending work and stop the worker pool."""
        self.cancel_all()
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
