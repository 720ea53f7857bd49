"""
Unit Tests for OriginalPrefetcher
"""

import threading

import pytest

from conftest import BLUE, MemoryCropRepository, png_bytes
from crop_composer.composer.state import CompositionState
from crop_composer.core.models import Crop, PlacedItem
from crop_composer.render.image_cache import ImageCache
from crop_composer.render.prefetch import OriginalPrefetcher

ROTATED = Crop(id="r", x=0, y=0, width=10, height=10, rotation=90, image_id="img")
UPRIGHT = Crop(id="u", x=0, y=0, width=10, height=10, image_id="img")


class SlowRepository(MemoryCropRepository):
    """Serves crops from a source repository; original reads block until released."""

    def __init__(self, source: MemoryCropRepository):
        super().__init__()
        self.source = source
        self.started = threading.Event()
        self.release = threading.Event()

    def get_original_image(self, image_id):
        self.started.set()
        self.release.wait(timeout=5)
        return self.source.get_original_image(image_id)

    def get_crop(self, crop_id):
        return self.source.get_crop(crop_id)


@pytest.fixture
def source_repository(repository) -> MemoryCropRepository:
    repository.originals["img"] = png_bytes(BLUE, (20, 20))
    repository.add(ROTATED)
    repository.add(UPRIGHT)
    return repository


@pytest.fixture
def cache(source_repository):
    cache = ImageCache(source_repository, max_workers=1)
    yield cache
    cache.shutdown()


@pytest.fixture
def state(source_repository, id_factory):
    return CompositionState(id_factory=id_factory, crop_lookup=source_repository.get_crop)


class TestOriginalPrefetcher:
    def test_drop_when_rotated_crop_then_original_delivered(self, state, cache):
        arrived = threading.Event()
        delivered = []

        def on_original(item_id, image):
            delivered.append((item_id, image.size))
            arrived.set()

        prefetcher = OriginalPrefetcher(state, cache, on_original)
        prefetcher.start()
        item_id = state.drop_crop_to_freeform("r", 500, 500)

        assert arrived.wait(timeout=5)
        assert delivered == [(item_id, (20, 20))]
        assert cache.has_original("r")
        assert prefetcher.refresh() == 0
        prefetcher.close()

    def test_refresh_when_unrotated_or_dangling_then_nothing_queued(self, state, cache):
        state.drop_crop_to_freeform("u", 500, 500)
        dangling = PlacedItem(id="d", crop_id="ghost", x=0, y=0, width=10, height=10, rotation=90)
        state.apply_and_record(lambda items: items + (dangling,))
        prefetcher = OriginalPrefetcher(state, cache)

        assert prefetcher.refresh() == 0

    def test_refresh_when_item_rotation_overrides_crop_then_queued(self, state, cache):
        item_id = state.drop_crop_to_freeform("u", 500, 500)
        state.update_item(item_id, rotation=45)
        prefetcher = OriginalPrefetcher(state, cache)

        assert prefetcher.refresh() == 1

    def test_refresh_when_panels_mode_then_nothing_queued(self, state, cache):
        state.drop_crop_to_freeform("r", 500, 500)
        state.set_mode("panels")

        assert OriginalPrefetcher(state, cache).refresh() == 0

    def test_page_switch_when_fetch_in_flight_then_cancelled_and_discarded(
        self, source_repository, state
    ):
        slow = SlowRepository(source_repository)
        cache = ImageCache(slow, max_workers=1)
        delivered = []
        prefetcher = OriginalPrefetcher(state, cache, lambda i, img: delivered.append(i))
        try:
            state.add_page()
            state.select_page(0)
            prefetcher.start()
            state.drop_crop_to_freeform("r", 500, 500)
            assert slow.started.wait(timeout=5)

            state.select_page(1)

            assert cache.pending_count == 0
        finally:
            slow.release.set()
            cache.shutdown()
        assert delivered == []

    def test_nudge_when_fetch_in_flight_then_original_read_once(self, source_repository, state):
        slow = SlowRepository(source_repository)
        cache = ImageCache(slow, max_workers=1)
        arrived = threading.Event()
        prefetcher = OriginalPrefetcher(state, cache, lambda i, img: arrived.set())
        try:
            prefetcher.start()
            item_id = state.drop_crop_to_freeform("r", 500, 500)
            assert slow.started.wait(timeout=5)

            state.nudge_item(item_id, 1, 0)
            state.nudge_item(item_id, 0, 1)

            assert cache.pending_count == 1
            slow.release.set()
            assert arrived.wait(timeout=5)
        finally:
            slow.release.set()
            cache.shutdown()
        assert source_repository.original_reads == 1
        assert cache.has_original("r")

    def test_refresh_when_prefetch_queued_then_not_queued_again(self, source_repository, state):
        slow = SlowRepository(source_repository)
        cache = ImageCache(slow, max_workers=1)
        prefetcher = OriginalPrefetcher(state, cache)
        try:
            state.drop_crop_to_freeform("r", 500, 500)

            assert prefetcher.refresh() == 1
            assert prefetcher.refresh() == 0
        finally:
            slow.release.set()
            cache.shutdown()

    def test_close_when_called_then_unsubscribed(self, state, cache):
        prefetcher = OriginalPrefetcher(state, cache)
        prefetcher.start()

        assert prefetcher.close() == 0
        state.drop_crop_to_freeform("r", 500, 500)

        assert cache.pending_count == 0
