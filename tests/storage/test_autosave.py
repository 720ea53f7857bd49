"""
Unit Tests for AutoSaver

Timers are replaced by FakeTimer so the debounce can be fired by hand.
"""

import pytest

from crop_composer.composer.state import CompositionState
from crop_composer.core.models import Crop
from crop_composer.errors import PersistenceError
from crop_composer.storage.autosave import AutoSaver
from crop_composer.storage.file_store import JsonCompositionStore


class FakeTimer:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fn()


class FailingStore(JsonCompositionStore):
    def save(self, composition_id, document, *, thumbnail=None):
        raise PersistenceError("disk full")


@pytest.fixture
def timers():
    return []


@pytest.fixture
def timer_factory(timers):
    def factory(delay, fn):
        timer = FakeTimer(delay, fn)
        timers.append(timer)
        return timer
    return factory


@pytest.fixture
def store(tmp_path):
    return JsonCompositionStore(tmp_path)


@pytest.fixture
def state():
    return CompositionState()


@pytest.fixture
def saver(state, store, timer_factory):
    saver = AutoSaver(
        state, store,
        composition_id=store.create("Autosaved"),
        thumbnailer=lambda document: b"thumb",
        timer_factory=timer_factory,
    )
    saver.start()
    yield saver
    saver.close()


class TestScheduling:
    def test_change_when_persistent_then_timer_started(self, saver, state, timers):
        state.set_background_color("#ffffff")

        assert len(timers) == 1
        assert timers[0].started and timers[0].daemon
        assert timers[0].delay == 30.0
        assert saver.has_unsaved_changes

    def test_changes_when_repeated_then_previous_timer_cancelled(self, saver, state, timers):
        state.set_background_color("#ffffff")
        state.set_margin(10)

        assert len(timers) == 2
        assert timers[0].cancelled and not timers[1].cancelled

    def test_change_when_silent_then_nothing_scheduled(self, saver, state, timers):
        item_id = state.drop_crop_to_freeform(Crop(id="c1", x=0, y=0, width=10, height=10), 500, 500, 1240, 1754)
        timers.clear()

        state.update_item_silent(item_id, x=1)

        assert timers == []

    def test_page_selected_when_timer_pending_then_cancelled(self, saver, state, timers):
        state.add_page()

        state.select_page(0)

        assert timers[-1].cancelled
        assert not saver.is_scheduled
        assert saver.has_unsaved_changes

    def test_document_loaded_when_dirty_then_clean(self, saver, state, timers):
        state.set_background_color("#ffffff")

        state.load_document(state.to_document())

        assert not saver.has_unsaved_changes
        assert timers[-1].cancelled


class TestSaving:
    def test_timer_when_fired_then_document_and_thumbnail_saved(self, saver, state, store, timers):
        state.set_background_color("#ffffff")

        timers[-1].fire()

        assert saver.save_count == 1
        assert not saver.has_unsaved_changes
        assert store.load(saver.composition_id).pages[0].background_color == "#ffffff"
        assert store.get_thumbnail(saver.composition_id) == b"thumb"

    def test_flush_when_clean_then_no_save(self, saver):
        assert not saver.flush()
        assert saver.save_count == 0

    def test_flush_when_no_composition_id_then_skipped_and_still_dirty(
        self, state, store, timer_factory
    ):
        saver = AutoSaver(state, store, timer_factory=timer_factory)
        saver.start()
        state.set_background_color("#ffffff")

        assert not saver.flush()
        assert saver.has_unsaved_changes

        saver.assign(store.create())
        assert saver.flush()
        saver.close()

    def test_timer_when_store_fails_then_rearmed_and_still_dirty(
        self, state, tmp_path, timers, timer_factory
    ):
        store = FailingStore(tmp_path)
        saver = AutoSaver(state, store, composition_id="1", timer_factory=timer_factory)
        saver.start()
        state.set_background_color("#ffffff")

        timers[-1].fire()

        assert len(timers) == 2
        assert timers[-1].started
        assert saver.has_unsaved_changes
        assert saver.save_count == 0
        saver.close()

    def test_flush_when_store_fails_then_error_raised(self, state, tmp_path, timer_factory):
        saver = AutoSaver(state, FailingStore(tmp_path), composition_id="1", timer_factory=timer_factory)
        saver.start()
        state.set_background_color("#ffffff")

        with pytest.raises(PersistenceError):
            saver.flush()
        saver.close()

    def test_thumbnailer_when_raises_then_saved_without_thumbnail(
        self, state, store, timer_factory
    ):
        def broken(document):
            raise OSError("encoder missing")

        composition_id = store.create()
        saver = AutoSaver(state, store, composition_id=composition_id,
                          thumbnailer=broken, timer_factory=timer_factory)
        saver.start()
        state.set_background_color("#ffffff")

        assert saver.flush()
        assert store.get_thumbnail(composition_id) is None
        saver.close()

    def test_close_when_timer_pending_then_cancelled_and_unsubscribed(self, saver, state, timers):
        state.set_background_color("#ffffff")

        saver.close()
        state.set_margin(10)

        assert timers[0].cancelled
        assert len(timers) == 1
