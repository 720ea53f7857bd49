"""
Unit Tests for the Locked JSON Helpers
"""

import json
import threading

import pytest

from crop_composer.storage.file_locking import (
    locked_read_json,
    locked_read_modify_write_json,
)


class TestLockedJson:
    def test_read_when_missing_then_default(self, tmp_path):
        assert locked_read_json(tmp_path / "db.json", lambda: {"canvases": []}) == {"canvases": []}
        assert not (tmp_path / "db.json").exists()

    @pytest.mark.parametrize("content", ["", "{not json", "[1, 2]"])
    def test_read_when_empty_or_corrupt_then_default(self, tmp_path, content):
        path = tmp_path / "db.json"
        path.write_text(content)

        assert locked_read_json(path) == {}

    def test_modify_when_missing_then_created_with_result(self, tmp_path):
        path = tmp_path / "nested" / "db.json"

        result = locked_read_modify_write_json(path, lambda db: db.setdefault("n", 1))

        assert result == 1
        assert json.loads(path.read_text()) == {"n": 1}

    def test_modify_when_modifier_raises_then_file_unchanged(self, tmp_path):
        path = tmp_path / "db.json"
        path.write_text(json.dumps({"n": 1}))

        def explode(db):
            db["n"] = 2
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            locked_read_modify_write_json(path, explode)

        assert json.loads(path.read_text()) == {"n": 1}

    def test_modify_when_concurrent_increments_then_none_lost(self, tmp_path):
        path = tmp_path / "db.json"

        def increment(db):
            db["n"] = db.get("n", 0) + 1

        def worker():
            for _ in range(20):
                locked_read_modify_write_json(path, increment)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert locked_read_json(path) == {"n": 80}
