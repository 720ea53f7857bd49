"""
Module: storage.file_locking

Purpose:
    Cross-process locking for the JSON database shared by the crop
    repository and the composition store. Uses portalocker for Mac,
    Windows, and Linux compatibility.

Key Functions:
    - locked_file: Context manager for locked file access
    - locked_read_json: Read a JSON database under a shared lock
    - locked_read_modify_write_json: Read-modify-write under an exclusive lock

Dependencies:
    - portalocker: Cross-platform file locking

Used By:
    - storage.file_store: db.json access
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, TypeVar

import portalocker

logger = logging.getLogger(__name__)

R = TypeVar("R")


@contextmanager
def locked_file(
    path: Path,
    mode: str = "r",
    lock_type: int = portalocker.LOCK_EX,
) -> Generator:
    """
    Context manager for cross-platform locked file access.

    Args:
        path: Path to file.
        mode: File open mode ('r', 'r+', 'w', 'a').
        lock_type: LOCK_EX for exclusive, LOCK_SH for shared.

    Yields:
        Open file handle with lock held.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    if "r" in mode and not path.exists():
        path.touch()

    with open(path, mode, encoding="utf-8") as f:
        portalocker.lock(f, lock_type)
        try:
            yield f
        finally:
            portalocker.unlock(f)


def _parse(content: str, path: Path, default: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    if not content.strip():
        return default()
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        # A corrupt database reads as empty rather than blocking the session.
        logger.warning(f"Corrupt JSON in {path.name}: {e}; starting from empty")
        return default()
    if not isinstance(data, dict):
        logger.warning(f"{path.name} does not hold a JSON object; starting from empty")
        return default()
    return data


def locked_read_json(
    path: Path,
    default: Callable[[], Dict[str, Any]] = dict,
) -> Dict[str, Any]:
    """
    Read a JSON object with a shared lock held.

    Missing, empty or corrupt files yield ``default()``.
    """
    if not path.exists():
        return default()
    with locked_file(path, "r", portalocker.LOCK_SH) as f:
        return _parse(f.read(), path, default)


def locked_read_modify_write_json(
    path: Path,
    modifier: Callable[[Dict[str, Any]], R],
    default: Callable[[], Dict[str, Any]] = dict,
) -> R:
    """
    Read JSON, let ``modifier`` mutate it, write it back; all under one lock.

    The modifier receives the parsed object and mutates it in place; its
    return value is passed through. If it raises, nothing is written.

    Args:
        path: Path to JSON file.
        modifier: Function mutating the data and returning a result.
        default: Factory for the data of a missing or empty file.

    Returns:
        Whatever ``modifier`` returned.

    Example:
        >>> def add_canvas(db):
        ...     db.setdefault("canvases", []).append({"id": "1"})
        ...     return "1"
        >>> locked_read_modify_write_json(db_path, add_canvas)  # doctest: +SKIP
        '1'
    """
    with locked_file(path, "r+", portalocker.LOCK_EX) as f:
        f.seek(0)
        data = _parse(f.read(), path, default)
        result = modifier(data)

        f.seek(0)
        f.truncate()
        json.dump(data, f, indent=2, ensure_ascii=False)
        return result
