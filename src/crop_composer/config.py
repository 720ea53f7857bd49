"""
Module: crop_composer.config

Purpose:
    Configuration dataclass for the composition engine. Immutable
    configuration with validation on construction, plus a JSON loader that
    falls back to defaults on any malformed input.

Key Classes:
    - ComposerConfig: Tunables for history, auto-save, thumbnails and export

Key Functions:
    - load_config(): Read overrides from a JSON file

Dependencies:
    - dataclasses (std)
    - json (std)

Used By:
    - composer.state: History capacity, default page preset
    - render.export: Thumbnail box, encodings, inter-file delay
    - storage.autosave: Debounce delay
    - cli: Command line overrides
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComposerConfig:
    """
    Configuration for the composition engine (immutable).

    Attributes:
        history_limit: Capacity of each of the undo and redo stacks
        autosave_delay_s: Debounce delay before a dirty document is saved
        default_page_preset: Page preset used for a fresh document
        default_margin: Panel-mode page margin in pixels
        default_background: Background colour of new pages
        thumbnail_max_width: Width of the box thumbnails are fitted into
        thumbnail_max_height: Height of the box thumbnails are fitted into
        thumbnail_format: Pillow format name for thumbnails (lossy)
        thumbnail_quality: Encoder quality for thumbnails (1-100)
        export_format: Pillow format name for full-size page exports
        export_delay_s: Pause between files when exporting pages to a directory
        min_page_size: Smallest accepted page edge when resizing a page
        render_workers: Threads used for asynchronous export and image fetches

    Example:
        >>> config = ComposerConfig(history_limit=20)
        >>> config.thumbnail_max_width
        800
    """

    history_limit: int = 50
    autosave_delay_s: float = 30.0
    default_page_preset: str = "A4_PORTRAIT"
    default_margin: float = 40
    default_background: str = "#1a1a1a"

    # Thumbnails
    thumbnail_max_width: int = 800
    thumbnail_max_height: int = 600
    thumbnail_format: str = "WEBP"
    thumbnail_quality: int = 90

    # Export
    export_format: str = "PNG"
    export_delay_s: float = 0.2
    min_page_size: int = 200
    render_workers: int = 2

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if self.history_limit < 1:
            raise ValueError(f"history_limit must be >= 1: {self.history_limit}")
        if self.autosave_delay_s < 0:
            raise ValueError(f"autosave_delay_s must be >= 0: {self.autosave_delay_s}")
        if self.default_margin < 0:
            raise ValueError(f"default_margin must be >= 0: {self.default_margin}")
        if self.thumbnail_max_width <= 0 or self.thumbnail_max_height <= 0:
            raise ValueError(
                f"thumbnail box must be positive: "
                f"{self.thumbnail_max_width}x{self.thumbnail_max_height}"
            )
        if not 1 <= self.thumbnail_quality <= 100:
            raise ValueError(f"thumbnail_quality must be 1-100: {self.thumbnail_quality}")
        if self.export_delay_s < 0:
            raise ValueError(f"export_delay_s must be >= 0: {self.export_delay_s}")
        if self.min_page_size < 1:
            raise ValueError(f"min_page_size must be >= 1: {self.min_page_size}")
        if self.render_workers < 1:
            raise ValueError(f"render_workers must be >= 1: {self.render_workers}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(path: Optional[Path]) -> ComposerConfig:
    """
    Load configuration overrides from a JSON file.

    Any malformed data results in a graceful fallback to defaults: a missing
    file, unreadable JSON, a non-object payload or a value that fails
    validation are logged and the default configuration is returned.
    Unknown keys are ignored.

    Args:
        path: Path to a JSON object of field overrides, or None

    Returns:
        ComposerConfig with the overrides applied
    """
    if path is None or not path.exists():
        return ComposerConfig()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read config {path}: {e}; using defaults")
        return ComposerConfig()

    if not isinstance(data, dict):
        logger.warning(f"Config {path} is not a JSON object; using defaults")
        return ComposerConfig()

    known = {f.name for f in fields(ComposerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.debug(f"Ignoring unknown config keys: {unknown}")

    try:
        return ComposerConfig(**{k: v for k, v in data.items() if k in known})
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid config in {path}: {e}; using defaults")
        return ComposerConfig()
