"""
Storage Package

Collaborator contracts, file-backed stores and debounced auto-save.
"""

from .repository import CompositionStore, CompositionSummary, CropRepository
from .file_store import FileCropRepository, JsonCompositionStore, JsonDatabase
from .autosave import AutoSaver

__all__ = [
    "CompositionStore",
    "CompositionSummary",
    "CropRepository",
    "FileCropRepository",
    "JsonCompositionStore",
    "JsonDatabase",
    "AutoSaver",
]
