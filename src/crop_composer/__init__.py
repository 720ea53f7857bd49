"""Top-level package for the Crop Composer.

Provides subpackages:
- crop_composer.core – immutable models, document schema and serialization
- crop_composer.geometry – frame-shape polygon generation
- crop_composer.layout – panel layouts and page presets
- crop_composer.composer – composition state, history and change events
- crop_composer.render – off-screen rendering, thumbnails and exports
- crop_composer.storage – crop/document stores and debounced auto-save
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text()
        except OSError:
            content = ""
        for line in content.splitlines():
            if line.strip().startswith("version"):
                # Parse: version = "0.3.0"
                return line.split("=")[1].strip().strip('"').strip("'")

    # Fallback to importlib.metadata for installed package
    from importlib.metadata import PackageNotFoundError, version as pkg_version
    try:
        return pkg_version("crop-composer")
    except PackageNotFoundError:
        return "0.0.0"

__version__ = _get_version()
__all__: list[str] = ["__version__"]
