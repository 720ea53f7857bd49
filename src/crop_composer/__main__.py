"""Allow ``python -m crop_composer``."""

from crop_composer.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
