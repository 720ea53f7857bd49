"""
Module: crop_composer.cli

Purpose:
    Command line front end over a store directory: list stored
    compositions, export every page of one (PNG directory, ZIP or PDF) and
    write a page thumbnail.

Key Functions:
    - main(): Entry point of the ``crop-composer`` script
    - build_parser(): Argument parser

Dependencies:
    - argparse (std)
    - render.service, storage.file_store

Used By:
    - ``crop-composer`` console script, ``python -m crop_composer``
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from crop_composer import __version__
from crop_composer.config import ComposerConfig, load_config
from crop_composer.errors import ComposerError
from crop_composer.render.export import generate_thumbnail
from crop_composer.render.service import EXPORT_KINDS, ExportService
from crop_composer.storage.file_store import FileCropRepository, JsonCompositionStore
from crop_composer.utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crop-composer",
        description="Render and export stored crop compositions.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--store", type=Path, default=Path("data"), help="Store directory holding db.json")
    parser.add_argument("--crops", type=Path, help="Crop store directory (defaults to --store)")
    parser.add_argument("--config", type=Path, help="JSON file of configuration overrides")
    parser.add_argument("--log-file", type=Path, help="Also append log output to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List stored compositions")

    export = sub.add_parser("export", help="Export every page of a composition")
    export.add_argument("composition_id", help="Stored composition id")
    export.add_argument("--output", type=Path, required=True, help="Directory (png) or file (zip, pdf)")
    export.add_argument("--kind", choices=EXPORT_KINDS, default="png", help="Output kind")

    thumb = sub.add_parser("thumbnail", help="Write a thumbnail of one page")
    thumb.add_argument("composition_id", help="Stored composition id")
    thumb.add_argument("--output", type=Path, required=True, help="Thumbnail file")
    thumb.add_argument("--page", type=int, default=1, help="1-based page number")

    return parser


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────

def _cmd_list(store: JsonCompositionStore) -> int:
    summaries = store.list_compositions()
    if not summaries:
        print("No stored compositions.")
        return EXIT_OK
    for summary in summaries:
        thumb = " [thumbnail]" if summary.has_thumbnail else ""
        print(f"{summary.id}\t{summary.name}\t{summary.page_count} page(s){thumb}")
    return EXIT_OK


def _cmd_export(
    args: argparse.Namespace,
    store: JsonCompositionStore,
    repository: FileCropRepository,
    config: ComposerConfig,
) -> int:
    document = store.load(args.composition_id)
    with ExportService(repository, config=config) as service:
        result = service.submit_export_all(document, args.output, args.kind).result()
    if isinstance(result, list):
        for path in result:
            print(path)
    else:
        print(result)
    return EXIT_OK


def _cmd_thumbnail(
    args: argparse.Namespace,
    store: JsonCompositionStore,
    repository: FileCropRepository,
    config: ComposerConfig,
) -> int:
    document = store.load(args.composition_id)
    index = args.page - 1
    if not 0 <= index < document.page_count:
        logger.error(f"Page {args.page} out of range (1-{document.page_count})")
        return EXIT_ERROR
    with ExportService(repository, config=config) as service:
        data = generate_thumbnail(
            service.renderer, document.pages[index], document.mode, config=config
        )
    if data is None:
        logger.warning(f"Page {args.page} has nothing to show; no thumbnail written")
        return EXIT_ERROR
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_bytes(data)
    print(args.output)
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the command line front end.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    config = load_config(args.config)
    store = JsonCompositionStore(args.store)
    repository = FileCropRepository(args.crops or args.store)

    try:
        if args.command == "list":
            return _cmd_list(store)
        if args.command == "export":
            return _cmd_export(args, store, repository, config)
        return _cmd_thumbnail(args, store, repository, config)
    except ComposerError as e:
        logger.error(str(e))
        return EXIT_ERROR
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return EXIT_ERROR
