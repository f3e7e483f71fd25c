"""Command line front end: ``sdmeta extract|encode|parse``."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from . import config
from .features.metadata import service, tag_reader
from .shared import DialectId, get_logger, log_success

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_EMPTY = 1
EXIT_USAGE = 2


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace")


def _dump(value, pretty: bool) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2 if pretty else None)


def _cmd_extract(args: argparse.Namespace) -> int:
    path = Path(args.image)
    if not path.is_file():
        print(f"No such file: {path}", file=sys.stderr)
        return EXIT_USAGE
    record = service.extract(tag_reader.read_raw_tags(str(path)))
    print(_dump(record, args.pretty))
    if record:
        log_success(logger, f"Extracted {len(record)} fields from {path.name}")
    return EXIT_OK if record else EXIT_EMPTY


def _cmd_encode(args: argparse.Namespace) -> int:
    try:
        meta = json.loads(_read_text(Path(args.json_file)))
    except (OSError, ValueError) as exc:
        print(f"Cannot read metadata JSON: {exc}", file=sys.stderr)
        return EXIT_USAGE
    if not isinstance(meta, dict):
        print("Metadata JSON must be an object", file=sys.stderr)
        return EXIT_USAGE
    print(service.encode(meta, args.dialect))
    return EXIT_OK


def _cmd_parse(args: argparse.Namespace) -> int:
    try:
        text = _read_text(Path(args.text_file))
    except OSError as exc:
        print(f"Cannot read text file: {exc}", file=sys.stderr)
        return EXIT_USAGE
    try:
        partial = service.parse_generator_text(text)
    except ValueError as exc:
        logger.warning("Generation text could not be parsed: %s", exc)
        return EXIT_EMPTY
    print(_dump(partial, args.pretty))
    return EXIT_OK if partial else EXIT_EMPTY


def _enable_debug_logging() -> None:
    for name, obj in list(logging.Logger.manager.loggerDict.items()):
        if name.startswith("sdmeta.") and isinstance(obj, logging.Logger):
            obj.setLevel(logging.DEBUG)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sdmeta", description="Read and write AI image-generation metadata.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging (same as SDMETA_DEBUG=1).")
    sub = parser.add_subparsers(dest="command", required=True)

    p_extract = sub.add_parser("extract", help="Print the canonical metadata of an image.")
    p_extract.add_argument("image")
    p_extract.add_argument("--pretty", action="store_true", help="Indent JSON output.")
    p_extract.set_defaults(func=_cmd_extract)

    p_encode = sub.add_parser("encode", help="Render a canonical metadata JSON file as dialect text.")
    p_encode.add_argument("json_file")
    p_encode.add_argument(
        "--dialect",
        choices=[d.value for d in DialectId],
        default=DialectId.AUTOMATIC.value,
    )
    p_encode.set_defaults(func=_cmd_encode)

    p_parse = sub.add_parser("parse", help="Parse a generation-details text file.")
    p_parse.add_argument("text_file")
    p_parse.add_argument("--pretty", action="store_true", help="Indent JSON output.")
    p_parse.set_defaults(func=_cmd_parse)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        return int(exc.code or 0)
    if args.debug or config.DEBUG:
        _enable_debug_logging()
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
