"""Main entry point for the redaction engine API.

Starts the FastAPI server on the configured host/port.  ``--redact IN OUT``
runs a one-shot redaction of a PDF instead.
"""

from __future__ import annotations

import argparse
import logging
import socket
from pathlib import Path
from typing import Optional

import uvicorn

from models.schemas import RGBColor
from redaction.config import config
from redaction.structured_logging import setup_logging


def find_free_port() -> int:
    """Find an available TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _parse_fill(value: str) -> tuple[float, float, float]:
    """``#rrggbb`` to a PyMuPDF 0-1 RGB triple."""
    try:
        rgb = RGBColor.from_hex(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid colour {value!r}, expected #rrggbb")
    return rgb.r / 255, rgb.g / 255, rgb.b / 255


def _redact(
    input_path: Path,
    output_path: Path,
    terms: list[str],
    fill: tuple[float, float, float] = (0, 0, 0),
    padding: Optional[float] = None,
) -> int:
    from redaction.anonymizer.engine import redact_pdf
    from redaction.detection.patterns import select_patterns

    log = logging.getLogger("redaction")
    result = redact_pdf(
        input_path,
        output_path,
        enabled_patterns=select_patterns(config.enabled_patterns),
        search_terms=terms,
        fill=fill,
        padding=padding,
    )
    for warning in result.warnings:
        log.warning(warning)
    log.info(f"Redacted {result.rectangles_applied} areas over {result.pages} pages → {result.output_path}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="PDF redaction engine")
    parser.add_argument("--redact", nargs=2, metavar=("INPUT", "OUTPUT"), type=Path)
    parser.add_argument("--term", action="append", default=[], help="Literal text to redact (repeatable)")
    parser.add_argument("--fill", type=_parse_fill, default=(0, 0, 0), metavar="#RRGGBB",
                        help="Cover colour for --redact (default black)")
    parser.add_argument("--padding", type=float, default=None,
                        help="Padding around covered text in points (default from settings)")
    args = parser.parse_args()

    setup_logging(config.log_format, config.log_level)

    if args.redact:
        return _redact(args.redact[0], args.redact[1], args.term, args.fill, args.padding)

    port = config.port if config.port != 0 else find_free_port()
    config.port = port

    # Print port to stdout for the host application to read
    print(f"PORT:{port}", flush=True)

    log = logging.getLogger("redaction")
    log.info(f"Starting on {config.host}:{port}")

    uvicorn.run(
        "api.server:app",
        host=config.host,
        port=port,
        log_level=config.log_level.lower(),
        reload=False,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
