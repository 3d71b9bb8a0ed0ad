#!/usr/bin/env python3
"""
Dump the metadata of an ext2 image: superblock counters, the block group
descriptor, both allocation bitmaps, every in-use inode and the entries of
every directory block.

Usage:
    readimage.py <image file name>
"""

import logging
import sys
from contextlib import ExitStack
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from errors import ReadImageError, UsageError
from image import map_image
from inspector import inspect_image
from report import render_report

logger = logging.getLogger("readimage")


def setup_logging(level: int = logging.WARNING) -> None:
    """Send log records to stderr through rich, replacing an earlier rich handler"""
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    root = logging.getLogger()
    for old in [h for h in root.handlers if isinstance(h, RichHandler)]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(level)


def parse_args(argv: List[str]) -> str:
    if len(argv) != 2:
        prog = argv[0] if argv else "readimage"
        raise UsageError(f"Usage: {prog} <image file name>")
    return argv[1]


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv
    setup_logging()

    try:
        image_path = parse_args(argv)
    except UsageError as e:
        Console(stderr=True, highlight=False).out(str(e))
        return 1

    with ExitStack() as stack:
        try:
            image_file = stack.enter_context(open(image_path, "rb"))
        except OSError as e:
            logger.error("open: %s", e.strerror or e)
            return 1
        try:
            view = stack.enter_context(map_image(image_file))
        except (OSError, ValueError) as e:
            logger.error("mmap: %s", getattr(e, "strerror", None) or e)
            return 1
        try:
            inspection = inspect_image(view)
        except ReadImageError as e:
            logger.error("%s: %s", image_path, e)
            return 1

    # Names go out as decoded, without terminal rendering
    sys.stdout.write(render_report(inspection))
    return 0


if __name__ == "__main__":
    sys.exit(main())
