"""
Read-only, bounds-checked view over a memory-mapped ext2 image.

Every decoder gets its bytes from an ImageView, so an offset computed from
an untrusted on-disk field can never read past the end of the image.
"""

import logging
import mmap
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Union

from errors import BoundsError
from fs import BLOCK_SIZE

logger = logging.getLogger(__name__)

Buffer = Union[bytes, bytearray, mmap.mmap]

_WIDTHS = (1, 2, 4, 8)


class ImageView:
    """
    Block and byte access to an image buffer.

    Usage:
        with open(path, "rb") as f, map_image(f) as view:
            sb_bytes = view.read_bytes(1024, 200)
            root_dir = view.block_at(9)
    """

    def __init__(self, buffer: Buffer, block_size: int = BLOCK_SIZE):
        self._buffer = buffer
        self.block_size = block_size
        self.size = len(buffer)

    def __len__(self) -> int:
        return self.size

    def _check(self, offset: int, length: int):
        if offset < 0 or length < 0 or offset + length > self.size:
            raise BoundsError(offset, length, self.size)

    def read_bytes(self, offset: int, length: int) -> bytes:
        """Copy `length` bytes starting at absolute byte `offset`."""
        self._check(offset, length)
        return bytes(self._buffer[offset:offset + length])

    def block_at(self, block_number: int) -> bytes:
        """Return exactly block_size bytes of block `block_number`."""
        return self.read_bytes(block_number * self.block_size, self.block_size)

    def read_at(self, offset: int, width: int) -> int:
        """Decode a little-endian unsigned integer of `width` bytes."""
        if width not in _WIDTHS:
            raise ValueError(f"Unsupported integer width {width}")
        return int.from_bytes(self.read_bytes(offset, width), "little")


def map_file(fd: BinaryIO) -> mmap.mmap:
    """Map the whole of an open file read-only; an empty file raises ValueError"""
    mapping = mmap.mmap(fd.fileno(), 0, access=mmap.ACCESS_READ)
    logger.debug("mapped %d bytes", len(mapping))
    return mapping


@contextmanager
def map_image(fd: BinaryIO, block_size: int = BLOCK_SIZE) -> Iterator[ImageView]:
    """
    Map the whole of an open image file read-only for the duration of the block.

    Raises OSError (or ValueError for an empty file) if the mapping fails;
    the mapping is released on every exit path.
    """
    mapping = map_file(fd)
    try:
        yield ImageView(mapping, block_size)
    finally:
        mapping.close()
