"""
Exceptions raised while inspecting an ext2 image.
"""


class ReadImageError(Exception):
    """Base exception for all image inspection errors."""
    pass


class UsageError(ReadImageError):
    """Wrong command line arguments."""
    pass


class BoundsError(ReadImageError):
    """A byte range falls outside the mapped image."""

    def __init__(self, offset: int, length: int, size: int):
        self.offset = offset
        self.length = length
        self.size = size
        super().__init__(
            f"offset {offset} (+{length} bytes) is outside the {size}-byte image"
        )


class FormatError(ReadImageError):
    """A directory block's rec_len chain does not tile the block exactly."""

    def __init__(self, message: str, offset: int):
        self.offset = offset
        super().__init__(f"{message} at offset {offset}")
