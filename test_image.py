"""
Tests for the bounds-checked image view
"""

import pytest

from errors import BoundsError
from image import ImageView, map_file, map_image


def make_view(num_blocks=4, block_size=1024):
    data = bytearray(num_blocks * block_size)
    for block in range(num_blocks):
        data[block * block_size] = block
    return ImageView(bytes(data), block_size)


def test_block_at_returns_whole_block():
    view = make_view()

    block = view.block_at(2)

    assert len(block) == 1024
    assert block[0] == 2


def test_last_block_is_readable():
    assert make_view().block_at(3)[0] == 3


def test_block_past_end_raises_bounds_error():
    view = make_view()

    with pytest.raises(BoundsError) as excinfo:
        view.block_at(4)

    assert excinfo.value.offset == 4096
    assert excinfo.value.size == 4096
    assert "4096" in str(excinfo.value)


def test_negative_offset_raises_bounds_error():
    with pytest.raises(BoundsError):
        make_view().read_bytes(-1, 4)


def test_read_at_is_little_endian():
    view = ImageView(bytes([0x53, 0xEF, 0x01, 0x00, 0x00, 0x00, 0x00, 0x80]))

    assert view.read_at(0, 1) == 0x53
    assert view.read_at(0, 2) == 0xEF53
    assert view.read_at(0, 4) == 0x0001EF53
    assert view.read_at(0, 8) == 0x800000000001EF53


def test_read_at_straddling_end_raises_bounds_error():
    view = ImageView(bytes(6))

    assert view.read_at(2, 4) == 0
    with pytest.raises(BoundsError):
        view.read_at(3, 4)


def test_read_at_rejects_odd_widths():
    with pytest.raises(ValueError):
        ImageView(bytes(8)).read_at(0, 3)


def test_map_image_reads_file_contents(tmp_path):
    path = tmp_path / "disk.img"
    path.write_bytes(b"\x00" * 1024 + b"\xAB" * 1024)

    with open(path, "rb") as f, map_image(f) as view:
        assert len(view) == 2048
        assert view.block_at(1) == b"\xAB" * 1024


def test_map_image_releases_mapping(tmp_path):
    path = tmp_path / "disk.img"
    path.write_bytes(b"\x00" * 2048)

    with open(path, "rb") as f:
        with map_image(f) as view:
            mapping = view._buffer
        assert mapping.closed


def test_map_empty_file_fails(tmp_path):
    path = tmp_path / "empty.img"
    path.write_bytes(b"")

    with open(path, "rb") as f, pytest.raises(ValueError):
        map_file(f)
