"""
Tests for allocation bitmap helpers
"""

import random

from bitmap import is_in_use, render_bitmap


def test_bits_are_lsb_first():
    bitmap = bytes([0b00000101, 0b10000000])

    assert is_in_use(bitmap, 0)
    assert not is_in_use(bitmap, 1)
    assert is_in_use(bitmap, 2)
    assert is_in_use(bitmap, 15)
    assert not is_in_use(bitmap, 8)


def test_is_in_use_matches_shift_and_mask():
    rng = random.Random(1234)
    bitmap = bytes(rng.randrange(256) for _ in range(16))

    for i in range(len(bitmap) * 8):
        assert is_in_use(bitmap, i) == (((bitmap[i // 8] >> (i % 8)) & 1) != 0)


def test_render_high_bits():
    assert render_bitmap(bytes([0b11000000]), 1) == "00000011\n"


def test_render_groups_bytes():
    assert render_bitmap(bytes([0xFF, 0x03, 0x00]), 3) == "11111111 11000000 00000000\n"


def test_render_only_first_bytes():
    assert render_bitmap(bytes([0x01, 0x02, 0x04]), 2) == "10000000 01000000\n"


def test_render_shape():
    rng = random.Random(99)
    bitmap = bytes(rng.randrange(256) for _ in range(64))

    groups = render_bitmap(bitmap, 64).rstrip("\n").split(" ")

    assert len(groups) == 64
    assert all(len(group) == 8 and set(group) <= {"0", "1"} for group in groups)
