"""
Tests for the command line entry point
"""

import logging
import struct

import pytest

import mkfs
from fs import ROOT_INODE
from readimage import main
from test_report import EXPECTED_HELLO_REPORT


def test_usage_without_arguments(capsys):
    assert main(["readimage"]) == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Usage: readimage <image file name>" in captured.err


def test_usage_with_extra_arguments(capsys):
    assert main(["readimage", "a.img", "b.img"]) == 1
    assert "Usage:" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys, caplog):
    with caplog.at_level(logging.ERROR):
        assert main(["readimage", str(tmp_path / "nope.img")]) == 1

    assert "open: No such file or directory" in caplog.text
    assert capsys.readouterr().out == ""


def test_empty_file_fails_to_map(write_image, capsys, caplog):
    path = write_image(b"")

    with caplog.at_level(logging.ERROR):
        assert main(["readimage", path]) == 1

    assert "mmap:" in caplog.text
    assert capsys.readouterr().out == ""


def test_hello_image_report(write_image, hello_image, capsys):
    path = write_image(hello_image)

    assert main(["readimage", path]) == 0

    assert capsys.readouterr().out.splitlines() == EXPECTED_HELLO_REPORT


def test_out_of_range_block_aborts(write_image, hello_image, capsys, caplog):
    struct.pack_into("<I", hello_image, 5 * 1024 + 128 + 40, 100000)
    path = write_image(hello_image)

    with caplog.at_level(logging.ERROR):
        assert main(["readimage", path]) == 1

    assert str(100000 * 1024) in caplog.text
    assert capsys.readouterr().out == ""


def test_corrupt_directory_block_still_reports(write_image, hello_image, capsys):
    struct.pack_into("<H", hello_image, 9 * 1024 + 4, 0)
    path = write_image(hello_image)

    assert main(["readimage", path]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[-1] == "   DIR BLOCK NUM: 9 (for inode 2)"


def test_control_characters_in_names_are_written_as_is(write_image, capsys):
    builder = mkfs.ImageBuilder()
    builder.add_file(ROOT_INODE, "a\rb\tc", b"x", inode_num=12)
    path = write_image(builder.to_bytes())

    assert main(["readimage", path]) == 0

    out = capsys.readouterr().out
    assert "name=a\rb\tc\n" in out


def test_mkfs_main_writes_hello_image(tmp_path, monkeypatch, capsys):
    path = str(tmp_path / "fs.img")
    monkeypatch.setattr("sys.argv", ["mkfs", path])

    mkfs.main()

    assert main(["readimage", path]) == 0
    assert capsys.readouterr().out.splitlines() == EXPECTED_HELLO_REPORT


def test_mkfs_root_only(tmp_path, capsys):
    path = str(tmp_path / "root.img")
    mkfs.mkfs(path, inodes_count=16, blocks_count=64)

    assert main(["readimage", path]) == 0

    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Inodes: 16"
    assert out[1] == "Blocks: 64"
    assert "Inode: 2 rec_len: 1012 name_len: 2 type= d name=.." in out


def test_builder_rejects_reserved_inode():
    builder = mkfs.ImageBuilder()

    with pytest.raises(ValueError):
        builder.add_file(2, "x", inode_num=5)
