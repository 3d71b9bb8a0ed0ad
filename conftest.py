import pytest

from fs import ROOT_INODE
from mkfs import ImageBuilder

HELLO = b"Hello, world!\n"


@pytest.fixture
def hello_builder():
    """32 inodes, 512 blocks, root holding ".", ".." and hello.txt as inode 12"""
    builder = ImageBuilder(inodes_count=32, blocks_count=512)
    builder.add_file(ROOT_INODE, "hello.txt", HELLO, inode_num=12)
    return builder


@pytest.fixture
def hello_image(hello_builder):
    return bytearray(hello_builder.to_bytes())


@pytest.fixture
def write_image(tmp_path):
    def write(data, name="fs.img"):
        path = tmp_path / name
        path.write_bytes(bytes(data))
        return str(path)
    return write
