"""
Build small single-group ext2 images in memory, for tests and experiments.

Layout with 1 KiB blocks: boot block 0, superblock 1, group descriptor 2,
block bitmap 3, inode bitmap 4, inode table from 5, data blocks after it.
"""

import sys
from typing import Dict, List, Optional, Tuple

import attr

from fs import (
    BLOCK_SIZE,
    DIRECT_BLOCKS,
    FT_DIR,
    FT_REG_FILE,
    GOOD_OLD_FIRST_INODE,
    GOOD_OLD_INODE_SIZE,
    GROUP_DESC_BLOCK,
    N_BLOCKS,
    ROOT_INODE,
    S_IFDIR,
    S_IFREG,
    SECTOR_SIZE,
    SUPERBLOCK_OFFSET,
    DirEntry,
    GroupDesc,
    Inode,
    Superblock,
)

BLOCK_BITMAP_BLOCK = 3
INODE_BITMAP_BLOCK = 4
INODE_TABLE_BLOCK = 5


def _set_bit(bitmap: bytearray, index: int):
    bitmap[index // 8] |= 1 << (index % 8)


def _block_slots(blocks: List[int]) -> tuple:
    return tuple(blocks) + (0,) * (N_BLOCKS - len(blocks))


class ImageBuilder:
    """
    Accumulates directories and files, then lays them out with to_bytes().

    Usage:
        builder = ImageBuilder(inodes_count=32, blocks_count=512)
        docs = builder.mkdir(ROOT_INODE, "docs")
        builder.add_file(docs, "readme.txt", b"hi\\n")
        builder.write("fs.img")
    """

    def __init__(self, inodes_count: int = 32, blocks_count: int = 512):
        self.inodes_count = inodes_count
        self.blocks_count = blocks_count

        inodes_per_block = BLOCK_SIZE // GOOD_OLD_INODE_SIZE
        self.inode_table_blocks = (inodes_count + inodes_per_block - 1) // inodes_per_block
        self.data_start_block = INODE_TABLE_BLOCK + self.inode_table_blocks
        if self.data_start_block >= blocks_count:
            raise ValueError(f"{blocks_count} blocks cannot hold the metadata")

        self._next_block = self.data_start_block
        self._next_inode = GOOD_OLD_FIRST_INODE
        # Block 0 has no bitmap bit; inodes 1..10 are reserved
        self.used_blocks = set(range(1, self.data_start_block))
        self.used_inodes = set(range(1, GOOD_OLD_FIRST_INODE))

        self.inodes: Dict[int, Inode] = {}
        self.data: Dict[int, bytes] = {}
        self.dirs: Dict[int, List[Tuple[int, bytes, int]]] = {}

        self._create_dir(ROOT_INODE, ROOT_INODE)

    def _allocate_block(self) -> int:
        if self._next_block >= self.blocks_count:
            raise ValueError("No free blocks available")
        block = self._next_block
        self._next_block += 1
        self.used_blocks.add(block)
        return block

    def _allocate_inode(self, inode_num: Optional[int] = None) -> int:
        if inode_num is None:
            while self._next_inode in self.used_inodes:
                self._next_inode += 1
            inode_num = self._next_inode
        if inode_num > self.inodes_count:
            raise ValueError("No free inodes available")
        if inode_num < GOOD_OLD_FIRST_INODE or inode_num in self.used_inodes:
            raise ValueError(f"Inode {inode_num} is reserved or already in use")
        self.used_inodes.add(inode_num)
        return inode_num

    def _create_dir(self, inode_num: int, parent: int):
        self.used_inodes.add(inode_num)
        block = self._allocate_block()
        self.inodes[inode_num] = Inode(
            mode=S_IFDIR | 0o755,
            size=BLOCK_SIZE,
            links_count=2,  # its own "." and the parent's entry
            blocks=BLOCK_SIZE // SECTOR_SIZE,
            block=_block_slots([block]),
        )
        self.dirs[inode_num] = [(inode_num, b".", FT_DIR), (parent, b"..", FT_DIR)]

    def _link(self, parent: int, name: str, inode_num: int, file_type: int):
        if parent not in self.dirs:
            raise ValueError(f"Inode {parent} is not a directory")
        self.dirs[parent].append((inode_num, name.encode("utf-8"), file_type))

    def mkdir(self, parent: int, name: str, inode_num: Optional[int] = None) -> int:
        """Create a directory under `parent` and return its inode number"""
        inode_num = self._allocate_inode(inode_num)
        self._create_dir(inode_num, parent)
        self._link(parent, name, inode_num, FT_DIR)
        parent_inode = self.inodes[parent]
        self.inodes[parent] = attr.evolve(parent_inode, links_count=parent_inode.links_count + 1)
        return inode_num

    def add_file(
        self, parent: int, name: str, data: bytes = b"", inode_num: Optional[int] = None
    ) -> int:
        """Create a regular file under `parent` and return its inode number"""
        num_blocks = (len(data) + BLOCK_SIZE - 1) // BLOCK_SIZE
        if num_blocks > DIRECT_BLOCKS:
            raise ValueError("Files larger than the direct blocks are not supported")

        inode_num = self._allocate_inode(inode_num)
        blocks = []
        for i in range(num_blocks):
            block = self._allocate_block()
            self.data[block] = data[i * BLOCK_SIZE:(i + 1) * BLOCK_SIZE]
            blocks.append(block)

        self.inodes[inode_num] = Inode(
            mode=S_IFREG | 0o644,
            size=len(data),
            links_count=1,
            blocks=num_blocks * (BLOCK_SIZE // SECTOR_SIZE),
            block=_block_slots(blocks),
        )
        self._link(parent, name, inode_num, FT_REG_FILE)
        return inode_num

    def _pack_dir(self, entries: List[Tuple[int, bytes, int]]) -> bytes:
        """Pack entries into one block, the last one's rec_len running to its end"""
        data = b""
        for i, (inode_num, name, file_type) in enumerate(entries):
            rec_len = DirEntry.min_rec_len(len(name))
            if i == len(entries) - 1:
                rec_len = BLOCK_SIZE - len(data)
            if rec_len < DirEntry.min_rec_len(len(name)):
                raise ValueError("Directory does not fit in one block")
            data += DirEntry(inode_num, rec_len, len(name), file_type, name).pack()
        return data

    def to_bytes(self) -> bytes:
        image = bytearray(self.blocks_count * BLOCK_SIZE)

        def put(block: int, data: bytes):
            start = block * BLOCK_SIZE
            image[start:start + len(data)] = data

        for inode_num, entries in self.dirs.items():
            put(self.inodes[inode_num].block[0], self._pack_dir(entries))
        for block, data in self.data.items():
            put(block, data)

        table_start = INODE_TABLE_BLOCK * BLOCK_SIZE
        for inode_num, inode in self.inodes.items():
            offset = table_start + (inode_num - 1) * GOOD_OLD_INODE_SIZE
            image[offset:offset + GOOD_OLD_INODE_SIZE] = inode.pack()

        # Bit i stands for block i + 1 (the first data block is 1)
        block_bitmap = bytearray(BLOCK_SIZE)
        for block in self.used_blocks:
            _set_bit(block_bitmap, block - 1)
        put(BLOCK_BITMAP_BLOCK, block_bitmap)

        inode_bitmap = bytearray(BLOCK_SIZE)
        for inode_num in self.used_inodes:
            _set_bit(inode_bitmap, inode_num - 1)
        put(INODE_BITMAP_BLOCK, inode_bitmap)

        free_blocks = self.blocks_count - 1 - len(self.used_blocks)
        free_inodes = self.inodes_count - len(self.used_inodes)
        group_desc = GroupDesc(
            block_bitmap_block=BLOCK_BITMAP_BLOCK,
            inode_bitmap_block=INODE_BITMAP_BLOCK,
            inode_table_block=INODE_TABLE_BLOCK,
            free_blocks_count=free_blocks,
            free_inodes_count=free_inodes,
            used_dirs_count=len(self.dirs),
        )
        put(GROUP_DESC_BLOCK, group_desc.pack())

        superblock = Superblock(
            inodes_count=self.inodes_count,
            blocks_count=self.blocks_count,
            free_blocks_count=free_blocks,
            free_inodes_count=free_inodes,
            first_data_block=1,
            inodes_per_group=self.inodes_count,
        )
        sb_data = superblock.pack()
        image[SUPERBLOCK_OFFSET:SUPERBLOCK_OFFSET + len(sb_data)] = sb_data

        return bytes(image)

    def write(self, image_path: str):
        with open(image_path, "wb") as f:
            f.write(self.to_bytes())


def mkfs(image_path: str, inodes_count: int = 32, blocks_count: int = 512) -> ImageBuilder:
    """Write an image holding only the root directory"""
    builder = ImageBuilder(inodes_count, blocks_count)
    builder.write(image_path)
    return builder


def main():
    image_path = sys.argv[1] if len(sys.argv) > 1 else "fs.img"
    builder = ImageBuilder(inodes_count=32, blocks_count=512)
    builder.add_file(ROOT_INODE, "hello.txt", b"Hello, world!\n", inode_num=12)
    builder.write(image_path)


if __name__ == "__main__":
    main()
