"""
Decode and traverse an ext2 image: superblock, the first group descriptor,
allocation bitmaps, in-use inodes and every directory's data blocks.

Only direct block pointers are followed and only the first block group is
read. Everything is decoded once into an immutable Inspection.
"""

import enum
import logging
from typing import Iterator, List, Optional, Tuple

import attr

from bitmap import is_in_use
from errors import FormatError
from fs import (
    DIRECT_BLOCKS,
    DIRENTRY_HEADER_SIZE,
    EXT2_SUPER_MAGIC,
    FT_DIR,
    FT_REG_FILE,
    FT_SYMLINK,
    GOOD_OLD_FIRST_INODE,
    GOOD_OLD_INODE_SIZE,
    GROUP_DESC_BLOCK,
    GROUP_DESC_SIZE,
    N_BLOCKS,
    ROOT_INODE,
    S_IFDIR,
    S_IFLNK,
    S_IFREG,
    SECTOR_SIZE,
    SUPERBLOCK_OFFSET,
    DirEntry,
    GroupDesc,
    Inode,
    Superblock,
)
from image import ImageView

logger = logging.getLogger(__name__)


class FileType(enum.Enum):
    """Classified file type; the value is the report character."""
    DIRECTORY = "d"
    REGULAR = "f"
    SYMLINK = "l"
    OTHER = "?"


# Tested in order, first match wins. A value matches a mask when all of
# the mask's bits are set in it.
MODE_MASKS = (
    (S_IFDIR, FileType.DIRECTORY),
    (S_IFREG, FileType.REGULAR),
    (S_IFLNK, FileType.SYMLINK),
)
DIR_ENTRY_MASKS = (
    (FT_DIR, FileType.DIRECTORY),
    (FT_REG_FILE, FileType.REGULAR),
    (FT_SYMLINK, FileType.SYMLINK),
)


def classify(bits: int, masks=MODE_MASKS) -> FileType:
    for mask, file_type in masks:
        if bits & mask == mask:
            return file_type
    return FileType.OTHER


def classify_mode(mode: int) -> FileType:
    return classify(mode, MODE_MASKS)


def classify_dir_entry(file_type: int) -> FileType:
    return classify(file_type, DIR_ENTRY_MASKS)


def read_superblock(view: ImageView) -> Superblock:
    return Superblock.unpack(view.read_bytes(SUPERBLOCK_OFFSET, Superblock.size()))


def read_group_desc(view: ImageView) -> GroupDesc:
    """Decode the first group descriptor; any others are ignored"""
    offset = GROUP_DESC_BLOCK * view.block_size
    return GroupDesc.unpack(view.read_bytes(offset, GROUP_DESC_SIZE))


def read_bitmap(view: ImageView, block_number: int, num_bits: int) -> bytes:
    """Read enough bytes of the bitmap starting at block_number to cover num_bits"""
    return view.read_bytes(block_number * view.block_size, (num_bits + 7) // 8)


class InodeTable:
    """Random access to inode records by 1-based inode number"""

    def __init__(self, view: ImageView, table_block: int, record_size: int):
        self.view = view
        self.table_block = table_block
        self.record_size = record_size

    def offset_of(self, inode_num: int) -> int:
        if inode_num <= 0:
            raise ValueError(f"Invalid inode number {inode_num}")
        return self.table_block * self.view.block_size + (inode_num - 1) * self.record_size

    def read(self, inode_num: int) -> Inode:
        return Inode.unpack(self.view.read_bytes(self.offset_of(inode_num), GOOD_OLD_INODE_SIZE))


def in_use_inodes(inode_bitmap: bytes, inodes_count: int) -> Iterator[int]:
    """
    Yield the root inode, then every ordinary inode whose bitmap bit is set.

    The root is always yielded, even when its bit is clear. Reserved inodes
    other than the root are never yielded.
    """
    yield ROOT_INODE
    for inode_num in range(GOOD_OLD_FIRST_INODE, inodes_count + 1):
        if is_in_use(inode_bitmap, inode_num - 1):
            yield inode_num


def block_pointer_count(inode: Inode, block_size: int) -> int:
    """Number of block slots i_blocks accounts for, capped at the slots an inode has"""
    return min(inode.blocks // (block_size // SECTOR_SIZE), N_BLOCKS)


def used_block_pointers(inode: Inode, block_size: int) -> Tuple[int, ...]:
    """Raw pointer values the inode uses; indirect slots are listed, not resolved"""
    return inode.block[:block_pointer_count(inode, block_size)]


def direct_block_pointers(inode: Inode, block_size: int) -> Tuple[int, ...]:
    return used_block_pointers(inode, block_size)[:DIRECT_BLOCKS]


def iter_dir_entries(block: bytes) -> Iterator[DirEntry]:
    """
    Walk the rec_len chain of one directory block.

    Raises FormatError as soon as an entry cannot be part of a chain that
    ends exactly at the end of the block.
    """
    block_size = len(block)
    offset = 0
    while offset < block_size:
        if offset + DIRENTRY_HEADER_SIZE > block_size:
            raise FormatError("truncated directory entry header", offset)
        entry = DirEntry.unpack(block, offset)
        if entry.rec_len == 0:
            raise FormatError("zero rec_len", offset)
        if offset + entry.rec_len > block_size:
            raise FormatError(f"rec_len {entry.rec_len} runs past the end of the block", offset)
        # name_len is trusted; the name slice is clipped at the end of the block
        yield entry
        offset += entry.rec_len


def walk_block(block: bytes) -> List[DirEntry]:
    return list(iter_dir_entries(block))


@attr.s(auto_attribs=True, frozen=True)
class DirectoryBlock:
    block_number: int
    inode_num: int
    entries: Tuple[DirEntry, ...]
    error: Optional[str] = None


def walk_directory_inode(view: ImageView, inode_num: int, inode: Inode) -> List[DirectoryBlock]:
    """
    Decode every direct data block of a directory inode.

    A block whose entry chain is malformed keeps the entries read before
    the fault and records the error; the next block is still walked.
    """
    blocks = []
    for block_number in direct_block_pointers(inode, view.block_size):
        entries = []
        error = None
        try:
            for entry in iter_dir_entries(view.block_at(block_number)):
                entries.append(entry)
        except FormatError as e:
            logger.warning("directory block %d (inode %d): %s", block_number, inode_num, e)
            error = str(e)
        blocks.append(DirectoryBlock(block_number, inode_num, tuple(entries), error))
    return blocks


@attr.s(auto_attribs=True, frozen=True)
class InodeRecord:
    number: int
    inode: Inode
    file_type: FileType
    block_pointers: Tuple[int, ...]


@attr.s(auto_attribs=True, frozen=True)
class Inspection:
    superblock: Superblock
    group_desc: GroupDesc
    block_bitmap: bytes
    inode_bitmap: bytes
    inodes: Tuple[InodeRecord, ...]
    directory_blocks: Tuple[DirectoryBlock, ...]


def _warn_unsupported(superblock: Superblock, block_size: int):
    if superblock.magic != EXT2_SUPER_MAGIC:
        logger.warning("bad superblock magic 0x%04x, decoding anyway", superblock.magic)
    if superblock.log_block_size != 0:
        logger.warning(
            "image declares 1024 << %d byte blocks, reading as %d",
            superblock.log_block_size, block_size,
        )
    if superblock.blocks_per_group and superblock.blocks_count > superblock.blocks_per_group:
        logger.warning("image has more than one block group, only the first is read")


def inspect_image(view: ImageView) -> Inspection:
    """
    Decode everything the report shows.

    Raises BoundsError if any computed offset falls outside the image.
    """
    superblock = read_superblock(view)
    _warn_unsupported(superblock, view.block_size)
    group_desc = read_group_desc(view)

    block_bitmap = read_bitmap(view, group_desc.block_bitmap_block, superblock.blocks_count)
    inode_bitmap = read_bitmap(view, group_desc.inode_bitmap_block, superblock.inodes_count)
    table = InodeTable(view, group_desc.inode_table_block, superblock.inode_record_size)

    records = []
    for inode_num in in_use_inodes(inode_bitmap, superblock.inodes_count):
        inode = table.read(inode_num)
        records.append(InodeRecord(
            number=inode_num,
            inode=inode,
            file_type=classify_mode(inode.mode),
            block_pointers=used_block_pointers(inode, view.block_size),
        ))
    logger.debug("%d inodes in use", len(records))

    # Root first, then the other directories in inode order
    directory_blocks = []
    for record in records:
        if record.number == ROOT_INODE or record.file_type is FileType.DIRECTORY:
            directory_blocks.extend(walk_directory_inode(view, record.number, record.inode))

    return Inspection(
        superblock=superblock,
        group_desc=group_desc,
        block_bitmap=block_bitmap,
        inode_bitmap=inode_bitmap,
        inodes=tuple(records),
        directory_blocks=tuple(directory_blocks),
    )
