import struct
import attr

# Geometry
BLOCK_SIZE = 1024
SECTOR_SIZE = 512  # i_blocks is counted in these, whatever the block size
SUPERBLOCK_OFFSET = 1024  # block 0 is the boot block
GROUP_DESC_BLOCK = 2  # the block right after the superblock's
GROUP_DESC_SIZE = 32

# Inodes
ROOT_INODE = 2
GOOD_OLD_FIRST_INODE = 11  # 1..10 are reserved
GOOD_OLD_INODE_SIZE = 128
GOOD_OLD_REV = 0
DIRECT_BLOCKS = 12
N_BLOCKS = 15  # 12 direct + single, double, triple indirect

EXT2_SUPER_MAGIC = 0xEF53

# i_mode type bits
S_IFMT   = 0o170000
S_IFSOCK = 0o140000
S_IFLNK  = 0o120000
S_IFREG  = 0o100000
S_IFBLK  = 0o060000
S_IFDIR  = 0o040000
S_IFCHR  = 0o020000
S_IFIFO  = 0o010000

# Directory entry file_type values
FT_UNKNOWN = 0
FT_REG_FILE = 1
FT_DIR = 2
FT_CHRDEV = 3
FT_BLKDEV = 4
FT_FIFO = 5
FT_SOCK = 6
FT_SYMLINK = 7

DIRENTRY_HEADER_SIZE = 8


@attr.s(auto_attribs=True, frozen=True)
class Superblock:
    """Revision 1 superblock header (the first 200 of its 1024 bytes)"""
    inodes_count: int
    blocks_count: int
    r_blocks_count: int = 0
    free_blocks_count: int = 0
    free_inodes_count: int = 0
    first_data_block: int = 1
    log_block_size: int = 0  # block size is 1024 << log_block_size
    log_frag_size: int = 0
    blocks_per_group: int = 8192
    frags_per_group: int = 8192
    inodes_per_group: int = 0
    mtime: int = 0
    wtime: int = 0
    mnt_count: int = 0
    max_mnt_count: int = 0xFFFF
    magic: int = EXT2_SUPER_MAGIC
    state: int = 1
    errors: int = 1
    minor_rev_level: int = 0
    lastcheck: int = 0
    checkinterval: int = 0
    creator_os: int = 0
    rev_level: int = GOOD_OLD_REV
    def_resuid: int = 0
    def_resgid: int = 0
    first_ino: int = GOOD_OLD_FIRST_INODE
    inode_size: int = GOOD_OLD_INODE_SIZE
    block_group_nr: int = 0
    feature_compat: int = 0
    feature_incompat: int = 0
    feature_ro_compat: int = 0
    uuid: bytes = b"\x00" * 16
    volume_name: bytes = b"\x00" * 16
    last_mounted: bytes = b"\x00" * 64

    _fmt = "<13I6H4I2HI2H3I16s16s64s"

    @classmethod
    def size(cls) -> int:
        return struct.calcsize(cls._fmt)

    @property
    def inode_record_size(self) -> int:
        """Bytes per inode table slot; good-old images always use 128"""
        if self.rev_level > GOOD_OLD_REV and self.inode_size:
            return self.inode_size
        return GOOD_OLD_INODE_SIZE

    def pack(self) -> bytes:
        return struct.pack(self._fmt, *attr.astuple(self))

    @classmethod
    def unpack(cls, data: bytes) -> "Superblock":
        return cls(*struct.unpack(cls._fmt, data[:cls.size()]))


@attr.s(auto_attribs=True, frozen=True)
class GroupDesc:
    block_bitmap_block: int
    inode_bitmap_block: int
    inode_table_block: int
    free_blocks_count: int = 0
    free_inodes_count: int = 0
    used_dirs_count: int = 0
    pad: int = 0
    reserved: bytes = b"\x00" * 12

    _fmt = "<3I4H12s"

    def pack(self) -> bytes:
        return struct.pack(self._fmt, *attr.astuple(self))

    @classmethod
    def unpack(cls, data: bytes) -> "GroupDesc":
        return cls(*struct.unpack(cls._fmt, data[:GROUP_DESC_SIZE]))


@attr.s(auto_attribs=True, frozen=True)
class Inode:
    mode: int
    uid: int = 0
    size: int = 0
    atime: int = 0
    ctime: int = 0
    mtime: int = 0
    dtime: int = 0
    gid: int = 0
    links_count: int = 0
    blocks: int = 0  # 512-byte sectors, not blocks
    flags: int = 0
    osd1: int = 0
    block: tuple = (0,) * N_BLOCKS
    generation: int = 0
    file_acl: int = 0
    dir_acl: int = 0
    faddr: int = 0
    osd2: bytes = b"\x00" * 12

    _fmt = "<2H5I2H3I15I4I12s"

    def pack(self) -> bytes:
        if len(self.block) != N_BLOCKS:
            raise ValueError(f"Inode needs {N_BLOCKS} block slots, got {len(self.block)}")
        fields = attr.astuple(self, recurse=False)
        return struct.pack(self._fmt, *fields[:12], *self.block, *fields[13:])

    @classmethod
    def unpack(cls, data: bytes) -> "Inode":
        fields = struct.unpack(cls._fmt, data[:GOOD_OLD_INODE_SIZE])
        block = tuple(fields[12:12 + N_BLOCKS])
        return cls(*fields[:12], block, *fields[12 + N_BLOCKS:])


@attr.s(auto_attribs=True, frozen=True)
class DirEntry:
    """Directory entry; name is exactly name_len raw bytes, no terminator"""
    inode: int
    rec_len: int
    name_len: int
    file_type: int
    name: bytes

    _fmt = "<IHBB"

    def pack(self) -> bytes:
        """Pack header and name, zero-padded out to rec_len"""
        data = struct.pack(self._fmt, self.inode, self.rec_len, self.name_len, self.file_type)
        data += self.name[:self.name_len]
        if len(data) > self.rec_len:
            raise ValueError(f"rec_len {self.rec_len} too small for name of {self.name_len} bytes")
        return data + b"\x00" * (self.rec_len - len(data))

    @classmethod
    def unpack(cls, data: bytes, offset: int = 0) -> "DirEntry":
        inode, rec_len, name_len, file_type = struct.unpack_from(cls._fmt, data, offset)
        name_start = offset + DIRENTRY_HEADER_SIZE
        return cls(inode, rec_len, name_len, file_type, bytes(data[name_start:name_start + name_len]))

    @staticmethod
    def min_rec_len(name_len: int) -> int:
        """Smallest 4-byte aligned record that can hold a name of name_len bytes"""
        return (DIRENTRY_HEADER_SIZE + name_len + 3) // 4 * 4
