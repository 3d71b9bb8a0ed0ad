"""
Text rendering of an Inspection. Nothing here touches the image.
"""

from typing import List

from bitmap import render_bitmap
from fs import DirEntry
from inspector import DirectoryBlock, InodeRecord, Inspection, classify_dir_entry


def format_name(name: bytes) -> str:
    return name.decode("utf-8", errors="backslashreplace")


def format_inode(record: InodeRecord) -> List[str]:
    inode = record.inode
    pointers = "".join(f" {block}" for block in record.block_pointers)
    return [
        f"[{record.number}] type: {record.file_type.value} size: {inode.size} "
        f"links: {inode.links_count} blocks: {inode.blocks}",
        f"[{record.number}] Blocks: {pointers}",
    ]


def format_dir_entry(entry: DirEntry) -> str:
    return (
        f"Inode: {entry.inode} rec_len: {entry.rec_len} name_len: {entry.name_len} "
        f"type= {classify_dir_entry(entry.file_type).value} name={format_name(entry.name)}"
    )


def format_directory_block(block: DirectoryBlock) -> List[str]:
    lines = [f"   DIR BLOCK NUM: {block.block_number} (for inode {block.inode_num})"]
    lines.extend(format_dir_entry(entry) for entry in block.entries)
    return lines


def render_report(inspection: Inspection) -> str:
    sb = inspection.superblock
    gd = inspection.group_desc

    lines = [
        f"Inodes: {sb.inodes_count}",
        f"Blocks: {sb.blocks_count}",
        "Block group:",
        f"    block bitmap: {gd.block_bitmap_block}",
        f"    inode bitmap: {gd.inode_bitmap_block}",
        f"    inode table: {gd.inode_table_block}",
        f"    free blocks: {gd.free_blocks_count}",
        f"    free inodes: {gd.free_inodes_count}",
        f"    used_dirs: {gd.used_dirs_count}",
    ]
    text = "\n".join(lines) + "\n"
    text += "Block bitmap: " + render_bitmap(inspection.block_bitmap, sb.blocks_count // 8)
    text += "Inode bitmap: " + render_bitmap(inspection.inode_bitmap, sb.inodes_count // 8)

    lines = ["", "Inodes:"]
    for record in inspection.inodes:
        lines.extend(format_inode(record))

    lines += ["", "Directory Blocks:"]
    for block in inspection.directory_blocks:
        lines.extend(format_directory_block(block))

    return text + "\n".join(lines) + "\n"
