"""
Allocation bitmaps: bit i stands for unit i + 1, least significant bit first.
"""


def is_in_use(bitmap: bytes, index: int) -> bool:
    return bool((bitmap[index // 8] >> (index % 8)) & 1)


def render_bitmap(bitmap: bytes, num_bytes: int) -> str:
    """
    Render the first num_bytes bytes as groups of eight '0'/'1' characters.

    Each group lists its byte's bits in increasing index order (LSB first),
    groups are separated by single spaces and the line ends with a newline.
    """
    groups = []
    for byte in bitmap[:num_bytes]:
        groups.append("".join(str((byte >> bit) & 1) for bit in range(8)))
    return " ".join(groups) + "\n"
