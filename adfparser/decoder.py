#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

from construct import Array, Container, Int32ub, Struct

from adfparser.common import BlockTypes, TruncatedBlockError
from adfparser.structs import adf_structs
from adfparser.structs.adf_structs import (
    BLOCK_SIZE,
    BOOT_BLOCK_SIZE,
    BOOT_SIGNATURE,
    bitmap_block,
    bitmap_ext_block,
    block_type_tag,
    boot_block,
    ffs_data_block,
    file_ext_block,
    file_header_block,
    ofs_data_block,
    root_block,
    user_dir_block,
)

BLOCK_STRUCTS: dict[BlockTypes, Struct] = {
    BlockTypes.BOOT: boot_block,
    BlockTypes.ROOT: root_block,
    BlockTypes.BITMAP: bitmap_block,
    BlockTypes.BITMAP_EXT: bitmap_ext_block,
    BlockTypes.FILE_HEADER: file_header_block,
    BlockTypes.FILE_EXT: file_ext_block,
    BlockTypes.DATA_OFS: ofs_data_block,
    BlockTypes.DATA_FFS: ffs_data_block,
    BlockTypes.USER_DIR: user_dir_block,
}

# Offset of the checksum field, block types without a checksum are absent
CHECKSUM_OFFSETS: dict[BlockTypes, int] = {
    BlockTypes.ROOT: adf_structs.HEADER_CHECKSUM_OFFSET,
    BlockTypes.BITMAP: adf_structs.BITMAP_CHECKSUM_OFFSET,
    BlockTypes.FILE_HEADER: adf_structs.HEADER_CHECKSUM_OFFSET,
    BlockTypes.FILE_EXT: adf_structs.HEADER_CHECKSUM_OFFSET,
    BlockTypes.DATA_OFS: adf_structs.HEADER_CHECKSUM_OFFSET,
    BlockTypes.USER_DIR: adf_structs.HEADER_CHECKSUM_OFFSET,
}

_block_longs = Array(BLOCK_SIZE // 4, Int32ub)
_boot_longs = Array(BOOT_BLOCK_SIZE // 4, Int32ub)


def block_size_of(block_type: BlockTypes) -> int:
    return BOOT_BLOCK_SIZE if block_type == BlockTypes.BOOT else BLOCK_SIZE


def decode_block(data: bytes, block_type: BlockTypes) -> Container:
    """
    Decode raw bytes as the given block type.
    The caller decides the block type, nothing is classified here.
    """
    if block_type not in BLOCK_STRUCTS:
        msg = f"No layout for block type: {block_type!r}"
        raise ValueError(msg)
    size = block_size_of(block_type)
    if len(data) < size:
        msg = f"{block_type.name} block needs {size} bytes, got {len(data)}"
        raise TruncatedBlockError(msg)
    return BLOCK_STRUCTS[block_type].parse(data[:size])


def read_type_tag(data: bytes) -> tuple[int, int]:
    if len(data) < BLOCK_SIZE:
        msg = f"Block needs {BLOCK_SIZE} bytes, got {len(data)}"
        raise TruncatedBlockError(msg)
    tag = block_type_tag.parse(data[:BLOCK_SIZE])
    return tag.type, tag.sec_type


def is_boot_block(data: bytes) -> bool:
    # A root block whose first hash slot spells "DOS" at an unrelated index
    # must not pass, so bytes 4..6 must differ from the signature.
    return data[0:3] == BOOT_SIGNATURE and data[4:7] != BOOT_SIGNATURE


def data_block_pointers(block: Container) -> list[int]:
    """
    Return the nonzero data block pointers of a file header or file extension block in file order.
    The table is filled from its last entry backwards.
    """
    return [ptr for ptr in reversed(block.data_blocks) if ptr]


def normal_checksum(data: bytes, offset: int = adf_structs.HEADER_CHECKSUM_OFFSET) -> int:
    longs = _block_longs.parse(data[:BLOCK_SIZE])
    longs[offset // 4] = 0
    return -sum(longs) & 0xFFFFFFFF


def boot_checksum(data: bytes) -> int:
    longs = _boot_longs.parse(data[:BOOT_BLOCK_SIZE])
    longs[adf_structs.BOOT_CHECKSUM_OFFSET // 4] = 0
    checksum = 0
    for value in longs:
        checksum += value
        if checksum > 0xFFFFFFFF:
            checksum = (checksum + 1) & 0xFFFFFFFF  # Add with carry
    return ~checksum & 0xFFFFFFFF


def verify_checksum(data: bytes, block_type: BlockTypes) -> bool | None:
    """
    Compare the stored checksum with the computed one.
    Returns None for block types that carry no checksum.
    """
    if len(data) < block_size_of(block_type):
        return None
    if block_type == BlockTypes.BOOT:
        stored = int.from_bytes(data[adf_structs.BOOT_CHECKSUM_OFFSET : adf_structs.BOOT_CHECKSUM_OFFSET + 4], byteorder="big")
        return stored == boot_checksum(data)
    offset = CHECKSUM_OFFSETS.get(block_type)
    if offset is None:
        return None
    stored = int.from_bytes(data[offset : offset + 4], byteorder="big")
    return stored == normal_checksum(data, offset)
