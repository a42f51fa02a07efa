#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

# References:
# http://lclevy.free.fr/adflib/adf_info.html
# https://wiki.amigaos.net/wiki/AmigaDOS_Data_Structures
# http://amigadev.elowar.com/read/ADCD_2.1/Libraries_Manual_guide/node046B.html

from construct import (
    Array,
    Bytes,
    Computed,
    Int8ub,
    Int16ub,
    Int32sb,
    Int32ub,
    Padding,
    Struct,
)

BLOCK_SIZE = 512  # Every AmigaDOS block is 512 bytes on floppies and on most hard disk partitions
BOOT_BLOCK_SIZE = 2 * BLOCK_SIZE  # The boot block spans blocks 0 and 1

HT_SIZE = BLOCK_SIZE // 4 - 56  # 72: Hash table / data block table entries
BM_PAGES_COUNT = 25  # Bitmap page pointers stored in the root block
BM_MAP_SIZE = BLOCK_SIZE // 4 - 1  # 127: Bitmap longs per bitmap block
BM_EXT_PAGES_COUNT = BLOCK_SIZE // 4 - 1  # 127: Bitmap page pointers per bitmap extension block
OFS_DATA_SIZE = BLOCK_SIZE - 24  # 488: Payload bytes of an OFS data block
MAX_NAME_LEN = 30
MAX_COMMENT_LEN = 79

# Primary block types
T_HEADER = 2
T_DATA = 8
T_LIST = 16

# Secondary block types
ST_ROOT = 1
ST_USERDIR = 2
ST_FILE = -3

# Boot block DOS flags (byte 3 of "DOS\x0?")
DOSFLAG_FFS = 0x1  # Fast File System, cleared for OFS
DOSFLAG_INTL = 0x2  # International characters mode
DOSFLAG_DIRCACHE = 0x4  # Directory cache mode (implies international mode)

BOOT_SIGNATURE = b"DOS"

BM_FLAG_VALID = -1  # Root block bm_flag value when the bitmap is valid

# Checksum field offsets
BOOT_CHECKSUM_OFFSET = 0x4
BITMAP_CHECKSUM_OFFSET = 0x0
HEADER_CHECKSUM_OFFSET = 0x14


def _decode_name(raw: bytes, length: int, max_len: int) -> str:
    return raw[: min(length, max_len)].decode("latin-1")


# AmigaDOS date stamp
date_stamp = Struct(
    "days" / Int32ub,  # 0x0: Days since 1978-01-01
    "mins" / Int32ub,  # 0x4: Minutes past midnight
    "ticks" / Int32ub,  # 0x8: Ticks (1/50 sec) past the last minute
)

# Primary and secondary type of any headered block
block_type_tag = Struct(
    "type" / Int32sb,  # 0x000: Primary type
    Padding(BLOCK_SIZE - 8),
    "sec_type" / Int32sb,  # 0x1FC: Secondary type
)

# Boot block (blocks 0 and 1)
boot_block = Struct(
    "signature" / Bytes(3),  # 0x000: "DOS"
    "flags" / Int8ub,  # 0x003: DOSFLAG_*
    "checksum" / Int32ub,  # 0x004: Boot block checksum
    "rootblock" / Int32ub,  # 0x008: Root block pointer (880 on DD floppies, often unused)
    "bootcode" / Bytes(BOOT_BLOCK_SIZE - 12),  # 0x00C: Boot code
    "ffs" / Computed(lambda ctx: bool(ctx.flags & DOSFLAG_FFS)),
    "intl" / Computed(lambda ctx: bool(ctx.flags & DOSFLAG_INTL)),
    "dircache" / Computed(lambda ctx: bool(ctx.flags & DOSFLAG_DIRCACHE)),
)

# Root block
root_block = Struct(
    "type" / Int32sb,  # 0x000: T_HEADER
    "header_key" / Int32ub,  # 0x004: Unused, 0
    "high_seq" / Int32ub,  # 0x008: Unused, 0
    "ht_size" / Int32ub,  # 0x00C: Hash table size (72 for floppies)
    "first_data" / Int32ub,  # 0x010: Unused, 0
    "checksum" / Int32ub,  # 0x014: Block checksum
    "ht" / Array(HT_SIZE, Int32ub),  # 0x018: Hash table (entry blocks)
    "bm_flag" / Int32sb,  # 0x138: -1 if the bitmap is valid
    "bm_pages" / Array(BM_PAGES_COUNT, Int32ub),  # 0x13C: Bitmap block pointers
    "bm_ext" / Int32ub,  # 0x1A0: First bitmap extension block (hard disks only)
    "r_date" / date_stamp,  # 0x1A4: Last root alteration date
    "name_len" / Int8ub,  # 0x1B0: Volume name length
    "diskname" / Bytes(MAX_NAME_LEN),  # 0x1B1: Volume name
    Padding(1),  # 0x1CF: Unused
    Padding(8),  # 0x1D0: Unused
    "v_date" / date_stamp,  # 0x1D8: Last disk alteration date
    "c_date" / date_stamp,  # 0x1E4: Filesystem creation date
    "next_hash" / Int32ub,  # 0x1F0: Unused, 0
    "parent_dir" / Int32ub,  # 0x1F4: Unused, 0
    "extension" / Int32ub,  # 0x1F8: FFS: first directory cache block
    "sec_type" / Int32sb,  # 0x1FC: ST_ROOT
    "volume_name" / Computed(lambda ctx: _decode_name(ctx.diskname, ctx.name_len, MAX_NAME_LEN)),
)

# Bitmap block
bitmap_block = Struct(
    "checksum" / Int32ub,  # 0x000: Block checksum
    "map" / Array(BM_MAP_SIZE, Int32ub),  # 0x004: Bitmap, bit set means block is free
)

# Bitmap extension block (hard disks only)
bitmap_ext_block = Struct(
    "bm_pages" / Array(BM_EXT_PAGES_COUNT, Int32ub),  # 0x000: Bitmap block pointers
    "next" / Int32ub,  # 0x1FC: Next bitmap extension block, 0 for the last one
)

# File header block
file_header_block = Struct(
    "type" / Int32sb,  # 0x000: T_HEADER
    "header_key" / Int32ub,  # 0x004: Self pointer
    "high_seq" / Int32ub,  # 0x008: Number of data block pointers stored here
    "data_size" / Int32ub,  # 0x00C: Unused, 0
    "first_data" / Int32ub,  # 0x010: First data block
    "checksum" / Int32ub,  # 0x014: Block checksum
    "data_blocks" / Array(HT_SIZE, Int32ub),  # 0x018: Data block pointers, filled from the last entry backwards
    Padding(4),  # 0x138: Unused
    "uid" / Int16ub,  # 0x13C: Owner id
    "gid" / Int16ub,  # 0x13E: Group id
    "protect" / Int32ub,  # 0x140: Protection flags
    "byte_size" / Int32ub,  # 0x144: File size in bytes
    "comm_len" / Int8ub,  # 0x148: Comment length
    "comment" / Bytes(MAX_COMMENT_LEN),  # 0x149: Comment
    Padding(12),  # 0x198: Unused
    "date" / date_stamp,  # 0x1A4: Last modification date
    "name_len" / Int8ub,  # 0x1B0: File name length
    "filename" / Bytes(MAX_NAME_LEN),  # 0x1B1: File name
    Padding(1),  # 0x1CF: Unused
    Padding(4),  # 0x1D0: Unused
    "real_entry" / Int32ub,  # 0x1D4: FFS: unused, 0
    "next_link" / Int32ub,  # 0x1D8: FFS: hard link chain
    Padding(20),  # 0x1DC: Unused
    "hash_chain" / Int32ub,  # 0x1F0: Next entry with the same hash
    "parent" / Int32ub,  # 0x1F4: Parent directory
    "extension" / Int32ub,  # 0x1F8: First file extension block, 0 if none
    "sec_type" / Int32sb,  # 0x1FC: ST_FILE
    "name" / Computed(lambda ctx: _decode_name(ctx.filename, ctx.name_len, MAX_NAME_LEN)),
    "comment_text" / Computed(lambda ctx: _decode_name(ctx.comment, ctx.comm_len, MAX_COMMENT_LEN)),
)

# File extension block
file_ext_block = Struct(
    "type" / Int32sb,  # 0x000: T_LIST
    "header_key" / Int32ub,  # 0x004: Self pointer
    "high_seq" / Int32ub,  # 0x008: Number of data block pointers stored here
    Padding(8),  # 0x00C: Unused
    "checksum" / Int32ub,  # 0x014: Block checksum
    "data_blocks" / Array(HT_SIZE, Int32ub),  # 0x018: Data block pointers, filled from the last entry backwards
    Padding(184),  # 0x138: Unused
    "hash_chain" / Int32ub,  # 0x1F0: Unused, 0
    "parent" / Int32ub,  # 0x1F4: File header block
    "extension" / Int32ub,  # 0x1F8: Next file extension block, 0 for the last one
    "sec_type" / Int32sb,  # 0x1FC: ST_FILE
)

# OFS data block
ofs_data_block = Struct(
    "type" / Int32sb,  # 0x000: T_DATA
    "header_key" / Int32ub,  # 0x004: File header block
    "seq_num" / Int32ub,  # 0x008: Position in the file, starting at 1
    "data_size" / Int32ub,  # 0x00C: Number of payload bytes used
    "next_data" / Int32ub,  # 0x010: Next data block, 0 for the last one
    "checksum" / Int32ub,  # 0x014: Block checksum
    "data" / Bytes(OFS_DATA_SIZE),  # 0x018: Payload
)

# FFS data block, no header
ffs_data_block = Struct(
    "data" / Bytes(BLOCK_SIZE),  # 0x000: Payload
)

# User directory block
user_dir_block = Struct(
    "type" / Int32sb,  # 0x000: T_HEADER
    "header_key" / Int32ub,  # 0x004: Self pointer
    Padding(12),  # 0x008: Unused
    "checksum" / Int32ub,  # 0x014: Block checksum
    "ht" / Array(HT_SIZE, Int32ub),  # 0x018: Hash table (entry blocks)
    Padding(4),  # 0x138: Unused
    "uid" / Int16ub,  # 0x13C: Owner id
    "gid" / Int16ub,  # 0x13E: Group id
    "protect" / Int32ub,  # 0x140: Protection flags
    Padding(4),  # 0x144: Unused
    "comm_len" / Int8ub,  # 0x148: Comment length
    "comment" / Bytes(MAX_COMMENT_LEN),  # 0x149: Comment
    Padding(12),  # 0x198: Unused
    "date" / date_stamp,  # 0x1A4: Last access date
    "name_len" / Int8ub,  # 0x1B0: Directory name length
    "dirname" / Bytes(MAX_NAME_LEN),  # 0x1B1: Directory name
    Padding(1),  # 0x1CF: Unused
    Padding(8),  # 0x1D0: Unused
    "next_link" / Int32ub,  # 0x1D8: FFS: hard link chain
    Padding(20),  # 0x1DC: Unused
    "hash_chain" / Int32ub,  # 0x1F0: Next entry with the same hash
    "parent" / Int32ub,  # 0x1F4: Parent directory
    "extension" / Int32ub,  # 0x1F8: FFS: first directory cache block
    "sec_type" / Int32sb,  # 0x1FC: ST_USERDIR
    "name" / Computed(lambda ctx: _decode_name(ctx.dirname, ctx.name_len, MAX_NAME_LEN)),
    "comment_text" / Computed(lambda ctx: _decode_name(ctx.comment, ctx.comm_len, MAX_COMMENT_LEN)),
)
