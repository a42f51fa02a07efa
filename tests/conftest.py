#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

import struct
from argparse import Namespace

import pytest

from adfparser.adfparser import AdfParser
from adfparser.common import BytesImgInfo

BLOCK_SIZE = 512
DD_BLOCK_COUNT = 1760  # 901120 bytes, double density floppy
HT_SIZE = 72


class AdfImageBuilder:
    """
    Builds synthetic ADF images block by block. All values are big-endian.
    """

    def __init__(self, block_count: int = DD_BLOCK_COUNT) -> None:
        self.block_count = block_count
        self.data = bytearray(block_count * BLOCK_SIZE)

    def put_long(self, index: int, offset: int, value: int) -> None:
        fmt = ">i" if value < 0 else ">I"
        struct.pack_into(fmt, self.data, index * BLOCK_SIZE + offset, value)

    def put_bytes(self, index: int, offset: int, value: bytes) -> None:
        start = index * BLOCK_SIZE + offset
        self.data[start : start + len(value)] = value

    def _put_name(self, index: int, name: bytes) -> None:
        self.data[index * BLOCK_SIZE + 0x1B0] = len(name)
        self.put_bytes(index, 0x1B1, name[:30])

    def _put_data_blocks(self, index: int, data_blocks: list[int]) -> None:
        # The table is filled from its last slot backwards
        self.put_long(index, 0x8, len(data_blocks))
        for pos, pointer in enumerate(data_blocks):
            self.put_long(index, 0x18 + 4 * (HT_SIZE - 1 - pos), pointer)

    def boot(self, flags: int = 0, rootblock: int = 880) -> "AdfImageBuilder":
        self.put_bytes(0, 0, b"DOS" + bytes([flags]))
        self.put_long(0, 0x8, rootblock)
        return self

    def root(self, index: int = 880, bm_pages: list[int] | None = None, bm_ext: int = 0, name: bytes = b"Empty") -> "AdfImageBuilder":
        self.put_long(index, 0x0, 2)
        self.put_long(index, 0xC, HT_SIZE)
        self.put_long(index, 0x138, -1)
        for pos, page in enumerate(bm_pages or []):
            self.put_long(index, 0x13C + 4 * pos, page)
        self.put_long(index, 0x1A0, bm_ext)
        self._put_name(index, name)
        self.put_long(index, 0x1FC, 1)
        return self

    def file_header(
        self,
        index: int,
        data_blocks: list[int] | None = None,
        extension: int = 0,
        parent: int = 880,
        name: bytes = b"file",
        byte_size: int = 0,
    ) -> "AdfImageBuilder":
        data_blocks = data_blocks or []
        self.put_long(index, 0x0, 2)
        self.put_long(index, 0x4, index)
        self._put_data_blocks(index, data_blocks)
        self.put_long(index, 0x10, data_blocks[0] if data_blocks else 0)
        self.put_long(index, 0x144, byte_size)
        self._put_name(index, name)
        self.put_long(index, 0x1F4, parent)
        self.put_long(index, 0x1F8, extension)
        self.put_long(index, 0x1FC, -3)
        return self

    def file_ext(self, index: int, data_blocks: list[int] | None = None, parent: int = 0, extension: int = 0) -> "AdfImageBuilder":
        self.put_long(index, 0x0, 16)
        self.put_long(index, 0x4, index)
        self._put_data_blocks(index, data_blocks or [])
        self.put_long(index, 0x1F4, parent)
        self.put_long(index, 0x1F8, extension)
        self.put_long(index, 0x1FC, -3)
        return self

    def user_dir(self, index: int, name: bytes = b"dir", parent: int = 880) -> "AdfImageBuilder":
        self.put_long(index, 0x0, 2)
        self.put_long(index, 0x4, index)
        self._put_name(index, name)
        self.put_long(index, 0x1F4, parent)
        self.put_long(index, 0x1FC, 2)
        return self

    def ofs_data(self, index: int, header_key: int, seq_num: int, payload: bytes = b"", next_data: int = 0) -> "AdfImageBuilder":
        self.put_long(index, 0x0, 8)
        self.put_long(index, 0x4, header_key)
        self.put_long(index, 0x8, seq_num)
        self.put_long(index, 0xC, len(payload))
        self.put_long(index, 0x10, next_data)
        self.put_bytes(index, 0x18, payload)
        return self

    def block(self, index: int) -> bytes:
        return bytes(self.data[index * BLOCK_SIZE : (index + 1) * BLOCK_SIZE])

    def image(self) -> BytesImgInfo:
        return BytesImgInfo(self.data)


@pytest.fixture
def adf_builder():
    return AdfImageBuilder


def make_args(**kwargs) -> Namespace:
    defaults = {"offset": 0, "debug": False, "no_progress": True, "verify_checksums": False}
    defaults.update(kwargs)
    return Namespace(**defaults)


@pytest.fixture
def scan_image():
    def _scan(builder: AdfImageBuilder, **kwargs) -> AdfParser:
        parser = AdfParser(builder.image(), make_args(**kwargs))
        parser.parse_blocks()
        return parser

    return _scan
