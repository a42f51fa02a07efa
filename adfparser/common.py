#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import IntEnum, auto
from pathlib import Path
from typing import Protocol, runtime_checkable

from construct import Container, ListContainer

AMIGA_EPOCH = datetime(1978, 1, 1, tzinfo=UTC)
TICKS_PER_SECOND = 50


class AdfParserError(Exception):
    """Base class of all ADF parser errors."""


class InvalidImageSizeError(AdfParserError, ValueError):
    """Image length is zero or not a multiple of the block size."""


class OutOfRangeError(AdfParserError, IndexError):
    """Block index outside of the image."""


class TruncatedBlockError(AdfParserError):
    """Fewer bytes available than the block being decoded needs."""


class FsModes(IntEnum):
    OFS = 0
    FFS = auto()


class BlockTypes(IntEnum):
    UNKNOWN = 0
    BOOT = auto()
    ROOT = auto()
    BITMAP = auto()
    BITMAP_EXT = auto()
    FILE_HEADER = auto()
    FILE_EXT = auto()
    DATA_OFS = auto()
    DATA_FFS = auto()
    USER_DIR = auto()


class BlockStates(IntEnum):
    UNANALYZED = 0
    CLAIMED = auto()  # Classification in progress
    KNOWN = auto()
    UNKNOWN = auto()


class DebugPrinter:
    debug: bool = False

    def dbg_print(self, msg: str | Container) -> None:
        if self.debug:
            print(msg)


@runtime_checkable
class ImageLike(Protocol):
    def read(self, offset: int, size: int) -> bytes: ...
    def get_size(self) -> int: ...
    def close(self) -> None: ...


class RAWImgInfo:
    def __init__(self, path: Path) -> None:
        self._path = path
        self._file = path.open("rb")

    def read(self, offset: int, size: int) -> bytes:
        self._file.seek(offset)
        return self._file.read(size)

    def get_size(self) -> int:
        # st_size is 0 for block devices
        return self._file.seek(0, os.SEEK_END)

    def close(self) -> None:
        self._file.close()


class BytesImgInfo:
    def __init__(self, data: bytes | bytearray) -> None:
        self._data = bytes(data)

    def read(self, offset: int, size: int) -> bytes:
        return self._data[offset : offset + size]

    def get_size(self) -> int:
        return len(self._data)

    def close(self) -> None:
        self._data = b""


def amiga_datetime(stamp: Container) -> datetime:
    """
    Convert an AmigaDOS date stamp (days, mins, ticks) to an aware UTC datetime.
    """
    return AMIGA_EPOCH + timedelta(days=stamp.days, minutes=stamp.mins, seconds=stamp.ticks / TICKS_PER_SECOND)


def _to_jsonable(value: object) -> object:
    if isinstance(value, Container):
        if set(value) >= {"days", "mins", "ticks"}:
            try:
                return amiga_datetime(value).isoformat()
            except OverflowError:
                return {"days": value.days, "mins": value.mins, "ticks": value.ticks}
        return {k: _to_jsonable(v) for k, v in value.items() if not k.startswith("_")}
    if isinstance(value, ListContainer | list | tuple):
        return [_to_jsonable(v) for v in value]
    if isinstance(value, bytes):
        return value.hex()
    return value


@dataclass(frozen=True)
class BlockState:
    index: int
    status: BlockStates = BlockStates.UNANALYZED
    block_type: BlockTypes = BlockTypes.UNKNOWN
    fields: Container | None = None
    span_start: int | None = None  # First block of a multi-block record (boot block)
    checksum_ok: bool | None = None  # None unless checksums were verified

    @property
    def is_known(self) -> bool:
        return self.status == BlockStates.KNOWN

    def to_dict(self, with_fields: bool = True) -> dict:
        result: dict = {
            "block": self.index,
            "state": self.status.name,
            "type": self.block_type.name,
        }
        if self.span_start is not None and self.span_start != self.index:
            result["span_start"] = self.span_start
        if self.checksum_ok is not None:
            result["checksum_ok"] = self.checksum_ok
        if with_fields and self.fields is not None:
            result["fields"] = _to_jsonable(self.fields)
        return result
