#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

import gzip
from collections.abc import Callable
from enum import IntEnum, auto
from pathlib import Path
from typing import Any

import magic
import pyewf
import pyvhdi
import pyvmdk

from adfparser.common import AdfParserError, BytesImgInfo, ImageLike, RAWImgInfo


class UnsupportedImageError(AdfParserError, ValueError):
    """Unsupported disk image format."""


class DiskImgTypes(IntEnum):
    UNKNOWN = 0
    RAW = auto()
    ADF = auto()
    ADZ = auto()
    DEVICE = auto()
    EWF = auto()
    VMDK = auto()
    VHDI = auto()


class HandleImgInfo:
    """
    ImageLike view of an opened libyal handle (pyewf, pyvmdk or pyvhdi).
    All three expose the same seek/read/get_media_size/close surface.
    """

    def __init__(self, handle: Any, img_type: DiskImgTypes) -> None:
        self._handle = handle
        self.img_type = img_type

    def read(self, offset: int, size: int) -> bytes:
        self._handle.seek(offset)
        return self._handle.read(size)

    def get_size(self) -> int:
        return self._handle.get_media_size()

    def close(self) -> None:
        self._handle.close()


def _open_ewf(path: Path) -> Any:
    handle = pyewf.handle()
    # segment files (.E01, .E02, ...) are opened together
    handle.open(pyewf.glob(str(path)))
    return handle


def _open_vmdk(path: Path) -> Any:
    handle = pyvmdk.handle()
    handle.open(str(path))
    handle.open_extent_data_files()
    return handle


def _open_vhdi(path: Path) -> Any:
    handle = pyvhdi.file()
    handle.open(str(path))
    return handle


CONTAINER_OPENERS: tuple[tuple[str, DiskImgTypes, Callable[[Path], Any]], ...] = (
    ("EWF/Expert Witness/EnCase", DiskImgTypes.EWF, _open_ewf),
    ("VMware", DiskImgTypes.VMDK, _open_vmdk),
    ("Microsoft Disk Image", DiskImgTypes.VHDI, _open_vhdi),
)
ADF_MAGIC = "Amiga"
ADZ_MAGIC = "gzip compressed data"


def read_magic(path: Path) -> str:
    return magic.from_file(str(path))


def _open_adz(path: Path) -> BytesImgInfo:
    # .adz is a gzipped ADF. A floppy image is small enough to unpack in memory.
    try:
        with gzip.open(path, "rb") as f:
            return BytesImgInfo(f.read())
    except (gzip.BadGzipFile, EOFError) as e:
        msg = f"Broken gzip stream: {path}"
        raise UnsupportedImageError(msg) from e


def detect_image(path: Path, magic_sig: str) -> tuple[ImageLike, DiskImgTypes]:
    for pattern, img_type, opener in CONTAINER_OPENERS:
        if magic_sig.startswith(pattern):
            return HandleImgInfo(opener(path), img_type), img_type

    if magic_sig.startswith(ADZ_MAGIC):
        return _open_adz(path), DiskImgTypes.ADZ

    # Plain ADF images carry no container header. libmagic names them only
    # when the boot block is intact, anything else is read as raw blocks.
    if path.is_block_device():
        img_type = DiskImgTypes.DEVICE
    elif magic_sig.startswith(ADF_MAGIC):
        img_type = DiskImgTypes.ADF
    else:
        img_type = DiskImgTypes.RAW
    return RAWImgInfo(path), img_type


def open_image(img_file: str | Path) -> tuple[ImageLike, DiskImgTypes]:
    path = Path(img_file).expanduser().resolve()
    if not path.exists():
        msg = f"File does not exist: {img_file}"
        raise FileNotFoundError(msg)
    if not (path.is_file() or path.is_block_device()):
        msg = f"File must be a regular file or block device: {img_file}"
        raise UnsupportedImageError(msg)

    return detect_image(path, read_magic(path))
