#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

from adfparser.common import ImageLike, InvalidImageSizeError, OutOfRangeError
from adfparser.structs.adf_structs import BLOCK_SIZE


class ImageAccessor:
    """
    Bounds-checked access to an image as an array of 512-byte blocks.
    """

    def __init__(self, img_info: ImageLike, offset: int = 0) -> None:
        self.img_info = img_info
        self.offset = offset
        if offset < 0:
            msg = f"Image offset must not be negative: {offset}"
            raise InvalidImageSizeError(msg)
        image_size = img_info.get_size() - offset
        if image_size <= 0 or image_size % BLOCK_SIZE:
            msg = f"Image size must be a positive multiple of {BLOCK_SIZE} bytes: {image_size}"
            raise InvalidImageSizeError(msg)
        self.block_count = image_size // BLOCK_SIZE

    def __len__(self) -> int:
        return self.block_count

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.block_count:
            msg = f"Block {index} is out of range (block count: {self.block_count})"
            raise OutOfRangeError(msg)

    def is_valid_pointer(self, pointer: int) -> bool:
        # 0 is the "none" sentinel, never a target
        return 0 < pointer < self.block_count

    def read_block(self, index: int) -> bytes:
        self._check_index(index)
        return self.img_info.read(self.offset + index * BLOCK_SIZE, BLOCK_SIZE)

    def read_span(self, start: int, count: int) -> bytes:
        """
        Read `count` consecutive blocks starting at `start`.
        A span running past the end of the image is returned short.
        """
        self._check_index(start)
        count = min(count, self.block_count - start)
        return self.img_info.read(self.offset + start * BLOCK_SIZE, count * BLOCK_SIZE)
