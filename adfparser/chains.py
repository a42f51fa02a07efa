#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

import sys
from collections import deque
from typing import TYPE_CHECKING

from construct import Container

from adfparser.accessor import ImageAccessor
from adfparser.blockmap import BlockMap
from adfparser.common import BlockTypes, DebugPrinter
from adfparser.decoder import data_block_pointers

if TYPE_CHECKING:
    from adfparser.classifier import BlockClassifier


class ChainFollower(DebugPrinter):
    """
    Marks the blocks referenced by pointer lists of already classified blocks.

    Bitmap chain: root block bm_pages -> bitmap blocks.
    FFS data chain: file header / extension data_blocks -> FFS data blocks,
    then the extension pointer -> next file extension block, until a zero pointer.
    """

    def __init__(self, accessor: ImageAccessor, blockmap: BlockMap, classifier: "BlockClassifier", debug: bool = False) -> None:
        self.accessor = accessor
        self.blockmap = blockmap
        self.classifier = classifier
        self.debug = debug

    def _in_range(self, owner: int, field_name: str, pointer: int) -> bool:
        if pointer == 0:
            return False
        if not self.accessor.is_valid_pointer(pointer):
            print(f"Block {owner}: {field_name} pointer {pointer} is out of range, skipped", file=sys.stderr)
            return False
        return True

    def _mark_target(self, owner: int, field_name: str, pointer: int, block_type: BlockTypes) -> bool:
        if not self._in_range(owner, field_name, pointer):
            return False
        if self.blockmap.is_known(pointer):
            self.dbg_print(f"Block {owner}: {field_name} target {pointer} is already known as {self.blockmap[pointer].block_type.name}")
            return False
        data = self.accessor.read_block(pointer)
        return self.classifier.record(pointer, data, block_type)

    def follow_bitmap_pages(self, index: int, root: Container) -> int:
        """
        Mark the bitmap blocks listed in a root block. Returns the number of newly marked blocks.
        """
        marked = 0
        for page in root.bm_pages:
            if self._mark_target(index, "bm_pages", page, BlockTypes.BITMAP):
                self.dbg_print(f"Block {page}: bitmap (root block {index})")
                marked += 1
        if root.bm_ext:
            # Bitmap extension blocks only appear on large hard disk partitions
            self.dbg_print(f"Block {index}: bitmap extension block {root.bm_ext} is not followed")
        return marked

    def follow_data_chain(self, index: int, block: Container) -> int:
        """
        Mark the FFS data blocks of a file header or file extension block and of every
        extension block chained after it. Returns the number of newly marked data blocks.
        """
        marked = 0
        pending: deque[tuple[int, Container]] = deque([(index, block)])
        while pending:
            owner_index, owner = pending.popleft()
            for pointer in data_block_pointers(owner):
                if self._mark_target(owner_index, "data_blocks", pointer, BlockTypes.DATA_FFS):
                    marked += 1

            extension = owner.extension
            if not self._in_range(owner_index, "extension", extension):
                continue
            # Claiming before classifying stops pointer cycles between extension blocks
            if not self.blockmap.claim(extension):
                self.dbg_print(f"Block {owner_index}: extension block {extension} is already analyzed")
                continue

            state = self.classifier.identify(extension)
            match state.block_type:
                case BlockTypes.FILE_EXT | BlockTypes.FILE_HEADER:
                    pending.append((extension, state.fields))
                case BlockTypes.UNKNOWN:
                    print(f"Block {owner_index}: extension block {extension} is not recognized", file=sys.stderr)
                case _:
                    print(f"Block {owner_index}: extension block {extension} is a {state.block_type.name} block", file=sys.stderr)
                    self.classifier.follow(state)
        return marked
