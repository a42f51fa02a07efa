#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

from collections import Counter
from collections.abc import Iterator

from construct import Container

from adfparser.common import BlockState, BlockStates, BlockTypes, OutOfRangeError


class BlockMap:
    """
    Classification state of every block of an image.

    State transitions only move forward:
        UNANALYZED -> CLAIMED | KNOWN | UNKNOWN
        CLAIMED -> KNOWN | UNKNOWN
        UNKNOWN -> KNOWN (a chain identified a block the sequential scan could not)
    A KNOWN block is never overwritten.
    """

    def __init__(self, block_count: int) -> None:
        self.block_count = block_count
        self._states: list[BlockState] = [BlockState(index=i) for i in range(block_count)]

    def __len__(self) -> int:
        return self.block_count

    def __getitem__(self, index: int) -> BlockState:
        self._check_index(index)
        return self._states[index]

    def __iter__(self) -> Iterator[BlockState]:
        return iter(self._states)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.block_count:
            msg = f"Block {index} is out of range (block count: {self.block_count})"
            raise OutOfRangeError(msg)

    def status(self, index: int) -> BlockStates:
        return self[index].status

    def is_known(self, index: int) -> bool:
        return self.status(index) == BlockStates.KNOWN

    def is_unanalyzed(self, index: int) -> bool:
        return self.status(index) == BlockStates.UNANALYZED

    def claim(self, index: int) -> bool:
        """
        Mark a block as being classified.
        Returns False if the block was already claimed or analyzed.
        """
        if self.status(index) != BlockStates.UNANALYZED:
            return False
        self._states[index] = BlockState(index=index, status=BlockStates.CLAIMED)
        return True

    def mark_known(
        self,
        index: int,
        block_type: BlockTypes,
        fields: Container,
        span_start: int | None = None,
        checksum_ok: bool | None = None,
    ) -> bool:
        if self.status(index) == BlockStates.KNOWN:
            return False
        self._states[index] = BlockState(
            index=index,
            status=BlockStates.KNOWN,
            block_type=block_type,
            fields=fields,
            span_start=index if span_start is None else span_start,
            checksum_ok=checksum_ok,
        )
        return True

    def mark_unknown(self, index: int) -> bool:
        if self.status(index) not in (BlockStates.UNANALYZED, BlockStates.CLAIMED):
            return False
        self._states[index] = BlockState(index=index, status=BlockStates.UNKNOWN)
        return True

    def is_complete(self) -> bool:
        return all(state.status in (BlockStates.KNOWN, BlockStates.UNKNOWN) for state in self._states)

    def counts(self) -> Counter[BlockTypes]:
        return Counter(state.block_type for state in self._states if state.status == BlockStates.KNOWN)

    def known_blocks(self, block_type: BlockTypes | None = None) -> list[BlockState]:
        return [
            state for state in self._states if state.status == BlockStates.KNOWN and (block_type is None or state.block_type == block_type)
        ]

    def unknown_blocks(self) -> list[int]:
        return [state.index for state in self._states if state.status == BlockStates.UNKNOWN]
