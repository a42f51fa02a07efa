#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

import pytest
from construct import Container

from adfparser.blockmap import BlockMap
from adfparser.common import BlockStates, BlockTypes, OutOfRangeError


def test_initial_state():
    blockmap = BlockMap(4)
    assert len(blockmap) == 4
    assert all(state.status == BlockStates.UNANALYZED for state in blockmap)
    assert not blockmap.is_complete()


def test_claim_once():
    blockmap = BlockMap(2)
    assert blockmap.claim(1)
    assert blockmap.status(1) == BlockStates.CLAIMED
    assert not blockmap.claim(1)


def test_mark_known():
    blockmap = BlockMap(2)
    fields = Container(data=b"\x00" * 512)
    assert blockmap.mark_known(1, BlockTypes.DATA_FFS, fields)
    state = blockmap[1]
    assert state.is_known
    assert state.block_type == BlockTypes.DATA_FFS
    assert state.fields is fields
    assert state.span_start == 1


def test_known_is_never_overwritten():
    blockmap = BlockMap(1)
    blockmap.mark_known(0, BlockTypes.ROOT, Container())
    assert not blockmap.mark_known(0, BlockTypes.BITMAP, Container())
    assert not blockmap.mark_unknown(0)
    assert not blockmap.claim(0)
    assert blockmap[0].block_type == BlockTypes.ROOT


def test_unknown_can_become_known():
    blockmap = BlockMap(1)
    assert blockmap.mark_unknown(0)
    assert not blockmap.mark_unknown(0)
    assert not blockmap.claim(0)
    assert blockmap.mark_known(0, BlockTypes.DATA_FFS, Container())
    assert blockmap[0].is_known


def test_claimed_can_be_resolved():
    blockmap = BlockMap(2)
    blockmap.claim(0)
    blockmap.claim(1)
    assert blockmap.mark_unknown(0)
    assert blockmap.mark_known(1, BlockTypes.FILE_EXT, Container())
    assert blockmap.is_complete()


def test_counts_and_queries():
    blockmap = BlockMap(5)
    blockmap.mark_known(0, BlockTypes.BOOT, Container(), span_start=0)
    blockmap.mark_known(1, BlockTypes.BOOT, Container(), span_start=0)
    blockmap.mark_known(2, BlockTypes.ROOT, Container())
    blockmap.mark_unknown(3)
    blockmap.mark_unknown(4)
    assert blockmap.counts() == {BlockTypes.BOOT: 2, BlockTypes.ROOT: 1}
    assert [state.index for state in blockmap.known_blocks(BlockTypes.BOOT)] == [0, 1]
    assert blockmap[1].span_start == 0
    assert blockmap.unknown_blocks() == [3, 4]
    assert blockmap.is_complete()


@pytest.mark.parametrize("index", [-1, 3])
def test_out_of_range(index):
    blockmap = BlockMap(3)
    with pytest.raises(OutOfRangeError):
        blockmap[index]


def test_state_to_dict():
    blockmap = BlockMap(2)
    blockmap.mark_known(1, BlockTypes.BOOT, Container(flags=1, bootcode=b"\x4e\x75"), span_start=0, checksum_ok=True)
    assert blockmap[1].to_dict() == {
        "block": 1,
        "state": "KNOWN",
        "type": "BOOT",
        "span_start": 0,
        "checksum_ok": True,
        "fields": {"flags": 1, "bootcode": "4e75"},
    }
    assert blockmap[0].to_dict() == {"block": 0, "state": "UNANALYZED", "type": "UNKNOWN"}
