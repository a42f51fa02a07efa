#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

import sys
from collections.abc import Callable
from dataclasses import dataclass

from adfparser.accessor import ImageAccessor
from adfparser.blockmap import BlockMap
from adfparser.chains import ChainFollower
from adfparser.common import BlockState, BlockTypes, DebugPrinter, FsModes, TruncatedBlockError
from adfparser.decoder import decode_block, is_boot_block, read_type_tag, verify_checksum
from adfparser.structs.adf_structs import ST_FILE, ST_ROOT, ST_USERDIR, T_DATA, T_HEADER, T_LIST


@dataclass(frozen=True)
class BlockCandidate:
    index: int
    data: bytes
    type: int
    sec_type: int
    fs_mode: FsModes


@dataclass(frozen=True)
class ClassifierRule:
    name: str
    block_type: BlockTypes
    predicate: Callable[[BlockCandidate], bool]
    follow: Callable[["BlockClassifier", BlockState], None] | None = None


def _follow_bitmap_pages(classifier: "BlockClassifier", state: BlockState) -> None:
    classifier.chains.follow_bitmap_pages(state.index, state.fields)


def _follow_ffs_data(classifier: "BlockClassifier", state: BlockState) -> None:
    # OFS data blocks carry their own header and are found by the sequential scan
    if classifier.fs_mode == FsModes.FFS:
        classifier.chains.follow_data_chain(state.index, state.fields)


# Evaluated in order, the first matching rule wins.
# The boot block is positional, everything else is tagged by (type, sec_type).
CLASSIFIER_RULES: tuple[ClassifierRule, ...] = (
    ClassifierRule("boot", BlockTypes.BOOT, lambda c: c.index == 0 and is_boot_block(c.data)),
    ClassifierRule("root", BlockTypes.ROOT, lambda c: (c.type, c.sec_type) == (T_HEADER, ST_ROOT), _follow_bitmap_pages),
    ClassifierRule("file header", BlockTypes.FILE_HEADER, lambda c: (c.type, c.sec_type) == (T_HEADER, ST_FILE), _follow_ffs_data),
    ClassifierRule("file extension", BlockTypes.FILE_EXT, lambda c: (c.type, c.sec_type) == (T_LIST, ST_FILE), _follow_ffs_data),
    ClassifierRule("user directory", BlockTypes.USER_DIR, lambda c: (c.type, c.sec_type) == (T_HEADER, ST_USERDIR)),
    ClassifierRule("OFS data", BlockTypes.DATA_OFS, lambda c: c.type == T_DATA and c.fs_mode == FsModes.OFS),
)


class BlockClassifier(DebugPrinter):
    def __init__(
        self,
        accessor: ImageAccessor,
        blockmap: BlockMap,
        fs_mode: FsModes,
        verify_checksums: bool = False,
        debug: bool = False,
        rules: tuple[ClassifierRule, ...] = CLASSIFIER_RULES,
    ) -> None:
        self.accessor = accessor
        self.blockmap = blockmap
        self.fs_mode = fs_mode
        self.verify_checksums = verify_checksums
        self.debug = debug
        self.rules = rules
        self._follow_actions = {rule.block_type: rule.follow for rule in rules}
        self.chains = ChainFollower(accessor, blockmap, self, debug)

    def _inspect(self, index: int) -> BlockCandidate:
        data = self.accessor.read_block(index)
        block_type, sec_type = read_type_tag(data)
        return BlockCandidate(index=index, data=data, type=block_type, sec_type=sec_type, fs_mode=self.fs_mode)

    def match_rule(self, candidate: BlockCandidate) -> ClassifierRule | None:
        for rule in self.rules:
            if rule.predicate(candidate):
                return rule
        return None

    def record(self, index: int, data: bytes, block_type: BlockTypes, span_start: int | None = None) -> bool:
        """
        Decode `data` as `block_type` and mark the block as known.
        Returns False if the block was already known.
        """
        fields = decode_block(data, block_type)
        checksum_ok = verify_checksum(data, block_type) if self.verify_checksums else None
        return self.blockmap.mark_known(index, block_type, fields, span_start=span_start, checksum_ok=checksum_ok)

    def _identify_boot(self, index: int) -> BlockState:
        data = self.accessor.read_span(index, 2)
        try:
            fields = decode_block(data, BlockTypes.BOOT)
        except TruncatedBlockError as err:
            print(f"Block {index}: truncated boot block, marked as unknown ({err})", file=sys.stderr)
            self.blockmap.mark_unknown(index)
            return self.blockmap[index]

        checksum_ok = verify_checksum(data, BlockTypes.BOOT) if self.verify_checksums else None
        for part in (index, index + 1):
            self.blockmap.mark_known(part, BlockTypes.BOOT, fields, span_start=index, checksum_ok=checksum_ok)
        self.dbg_print(f"Block {index}: boot block (flags: 0x{fields.flags:x})")
        return self.blockmap[index]

    def identify(self, index: int) -> BlockState:
        """
        Classify a block and record the result without following any chain.
        """
        if self.blockmap.is_known(index):
            return self.blockmap[index]

        candidate = self._inspect(index)
        rule = self.match_rule(candidate)
        if rule is None:
            self.dbg_print(f"Block {index}: unrecognized (type: {candidate.type}, sec_type: {candidate.sec_type})")
            self.blockmap.mark_unknown(index)
            return self.blockmap[index]

        if rule.block_type == BlockTypes.BOOT:
            return self._identify_boot(index)

        self.record(index, candidate.data, rule.block_type)
        self.dbg_print(f"Block {index}: {rule.name}")
        return self.blockmap[index]

    def follow(self, state: BlockState) -> None:
        if not state.is_known or state.span_start != state.index:
            return
        if follow := self._follow_actions.get(state.block_type):
            follow(self, state)

    def classify(self, index: int) -> BlockState:
        if self.blockmap.is_known(index):
            return self.blockmap[index]
        state = self.identify(index)
        self.follow(state)
        return state
