#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
#    This file is part of ADF Block Mapper (adfmap).
#    Usage or distribution of this code is subject to the terms of the Apache License, Version 2.0.
#

import json
from argparse import Namespace

from tqdm import tqdm as _tqdm
from tqdm.std import tqdm as TqdmType

from adfparser.accessor import ImageAccessor
from adfparser.blockmap import BlockMap
from adfparser.classifier import BlockClassifier
from adfparser.common import BlockStates, DebugPrinter, FsModes, ImageLike
from adfparser.structs.adf_structs import DOSFLAG_FFS


class AdfParser(DebugPrinter):
    def __init__(self, img_info: ImageLike, args: Namespace) -> None:
        self.img_info = img_info
        self.offset = getattr(args, "offset", 0)
        self.debug = getattr(args, "debug", False)
        self.no_progress = getattr(args, "no_progress", False)
        self.verify_checksums = getattr(args, "verify_checksums", False)
        self.accessor = ImageAccessor(img_info, self.offset)
        self.blockmap = BlockMap(self.accessor.block_count)
        self.fs_mode = self.detect_fs_mode()
        self.classifier = BlockClassifier(
            self.accessor,
            self.blockmap,
            self.fs_mode,
            verify_checksums=self.verify_checksums,
            debug=self.debug,
        )

    def tqdm(self, *args, **kwargs) -> TqdmType:
        if "disable" not in kwargs:
            kwargs["disable"] = self.no_progress
        return _tqdm(*args, **kwargs)

    @property
    def block_count(self) -> int:
        return self.accessor.block_count

    def detect_fs_mode(self) -> FsModes:
        # Byte 3 of the boot block holds the DOS flags, bit 0 selects FFS
        flags = self.accessor.read_block(0)[3]
        fs_mode = FsModes.FFS if flags & DOSFLAG_FFS else FsModes.OFS
        self.dbg_print(f"DOS flags: 0x{flags:02x} ({fs_mode.name})")
        return fs_mode

    def parse_blocks(self) -> BlockMap:
        for index in self.tqdm(range(self.block_count), desc="Classifying blocks", unit="block", leave=False):
            if self.blockmap.is_unanalyzed(index):
                self.classifier.classify(index)

        if not self.blockmap.is_complete():
            pending = [state.index for state in self.blockmap if state.status in (BlockStates.UNANALYZED, BlockStates.CLAIMED)]
            msg = f"Blocks left unclassified: {pending}"
            raise RuntimeError(msg)
        return self.blockmap

    def summary(self) -> dict[str, int | str]:
        result: dict[str, int | str] = {"blocks": self.block_count, "fs_mode": self.fs_mode.name}
        for block_type, count in sorted(self.blockmap.counts().items()):
            result[block_type.name] = count
        result["UNKNOWN"] = len(self.blockmap.unknown_blocks())
        return result

    def dump_block_map(self, with_fields: bool = True) -> None:
        for state in self.blockmap:
            print(json.dumps(state.to_dict(with_fields)))

    def dump_summary(self) -> None:
        print(json.dumps(self.summary()))

    def close(self) -> None:
        self.img_info.close()
        self.dbg_print(f"Closed image ({self.block_count} blocks)")
