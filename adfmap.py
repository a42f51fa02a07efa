#!/usr/bin/env python3
#
# adfmap.py
# ADF Block Mapper (adfmap) classifies every block of an Amiga disk image (ADF) and follows its block chains.
#
# Copyright 2025 Minoru Kobayashi <unknownbit@gmail.com> (@unkn0wnbit)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

import argparse
import sys

from adfparser.adfparser import AdfParser
from adfparser.common import AdfParserError
from adfparser.images import open_image

VERSION = "20251019"


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ADF Block Mapper (adfmap)",
        description="Classify every block of an Amiga disk image and print the block map as JSON lines.",
    )
    parser.add_argument(
        "-i",
        "--image",
        type=str,
        help="Path to an ADF image file.",
    )
    parser.add_argument(
        "--offset",
        type=int,
        default=0,
        help="Byte offset of the filesystem in the image. (Default: 0)",
    )
    parser.add_argument(
        "--verify-checksums",
        action="store_true",
        default=False,
        help="Verify block checksums and report the result per block. (Default: False)",
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        default=False,
        help="Print block counts per type instead of the block map. (Default: False)",
    )
    parser.add_argument(
        "--no-fields",
        action="store_true",
        default=False,
        help="Omit decoded fields from the block map. (Default: False)",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        default=False,
        help="Disable the progress bar. (Default: False)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug mode. (Default: False)",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_arguments(argv)
    if not args.image:
        print("Please specify a disk image file.")
        sys.exit(1)

    try:
        img_info, _ = open_image(args.image)
    except (OSError, AdfParserError) as err:
        print(f"Failed to open image: {err}", file=sys.stderr)
        sys.exit(1)

    try:
        parser = AdfParser(img_info, args)
    except AdfParserError as err:
        img_info.close()
        print(f"Failed to analyze image: {err}", file=sys.stderr)
        sys.exit(1)

    try:
        parser.parse_blocks()
        if args.summary:
            parser.dump_summary()
        else:
            parser.dump_block_map(with_fields=not args.no_fields)
    finally:
        parser.close()


if __name__ == "__main__":
    main()
