#!/usr/bin/env python3
"""
Minimal record dumper for GDSII stream files.

Each record is laid out as (big endian):

    uint16 length       # includes the 4-byte header
    uint8  record_type
    uint8  data_type
    <payload bytes>

This tool walks the records up to ENDLIB and prints a compact summary so the
structure boundaries, references and coordinate lists can be eyeballed.
"""

from __future__ import annotations

import argparse
import itertools
import sys
from pathlib import Path
from typing import Sequence

from gdsraw.errors import GdsError
from gdsraw.records import ASCII, DATA_TYPE_NAMES, NO_DATA, GdsRecord, iter_records


def describe_record(record: GdsRecord, *, show_values: bool = False, max_values: int = 8) -> str:
    parts = [
        f"off=0x{record.offset:06X}",
        f"{record.name:<12}",
        f"type={DATA_TYPE_NAMES.get(record.dtype, hex(record.dtype)):<5}",
        f"len={record.length}",
    ]
    if record.dtype == ASCII:
        parts.append(f"text={record.text()!r}")
    elif show_values and record.dtype != NO_DATA:
        values = record.values()
        if values and isinstance(values[0], bytes):
            sample = " ".join(f"{b:02X}" for b in values[0][:16])
            parts.append(f"bytes={sample}")
        else:
            sample = ", ".join(f"{v:g}" if isinstance(v, float) else str(v) for v in values[:max_values])
            if len(values) > max_values:
                sample += f", … ({len(values)} values)"
            parts.append(f"values=[{sample}]")
    return " | ".join(parts)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dump records from a GDSII stream file.")
    parser.add_argument("input", type=Path, help="Path to the .gds file")
    parser.add_argument("--start", type=lambda x: int(x, 0), default=0, help="Skip records before this byte offset")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of records to print (default: no limit)",
    )
    parser.add_argument(
        "--values",
        action="store_true",
        help="Include decoded numeric values for non-text payloads",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    count = 0
    with args.input.open("rb") as stream:
        records = (record for record in iter_records(stream) if record.offset >= args.start)
        if args.limit is not None:
            records = itertools.islice(records, args.limit)
        try:
            for record in records:
                print(describe_record(record, show_values=args.values))
                count += 1
        except GdsError as exc:
            print(f"[!] {exc}", file=sys.stderr)
            return 1
    if count == 0:
        print("No records discovered in the requested window.", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
