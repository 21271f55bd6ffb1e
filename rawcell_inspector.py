#!/usr/bin/env python3
"""
High-level inspector for GDSII libraries built on the lazy RawCell index.

This tool:
  * indexes every structure of the file without reading its geometry
  * lists each cell with its byte size and direct (or transitive) references
  * optionally flattens one cell to (x, y, polygon_id) rows and writes a CSV
  * optionally copies one cell's raw records verbatim to another file

The JSON report makes it easy to diff hierarchies between tape-out revisions.
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Sequence

from gdsraw.errors import ErrorCode
from gdsraw.loader import read_rawcells
from gdsraw.logging import DiagnosticLog
from gdsraw.rawcell import RawCell


@dataclass
class CellSummary:
    name: str
    size: int
    offset: int
    dependencies: List[str]


def summarize_library(library: Dict[str, RawCell], *, recursive: bool = False) -> List[CellSummary]:
    summaries: List[CellSummary] = []
    for name, cell in library.items():
        deps = [dep.name for dep in cell.dependencies(recursive)]
        summaries.append(CellSummary(name=name, size=cell.size, offset=cell.offset, dependencies=deps))
    return summaries


def top_cells(library: Dict[str, RawCell]) -> List[str]:
    referenced = {dep.name for cell in library.values() for dep in cell.resolved_dependencies()}
    return [name for name in library if name not in referenced]


def write_polygon_csv(rows, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    with destination.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(["x", "y", "polygon_id"])
        for x, y, polygon_id in rows:
            writer.writerow([int(x), int(y), int(polygon_id)])


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect the cell hierarchy of a GDSII file.")
    parser.add_argument("input", type=Path, help="Path to the .gds file")
    parser.add_argument("--json", type=Path, help="Optional JSON report destination")
    parser.add_argument("--recursive", action="store_true", help="List transitive dependencies instead of direct ones")
    parser.add_argument("--extract", metavar="CELL", help="Flatten this cell into (x, y, polygon_id) rows")
    parser.add_argument("--depth", type=int, default=-1, help="Reference depth for --extract (-1: unlimited)")
    parser.add_argument("--unit", type=float, default=0.0, help="Output unit in meters for --extract (0: user units)")
    parser.add_argument("--csv", type=Path, help="CSV destination for --extract rows")
    parser.add_argument("--copy", metavar="CELL", help="Copy this cell's raw records to --output")
    parser.add_argument("-o", "--output", type=Path, help="Destination for --copy")
    parser.add_argument("--log", type=Path, help="Write loader/extractor diagnostics to this path")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    if args.copy and not args.output:
        raise SystemExit("--copy requires --output.")

    diagnostics = DiagnosticLog(destination=args.log, stream=sys.stderr)
    library, error = read_rawcells(args.input, diagnostics=diagnostics)
    if error in (ErrorCode.FILE_OPEN_ERROR, ErrorCode.INVALID_FILE):
        diagnostics.flush()
        raise SystemExit(f"Unable to index {args.input}: {error.name}")
    print(f"[+] Indexed {len(library)} cells from {args.input}")
    if error:
        print(f"[i] Hierarchy incomplete: {error.name}")

    summaries = summarize_library(library, recursive=args.recursive)
    for summary in summaries:
        deps = ", ".join(summary.dependencies) or "-"
        print(f"{summary.name:<32} size={summary.size:<8} off=0x{summary.offset:06X} deps: {deps}")
    tops = top_cells(library)
    if tops:
        print(f"[i] Top cells: {', '.join(tops)}")

    if args.json:
        payload = {
            "file": str(args.input),
            "error": error.name,
            "top_cells": tops,
            "cells": [asdict(summary) for summary in summaries],
        }
        args.json.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"[+] JSON report written to {args.json}")

    status = 0
    if args.extract:
        cell = library.get(args.extract)
        if cell is None:
            raise SystemExit(f"Cell {args.extract!r} not found in {args.input}")
        rows, extract_error = cell.get_polygons(args.depth, args.unit, diagnostics=diagnostics)
        polygon_count = len(set(rows[:, 2].tolist())) if len(rows) else 0
        print(f"[+] Extracted {len(rows)} vertices in {polygon_count} polygons from {args.extract}")
        if extract_error:
            print(f"[i] Extraction stopped early: {extract_error.name}")
            status = 1
        if args.csv:
            write_polygon_csv(rows, args.csv)
            print(f"[+] CSV written to {args.csv}")

    if args.copy:
        cell = library.get(args.copy)
        if cell is None:
            raise SystemExit(f"Cell {args.copy!r} not found in {args.input}")
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with args.output.open("wb") as handle:
            copy_error = cell.to_gds(handle, diagnostics=diagnostics)
        if copy_error:
            print(f"[i] Copy failed: {copy_error.name}")
            status = 1
        else:
            print(f"[+] Copied {cell.size} bytes of {args.copy} to {args.output}")

    for cell in library.values():
        cell.clear()
    diagnostics.flush()
    return status


if __name__ == "__main__":
    raise SystemExit(main())
