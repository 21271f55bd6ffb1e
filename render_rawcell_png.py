#!/usr/bin/env python3
"""
Render a flattened GDSII cell to a PNG preview without a layout viewer.

The script reuses the RawCell polygon extractor so the preview matches the
inspector's CSV output, then rasterizes the polygons with Pillow. Example:

    python render_rawcell_png.py chip.gds TOP --output TOP.png --size 1024
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw

from gdsraw.loader import read_rawcells
from gdsraw.logging import DiagnosticLog

DEFAULT_PREVIEW_SIZE = 512


def split_polygons(rows: np.ndarray) -> Dict[int, np.ndarray]:
    """Group extractor rows by polygon id, keeping the vertex order."""

    polygons: Dict[int, np.ndarray] = {}
    if len(rows) == 0:
        return polygons
    ids = rows[:, 2]
    boundaries = np.flatnonzero(np.diff(ids)) + 1
    for chunk in np.split(rows, boundaries):
        polygons[int(chunk[0, 2])] = chunk[:, :2]
    return polygons


def to_pixels(rows: np.ndarray, size_px: int, padding_ratio: float) -> np.ndarray:
    """
    Map every ``(x, y)`` of ``rows`` into a ``size_px`` square image.

    The drawing is padded on every side, centred, and flipped so database y
    grows upwards.
    """

    xy = rows[:, :2].astype(float)
    low = xy.min(axis=0)
    extent = np.maximum(xy.max(axis=0) - low, 1e-9)
    pad = extent.max() * padding_ratio
    span = extent + 2 * pad
    scale = (size_px / span).min()
    margin = (size_px - span * scale) / 2.0
    pixels = (xy - (low - pad)) * scale + margin
    pixels[:, 1] = size_px - pixels[:, 1]
    return pixels


def render_png(
    rows: np.ndarray,
    destination: Path,
    size_px: int = DEFAULT_PREVIEW_SIZE,
    *,
    padding_ratio: float = 0.05,
    fill: bool = True,
) -> int:
    """Draw every polygon in ``rows``; returns the number of polygons drawn."""

    if len(rows) == 0:
        raise RuntimeError("No polygons were extracted for the requested cell.")
    placed = np.column_stack((to_pixels(rows, size_px, padding_ratio), rows[:, 2]))

    image = Image.new("RGBA", (size_px, size_px), (255, 255, 255, 0))
    draw = ImageDraw.Draw(image)
    stroke = max(1, int(size_px / 256))
    drawn = 0
    for vertices in split_polygons(placed).values():
        points: List[Tuple[float, float]] = [(float(x), float(y)) for x, y in vertices]
        if len(points) < 2:
            continue
        if len(points) >= 3 and fill:
            draw.polygon(points, fill=(64, 96, 160, 160), outline="black")
        else:
            draw.line(points, fill="black", width=stroke)
        drawn += 1

    destination.parent.mkdir(parents=True, exist_ok=True)
    image.save(destination)
    return drawn


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a GDSII cell to PNG.")
    parser.add_argument("input", type=Path, help="Source .gds file")
    parser.add_argument("cell", help="Name of the cell to render")
    parser.add_argument("--output", type=Path, required=True, help="Destination PNG")
    parser.add_argument("--size", type=int, default=DEFAULT_PREVIEW_SIZE, help="Image size in pixels (square)")
    parser.add_argument("--depth", type=int, default=-1, help="Reference depth to flatten (-1: unlimited)")
    parser.add_argument("--unit", type=float, default=0.0, help="Output unit in meters (0: user units)")
    parser.add_argument("--outline", action="store_true", help="Draw outlines only")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    diagnostics = DiagnosticLog(stream=sys.stderr)
    library, error = read_rawcells(args.input, diagnostics=diagnostics)
    cell = library.get(args.cell)
    if cell is None:
        raise SystemExit(f"Cell {args.cell!r} not available in {args.input} ({error.name})")
    rows, extract_error = cell.get_polygons(args.depth, args.unit, diagnostics=diagnostics)
    if extract_error:
        raise SystemExit(f"Unable to extract {args.cell}: {extract_error.name}")
    drawn = render_png(rows, args.output, args.size, fill=not args.outline)
    print(f"[+] {drawn} polygons of {args.cell} rendered to {args.output}")
    for item in library.values():
        item.clear()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
