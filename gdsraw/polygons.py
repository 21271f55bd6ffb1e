from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Dict, List, Set, Tuple

import numpy as np

from .errors import ErrorCode, GdsError
from .logging import DiagnosticLog, report
from .records import (
    AREF,
    BOUNDARY,
    BOX,
    ENDEL,
    ENDLIB,
    ENDSTR,
    MAX_RECORD_LENGTH,
    REAL8,
    SNAME,
    SREF,
    STRNAME,
    UNITS,
    XY,
    RecordReader,
)

if TYPE_CHECKING:
    from .rawcell import RawCell

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


@dataclass
class PolygonAccumulator:
    """Output rows and id counter shared by every cell visited in one extraction."""

    tolerance: float = 0.0
    next_id: int = 0
    rows: List[Tuple[int, int, int]] = field(default_factory=list)
    active: Set[int] = field(default_factory=set)

    def add_vertex(self, x: int, y: int) -> None:
        self.rows.append((x, y, self.next_id))

    def close_polygon(self) -> None:
        self.next_id += 1

    def as_array(self) -> np.ndarray:
        if not self.rows:
            return np.empty((0, 3), dtype=np.int32)
        return np.array(self.rows, dtype=np.int32)


def extract_polygons(
    cell: "RawCell",
    depth: int = 0,
    unit: float = 0,
    tolerance: float = 0,
    *,
    max_length: int = MAX_RECORD_LENGTH,
    diagnostics: DiagnosticLog | None = None,
) -> Tuple[np.ndarray, ErrorCode]:
    """
    Re-read ``cell`` from its file and return its boundary and box vertices.

    The result is an ``(N, 3)`` int32 array of ``(x, y, polygon_id)`` rows.
    Coordinates are scaled by the library's user unit when ``unit <= 0``, or
    by ``db_in_meters / unit`` otherwise, and truncated toward zero. With
    ``depth != 0`` referenced cells are inlined, each level decrementing the
    depth (a negative depth never runs out). Polygon ids are consecutive
    across the whole flattened output in depth-first order.

    On failure the rows gathered before the error are returned together with
    the error code. A scaled vertex outside the int32 range stops the scan
    with ``INVALID_FILE``.
    """

    accumulator = PolygonAccumulator(tolerance=tolerance)
    error = _extract_into(cell, depth, unit, accumulator, max_length=max_length, diagnostics=diagnostics)
    return accumulator.as_array(), error


def _open_cell_stream(cell: "RawCell") -> BinaryIO:
    if cell.filename is not None:
        return Path(cell.filename).open("rb")
    if cell.data:
        return io.BytesIO(cell.data)
    raise OSError(f"RawCell {cell.name} has neither a source file nor data")


def _names_target(cell: "RawCell", offset: int) -> bool:
    # A cell with a known byte range only claims the STRNAME inside it, so a
    # file that defines the name twice resolves to the structure the loader kept.
    if cell.size <= 0:
        return True
    return cell.offset <= offset < cell.offset + cell.size


def _extract_into(
    cell: "RawCell",
    depth: int,
    unit: float,
    accumulator: PolygonAccumulator,
    *,
    max_length: int,
    diagnostics: DiagnosticLog | None,
) -> ErrorCode:
    try:
        stream = _open_cell_stream(cell)
    except OSError as exc:
        report(diagnostics, f"Unable to open input GDSII file: {exc}")
        return ErrorCode.FILE_OPEN_ERROR

    accumulator.active.add(id(cell))
    try:
        with stream:
            return _scan_cell(cell, stream, depth, unit, accumulator, max_length=max_length, diagnostics=diagnostics)
    finally:
        accumulator.active.discard(id(cell))


def _scan_cell(
    cell: "RawCell",
    stream: BinaryIO,
    depth: int,
    unit: float,
    accumulator: PolygonAccumulator,
    *,
    max_length: int,
    diagnostics: DiagnosticLog | None,
) -> ErrorCode:
    reader = RecordReader(stream, max_length=max_length)
    factor = 1.0
    in_target = False
    target_seen = False
    in_shape = False
    in_reference = False
    dependencies: Dict[str, "RawCell"] | None = None

    while True:
        try:
            record = reader.read()
        except GdsError as exc:
            report(diagnostics, str(exc))
            return exc.code

        rtype = record.rtype
        if rtype == UNITS:
            if record.dtype != REAL8:
                continue
            values = record.values()
            if len(values) < 2:
                continue
            db_in_user, db_in_meters = values[0], values[1]
            factor = db_in_meters / unit if unit > 0 else db_in_user
            if accumulator.tolerance <= 0 and factor != 0:
                accumulator.tolerance = db_in_meters / factor
        elif rtype == ENDLIB:
            return ErrorCode.NO_ERROR
        elif rtype == STRNAME:
            if not target_seen and record.text() == cell.name and _names_target(cell, record.offset):
                in_target = target_seen = True
        elif not in_target:
            continue
        elif rtype == ENDSTR:
            # Nothing after the target's own ENDSTR belongs to it.
            return ErrorCode.NO_ERROR
        elif rtype in (SREF, AREF):
            in_reference = True
        elif rtype == SNAME:
            if not in_reference or depth == 0:
                continue
            if dependencies is None:
                dependencies = cell.get_dependencies(True)
            ref = dependencies.get(record.text())
            if ref is None:
                continue
            if id(ref) in accumulator.active:
                report(diagnostics, f"Skipping circular reference from {cell.name} to {ref.name}.")
                continue
            child_error = _extract_into(
                ref,
                depth - 1,
                unit,
                accumulator,
                max_length=max_length,
                diagnostics=diagnostics,
            )
            if child_error:
                return child_error
        elif rtype in (BOUNDARY, BOX):
            in_shape = True
        elif rtype == XY:
            if not in_shape:
                continue
            values = record.values()
            for x, y in zip(values[0::2], values[1::2]):
                px, py = int(factor * x), int(factor * y)
                if not (INT32_MIN <= px <= INT32_MAX and INT32_MIN <= py <= INT32_MAX):
                    report(
                        diagnostics,
                        f"Scaled vertex ({px}, {py}) of {cell.name} at offset {record.offset} does not fit in 32 bits.",
                    )
                    return ErrorCode.INVALID_FILE
                accumulator.add_vertex(px, py)
        elif rtype == ENDEL:
            if in_shape:
                accumulator.close_polygon()
            in_shape = False
            in_reference = False
