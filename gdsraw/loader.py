from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Set, Tuple

from .errors import ErrorCode, GdsError, InvalidRecord, keep_first
from .logging import DiagnosticLog, report
from .rawcell import DependencyEdge, RawCell, Resolved, Unresolved
from .records import BGNSTR, ENDLIB, ENDSTR, MAX_RECORD_LENGTH, SNAME, STRNAME, RecordReader
from .source import RawSource


def read_rawcells(
    filename: Path | str,
    *,
    max_length: int = MAX_RECORD_LENGTH,
    diagnostics: DiagnosticLog | None = None,
) -> Tuple[Dict[str, RawCell], ErrorCode]:
    """
    Index every structure in a GDSII file without reading its geometry.

    One forward pass records each structure's byte range and the names it
    references; at ENDLIB the names are resolved against the library. A
    reference to an unknown cell is dropped and reported as
    ``MISSING_REFERENCE`` while the rest of the map is still returned. A
    stream that ends or breaks before ENDLIB yields an empty map and
    ``INVALID_FILE``.
    """

    path = Path(filename)
    try:
        source = RawSource.open(path)
    except OSError:
        report(diagnostics, f"Unable to open input GDSII file {path}.")
        return {}, ErrorCode.FILE_OPEN_ERROR

    # The scan holds its own use so the handle survives until ENDLIB even
    # when no structure has been seen yet.
    source.acquire()
    result: Dict[str, RawCell] = {}
    current: RawCell | None = None
    reader = RecordReader(source.file, max_length=max_length)
    try:
        while True:
            record = reader.read()
            rtype = record.rtype
            if rtype == ENDLIB:
                if current is not None and current.name is None:
                    current.clear()
                error = _resolve_dependencies(result, diagnostics)
                source.release()
                return result, error
            if rtype == BGNSTR:
                if current is not None and current.name is None:
                    report(diagnostics, f"Structure at offset {current.offset} has no name; skipping it.")
                    current.clear()
                current = RawCell(
                    None,
                    source=source.acquire(),
                    offset=record.offset,
                    size=record.length,
                    filename=path,
                )
                continue
            if current is None:
                continue
            current.size += record.length
            if rtype == STRNAME:
                name = record.text()
                if not name:
                    raise InvalidRecord(f"Empty structure name at offset {record.offset}.")
                if current.name is not None:
                    raise InvalidRecord(f"Structure {current.name} is named again as {name} at offset {record.offset}.")
                current.name = name
                displaced = result.get(name)
                if displaced is not None and displaced is not current:
                    report(diagnostics, f"Duplicate cell name {name}; keeping the later definition.")
                    displaced.clear()
                result[name] = current
            elif rtype == SNAME:
                current.edges.append(Unresolved(record.text()))
            elif rtype == ENDSTR:
                if current.name is None:
                    report(diagnostics, f"Structure at offset {current.offset} has no name; skipping it.")
                    current.clear()
                current = None
    except GdsError as exc:
        report(diagnostics, str(exc))

    if current is not None and current.name is None:
        current.clear()
    for cell in result.values():
        cell.clear()
    result.clear()
    source.release()
    report(diagnostics, f"Invalid GDSII file {path}.")
    return {}, ErrorCode.INVALID_FILE


def _resolve_dependencies(library: Dict[str, RawCell], diagnostics: DiagnosticLog | None) -> ErrorCode:
    error = ErrorCode.NO_ERROR
    for cell in library.values():
        resolved: List[DependencyEdge] = []
        seen: Set[int] = set()
        for edge in cell.edges:
            target = edge.cell if isinstance(edge, Resolved) else library.get(edge.name)
            if target is None:
                report(diagnostics, f"Referenced cell {edge.name} not found.")
                error = keep_first(error, ErrorCode.MISSING_REFERENCE)
                continue
            if id(target) in seen:
                continue
            seen.add(id(target))
            resolved.append(Resolved(target))
        cell.edges[:] = resolved
    return error
