from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, List, Set, Tuple, Union

import numpy as np

from .errors import ErrorCode
from .logging import DiagnosticLog, report
from .polygons import extract_polygons
from .source import RawSource


@dataclass(frozen=True)
class Unresolved:
    name: str


@dataclass(frozen=True)
class Resolved:
    cell: "RawCell"

    @property
    def name(self) -> str:
        return self.cell.name


DependencyEdge = Union[Unresolved, Resolved]


class RawCell:
    """
    A GDSII structure kept as raw bytes.

    The body is either a lazy locator (``source`` + ``offset`` + ``size``) into
    the file the cell was loaded from, or a materialized ``data`` buffer, or
    empty after a failed read. Cells compare by identity.

    ``offset`` keeps the structure's position in ``filename`` after the body
    is materialized; the polygon extractor uses it to find this structure
    when the file defines the name more than once.
    """

    def __init__(
        self,
        name: str | None,
        data: bytes | None = None,
        *,
        source: RawSource | None = None,
        offset: int = 0,
        size: int = 0,
        filename: Path | None = None,
    ) -> None:
        self._name: str | None = None
        if name is not None:
            self.name = name
        self.source = source
        self.offset = offset
        self.data = data
        self.size = len(data) if data is not None else size
        self.filename = filename
        self.edges: List[DependencyEdge] = []

    @property
    def name(self) -> str | None:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        if not value:
            raise ValueError("Empty cell name.")
        self._name = value

    @property
    def state(self) -> str:
        if self.source is not None:
            return "lazy"
        if self.data:
            return "materialized"
        return "empty"

    def resolved_dependencies(self) -> List["RawCell"]:
        return [edge.cell for edge in self.edges if isinstance(edge, Resolved)]

    def dependency_names(self) -> List[str]:
        return [edge.name for edge in self.edges]

    def clear(self) -> None:
        self._name = None
        if self.source is not None:
            source = self.source
            self.source = None
            self.offset = 0
            source.release()
        self.data = None
        self.size = 0
        self.edges.clear()

    def get_dependencies(self, recursive: bool, result: Dict[str, "RawCell"] | None = None) -> Dict[str, "RawCell"]:
        """
        Collect referenced cells keyed by name, in edge order.

        Recursive queries descend into a cell before recording it and skip
        cells already present in ``result``; cells on the current descent
        path are not entered again, so reference cycles terminate.
        """

        if result is None:
            result = {}
        self._collect_dependencies(recursive, result, {id(self)})
        return result

    def _collect_dependencies(self, recursive: bool, result: Dict[str, "RawCell"], active: Set[int]) -> None:
        for cell in self.resolved_dependencies():
            if recursive and result.get(cell.name) is not cell and id(cell) not in active:
                active.add(id(cell))
                cell._collect_dependencies(True, result, active)
                active.discard(id(cell))
            result[cell.name] = cell

    def dependencies(self, recursive: bool = False) -> List["RawCell"]:
        return list(self.get_dependencies(recursive).values())

    def to_gds(self, outfile: BinaryIO, *, diagnostics: DiagnosticLog | None = None) -> ErrorCode:
        """
        Copy the cell's original record bytes to ``outfile``.

        A lazy cell is materialized first and gives up its source use even
        when the read fails; in that case nothing is written and the cell is
        left empty.
        """

        error = ErrorCode.NO_ERROR
        if self.source is not None:
            source = self.source
            try:
                data = source.offset_read(self.size, self.offset)
            except (OSError, ValueError):
                data = b""
            if len(data) != self.size:
                report(diagnostics, f"Unable to read RawCell {self.name} data from input file.")
                error = ErrorCode.IO_ERROR
                data = b""
                self.size = 0
            self.data = data
            self.source = None
            source.release()
        if self.data:
            try:
                outfile.write(self.data)
            except OSError as exc:
                report(diagnostics, f"Unable to write RawCell {self.name}: {exc}")
                error = error or ErrorCode.IO_ERROR
        return error

    def get_polygons(
        self,
        depth: int = 0,
        unit: float = 0,
        tolerance: float = 0,
        *,
        diagnostics: DiagnosticLog | None = None,
    ) -> Tuple[np.ndarray, ErrorCode]:
        return extract_polygons(self, depth, unit, tolerance, diagnostics=diagnostics)

    def describe(self, full: bool = False) -> str:
        if self.source is not None:
            text = f"RawCell {self.name}, size {self.size}, source offset {self.offset}, file {self.filename}"
        else:
            data_len = len(self.data) if self.data is not None else 0
            text = f"RawCell {self.name}, size {self.size}, data {data_len} bytes"
        if full:
            edges = self.edges
            lines = [text, f"Dependencies ({len(edges)}):"]
            for idx, edge in enumerate(edges):
                if isinstance(edge, Resolved):
                    lines.append(f"Dependency {idx} {edge.cell.describe(False)}")
                else:
                    lines.append(f"Dependency {idx} unresolved {edge.name}")
            text = "\n".join(lines)
        return text

    def __str__(self) -> str:
        return f"RawCell '{self.name}' with {self.size} bytes and {len(self.edges)} dependencies"

    def __repr__(self) -> str:
        return f"<{self.describe(False)}>"
