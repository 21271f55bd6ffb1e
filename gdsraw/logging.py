from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, TextIO

PREFIX = "[GDSRAW]"


@dataclass
class DiagnosticLog:
    """
    Collects human-readable diagnostics from the loader, extractor and
    serializer. Messages go to ``stream`` as they arrive (when given) and are
    written to ``destination`` on ``flush()``.
    """

    destination: Path | None = None
    stream: TextIO | None = None

    def __post_init__(self) -> None:
        self._lines: List[str] = []

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def record(self, message: str) -> None:
        line = f"{PREFIX} {message}"
        self._lines.append(line)
        if self.stream is not None:
            self.stream.write(line + "\n")

    def flush(self) -> None:
        if self.destination is None or not self._lines:
            return
        self.destination.parent.mkdir(parents=True, exist_ok=True)
        text = "\n".join(self._lines) + "\n"
        self.destination.write_text(text, encoding="utf-8")


def report(diagnostics: DiagnosticLog | None, message: str) -> None:
    if diagnostics is not None:
        diagnostics.record(message)
