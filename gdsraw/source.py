from __future__ import annotations

from pathlib import Path
from typing import BinaryIO


class RawSource:
    """
    Read handle shared by every cell loaded from one GDSII file.

    Each lazy cell holds one use. The handle is closed when the last use is
    released, so it stays open exactly while ``uses > 0``.
    """

    def __init__(self, path: Path, handle: BinaryIO) -> None:
        self.path = path
        self.file: BinaryIO | None = handle
        self.uses = 0

    @classmethod
    def open(cls, path: Path | str) -> "RawSource":
        path = Path(path)
        return cls(path, path.open("rb"))

    @property
    def closed(self) -> bool:
        return self.file is None

    def acquire(self) -> "RawSource":
        if self.file is None:
            raise ValueError(f"Source {self.path} has already been closed")
        self.uses += 1
        return self

    def release(self) -> None:
        if self.uses <= 0:
            raise ValueError(f"Source {self.path} released more times than acquired")
        self.uses -= 1
        if self.uses == 0 and self.file is not None:
            self.file.close()
            self.file = None

    def offset_read(self, size: int, offset: int) -> bytes:
        """Seek to ``offset`` and read up to ``size`` bytes (moves the shared read position)."""

        if self.file is None:
            raise ValueError(f"Source {self.path} has already been closed")
        self.file.seek(offset)
        return self.file.read(size)

    def __repr__(self) -> str:
        state = "closed" if self.file is None else "open"
        return f"RawSource({str(self.path)!r}, uses={self.uses}, {state})"
