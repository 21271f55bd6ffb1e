from __future__ import annotations

import pytest

from gdsraw.loader import read_rawcells
from gdsraw.logging import DiagnosticLog

from tests import builders as gds


@pytest.fixture
def diagnostics():
    return DiagnosticLog()


@pytest.fixture
def top_bottom_bytes():
    """TOP owns one two-vertex boundary and references BOTTOM, which owns another."""

    top = gds.structure("TOP", [gds.boundary([(1, 2), (3, 4)]), gds.sref("BOTTOM", (50, 50))])
    bottom = gds.structure("BOTTOM", [gds.boundary([(10, 20), (30, 40)])])
    return top, bottom


@pytest.fixture
def top_bottom_file(tmp_path, top_bottom_bytes):
    top, bottom = top_bottom_bytes
    return gds.write(tmp_path / "top_bottom.gds", gds.library([top, bottom]))


@pytest.fixture
def loaded_library(top_bottom_file):
    library, error = read_rawcells(top_bottom_file)
    yield library, error
    for cell in library.values():
        cell.clear()
