from __future__ import annotations

import itertools
from typing import Dict, Sequence, Tuple

import pytest

from gdsraw.rawcell import RawCell, Resolved


def _graph(edges: Sequence[Tuple[str, str]]) -> Dict[str, RawCell]:
    cells: Dict[str, RawCell] = {}
    for parent, child in edges:
        for name in (parent, child):
            cells.setdefault(name, RawCell(name, b""))
        cells[parent].edges.append(Resolved(cells[child]))
    return cells


def test_direct_dependencies_only():
    cells = _graph([("A", "B"), ("B", "C")])
    assert cells["A"].dependencies(False) == [cells["B"]]
    assert cells["C"].dependencies(False) == []


def test_recursive_dependencies_record_children_first():
    cells = _graph([("A", "B"), ("B", "C")])
    result = cells["A"].get_dependencies(True)
    assert list(result) == ["C", "B"]
    assert result["C"] is cells["C"]


def test_diamond_visits_each_cell_once():
    cells = _graph([("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])
    names = [cell.name for cell in cells["A"].dependencies(True)]
    assert names == ["D", "B", "C"]


@pytest.mark.parametrize(
    "order",
    list(itertools.permutations([("A", "B"), ("A", "C"), ("B", "D"), ("C", "E"), ("E", "D")])),
)
def test_reachable_set_is_independent_of_edge_order(order):
    cells = _graph(order)
    names = [cell.name for cell in cells["A"].dependencies(True)]
    assert sorted(names) == ["B", "C", "D", "E"]
    assert len(names) == len(set(names))


def test_cycles_terminate():
    cells = _graph([("A", "B"), ("B", "C"), ("C", "A")])
    result = cells["A"].get_dependencies(True)
    assert set(result) == {"A", "B", "C"}


def test_self_reference_terminates():
    cells = _graph([("A", "A")])
    assert set(cells["A"].get_dependencies(True)) == {"A"}


def test_existing_accumulator_is_reused():
    cells = _graph([("A", "B"), ("B", "C"), ("X", "C")])
    result = cells["X"].get_dependencies(True)
    cells["A"].get_dependencies(True, result)
    assert list(result) == ["C", "B"]


def test_same_name_with_different_identity_is_replaced():
    cells = _graph([("A", "B")])
    impostor = RawCell("B", b"")
    result = {"B": impostor}
    cells["A"].get_dependencies(True, result)
    assert result["B"] is cells["B"]
