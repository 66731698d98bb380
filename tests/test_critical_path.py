import logging

import pytest

from beadgraph.core.errors import CycleDetectedError, DanglingReferenceError, MalformedInputError
from beadgraph.core.graph.critical_path import analyze_beads, compute_critical_path
from beadgraph.core.graph.molecule import generate_molecule
from beadgraph.core.io.load_formula import load_beads, load_formula
from beadgraph.core.model import BeadNode


def _linear():
    return [
        BeadNode(id="a", title="A", duration=10, blocks=["b"]),
        BeadNode(id="b", title="B", duration=20, blocked_by=["a"], blocks=["c"]),
        BeadNode(id="c", title="C", duration=15, blocked_by=["b"]),
    ]


def test_linear_chain():
    result = compute_critical_path(_linear())
    assert result.total_duration == 45
    assert result.path == ["a", "b", "c"]
    assert result.slack == {"a": 0, "b": 0, "c": 0}


def test_fan_in_slack():
    beads = [
        BeadNode(id="a", duration=10, blocks=["c"]),
        BeadNode(id="b", duration=30, blocks=["c"]),
        BeadNode(id="c", duration=5, blocked_by=["a", "b"]),
    ]
    result = compute_critical_path(beads)
    assert result.total_duration == 35
    assert result.slack == {"a": 20, "b": 0, "c": 0}
    assert result.path == ["b", "c"]


def test_empty_graph():
    result = compute_critical_path([])
    assert result.total_duration == 0
    assert result.path == []
    assert result.slack == {}


def test_cycle_raises():
    beads = [
        BeadNode(id="a", blocked_by=["b"], blocks=["b"]),
        BeadNode(id="b", blocked_by=["a"], blocks=["a"]),
    ]
    with pytest.raises(CycleDetectedError):
        compute_critical_path(beads)


def test_missing_duration_defaults_to_one():
    beads = [
        BeadNode(id="a", blocks=["b"]),
        BeadNode(id="b", blocked_by=["a"]),
    ]
    assert compute_critical_path(beads).total_duration == 2
    assert compute_critical_path(beads, default_duration=4).total_duration == 8


def test_zero_duration_is_kept():
    beads = [
        BeadNode(id="gate", duration=0, blocks=["work"]),
        BeadNode(id="work", duration=7, blocked_by=["gate"]),
    ]
    result = compute_critical_path(beads)
    assert result.total_duration == 7
    assert result.path == ["gate", "work"]


def test_branching_critical_subgraph_follows_first_critical_successor():
    beads = [
        BeadNode(id="a", duration=1, blocks=["c", "b"]),
        BeadNode(id="b", duration=2, blocked_by=["a"], blocks=["d"]),
        BeadNode(id="c", duration=2, blocked_by=["a"], blocks=["d"]),
        BeadNode(id="d", duration=1, blocked_by=["b", "c"]),
    ]
    result = compute_critical_path(beads)
    assert result.total_duration == 4
    assert all(s == 0 for s in result.slack.values())
    assert result.path == ["a", "c", "d"]


def test_slack_is_never_negative_with_asymmetric_edges():
    # a claims to block b, but b does not list a as a blocker.
    beads = [
        BeadNode(id="a", duration=5, blocks=["b"]),
        BeadNode(id="b", duration=1),
    ]
    result = compute_critical_path(beads)
    assert result.total_duration == 5
    assert result.slack == {"a": 0, "b": 4}
    assert result.path == ["a"]


def test_path_nodes_have_zero_slack_and_run_is_deterministic():
    beads = [
        BeadNode(id="s", duration=3, blocks=["x", "y"]),
        BeadNode(id="x", duration=4, blocked_by=["s"], blocks=["t"]),
        BeadNode(id="y", duration=9, blocked_by=["s"], blocks=["t"]),
        BeadNode(id="z", duration=2, blocks=["t"]),
        BeadNode(id="t", duration=1, blocked_by=["x", "y", "z"]),
    ]
    first = compute_critical_path(beads)
    second = compute_critical_path(beads)
    assert first == second
    assert first.path == ["s", "y", "t"]
    assert all(first.slack[bid] == 0 for bid in first.path)
    assert all(s >= 0 for s in first.slack.values())
    assert first.slack["x"] == 5
    assert first.slack["z"] == 10


def test_dangling_references_are_ignored(caplog):
    beads = [
        BeadNode(id="a", duration=3, blocked_by=["ghost"], blocks=["b", "phantom"]),
        BeadNode(id="b", duration=2, blocked_by=["a"]),
    ]
    with caplog.at_level(logging.WARNING, logger="beadgraph.core.graph.critical_path"):
        result = compute_critical_path(beads)
    assert result.total_duration == 5
    assert result.path == ["a", "b"]
    assert "ghost" in caplog.text
    assert "phantom" in caplog.text


def test_dangling_references_strict():
    beads = [BeadNode(id="a", blocked_by=["ghost"])]
    with pytest.raises(DanglingReferenceError) as exc:
        compute_critical_path(beads, strict=True)
    assert exc.value.path == "beads[0].blocked_by"


def test_analyze_beads_from_files():
    result = analyze_beads(load_beads("examples/beads-linear.json"))
    assert result.total_duration == 45
    assert result.path == ["a", "b", "c"]

    result = analyze_beads(load_beads("examples/beads-fan-in.yaml"))
    assert result.slack == {"a": 20, "b": 0, "c": 0}


def test_analyze_beads_rejects_duplicate_ids():
    with pytest.raises(MalformedInputError) as exc:
        analyze_beads([{"id": "a"}, {"id": "a"}])
    assert exc.value.code == "E_DUPLICATE_ID"


def test_molecule_feeds_critical_path():
    mol = generate_molecule(load_formula("examples/review-workflow.yaml"))
    result = compute_critical_path(mol.to_bead_nodes())
    assert result.total_duration == 105
    assert result.path == ["analyze", "review", "approve"]


def test_to_dict_shape():
    payload = compute_critical_path(_linear()).to_dict()
    assert payload == {
        "path": ["a", "b", "c"],
        "total_duration": 45,
        "slack": {"a": 0, "b": 0, "c": 0},
    }
