"""Tests for beadbatch.graph — dependency graph and depth assignment."""

from __future__ import annotations

from beadbatch.graph import assign_depths, build_dependency_graph
from beadbatch.tasks.model import Task


def _t(id: str, blocked_by: list[str] | None = None, dependencies: list[str] | None = None) -> Task:
    return Task(id=id, blocked_by=blocked_by or [], dependencies=dependencies or [])


# ═══════════════════════════════════════════════════════════════════
#  Graph construction
# ═══════════════════════════════════════════════════════════════════


class TestBuildDependencyGraph:

    def test_empty_input(self):
        assert build_dependency_graph([]) == {}

    def test_every_task_is_a_key(self):
        graph = build_dependency_graph([_t("A"), _t("B", blocked_by=["A"])])
        assert graph == {"A": [], "B": ["A"]}

    def test_unions_blocked_by_and_dependencies(self):
        graph = build_dependency_graph([
            _t("A"),
            _t("B"),
            _t("C", blocked_by=["A"], dependencies=["A", "B"]),
        ])
        assert graph["C"] == ["A", "B"]

    def test_out_of_set_blockers_dropped(self):
        graph = build_dependency_graph([_t("A", blocked_by=["other-epic.3"])])
        assert graph == {"A": []}

    def test_self_reference_dropped(self):
        graph = build_dependency_graph([_t("A", blocked_by=["A"])])
        assert graph == {"A": []}


# ═══════════════════════════════════════════════════════════════════
#  Depth assignment
# ═══════════════════════════════════════════════════════════════════


class TestAssignDepths:

    def test_no_blockers_depth_zero(self):
        result = assign_depths(["A", "B"], {"A": [], "B": []})
        assert result.depths == {"A": 0, "B": 0}
        assert result.cycles == ()

    def test_chain(self):
        result = assign_depths(["A", "B", "C"], {"A": [], "B": ["A"], "C": ["B"]})
        assert result.depths == {"A": 0, "B": 1, "C": 2}

    def test_longest_chain_wins(self):
        graph = {"A": [], "B": ["A"], "C": ["B"], "D": ["A", "C"]}
        result = assign_depths(["D", "C", "B", "A"], graph)
        assert result["D"] == 3

    def test_blockers_outside_id_set_ignored(self):
        result = assign_depths(["B"], {"B": ["A"]})
        assert result.depths == {"B": 0}

    def test_missing_graph_entry_is_root(self):
        result = assign_depths(["A"], {})
        assert result.get("A") == 0

    def test_two_task_cycle_is_finite(self):
        result = assign_depths(["A", "B"], {"A": ["B"], "B": ["A"]})
        assert result.depths == {"A": 0, "B": 0}
        assert result.cycles == (("A", "B"),)

    def test_cycle_members_share_depth_above_their_blockers(self):
        graph = {"X": [], "A": ["X", "B"], "B": ["A"], "C": ["A"]}
        result = assign_depths(["X", "A", "B", "C"], graph)
        assert result["A"] == result["B"] == 1
        assert result["C"] == 2

    def test_cycle_result_independent_of_order(self):
        graph = {"A": ["C"], "B": ["A"], "C": ["B"], "D": ["C"]}
        first = assign_depths(["A", "B", "C", "D"], graph)
        second = assign_depths(["D", "C", "B", "A"], graph)
        assert first.depths == second.depths
        assert first.cycles == second.cycles == (("A", "B", "C"),)

    def test_long_chain_does_not_recurse(self):
        n = 5000
        ids = [f"T{i}" for i in range(n)]
        graph = {ids[0]: []}
        for i in range(1, n):
            graph[ids[i]] = [ids[i - 1]]
        result = assign_depths(reversed(ids), graph)
        assert result[ids[-1]] == n - 1

    def test_duplicate_ids_collapse(self):
        result = assign_depths(["A", "A", "B"], {"A": [], "B": ["A"]})
        assert result.depths == {"A": 0, "B": 1}
