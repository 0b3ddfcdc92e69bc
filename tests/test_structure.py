"""Tests for structural validation, cycle detection, and reachability."""

from skilltree_planner.engine.costs import calculate_spent_points
from skilltree_planner.engine.structure import (
    ERR_CYCLIC_DEPENDENCY,
    ERR_DUPLICATE_NODE_ID,
    ERR_DUPLICATE_TREE_ID,
    ERR_INVALID_CONNECTION_SOURCE,
    ERR_INVALID_CONNECTION_TARGET,
    ERR_RANK_OUT_OF_BOUNDS,
    ERR_TREE_NOT_FOUND,
    WARN_ORPHANED_NODE,
    WARN_POINT_POOL_MISMATCH,
    WARN_POINT_POOL_OVERSPENT,
    WARN_UNREACHABLE_NODE,
    check_reachability,
    detect_cycle,
    validate_project,
    validate_tree,
    validate_tree_in_project,
)
from skilltree_planner.models.constants import PrerequisiteLogic
from skilltree_planner.models.project import Project
from skilltree_planner.models.tree import Connection, Node, PointPool, Tree


def _node(
    node_id: str,
    rank: int = 0,
    max_rank: int = 3,
    logic: PrerequisiteLogic = PrerequisiteLogic.AND,
) -> Node:
    return Node(
        id=node_id,
        name=node_id.upper(),
        max_rank=max_rank,
        current_rank=rank,
        prerequisite_logic=logic,
    )


def _conn(src: str, dst: str) -> Connection:
    return Connection(id=f"{src}->{dst}", from_node_id=src, to_node_id=dst)


def _tree(
    nodes: list[Node],
    conns: list[Connection] | None = None,
    tree_id: str = "t",
    spent: int | None = None,
    total: int = 20,
) -> Tree:
    tree = Tree(id=tree_id, nodes=tuple(nodes), connections=tuple(conns or []))
    if spent is None:
        spent = calculate_spent_points(tree)
    return Tree(
        id=tree_id,
        point_pool=PointPool(total=total, spent=spent),
        nodes=tree.nodes,
        connections=tree.connections,
    )


# ===========================================================================
# Cycle detection
# ===========================================================================


class TestDetectCycle:
    def test_three_node_cycle_witness(self):
        tree = _tree(
            [_node("a"), _node("b"), _node("c")],
            [_conn("a", "b"), _conn("b", "c"), _conn("c", "a")],
        )
        assert detect_cycle(tree) == ["a", "b", "c"]

    def test_self_loop(self):
        tree = _tree([_node("a")], [_conn("a", "a")])
        assert detect_cycle(tree) == ["a"]

    def test_diamond_is_acyclic(self):
        tree = _tree(
            [_node("a"), _node("b"), _node("c"), _node("d")],
            [_conn("a", "b"), _conn("a", "c"), _conn("b", "d"), _conn("c", "d")],
        )
        assert detect_cycle(tree) is None

    def test_witness_starts_at_reentered_node(self):
        tree = _tree(
            [_node("r"), _node("x"), _node("y")],
            [_conn("r", "x"), _conn("x", "y"), _conn("y", "x")],
        )
        assert detect_cycle(tree) == ["x", "y"]

    def test_dangling_edges_ignored(self):
        tree = _tree([_node("a")], [_conn("a", "ghost"), _conn("ghost", "a")])
        assert detect_cycle(tree) is None

    def test_long_chain_is_not_limited_by_recursion(self):
        count = 1500
        nodes = [_node(f"n{i}") for i in range(count)]
        conns = [_conn(f"n{i}", f"n{i + 1}") for i in range(count - 1)]
        tree = _tree(nodes, conns)
        assert detect_cycle(tree) is None
        assert validate_tree(tree).is_valid

    def test_cycle_at_end_of_long_chain(self):
        count = 1500
        nodes = [_node(f"n{i}") for i in range(count)]
        conns = [_conn(f"n{i}", f"n{i + 1}") for i in range(count - 1)]
        conns.append(_conn(f"n{count - 1}", f"n{count - 3}"))
        tree = _tree(nodes, conns)
        assert detect_cycle(tree) == [f"n{count - 3}", f"n{count - 2}", f"n{count - 1}"]


# ===========================================================================
# Reachability
# ===========================================================================


class TestReachability:
    def test_chain_reachable(self):
        tree = _tree([_node("a"), _node("b"), _node("c")], [_conn("a", "b"), _conn("b", "c")])
        assert check_reachability(tree).unreachable == ()

    def test_cycle_members_unreachable(self):
        tree = _tree(
            [_node("r"), _node("x"), _node("y")],
            [_conn("x", "y"), _conn("y", "x")],
        )
        assert check_reachability(tree).unreachable == ("x", "y")

    def test_and_needs_every_parent(self):
        tree = _tree(
            [_node("r"), _node("x"), _node("y"), _node("t")],
            [_conn("r", "t"), _conn("x", "y"), _conn("y", "x"), _conn("y", "t")],
        )
        assert "t" in check_reachability(tree).unreachable

    def test_or_needs_one_parent(self):
        tree = _tree(
            [_node("r"), _node("x"), _node("y"), _node("t", logic=PrerequisiteLogic.OR)],
            [_conn("r", "t"), _conn("x", "y"), _conn("y", "x"), _conn("y", "t")],
        )
        assert check_reachability(tree).unreachable == ("x", "y")

    def test_dangling_parent_blocks_and(self):
        tree = _tree([_node("r"), _node("t")], [_conn("r", "t"), _conn("ghost", "t")])
        assert check_reachability(tree).unreachable == ("t",)

    def test_sum_ignores_threshold_feasibility(self):
        tree = _tree(
            [
                _node("r", max_rank=1),
                Node(
                    id="s",
                    name="S",
                    prerequisite_logic=PrerequisiteLogic.SUM,
                    prerequisite_threshold=99,
                ),
            ],
            [_conn("r", "s")],
        )
        assert check_reachability(tree).unreachable == ()

    def test_plain_string_logic(self):
        tree = _tree(
            [_node("r"), _node("x"), _node("y"), Node(id="t", prerequisite_logic="or")],
            [_conn("r", "t"), _conn("x", "y"), _conn("y", "x"), _conn("y", "t")],
        )
        assert "t" not in check_reachability(tree).unreachable


# ===========================================================================
# validate_tree
# ===========================================================================


class TestValidateTree:
    def test_clean_tree(self):
        tree = _tree([_node("a", rank=1), _node("b")], [_conn("a", "b")])
        report = validate_tree(tree)
        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []

    def test_empty_tree_is_valid(self):
        assert validate_tree(_tree([])).codes() == []

    def test_cycle_error(self):
        tree = _tree(
            [_node("a"), _node("b"), _node("c")],
            [_conn("a", "b"), _conn("b", "c"), _conn("c", "a")],
        )
        report = validate_tree(tree)
        assert not report.is_valid
        (issue,) = report.errors
        assert issue.code == ERR_CYCLIC_DEPENDENCY
        assert issue.message == "Cyclic dependency detected: a -> b -> c -> a"
        assert issue.details == {"cycle": ["a", "b", "c"]}

    def test_duplicate_node_ids_reported_once(self):
        tree = _tree([_node("a"), _node("a"), _node("a"), _node("b")])
        report = validate_tree(tree)
        assert report.codes() == [ERR_DUPLICATE_NODE_ID]
        assert report.errors[0].node_id == "a"
        assert report.errors[0].details == {"count": 3}

    def test_dangling_endpoints(self):
        tree = _tree([_node("a"), _node("b")], [_conn("a", "b"), _conn("ghost", "void")])
        report = validate_tree(tree)
        assert report.codes() == [ERR_INVALID_CONNECTION_SOURCE, ERR_INVALID_CONNECTION_TARGET]
        assert {issue.connection_id for issue in report.errors} == {"ghost->void"}

    def test_rank_out_of_bounds(self):
        tree = _tree([_node("a", rank=4, max_rank=3), _node("b", rank=-1)])
        report = validate_tree(tree)
        assert [i.node_id for i in report.errors if i.code == ERR_RANK_OUT_OF_BOUNDS] == ["a", "b"]

    def test_pool_mismatch_is_warning(self):
        tree = _tree([_node("a", rank=2)], spent=5)
        report = validate_tree(tree)
        assert report.is_valid
        assert report.codes() == [WARN_POINT_POOL_MISMATCH]
        assert report.warnings[0].details == {"stored": 5, "calculated": 2}

    def test_overspent_is_warning(self):
        tree = _tree([_node("a", rank=3)], total=2)
        report = validate_tree(tree)
        assert report.is_valid
        assert report.codes() == [WARN_POINT_POOL_OVERSPENT]

    def test_orphan_in_connected_tree(self):
        tree = _tree([_node("a"), _node("b"), _node("lonely")], [_conn("a", "b")])
        report = validate_tree(tree)
        assert report.codes() == [WARN_ORPHANED_NODE]
        assert report.warnings[0].node_id == "lonely"
        assert report.warnings[0].message == "Node has no connections: LONELY"

    def test_no_orphans_without_connections(self):
        tree = _tree([_node("a"), _node("b")])
        assert validate_tree(tree).codes() == []

    def test_unreachable_only_when_requested(self):
        tree = _tree(
            [_node("r"), _node("x"), _node("y")],
            [_conn("r", "r"), _conn("x", "y"), _conn("y", "x")],
        )
        assert WARN_UNREACHABLE_NODE not in validate_tree(tree).codes()
        report = validate_tree(tree, include_reachability=True)
        unreachable = [i.node_id for i in report.warnings if i.code == WARN_UNREACHABLE_NODE]
        assert unreachable == ["r", "x", "y"]

    def test_orphan_is_not_unreachable(self):
        tree = _tree([_node("a"), _node("b"), _node("lonely")], [_conn("a", "b")])
        report = validate_tree(tree, include_reachability=True)
        assert report.codes() == [WARN_ORPHANED_NODE]


# ===========================================================================
# Project-level validation
# ===========================================================================


class TestValidateProject:
    def test_duplicate_tree_ids(self):
        project = Project(trees=(_tree([], tree_id="x"), _tree([], tree_id="x")))
        report = validate_project(project)
        assert report.codes() == [ERR_DUPLICATE_TREE_ID]
        assert report.errors[0].details == {"count": 2}

    def test_collects_every_tree(self):
        bad = _tree([_node("a"), _node("a")], tree_id="bad")
        drift = _tree([_node("b", rank=1)], tree_id="drift", spent=0)
        report = validate_project(Project(trees=(bad, drift)))
        assert report.codes() == [ERR_DUPLICATE_NODE_ID, WARN_POINT_POOL_MISMATCH]
        assert [i.tree_id for i in report.errors + report.warnings] == ["bad", "drift"]

    def test_tree_in_project(self):
        project = Project(trees=(_tree([_node("a")], tree_id="x"),))
        assert validate_tree_in_project(project, "x").is_valid
        missing = validate_tree_in_project(project, "nope")
        assert missing.codes() == [ERR_TREE_NOT_FOUND]
        assert missing.errors[0].tree_id == "nope"

    def test_orphan_reachable_and_and_child_of_cycle_unreachable(self):
        tree = _tree(
            [_node("lonely"), _node("x"), _node("y"), _node("t")],
            [_conn("x", "y"), _conn("y", "x"), _conn("y", "t")],
        )
        report = validate_tree(tree, include_reachability=True)
        assert [i.node_id for i in report.warnings if i.code == WARN_ORPHANED_NODE] == ["lonely"]
        assert check_reachability(tree).unreachable == ("x", "y", "t")
