"""Tests for allocate / refund / reset mutations."""

from skilltree_planner.engine.allocation import MutationResult, allocate, refund, reset
from skilltree_planner.engine.config import EngineConfig
from skilltree_planner.engine.costs import calculate_spent_points
from skilltree_planner.engine.structure import WARN_POINT_POOL_MISMATCH, validate_tree
from skilltree_planner.models.constants import Mode
from skilltree_planner.models.tree import Connection, Node, PointPool, Tree


PLAY = EngineConfig(mode=Mode.PLAY)
EDIT = EngineConfig(mode=Mode.EDIT)


def _node(node_id: str, rank: int = 0, max_rank: int = 3, costs: tuple[int, ...] = (1,)) -> Node:
    return Node(
        id=node_id, name=node_id, max_rank=max_rank, current_rank=rank, cost_per_rank=costs
    )


def _tree(nodes: list[Node], conns: list[Connection] | None = None, total: int = 20) -> Tree:
    tree = Tree(id="t", nodes=tuple(nodes), connections=tuple(conns or []))
    return Tree(
        id="t",
        point_pool=PointPool(total=total, spent=calculate_spent_points(tree)),
        nodes=tree.nodes,
        connections=tree.connections,
    )


def _ab_tree() -> Tree:
    """a (rank 1) -> b (rank 1), costs 1 per rank."""
    return _tree([_node("a", rank=1), _node("b", rank=1)], [Connection("c1", "a", "b")])


# ===========================================================================
# allocate
# ===========================================================================


class TestAllocate:
    def test_allocates_and_charges(self):
        tree = _tree([_node("a", costs=(2, 3))])
        result = allocate(tree, "a", PLAY)
        assert result.applied is True
        assert result.reason is None
        assert result.tree.find_node("a").current_rank == 1
        assert result.tree.point_pool.spent == 2

        result = allocate(result.tree, "a", PLAY)
        assert result.tree.point_pool.spent == 5

    def test_input_is_not_mutated(self):
        tree = _tree([_node("a")])
        allocate(tree, "a", PLAY)
        assert tree.find_node("a").current_rank == 0
        assert tree.point_pool.spent == 0

    def test_rejected_returns_same_tree(self):
        tree = _tree([_node("a", rank=3)])
        result = allocate(tree, "a", PLAY)
        assert result == MutationResult.rejected(tree, "Maximum rank reached")
        assert result.tree is tree
        assert result.applied is False

    def test_locked_rejected_in_play_only(self):
        tree = _tree([_node("a"), _node("b")], [Connection("c1", "a", "b")])
        assert allocate(tree, "b", PLAY).reason == "Prerequisites not met"
        edited = allocate(tree, "b", EDIT)
        assert edited.applied is True
        assert edited.tree.find_node("b").current_rank == 1

    def test_budget_exhaustion(self):
        tree = _tree([_node("a", max_rank=5)], total=2)
        tree = allocate(tree, "a", PLAY).tree
        tree = allocate(tree, "a", PLAY).tree
        result = allocate(tree, "a", PLAY)
        assert result.reason == "Not enough points"
        assert tree.point_pool.available == 0

    def test_unknown_node(self):
        tree = _tree([_node("a")])
        assert allocate(tree, "zz").reason == "Node not found"

    def test_spent_stays_consistent(self):
        tree = _tree([_node("a", costs=(1, 2, 3)), _node("b", costs=(4,))])
        for node_id in ("a", "a", "b", "a"):
            tree = allocate(tree, node_id, PLAY).tree
        assert tree.point_pool.spent == calculate_spent_points(tree) == 10


# ===========================================================================
# refund
# ===========================================================================


class TestRefund:
    def test_refund_returns_last_rank_price(self):
        tree = _tree([_node("a", rank=2, costs=(1, 4))])
        result = refund(tree, "a", PLAY)
        assert result.tree.find_node("a").current_rank == 1
        assert result.tree.point_pool.spent == 1

    def test_play_refund_cascades(self):
        result = refund(_ab_tree(), "a", PLAY)
        assert result.applied is True
        assert result.reason == "Will cascade to dependent nodes"
        assert result.cascaded == ("b",)
        assert result.tree.find_node("a").current_rank == 0
        assert result.tree.find_node("b").current_rank == 0
        assert result.tree.point_pool.spent == 0

    def test_edit_refund_leaves_dependents(self):
        result = refund(_ab_tree(), "a", EDIT)
        assert result.cascaded == ()
        assert result.tree.find_node("b").current_rank == 1
        assert result.tree.point_pool.spent == 1

    def test_edit_refund_with_cascading(self):
        config = EngineConfig(mode=Mode.EDIT, cascade_refunds=True)
        result = refund(_ab_tree(), "a", config)
        assert result.cascaded == ("b",)

    def test_refund_at_zero_rejected(self):
        tree = _tree([_node("a")])
        result = refund(tree, "a", PLAY)
        assert result.tree is tree
        assert result.reason == "No points allocated"

    def test_refunds_disabled(self):
        tree = _ab_tree()
        result = refund(tree, "a", EngineConfig(mode=Mode.PLAY, allow_refunds=False))
        assert result.tree is tree
        assert result.reason == "Refunds are disabled"

    def test_allocate_then_refund_round_trip(self):
        tree = _tree([_node("a", costs=(3, 5))])
        bought = allocate(allocate(tree, "a", PLAY).tree, "a", PLAY).tree
        sold = refund(refund(bought, "a", PLAY).tree, "a", PLAY).tree
        assert sold.point_pool.spent == 0
        assert sold.find_node("a").current_rank == 0


# ===========================================================================
# reset
# ===========================================================================


class TestReset:
    def test_reset_clears_everything(self):
        result = reset(_ab_tree())
        assert result.applied is True
        assert all(node.current_rank == 0 for node in result.tree.nodes)
        assert result.tree.point_pool.spent == 0
        assert result.tree.point_pool.total == 20

    def test_reset_of_empty_tree_rejected(self):
        tree = _tree([_node("a")])
        result = reset(tree)
        assert result.tree is tree
        assert result.reason == "Nothing to reset"


# ===========================================================================
# Conservation
# ===========================================================================


def test_pool_stays_consistent_across_mixed_operations():
    tree = _tree(
        [
            _node("a", costs=(1, 2, 3)),
            _node("b", costs=(2,)),
            _node("c", max_rank=5, costs=(1, 4)),
        ],
        [Connection("c1", "a", "b"), Connection("c2", "b", "c")],
        total=40,
    )
    steps = [
        (allocate, "a"), (allocate, "a"), (allocate, "b"), (allocate, "c"),
        (allocate, "c"), (allocate, "c"), (refund, "a"), (refund, "a"),
        (allocate, "a"), (allocate, "b"), (allocate, "c"), (refund, "c"),
    ]
    for operation, node_id in steps:
        tree = operation(tree, node_id, PLAY).tree
        assert tree.point_pool.spent == calculate_spent_points(tree)
        assert all(0 <= n.current_rank <= n.max_rank for n in tree.nodes)
        assert WARN_POINT_POOL_MISMATCH not in validate_tree(tree).codes()
