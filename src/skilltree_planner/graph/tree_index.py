"""Adjacency index over a single tree.

Trees store nodes and connections as flat sequences. Every engine query
needs "the node with this id" and "the connections into / out of this
node", so ``TreeIndex`` builds those maps once per tree value.

Duplicate node ids resolve to their first occurrence, matching
``Tree.find_node``; the Structural Validator reports the duplicates.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
from dataclasses import replace

from skilltree_planner.models.tree import Connection, Node, Tree


class TreeIndex:
    """Node lookup plus incoming/outgoing connection lists.

    The index can also stand in for a tree whose ranks are being rewritten
    (see ``set_rank``): lookups reflect the rewritten nodes immediately, and
    ``to_tree`` folds them back into a new ``Tree`` value.
    """

    __slots__ = ("_tree", "_nodes", "_positions", "_incoming", "_outgoing", "_dirty")

    def __init__(self, tree: Tree) -> None:
        self._tree = tree
        self._nodes: dict[str, Node] = {}
        self._positions: dict[str, int] = {}
        self._incoming: dict[str, list[Connection]] = defaultdict(list)
        self._outgoing: dict[str, list[Connection]] = defaultdict(list)
        self._dirty: set[str] = set()

        for position, node in enumerate(tree.nodes):
            if node.id not in self._nodes:
                self._nodes[node.id] = node
                self._positions[node.id] = position

        for conn in tree.connections:
            self._incoming[conn.to_node_id].append(conn)
            self._outgoing[conn.from_node_id].append(conn)

    # --- Queries -------------------------------------------------------------

    @property
    def tree(self) -> Tree:
        return self._tree

    def node(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def nodes(self) -> Iterator[Node]:
        """Current node values in tree order (first occurrence per id)."""
        return iter(self._nodes.values())

    def incoming(self, node_id: str) -> list[Connection]:
        return self._incoming.get(node_id, [])

    def outgoing(self, node_id: str) -> list[Connection]:
        return self._outgoing.get(node_id, [])

    def is_root(self, node_id: str) -> bool:
        return not self._incoming.get(node_id)

    # --- Rank rewriting -------------------------------------------------------

    def set_rank(self, node_id: str, rank: int) -> None:
        node = self._nodes.get(node_id)
        if node is None or node.current_rank == rank:
            return
        self._nodes[node_id] = node.with_rank(rank)
        self._dirty.add(node_id)

    def to_tree(self, spent: int | None = None) -> Tree:
        """Build a tree reflecting every ``set_rank`` call.

        Returns the original tree object when nothing was rewritten and the
        pool is untouched.
        """
        pool = self._tree.point_pool
        if not self._dirty and (spent is None or spent == pool.spent):
            return self._tree
        nodes = list(self._tree.nodes)
        for node_id in self._dirty:
            nodes[self._positions[node_id]] = self._nodes[node_id]
        if spent is not None:
            pool = replace(pool, spent=spent)
        return replace(self._tree, nodes=tuple(nodes), point_pool=pool)
