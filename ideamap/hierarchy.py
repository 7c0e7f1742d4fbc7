"""Parent -> children view over the edge list."""

from typing import Dict, Iterable, Iterator, List, Mapping, Set, Tuple

import torch

from .graph import Edge, Node


class HierarchyIndex:
    """Adjacency built fresh from an edge list.

    Not maintained incrementally: graphs stay in the hundreds of nodes, so a
    rebuild per resolution is cheap. All traversals use an explicit stack.
    """

    def __init__(self, nodes: Mapping[str, Node], edges: Iterable[Edge]):
        self._nodes = nodes
        # Ordered child lists keep traversal deterministic
        self._children: Dict[str, List[str]] = {}
        for edge in edges:
            kids = self._children.setdefault(edge.source, [])
            if edge.target not in kids:
                kids.append(edge.target)

    def children_of(self, node_id: str) -> Set[str]:
        return set(self._children.get(node_id, ()))

    def ordered_children(self, node_id: str) -> List[str]:
        return list(self._children.get(node_id, ()))

    def has_children(self, node_id: str) -> bool:
        return bool(self._children.get(node_id))

    def depth_first(self, start_id: str) -> Iterator[Tuple[str, int]]:
        """Pre-order walk yielding (node_id, depth); visits each id once."""
        stack: List[Tuple[str, int]] = [(start_id, 0)]
        seen: Set[str] = set()
        while stack:
            node_id, depth = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            yield node_id, depth
            # Reverse so the first child is popped first
            for child_id in reversed(self._children.get(node_id, ())):
                stack.append((child_id, depth + 1))

    def descendant_ids(self, node_id: str) -> List[str]:
        """The node and everything below it, pre-order."""
        return [nid for nid, _ in self.depth_first(node_id)]

    def descendant_vectors(self, node_id: str) -> List[torch.Tensor]:
        """Every embedding in the subtree rooted at node_id, pre-order."""
        vectors = []
        for nid in self.descendant_ids(node_id):
            node = self._nodes.get(nid)
            if node is not None and node.vector is not None:
                vectors.append(node.vector)
        return vectors
