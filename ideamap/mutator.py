"""Graph mutations: insert, cascading delete, relabel.

Each mutation builds its new node/edge collections first and swaps them into
the GraphState in one step, so callers never observe a half-applied change.
"""

import logging
from typing import Optional, Set, Tuple

import torch

from .config import IdeaMapConfig
from .graph import Edge, GraphState, Node, now_ms
from .hierarchy import HierarchyIndex
from .placement import PlacementDecision
from .safeguards import NodeIdGenerator, RejectedOperation

logger = logging.getLogger(__name__)


class GraphMutator:
    """Applies accepted placements and removals to a GraphState."""

    def __init__(self, config: Optional[IdeaMapConfig] = None,
                 id_generator: Optional[NodeIdGenerator] = None):
        self.config = config or IdeaMapConfig()
        self.ids = id_generator or NodeIdGenerator()

    def insert(
        self,
        state: GraphState,
        text: str,
        vector: Optional[torch.Tensor],
        decision: PlacementDecision,
    ) -> Tuple[Node, Edge]:
        """Build the node and edge for a placement without touching state."""
        if not state.has_node(decision.parent_id):
            raise RejectedOperation(f"Unknown parent node: {decision.parent_id}")

        node_id = self.ids.next_id(taken=state.nodes.keys())
        node = Node(
            id=node_id,
            node_type=decision.node_type,
            label=text,
            topic=text if decision.topic is None else decision.topic,
            color=decision.color,
            vector=vector,
            parent_id=decision.parent_id,
            created_at=now_ms(),
        )
        return node, Edge(source=decision.parent_id, target=node_id)

    def apply_insert(self, state: GraphState, node: Node, edge: Edge,
                     next_color_index: Optional[int] = None) -> None:
        """Splice a node and its edge into state and select it."""
        if state.has_node(node.id):
            raise RejectedOperation(f"Node id already in graph: {node.id}")
        if edge.target != node.id or not state.has_node(edge.source):
            raise RejectedOperation(f"Edge {edge.id} does not connect {node.id} to the graph")

        nodes = dict(state.nodes)
        nodes[node.id] = node
        edges = state.edges + [edge]

        state.nodes, state.edges = nodes, edges
        state.selected_node_id = node.id
        if next_color_index is not None:
            state.color_index = next_color_index

    def delete_subtree(self, state: GraphState, node_id: str) -> Set[str]:
        """Remove node_id and all of its descendants. Returns the removed ids."""
        if node_id == state.root_id:
            raise RejectedOperation("The root node cannot be deleted")
        if not state.has_node(node_id):
            raise RejectedOperation(f"Unknown node: {node_id}")

        doomed = set(HierarchyIndex(state.nodes, state.edges).descendant_ids(node_id))

        nodes = {nid: n for nid, n in state.nodes.items() if nid not in doomed}
        edges = [e for e in state.edges
                 if e.source not in doomed and e.target not in doomed]
        selected = state.root_id if state.selected_node_id in doomed else state.selected_node_id

        state.nodes, state.edges, state.selected_node_id = nodes, edges, selected
        logger.debug("Deleted subtree at %s (%d nodes)", node_id, len(doomed))
        return doomed

    def relabel(self, state: GraphState, node_id: str, label: str) -> Node:
        """Change a node's display label; vector, color and topology stay."""
        node = state.node(node_id)
        if node is None:
            raise RejectedOperation(f"Unknown node: {node_id}")
        if not label or not label.strip():
            raise RejectedOperation("Label must not be empty")

        updated = node.clone()
        updated.label = label
        nodes = dict(state.nodes)
        nodes[node_id] = updated
        state.nodes = nodes
        return updated
