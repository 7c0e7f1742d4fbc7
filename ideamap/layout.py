"""Layout: nodes + edges -> 2-D positions.

Real layout engines live outside this package; RadialLayout is a small
default good enough for exports and tests.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from .graph import Edge, GraphState, Node
from .hierarchy import HierarchyIndex

logger = logging.getLogger(__name__)

Positions = Dict[str, Tuple[float, float]]


class LayoutEngine(ABC):
    """Abstract layout engine."""

    @abstractmethod
    def layout(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> Positions:
        ...


class RadialLayout(LayoutEngine):
    """Root at the centre, one ring per depth, children share their parent's sector."""

    def __init__(self, ring_spacing: float = 200.0, center: Tuple[float, float] = (0.0, 0.0),
                 root_id: Optional[str] = "root"):
        self.ring_spacing = ring_spacing
        self.center = center
        self.root_id = root_id

    def layout(self, nodes: Sequence[Node], edges: Sequence[Edge]) -> Positions:
        if not nodes:
            return {}

        by_id = {n.id: n for n in nodes}
        root_id = self.root_id if self.root_id in by_id else nodes[0].id
        index = HierarchyIndex(by_id, edges)
        cx, cy = self.center

        positions: Positions = {}
        stack: List[Tuple[str, int, float, float]] = [(root_id, 0, 0.0, 2 * math.pi)]
        while stack:
            node_id, depth, start, end = stack.pop()
            if node_id in positions:
                continue
            radius = depth * self.ring_spacing
            angle = (start + end) / 2
            positions[node_id] = (cx + radius * math.cos(angle), cy + radius * math.sin(angle))

            children = index.ordered_children(node_id)
            if not children:
                continue
            step = (end - start) / len(children)
            for i, child_id in enumerate(children):
                stack.append((child_id, depth + 1, start + i * step, start + (i + 1) * step))

        return positions


def apply_layout(state: GraphState, engine: LayoutEngine) -> bool:
    """Write positions from engine into state.

    On failure the previous positions stay untouched and False is returned.
    """
    try:
        positions = engine.layout(state.node_list(), list(state.edges))
    except Exception:
        logger.exception("Layout failed; keeping previous positions")
        return False

    for node_id, pos in positions.items():
        node = state.node(node_id)
        if node is not None:
            node.position = (float(pos[0]), float(pos[1]))
    return True
