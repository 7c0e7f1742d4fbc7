"""Placement policy: attach under the resolved node, or start a new topic."""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from .config import IdeaMapConfig
from .graph import GraphState, Node, NodeType
from .resolver import ResolverResult

logger = logging.getLogger(__name__)


class PlacementKind(Enum):
    """Why a node ended up where it did."""
    ATTACH = auto()       # Similar enough to an existing node
    NEW_ANCHOR = auto()   # Nothing close enough; new topic under root
    FORCED = auto()       # Caller picked the parent


@dataclass
class PlacementDecision:
    """Everything GraphMutator needs to build the new node and edge."""
    kind: PlacementKind
    parent_id: str
    node_type: NodeType
    color: str
    topic: Optional[str]          # None = the new node's own text
    similarity: float = 0.0
    next_color_index: Optional[int] = None   # Set only for new anchors

    @property
    def is_anchor(self) -> bool:
        return self.node_type == NodeType.ANCHOR


class PlacementPolicy:
    """Threshold decision on top of ParentResolver."""

    def __init__(self, config: Optional[IdeaMapConfig] = None):
        self.config = config or IdeaMapConfig()

    def decide(self, result: ResolverResult, state: GraphState) -> PlacementDecision:
        """Attach iff a candidate exists and its similarity is strictly above threshold."""
        if result.node is not None and result.similarity > self.config.similarity_threshold:
            logger.debug("Attaching under %s (similarity %.4f)", result.node.id, result.similarity)
            return self._satellite_of(result.node, PlacementKind.ATTACH, result.similarity)

        palette = self.config.palette
        logger.debug(
            "No candidate above %.2f (best %.4f); creating anchor",
            self.config.similarity_threshold, result.similarity,
        )
        return PlacementDecision(
            kind=PlacementKind.NEW_ANCHOR,
            parent_id=state.root_id,
            node_type=NodeType.ANCHOR,
            color=palette[state.color_index % len(palette)],
            topic=None,
            similarity=result.similarity,
            next_color_index=state.color_index + 1,
        )

    def decide_forced(self, parent: Node) -> PlacementDecision:
        """Manual attach mode: no scoring, always a satellite of parent."""
        return self._satellite_of(parent, PlacementKind.FORCED, 0.0)

    def _satellite_of(self, parent: Node, kind: PlacementKind, similarity: float) -> PlacementDecision:
        return PlacementDecision(
            kind=kind,
            parent_id=parent.id,
            node_type=NodeType.SATELLITE,
            color=parent.color or self.config.default_color,
            topic=parent.topic or self.config.default_topic,
            similarity=similarity,
        )
