"""Parent resolution: which existing node should a new idea hang under?

Two regimes:
- Sparse graph (few vector-bearing candidates, or no edges yet): plain
  nearest neighbour by cosine similarity. There is not enough structure for
  clusters to mean anything.
- Structured graph: cluster heads (nodes with children) are scored by a blend
  of subtree-centroid fit and their own similarity; leaves by their own
  similarity. The best head and best leaf are then compared.

The comparison between head and leaf uses raw similarities on both sides.
Comparing the leaf against the head's blended score let a subtree centroid
outrank a closer sibling leaf ("shoes" landing under "plant" instead of
"walking"). The old behaviour is kept as TieBreakRule.BLENDED_SCORE.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional

import torch

from .config import IdeaMapConfig, TieBreakRule
from .graph import Edge, GraphState, Node
from .hierarchy import HierarchyIndex
from .vectors import centroid, cosine_similarity

logger = logging.getLogger(__name__)


@dataclass
class ResolverResult:
    """Best candidate parent and its similarity to the new vector."""
    node: Optional[Node]
    similarity: float
    regime: str = "empty"   # empty | sparse | structured

    @property
    def found(self) -> bool:
        return self.node is not None


@dataclass
class _HeadScore:
    node: Node
    score: float            # blended cluster score
    cluster_similarity: float
    direct_similarity: float


class ParentResolver:
    """Finds the best parent candidate for a new embedding."""

    def __init__(self, config: Optional[IdeaMapConfig] = None):
        self.config = config or IdeaMapConfig()

    def resolve(self, vector: torch.Tensor, state: GraphState) -> ResolverResult:
        return self.resolve_nodes(vector, state.nodes.values(), state.edges, state.root_id)

    def resolve_nodes(
        self,
        vector: torch.Tensor,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        root_id: str = "root",
    ) -> ResolverResult:
        nodes = list(nodes)
        edges = list(edges)
        candidates = [n for n in nodes if n.id != root_id and n.vector is not None]

        if not candidates:
            return ResolverResult(node=None, similarity=0.0)

        if len(candidates) < self.config.sparse_candidate_min or not edges:
            return self._nearest(vector, candidates)

        index = HierarchyIndex({n.id: n for n in nodes}, edges)
        return self._structured(vector, candidates, index)

    def _nearest(self, vector: torch.Tensor, candidates) -> ResolverResult:
        best_node = None
        best_sim = -math.inf
        for node in candidates:
            sim = cosine_similarity(vector, node.vector)
            if sim > best_sim:
                best_sim = sim
                best_node = node
        return ResolverResult(node=best_node, similarity=best_sim, regime="sparse")

    def _structured(
        self,
        vector: torch.Tensor,
        candidates,
        index: HierarchyIndex,
    ) -> ResolverResult:
        best_head: Optional[_HeadScore] = None
        best_leaf: Optional[Node] = None
        best_leaf_sim = -math.inf

        for node in candidates:
            direct = cosine_similarity(vector, node.vector)

            if index.has_children(node.id):
                cluster = cosine_similarity(
                    vector, centroid(index.descendant_vectors(node.id))
                )
                score = (self.config.cluster_weight * cluster
                         + self.config.direct_weight * direct)
                if best_head is None or score > best_head.score:
                    best_head = _HeadScore(node, score, cluster, direct)
            elif direct > best_leaf_sim:
                best_leaf_sim = direct
                best_leaf = node

        if best_head is not None and best_leaf is not None:
            if self.config.tie_break == TieBreakRule.BLENDED_SCORE:
                head_value = best_head.score
            else:
                head_value = best_head.direct_similarity

            logger.debug(
                "Head %s (direct=%.4f, cluster=%.4f, score=%.4f) vs leaf %s (%.4f)",
                best_head.node.id, best_head.direct_similarity,
                best_head.cluster_similarity, best_head.score,
                best_leaf.id, best_leaf_sim,
            )
            if best_leaf_sim > head_value:
                return ResolverResult(best_leaf, best_leaf_sim, "structured")
            return ResolverResult(best_head.node, best_head.cluster_similarity, "structured")

        if best_head is not None:
            return ResolverResult(best_head.node, best_head.cluster_similarity, "structured")
        return ResolverResult(best_leaf, best_leaf_sim, "structured")
