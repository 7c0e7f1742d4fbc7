"""Configuration for the idea graph placement engine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple


class TieBreakRule(Enum):
    """How a best cluster head and a best leaf are compared."""
    RAW_SIMILARITY = "raw"      # leaf raw sim vs head raw (direct) sim
    BLENDED_SCORE = "blended"   # leaf raw sim vs head blended cluster score


TOPIC_COLORS: Tuple[str, ...] = (
    "#3b82f6",  # Blue
    "#10b981",  # Emerald
    "#f59e0b",  # Amber
    "#ec4899",  # Pink
    "#8b5cf6",  # Violet
    "#06b6d4",  # Cyan
    "#f97316",  # Orange
    "#84cc16",  # Lime
    "#e11d48",  # Rose
    "#6366f1",  # Indigo
)


@dataclass
class IdeaMapConfig:
    """Configuration for the idea map.

    The weights and the threshold were tuned by hand on real brainstorm
    sessions; treat them as knobs, not constants.
    """

    # === Placement ===
    similarity_threshold: float = 0.4   # Strictly above = attach as satellite
    cluster_weight: float = 0.7         # Weight of subtree centroid similarity
    direct_weight: float = 0.3          # Weight of the head's own similarity
    sparse_candidate_min: int = 3       # Below this, plain nearest neighbour
    tie_break: TieBreakRule = TieBreakRule.RAW_SIMILARITY

    # === History ===
    max_history: int = 50

    # === Appearance ===
    palette: List[str] = field(default_factory=lambda: list(TOPIC_COLORS))
    root_id: str = "root"
    root_label: str = "Brainstorm"
    root_topic: str = "Main"
    root_color: str = "#636ef1"
    default_color: str = "#636ef1"
    default_topic: str = "General"

    # === Embeddings ===
    fallback_dim: int = 384

    # === Concurrency ===
    supersede_stale_requests: bool = False

    # === Collections ===
    max_collections: int = 50

    # === Layout ===
    ring_spacing: float = 200.0

    def __post_init__(self):
        if not self.palette:
            raise ValueError("palette must contain at least one color")
        if self.max_history < 1:
            raise ValueError("max_history must be >= 1")

    @classmethod
    def legacy(cls) -> "IdeaMapConfig":
        """Pre-fix behaviour: heads win ties on their blended cluster score."""
        return cls(tie_break=TieBreakRule.BLENDED_SCORE)

    @classmethod
    def strict(cls) -> "IdeaMapConfig":
        """Fewer attachments, more new topics."""
        return cls(similarity_threshold=0.55)
