"""ideamap - Semantic placement engine for brainstorm idea graphs.

Type one idea at a time; each one is attached under the most semantically
related existing idea, or becomes a new top-level topic.

Core pieces:
    cosine_similarity / centroid   vector math over embeddings
    HierarchyIndex                 parent -> children view of the edge list
    ParentResolver                 best candidate parent for a new vector
    PlacementPolicy                attach vs. new anchor, by threshold
    GraphMutator                   insert, cascading delete, relabel
    HistoryStore                   bounded undo/redo of full snapshots
    IdeaMapEngine                  the facade a UI talks to
"""

from .config import IdeaMapConfig, TieBreakRule, TOPIC_COLORS
from .vectors import as_vector, cosine_similarity, centroid
from .graph import Node, NodeType, Edge, GraphState, GraphSnapshot
from .hierarchy import HierarchyIndex
from .resolver import ParentResolver, ResolverResult
from .placement import PlacementPolicy, PlacementDecision, PlacementKind
from .safeguards import (
    IdeaMapError,
    RejectedOperation,
    PlacementSuperseded,
    ImportValidationError,
    TreeInvariantError,
    NodeIdGenerator,
    tree_violations,
    validate_tree,
)
from .mutator import GraphMutator
from .history import HistoryStore
from .embeddings import (
    EmbeddingProvider,
    SentenceTransformerProvider,
    OpenAIProvider,
    KeywordFallbackEmbedder,
    CachedEmbeddingProvider,
    ResilientEmbedder,
    EmbeddingResult,
    LocalModel,
    create_embedder,
)
from .layout import LayoutEngine, RadialLayout, apply_layout
from .export import export_json, export_markdown
from .store import (
    CollectionStore,
    CollectionRecord,
    ImportResult,
    content_hash,
    validate_import,
)
from .engine import IdeaMapEngine, PlacementOutcome

__version__ = "0.1.0"

__all__ = [
    "IdeaMapConfig",
    "TieBreakRule",
    "TOPIC_COLORS",
    "as_vector",
    "cosine_similarity",
    "centroid",
    "Node",
    "NodeType",
    "Edge",
    "GraphState",
    "GraphSnapshot",
    "HierarchyIndex",
    "ParentResolver",
    "ResolverResult",
    "PlacementPolicy",
    "PlacementDecision",
    "PlacementKind",
    "IdeaMapError",
    "RejectedOperation",
    "PlacementSuperseded",
    "ImportValidationError",
    "TreeInvariantError",
    "NodeIdGenerator",
    "tree_violations",
    "validate_tree",
    "GraphMutator",
    "HistoryStore",
    "EmbeddingProvider",
    "SentenceTransformerProvider",
    "OpenAIProvider",
    "KeywordFallbackEmbedder",
    "CachedEmbeddingProvider",
    "ResilientEmbedder",
    "EmbeddingResult",
    "LocalModel",
    "create_embedder",
    "LayoutEngine",
    "RadialLayout",
    "apply_layout",
    "export_json",
    "export_markdown",
    "CollectionStore",
    "CollectionRecord",
    "ImportResult",
    "content_hash",
    "validate_import",
    "IdeaMapEngine",
    "PlacementOutcome",
]
