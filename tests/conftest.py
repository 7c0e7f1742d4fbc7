"""Shared fixtures for ideamap tests."""

import threading
from typing import Dict, Iterable, Optional, Sequence, Tuple

import pytest
import torch

from ideamap import (
    Edge,
    EmbeddingProvider,
    GraphState,
    IdeaMapConfig,
    Node,
    NodeType,
)


def vec(*values: float) -> torch.Tensor:
    return torch.tensor(values, dtype=torch.float64)


class StaticProvider(EmbeddingProvider):
    """Looks texts up in a fixed table; unknown texts raise."""

    def __init__(self, table: Dict[str, Sequence[float]], dims: int = 3):
        self.table = {k: vec(*v) for k, v in table.items()}
        self._dims = dims
        self.calls = 0
        self._lock = threading.Lock()

    def embed(self, text: str) -> torch.Tensor:
        with self._lock:
            self.calls += 1
        if text not in self.table:
            raise KeyError(text)
        return self.table[text].clone()

    def dimensions(self) -> int:
        return self._dims

    def model_name(self) -> str:
        return "static"


class FailingProvider(EmbeddingProvider):
    def embed(self, text: str) -> torch.Tensor:
        raise ConnectionError("provider unreachable")

    def dimensions(self) -> int:
        return 3

    def model_name(self) -> str:
        return "failing"


def build_state(
    rows: Iterable[Tuple[str, Optional[str], Optional[Sequence[float]]]],
    config: Optional[IdeaMapConfig] = None,
) -> GraphState:
    """Build a graph from (id, parent_id, vector) rows; parent None = root."""
    state = GraphState.initial(config)
    for node_id, parent_id, values in rows:
        parent = parent_id or state.root_id
        state.nodes[node_id] = Node(
            id=node_id,
            node_type=NodeType.ANCHOR if parent == state.root_id else NodeType.SATELLITE,
            label=node_id,
            topic=node_id,
            color="#000000",
            vector=vec(*values) if values is not None else None,
            parent_id=parent,
        )
        state.edges.append(Edge(source=parent, target=node_id))
    return state


@pytest.fixture
def config():
    return IdeaMapConfig()


@pytest.fixture
def shoes_state():
    """A head whose subtree centroid outscores a closer sibling leaf.

    v = (1, 0, 0). walking is a leaf at similarity 0.8. plant has direct
    similarity 0.6 but its subtree centroid sits at ~0.93, giving a blended
    score of ~0.83.
    """
    return build_state([
        ("plant", None, (0.6, 0.8, 0.0)),
        ("tree", "plant", (0.75, 0.6614, 0.0)),
        ("leaf", "plant", (0.75, -0.6614, 0.0)),
        ("walking", None, (0.8, 0.6, 0.0)),
    ])


@pytest.fixture
def game_table():
    return {
        "idle game": (0.0, 1.0, 0.0),
        "combat": (1.0, 0.2, 0.0),
        "sword": (0.9, 0.4, 0.1),
        "economy": (0.0, 0.0, 1.0),
        "shield": (0.95, 0.35, 0.05),
        "market": (0.1, 0.0, 0.95),
        "trade": (0.05, 0.1, 0.9),
    }
