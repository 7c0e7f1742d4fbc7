"""Graph data model: nodes, edges, live state and immutable snapshots.

Structure:
    root (ANCHOR, no vector)
    ├── anchor "combat" -- new topic, own color
    │   └── satellite "sword" -- inherits color/topic
    └── anchor "economy"

The edge list is the authoritative parent relation. ``Node.parent_id`` is a
display back-reference only.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import torch

from .config import IdeaMapConfig
from .vectors import as_vector


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class NodeType(Enum):
    """Node type tags."""
    ANCHOR = "anchor"         # Top-level topic directly under root
    SATELLITE = "satellite"   # Attached under any node


@dataclass(eq=False)
class Node:
    """A single idea in the graph."""
    id: str
    node_type: NodeType
    label: str
    topic: str = ""
    color: str = ""
    vector: Optional[torch.Tensor] = None
    parent_id: Optional[str] = None
    created_at: int = 0
    position: Tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        if self.vector is not None:
            self.vector = as_vector(self.vector)
        if not self.created_at:
            self.created_at = now_ms()

    @property
    def is_anchor(self) -> bool:
        return self.node_type == NodeType.ANCHOR

    def clone(self) -> "Node":
        """Deep copy; the vector is cloned so copies never alias."""
        return Node(
            id=self.id,
            node_type=self.node_type,
            label=self.label,
            topic=self.topic,
            color=self.color,
            vector=self.vector.clone() if self.vector is not None else None,
            parent_id=self.parent_id,
            created_at=self.created_at,
            position=tuple(self.position),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.node_type.value,
            "position": {"x": self.position[0], "y": self.position[1]},
            "data": {
                "label": self.label,
                "topic": self.topic,
                "color": self.color,
                "vector": self.vector.tolist() if self.vector is not None else None,
                "parentId": self.parent_id,
                "isAnchor": self.is_anchor,
                "createdAt": self.created_at,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        payload = data.get("data") or {}
        position = data.get("position") or {}
        is_anchor = payload.get("isAnchor", data.get("type") == NodeType.ANCHOR.value)
        vector = payload.get("vector")
        return cls(
            id=data["id"],
            node_type=NodeType.ANCHOR if is_anchor else NodeType.SATELLITE,
            label=payload["label"],
            topic=payload.get("topic") or "",
            color=payload.get("color") or "",
            vector=torch.tensor(vector, dtype=torch.float64) if vector else None,
            parent_id=payload.get("parentId"),
            created_at=payload.get("createdAt") or 0,
            position=(float(position.get("x", 0.0)), float(position.get("y", 0.0))),
        )


@dataclass(frozen=True)
class Edge:
    """Directed parent -> child edge."""
    source: str
    target: str

    @property
    def id(self) -> str:
        return f"e-{self.source}-{self.target}"

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "source": self.source, "target": self.target}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Edge":
        return cls(source=data["source"], target=data["target"])


@dataclass
class GraphState:
    """The single owned mutable graph value.

    Holds the nodes (insertion ordered), the edges, the selected node and the
    anchor color cursor. Every mutation goes through GraphMutator.
    """
    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: List[Edge] = field(default_factory=list)
    selected_node_id: Optional[str] = None
    color_index: int = 0
    root_id: str = "root"

    @classmethod
    def initial(cls, config: Optional[IdeaMapConfig] = None) -> "GraphState":
        """A graph holding only the root."""
        config = config or IdeaMapConfig()
        root = Node(
            id=config.root_id,
            node_type=NodeType.ANCHOR,
            label=config.root_label,
            topic=config.root_topic,
            color=config.root_color,
        )
        return cls(
            nodes={root.id: root},
            edges=[],
            selected_node_id=root.id,
            color_index=0,
            root_id=root.id,
        )

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def node_list(self) -> List[Node]:
        return list(self.nodes.values())

    def copy(self) -> "GraphState":
        """Deep copy sharing nothing with this state."""
        return GraphState(
            nodes={nid: n.clone() for nid, n in self.nodes.items()},
            edges=list(self.edges),
            selected_node_id=self.selected_node_id,
            color_index=self.color_index,
            root_id=self.root_id,
        )

    def snapshot(self) -> "GraphSnapshot":
        return GraphSnapshot(
            nodes=tuple(n.clone() for n in self.nodes.values()),
            edges=tuple(self.edges),
            selected_node_id=self.selected_node_id,
            color_index=self.color_index,
            root_id=self.root_id,
        )

    def replace_with(self, other: "GraphState") -> None:
        """Swap in another state's contents in one step."""
        self.nodes, self.edges = other.nodes, other.edges
        self.selected_node_id = other.selected_node_id
        self.color_index = other.color_index
        self.root_id = other.root_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges],
            "selectedNodeId": self.selected_node_id,
            "colorIndex": self.color_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], root_id: str = "root") -> "GraphState":
        nodes = [Node.from_dict(n) for n in data.get("nodes", [])]
        return cls(
            nodes={n.id: n for n in nodes},
            edges=[Edge.from_dict(e) for e in data.get("edges", [])],
            selected_node_id=data.get("selectedNodeId", root_id),
            color_index=int(data.get("colorIndex", 0)),
            root_id=root_id,
        )


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable full copy of a GraphState, owned by HistoryStore."""
    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]
    selected_node_id: Optional[str]
    color_index: int
    root_id: str = "root"

    def restore(self) -> GraphState:
        """A fresh GraphState; mutating it never touches this snapshot."""
        return GraphState(
            nodes={n.id: n.clone() for n in self.nodes},
            edges=list(self.edges),
            selected_node_id=self.selected_node_id,
            color_index=self.color_index,
            root_id=self.root_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.restore().to_dict()
