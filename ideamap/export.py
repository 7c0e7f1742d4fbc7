"""JSON and Markdown export of a graph."""

from datetime import datetime, timezone
from typing import Any, Dict

from .graph import GraphState
from .hierarchy import HierarchyIndex


def export_json(state: GraphState) -> Dict[str, Any]:
    """Nodes (with child ids), edges and metadata, ready for json.dumps."""
    index = HierarchyIndex(state.nodes, state.edges)
    return {
        "nodes": [
            {
                "id": n.id,
                "label": n.label,
                "topic": n.topic,
                "parentId": n.parent_id,
                "isAnchor": n.is_anchor,
                "children": index.ordered_children(n.id),
            }
            for n in state.nodes.values()
        ],
        "edges": [{"source": e.source, "target": e.target} for e in state.edges],
        "metadata": {
            "exportedAt": datetime.now(timezone.utc).isoformat(),
            "nodeCount": len(state.nodes),
            "edgeCount": len(state.edges),
        },
    }


def export_markdown(state: GraphState) -> str:
    """Outline from root: "# label" at depth 0, indented bullets below."""
    index = HierarchyIndex(state.nodes, state.edges)
    lines = []
    for node_id, depth in index.depth_first(state.root_id):
        node = state.node(node_id)
        if node is None:
            continue
        prefix = "# " if depth == 0 else "  " * depth + "- "
        lines.append(f"{prefix}{node.label}")
    return "\n".join(lines)
