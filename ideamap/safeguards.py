"""Safeguards for the idea graph - keeping the tree a tree.

Addresses:
1. ID collisions: node ids drawn from time + random suffix, re-drawn until
   unique against recently issued ids and every id present in the graph
2. Invalid requests: structured rejections instead of silent corruption
3. Tree invariant: every non-root node has exactly one parent edge, no
   cycles, everything reachable from root
"""

import random
import string
import threading
import time
from typing import Collection, Dict, List, Optional

from .graph import GraphState


class IdeaMapError(Exception):
    """Base class for idea map errors."""


class RejectedOperation(IdeaMapError):
    """A mutation request that was refused; the graph is unchanged."""


class PlacementSuperseded(RejectedOperation):
    """A newer placement started while this one was waiting on its embedding."""


class ImportValidationError(IdeaMapError):
    """Imported data failed validation; nothing was imported."""


class TreeInvariantError(IdeaMapError):
    """The edge set no longer forms a rooted tree."""


_ALPHABET = string.digits + string.ascii_lowercase


class NodeIdGenerator:
    """Thread-safe unique id generator.

    Ids look like ``n-<epoch ms>-<5 base-36 chars>``. Uniqueness is checked
    against ``taken`` (the ids already in the graph) and against the most recent
    ``max_tracked`` ids this generator issued.
    """

    def __init__(self, prefix: str = "n", suffix_length: int = 5,
                 rng: Optional[random.Random] = None, max_tracked: int = 10000):
        self.prefix = prefix
        self.suffix_length = suffix_length
        self.max_tracked = max_tracked
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        # Insertion ordered; oldest entries are evicted first
        self._recent_ids: Dict[str, None] = {}

    def next_id(self, taken: Collection[str] = ()) -> str:
        """Get a new id not in ``taken`` and not recently issued."""
        with self._lock:
            while True:
                suffix = "".join(self._rng.choice(_ALPHABET) for _ in range(self.suffix_length))
                new_id = f"{self.prefix}-{int(time.time() * 1000)}-{suffix}"
                if new_id not in self._recent_ids and new_id not in taken:
                    break
            self._recent_ids[new_id] = None
            while len(self._recent_ids) > self.max_tracked:
                del self._recent_ids[next(iter(self._recent_ids))]
            return new_id

    def is_issued(self, id_value: str) -> bool:
        """True if id_value is among the recently issued ids."""
        with self._lock:
            return id_value in self._recent_ids


def tree_violations(state: GraphState) -> List[str]:
    """Describe every way the state breaks the rooted-tree invariant."""
    problems = []
    root_id = state.root_id

    if root_id not in state.nodes:
        return [f"root {root_id!r} is missing"]

    parents: Dict[str, List[str]] = {}
    for edge in state.edges:
        if edge.source not in state.nodes:
            problems.append(f"edge {edge.id} has unknown source")
        if edge.target not in state.nodes:
            problems.append(f"edge {edge.id} has unknown target")
        parents.setdefault(edge.target, []).append(edge.source)

    if root_id in parents:
        problems.append("root has an incoming edge")

    for node_id in state.nodes:
        if node_id == root_id:
            continue
        count = len(parents.get(node_id, ()))
        if count != 1:
            problems.append(f"node {node_id} has {count} parent edges")

    # Reachability from root; with one parent per node this also rules out cycles
    children: Dict[str, List[str]] = {}
    for edge in state.edges:
        children.setdefault(edge.source, []).append(edge.target)
    reached = set()
    stack = [root_id]
    while stack:
        node_id = stack.pop()
        if node_id in reached:
            continue
        reached.add(node_id)
        stack.extend(children.get(node_id, ()))

    unreachable = set(state.nodes) - reached
    if unreachable:
        problems.append(f"unreachable from root: {sorted(unreachable)}")

    return problems


def validate_tree(state: GraphState) -> None:
    """Raise TreeInvariantError if the state is not a rooted tree."""
    problems = tree_violations(state)
    if problems:
        raise TreeInvariantError("; ".join(problems))
