"""IdeaMapEngine: the operations a UI layer calls.

Pipeline for a new idea:
    text -> embedding (no lock held) -> [lock] re-read graph -> resolve ->
    decide -> insert -> validate -> layout -> commit -> record -> [unlock]

Only the embedding call may block for long, so it runs outside the lock and
the graph is re-read once the vector is in hand. Everything after that is one
atomic step: the id, the color cursor and the history entry move together.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Union

from .config import IdeaMapConfig
from .embeddings import EmbeddingProvider, EmbeddingResult, ResilientEmbedder, create_embedder
from .export import export_json, export_markdown
from .graph import Edge, GraphState, Node
from .history import HistoryStore
from .layout import LayoutEngine, RadialLayout, apply_layout
from .mutator import GraphMutator
from .placement import PlacementDecision, PlacementPolicy
from .resolver import ParentResolver
from .safeguards import PlacementSuperseded, RejectedOperation, validate_tree
from .store import CollectionStore

logger = logging.getLogger(__name__)


@dataclass
class PlacementOutcome:
    """What place_new_idea did."""
    node: Node
    edge: Edge
    decision: PlacementDecision
    embedding: EmbeddingResult

    @property
    def used_fallback(self) -> bool:
        return self.embedding.is_fallback


class IdeaMapEngine:
    """Owns one GraphState and its history; serializes every mutation.

    Example usage:
        ```python
        engine = IdeaMapEngine()
        engine.place_new_idea("idle game")       # new anchor under root
        engine.place_new_idea("clicker upgrades")
        engine.undo()
        print(engine.export_markdown())
        ```
    """

    def __init__(
        self,
        config: Optional[IdeaMapConfig] = None,
        embedder: Optional[Union[ResilientEmbedder, EmbeddingProvider]] = None,
        layout: Optional[LayoutEngine] = None,
        collections: Optional[CollectionStore] = None,
        state: Optional[GraphState] = None,
    ):
        self.config = config or IdeaMapConfig()
        if embedder is None:
            embedder = create_embedder("local", fallback_dim=self.config.fallback_dim)
        elif isinstance(embedder, EmbeddingProvider):
            embedder = ResilientEmbedder([embedder])
        self.embedder = embedder
        self.layout_engine = layout or RadialLayout(
            ring_spacing=self.config.ring_spacing, root_id=self.config.root_id
        )
        self.collections = collections

        if state is None and collections is not None and collections.active is not None:
            state = collections.active.graph_state(self.config.root_id)
        self.state = state or GraphState.initial(self.config)
        validate_tree(self.state)

        self.resolver = ParentResolver(self.config)
        self.policy = PlacementPolicy(self.config)
        self.mutator = GraphMutator(self.config)
        self.history = HistoryStore(self.state, max_size=self.config.max_history)

        self._lock = threading.RLock()
        self._ticket = 0
        self._cancelled_through = 0

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def place_new_idea(self, text: str, parent_id: Optional[str] = None) -> PlacementOutcome:
        """Embed text and attach it where it fits best (or under parent_id)."""
        text = (text or "").strip()
        if not text:
            raise RejectedOperation("Idea text must not be empty")

        with self._lock:
            self._ticket += 1
            ticket = self._ticket

        embedding = self.embedder.embed(text)

        with self._lock:
            if ticket <= self._cancelled_through:
                raise PlacementSuperseded(f"Placement of {text!r} was cancelled")
            if self.config.supersede_stale_requests and ticket < self._ticket:
                raise PlacementSuperseded(f"Placement of {text!r} was superseded")

            working = self.state.copy()
            if parent_id is not None:
                parent = working.node(parent_id)
                if parent is None:
                    raise RejectedOperation(f"Unknown parent node: {parent_id}")
                decision = self.policy.decide_forced(parent)
            else:
                result = self.resolver.resolve(embedding.vector, working)
                decision = self.policy.decide(result, working)

            node, edge = self.mutator.insert(working, text, embedding.vector, decision)
            self.mutator.apply_insert(working, node, edge, decision.next_color_index)
            self._commit(working)

            logger.info(
                "Placed %r as %s under %s (%s, similarity=%.4f%s)",
                text, node.node_type.value, decision.parent_id, decision.kind.name,
                decision.similarity, ", fallback embedding" if embedding.is_fallback else "",
            )
            return PlacementOutcome(node=node, edge=edge, decision=decision, embedding=embedding)

    def place_under_selected(self, text: str) -> PlacementOutcome:
        """Manual attach under whatever is selected."""
        with self._lock:
            parent_id = self.state.selected_node_id or self.state.root_id
        return self.place_new_idea(text, parent_id=parent_id)

    def cancel_pending(self) -> None:
        """Abandon every placement still waiting on its embedding."""
        with self._lock:
            self._cancelled_through = self._ticket

    # ------------------------------------------------------------------
    # Other mutations
    # ------------------------------------------------------------------

    def delete_node(self, node_id: str) -> Set[str]:
        """Delete a node and its whole subtree. Returns the removed ids."""
        with self._lock:
            working = self.state.copy()
            removed = self.mutator.delete_subtree(working, node_id)
            self._commit(working)
            return removed

    def relabel(self, node_id: str, label: str) -> Node:
        with self._lock:
            working = self.state.copy()
            node = self.mutator.relabel(working, node_id, label)
            self._commit(working)
            return node

    def reset_graph(self) -> None:
        """Back to a root-only graph; undoable."""
        with self._lock:
            self._commit(GraphState.initial(self.config))

    def select(self, node_id: Optional[str]) -> None:
        """Change selection. Not a mutation: nothing is recorded.

        Undo and redo restore the selection stored with each snapshot, so a
        selection made after the last mutation is replaced by the recorded one.
        """
        with self._lock:
            if node_id is not None and not self.state.has_node(node_id):
                raise RejectedOperation(f"Unknown node: {node_id}")
            self.state.selected_node_id = node_id

    def _commit(self, working: GraphState) -> None:
        validate_tree(working)
        apply_layout(working, self.layout_engine)
        self.state.replace_with(working)
        self.history.record(self.state)
        self._sync()

    def _sync(self) -> None:
        if self.collections is not None:
            self.collections.sync_active(self.state)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        """Step back one mutation. False at the oldest state."""
        with self._lock:
            restored = self.history.undo()
            if restored is None:
                return False
            self.state.replace_with(restored)
            self._sync()
            return True

    def redo(self) -> bool:
        """Step forward one mutation. False at the newest state."""
        with self._lock:
            restored = self.history.redo()
            if restored is None:
                return False
            self.state.replace_with(restored)
            self._sync()
            return True

    def can_undo(self) -> bool:
        return self.history.can_undo()

    def can_redo(self) -> bool:
        return self.history.can_redo()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def switch_collection(self, collection_id: str) -> None:
        """Load another saved graph; undo history starts over."""
        if self.collections is None:
            raise RejectedOperation("No collection store attached")
        with self._lock:
            # Validates before the store changes its active id
            state = self.collections.switch(collection_id)
            self.state.replace_with(state)
            self.history.reset(self.state)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def export_json(self) -> Dict[str, Any]:
        with self._lock:
            return export_json(self.state)

    def export_markdown(self) -> str:
        with self._lock:
            return export_markdown(self.state)

    def snapshot(self):
        """Current state as an immutable snapshot."""
        with self._lock:
            return self.state.snapshot()

    def __len__(self) -> int:
        with self._lock:
            return len(self.state.nodes)
