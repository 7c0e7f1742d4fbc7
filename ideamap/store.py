"""Saved graph collections: records, content hashing, import/export.

A collection is one saved graph. Its content hash covers only the semantic
content (ids, labels, parent references, anchor flags, edges) so that the
same graph re-imported with different positions, colors or timestamps is
still recognised as a duplicate.
"""

import hashlib
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import IdeaMapConfig
from .graph import GraphState, now_ms
from .safeguards import (
    ImportValidationError,
    NodeIdGenerator,
    RejectedOperation,
    tree_violations,
    validate_tree,
)

logger = logging.getLogger(__name__)

EXPORT_VERSION = "2.0"


def content_hash(state_or_payload: Union[GraphState, Dict[str, Any]]) -> str:
    """SHA-256 over sorted (id, label, parentId, isAnchor) and (source, target) tuples."""
    if isinstance(state_or_payload, GraphState):
        payload = state_or_payload.to_dict()
    else:
        payload = state_or_payload

    nodes = []
    for n in payload.get("nodes", []):
        data = n.get("data") or n
        nodes.append({
            "id": n["id"],
            "label": data.get("label"),
            "parentId": data.get("parentId"),
            "isAnchor": bool(data.get("isAnchor", False)),
        })
    nodes.sort(key=lambda n: n["id"])

    edges = [{"source": e["source"], "target": e["target"]} for e in payload.get("edges", [])]
    edges.sort(key=lambda e: f"{e['source']}-{e['target']}")

    canonical = json.dumps({"nodes": nodes, "edges": edges}, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


@dataclass
class CollectionRecord:
    """One saved graph."""
    id: str
    name: str
    color: str
    created_at: int
    modified_at: int
    content_hash: str
    payload: Dict[str, Any] = field(default_factory=dict)   # nodes, edges, colorIndex

    def graph_state(self, root_id: str = "root") -> GraphState:
        return GraphState.from_dict(self.payload, root_id=root_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "createdAt": self.created_at,
            "modifiedAt": self.modified_at,
            "contentHash": self.content_hash,
            "data": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CollectionRecord":
        return cls(
            id=data["id"],
            name=data["name"],
            color=data.get("color", ""),
            created_at=int(data.get("createdAt", 0)),
            modified_at=int(data.get("modifiedAt", 0)),
            content_hash=data.get("contentHash", ""),
            payload=data.get("data") or {},
        )


@dataclass
class ImportResult:
    """Outcome of a structurally valid import."""
    success: bool
    is_duplicate: bool = False
    duplicate: Optional[CollectionRecord] = None
    new_collection_id: Optional[str] = None


def _normalize_node(raw: Any) -> Dict[str, Any]:
    """Accept both the nested collection format and the flat export format."""
    if not isinstance(raw, dict) or not raw.get("id"):
        raise ImportValidationError("Invalid node structure: missing id")
    if not isinstance(raw["id"], str):
        raise ImportValidationError(f"Invalid node structure: id {raw['id']!r} is not a string")

    data = raw.get("data")
    if not isinstance(data, dict):
        # Flat export_json() shape
        data = {k: raw.get(k) for k in ("label", "topic", "color", "parentId", "isAnchor", "createdAt")}
    if not data.get("label"):
        raise ImportValidationError(f"Invalid node structure: node {raw['id']} has no label")
    if not isinstance(data["label"], str):
        raise ImportValidationError(f"Invalid node structure: node {raw['id']} label is not a string")

    position = raw.get("position") or {"x": 0.0, "y": 0.0}
    if not isinstance(position, dict):
        raise ImportValidationError(f"Invalid node structure: node {raw['id']} position is not an object")

    return {
        "id": raw["id"],
        "type": raw.get("type") or ("anchor" if data.get("isAnchor") else "satellite"),
        "position": position,
        "data": dict(data),
    }


def validate_import(parsed: Any, root_id: str = "root") -> Dict[str, Any]:
    """Check an import document and return a clean payload, or raise.

    All-or-nothing: any problem rejects the whole document.
    """
    if not isinstance(parsed, dict):
        raise ImportValidationError("Invalid JSON format: expected an object")
    if not isinstance(parsed.get("nodes"), list):
        raise ImportValidationError("Invalid JSON format: missing or invalid nodes array")
    if not isinstance(parsed.get("edges"), list):
        raise ImportValidationError("Invalid JSON format: missing or invalid edges array")

    nodes = [_normalize_node(n) for n in parsed["nodes"]]
    ids = [n["id"] for n in nodes]
    if len(set(ids)) != len(ids):
        raise ImportValidationError("Duplicate node ids")

    known = set(ids)
    edges = []
    for e in parsed["edges"]:
        if not isinstance(e, dict):
            raise ImportValidationError("Invalid edge structure")
        source, target = e.get("source"), e.get("target")
        if not isinstance(source, str) or not isinstance(target, str):
            raise ImportValidationError("Invalid edge structure: source and target must be strings")
        if source not in known or target not in known:
            raise ImportValidationError("Invalid edge references")
        edges.append({"source": source, "target": target})

    try:
        color_index = int(parsed.get("colorIndex", 0) or 0)
        payload = {"nodes": nodes, "edges": edges, "colorIndex": color_index}
        state = GraphState.from_dict(payload, root_id=root_id)
    except (TypeError, ValueError, KeyError) as exc:
        raise ImportValidationError(f"Invalid field value: {exc}") from exc

    problems = tree_violations(state)
    if problems:
        raise ImportValidationError("Graph is not a rooted tree: " + "; ".join(problems))
    return payload


class CollectionStore:
    """Thread-safe set of saved graphs with one active collection."""

    def __init__(self, config: Optional[IdeaMapConfig] = None):
        self.config = config or IdeaMapConfig()
        self._lock = threading.RLock()
        self._records: Dict[str, CollectionRecord] = {}
        self._ids = NodeIdGenerator(prefix="proj", suffix_length=7)
        self.active_id: Optional[str] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, collection_id: str) -> Optional[CollectionRecord]:
        with self._lock:
            return self._records.get(collection_id)

    def all(self) -> List[CollectionRecord]:
        with self._lock:
            return list(self._records.values())

    @property
    def active(self) -> Optional[CollectionRecord]:
        with self._lock:
            return self._records.get(self.active_id) if self.active_id else None

    def create(self, name: Optional[str] = None,
               state: Optional[GraphState] = None) -> CollectionRecord:
        """Create a collection holding state (or a fresh root-only graph)."""
        with self._lock:
            if len(self._records) >= self.config.max_collections:
                raise RejectedOperation(
                    f"Maximum {self.config.max_collections} collections reached"
                )
            count = len(self._records)
            state = state or GraphState.initial(self.config)
            payload = self._payload(state)
            ts = now_ms()
            record = CollectionRecord(
                id=self._ids.next_id(taken=self._records.keys()),
                name=name or f"Brainstorm {count + 1}",
                color=self.config.palette[count % len(self.config.palette)],
                created_at=ts,
                modified_at=ts,
                content_hash=content_hash(payload),
                payload=payload,
            )
            self._records[record.id] = record
            if self.active_id is None:
                self.active_id = record.id
            return record

    def delete(self, collection_id: str) -> None:
        with self._lock:
            if collection_id not in self._records:
                raise RejectedOperation(f"Unknown collection: {collection_id}")
            if len(self._records) == 1:
                raise RejectedOperation("Cannot delete the last collection")
            del self._records[collection_id]
            if self.active_id == collection_id:
                newest = max(self._records.values(), key=lambda r: r.modified_at)
                self.active_id = newest.id

    def switch(self, collection_id: str) -> GraphState:
        """Make a collection active and return its graph.

        A record whose graph is not a rooted tree raises TreeInvariantError
        and the active collection stays as it was.
        """
        with self._lock:
            record = self._records.get(collection_id)
            if record is None:
                raise RejectedOperation(f"Unknown collection: {collection_id}")
            state = record.graph_state(self.config.root_id)
            validate_tree(state)
            record.modified_at = now_ms()
            self.active_id = collection_id
            return state

    def rename(self, collection_id: str, name: str) -> None:
        self._update(collection_id, name=name)

    def recolor(self, collection_id: str, color: str) -> None:
        self._update(collection_id, color=color)

    def _update(self, collection_id: str, **changes) -> None:
        with self._lock:
            record = self._records.get(collection_id)
            if record is None:
                raise RejectedOperation(f"Unknown collection: {collection_id}")
            for key, value in changes.items():
                setattr(record, key, value)
            record.modified_at = now_ms()

    def sync_active(self, state: GraphState) -> None:
        """Store the live graph into the active collection."""
        with self._lock:
            record = self.active
            if record is None:
                return
            record.payload = self._payload(state)
            record.content_hash = content_hash(record.payload)
            record.modified_at = now_ms()

    def find_duplicate(self, hash_value: str) -> Optional[CollectionRecord]:
        with self._lock:
            for record in self._records.values():
                if record.content_hash == hash_value:
                    return record
            return None

    def _payload(self, state: GraphState) -> Dict[str, Any]:
        data = state.to_dict()
        return {"nodes": data["nodes"], "edges": data["edges"], "colorIndex": data["colorIndex"]}

    def import_json(self, document: Union[str, Dict[str, Any]]) -> ImportResult:
        """Import a collection document.

        Raises ImportValidationError (store unchanged) on any structural
        problem. A duplicate of an existing collection is reported, not
        imported.
        """
        if isinstance(document, str):
            try:
                parsed = json.loads(document)
            except json.JSONDecodeError as exc:
                raise ImportValidationError(f"Failed to parse JSON: {exc}") from exc
        else:
            parsed = document

        payload = validate_import(parsed, root_id=self.config.root_id)
        hash_value = content_hash(payload)

        with self._lock:
            duplicate = self.find_duplicate(hash_value)
            if duplicate is not None:
                logger.info("Import matches existing collection %s", duplicate.id)
                return ImportResult(success=False, is_duplicate=True, duplicate=duplicate)

            if len(self._records) >= self.config.max_collections:
                raise RejectedOperation(
                    f"Maximum {self.config.max_collections} collections reached"
                )

            exported_at = (parsed.get("metadata") or {}).get("exportedAt")
            name = parsed.get("projectName") or f"Imported {(exported_at or _iso(now_ms()))[:10]}"
            ts = now_ms()
            record = CollectionRecord(
                id=self._ids.next_id(taken=self._records.keys()),
                name=name,
                color=parsed.get("projectColor") or self.config.palette[
                    len(self._records) % len(self.config.palette)],
                created_at=ts,
                modified_at=ts,
                content_hash=hash_value,
                payload=payload,
            )
            self._records[record.id] = record
            if self.active_id is None:
                self.active_id = record.id
            return ImportResult(success=True, new_collection_id=record.id)

    def export_collection(self, collection_id: str) -> Optional[Dict[str, Any]]:
        """Single-collection export document (no vectors)."""
        with self._lock:
            record = self._records.get(collection_id)
            if record is None:
                return None
            return {
                "version": EXPORT_VERSION,
                "projectId": record.id,
                "projectName": record.name,
                "projectColor": record.color,
                "nodes": self._strip_vectors(record.payload.get("nodes", [])),
                "edges": list(record.payload.get("edges", [])),
                "metadata": {
                    "exportedAt": datetime.now(timezone.utc).isoformat(),
                    "nodeCount": len(record.payload.get("nodes", [])),
                    "edgeCount": len(record.payload.get("edges", [])),
                    "createdAt": _iso(record.created_at),
                    "modifiedAt": _iso(record.modified_at),
                },
            }

    def export_all(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "version": f"{EXPORT_VERSION}-bundle",
                "exportedAt": datetime.now(timezone.utc).isoformat(),
                "projectCount": len(self._records),
                "projects": [
                    {
                        "id": r.id,
                        "name": r.name,
                        "color": r.color,
                        "createdAt": _iso(r.created_at),
                        "modifiedAt": _iso(r.modified_at),
                        "data": {
                            "nodes": self._strip_vectors(r.payload.get("nodes", [])),
                            "edges": list(r.payload.get("edges", [])),
                        },
                    }
                    for r in self._records.values()
                ],
            }

    @staticmethod
    def _strip_vectors(nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        stripped = []
        for n in nodes:
            data = {k: v for k, v in (n.get("data") or {}).items() if k != "vector"}
            stripped.append({**n, "data": data})
        return stripped

    def save(self, path: str) -> None:
        """Save every collection to a JSON file."""
        with self._lock:
            data = {
                "activeId": self.active_id,
                "collections": [r.to_dict() for r in self._records.values()],
            }
            with open(path, "w") as f:
                json.dump(data, f)

    def load(self, path: str) -> None:
        """Replace the store's contents with a file written by save()."""
        with open(path, "r") as f:
            data = json.load(f)
        records = {}
        for raw in data.get("collections", []):
            record = CollectionRecord.from_dict(raw)
            records[record.id] = record
        with self._lock:
            self._records = records
            active = data.get("activeId")
            if active not in records:
                active = max(records.values(), key=lambda r: r.modified_at).id if records else None
            self.active_id = active

    @classmethod
    def open(cls, path: str, config: Optional[IdeaMapConfig] = None) -> "CollectionStore":
        """Load from path if it exists, else start with one empty collection."""
        store = cls(config)
        if Path(path).exists():
            store.load(path)
        if not len(store):
            store.create("My First Brainstorm")
        return store
