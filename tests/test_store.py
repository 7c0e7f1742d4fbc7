"""Tests for exports, layout and the collection store."""

import json
import math

import pytest

from ideamap import (
    CollectionStore,
    GraphState,
    IdeaMapConfig,
    IdeaMapEngine,
    ImportValidationError,
    RadialLayout,
    RejectedOperation,
    TreeInvariantError,
    apply_layout,
    content_hash,
    export_json,
    export_markdown,
    validate_import,
)

from conftest import StaticProvider, build_state


@pytest.fixture
def game_tree():
    return build_state([
        ("combat", None, (1, 0, 0)),
        ("sword", "combat", (0.9, 0.4, 0)),
        ("economy", None, (0, 0, 1)),
    ])


class TestExport:

    def test_markdown_outline(self, game_tree):
        """Test Markdown outline shape."""
        assert export_markdown(game_tree) == "# Brainstorm\n  - combat\n    - sword\n  - economy"

    def test_markdown_root_only(self):
        """Test Markdown for a root-only graph."""
        assert export_markdown(GraphState.initial()) == "# Brainstorm"

    def test_json_shape(self, game_tree):
        """Test JSON export shape."""
        data = export_json(game_tree)
        assert set(data) == {"nodes", "edges", "metadata"}
        assert data["metadata"]["nodeCount"] == 4
        assert data["metadata"]["edgeCount"] == 3
        assert data["metadata"]["exportedAt"]

        by_id = {n["id"]: n for n in data["nodes"]}
        assert by_id["root"]["children"] == ["combat", "economy"]
        assert by_id["root"]["parentId"] is None
        assert by_id["sword"]["parentId"] == "combat"
        assert by_id["sword"]["isAnchor"] is False
        assert "vector" not in by_id["sword"]
        json.dumps(data)


class TestRadialLayout:

    def test_rings_by_depth(self, game_tree):
        """Test one ring per depth."""
        positions = RadialLayout(ring_spacing=100.0).layout(game_tree.node_list(), game_tree.edges)

        def radius(node_id):
            x, y = positions[node_id]
            return math.hypot(x, y)

        assert radius("root") == pytest.approx(0.0)
        assert radius("combat") == pytest.approx(100.0)
        assert radius("economy") == pytest.approx(100.0)
        assert radius("sword") == pytest.approx(200.0)
        assert positions["combat"] != pytest.approx(positions["economy"])

    def test_empty(self):
        """Test layout of an empty graph."""
        assert RadialLayout().layout([], []) == {}

    def test_apply_layout_writes_positions(self, game_tree):
        """Test positions are written back."""
        assert apply_layout(game_tree, RadialLayout(ring_spacing=50.0))
        x, y = game_tree.node("sword").position
        assert math.hypot(x, y) == pytest.approx(100.0)


class TestContentHash:

    def test_ignores_positions_colors_timestamps(self, game_tree):
        """Test the hash ignores presentation fields."""
        before = content_hash(game_tree)
        other = game_tree.copy()
        for node in other.nodes.values():
            node.position = (123.0, -4.0)
            node.color = "#000001"
            node.created_at += 1000
        assert content_hash(other) == before

    def test_edge_order_irrelevant(self, game_tree):
        """Test the hash ignores edge order."""
        other = game_tree.copy()
        other.edges.reverse()
        assert content_hash(other) == content_hash(game_tree)

    def test_label_change_changes_hash(self, game_tree):
        """Test a label change changes the hash."""
        other = game_tree.copy()
        other.node("sword").label = "longsword"
        assert content_hash(other) != content_hash(game_tree)

    def test_flat_and_nested_forms_agree(self, game_tree):
        """Test flat and nested formats hash the same."""
        assert content_hash(export_json(game_tree)) == content_hash(game_tree.to_dict())


class TestValidateImport:

    def test_accepts_nested(self, game_tree):
        """Test import of the nested format."""
        payload = validate_import(game_tree.to_dict())
        assert len(payload["nodes"]) == 4
        assert len(payload["edges"]) == 3

    def test_accepts_flat_export(self, game_tree):
        """Test import of the flat export format."""
        payload = validate_import(export_json(game_tree))
        restored = GraphState.from_dict(payload)
        assert restored.node("sword").parent_id == "combat"
        assert restored.node("combat").is_anchor

    @pytest.mark.parametrize("mutate", [
        lambda d: d.pop("nodes"),
        lambda d: d.pop("edges"),
        lambda d: d["nodes"][1]["data"].pop("label"),
        lambda d: d["nodes"][1].pop("id"),
        lambda d: d["edges"].append({"source": "combat", "target": "ghost"}),
        lambda d: d["nodes"].append(dict(d["nodes"][1])),
        lambda d: d.__setitem__("edges", d["edges"][:-1]),
        lambda d: d["nodes"][1]["data"].__setitem__("vector", "abc"),
        lambda d: d["nodes"][1]["data"].__setitem__("label", 42),
        lambda d: d.__setitem__("colorIndex", "x"),
        lambda d: d["nodes"][1].__setitem__("position", {"x": "bad", "y": 0.0}),
        lambda d: d["nodes"][1].__setitem__("position", [1, 2]),
        lambda d: d["nodes"][1].__setitem__("id", ["combat"]),
        lambda d: d["edges"][0].__setitem__("source", ["root"]),
        lambda d: d["edges"].__setitem__(0, "root->combat"),
    ])
    def test_rejects_invalid(self, game_tree, mutate):
        """Test malformed documents are rejected."""
        data = game_tree.to_dict()
        mutate(data)
        with pytest.raises(ImportValidationError):
            validate_import(data)

    def test_rejects_non_object(self):
        """Test a non-object document is rejected."""
        with pytest.raises(ImportValidationError):
            validate_import([1, 2, 3])


class TestCollectionStore:

    def test_first_collection_becomes_active(self):
        """Test the first collection becomes active."""
        store = CollectionStore()
        record = store.create("Ideas")
        assert store.active_id == record.id
        assert record.id.startswith("proj-")
        assert record.content_hash == content_hash(GraphState.initial())

    def test_default_names_and_colors(self):
        """Test default collection names and colors."""
        config = IdeaMapConfig()
        store = CollectionStore(config)
        first = store.create()
        second = store.create()
        assert first.name == "Brainstorm 1"
        assert second.name == "Brainstorm 2"
        assert second.color == config.palette[1]

    def test_max_collections(self):
        """Test the collection limit."""
        store = CollectionStore(IdeaMapConfig(max_collections=2))
        store.create()
        store.create()
        with pytest.raises(RejectedOperation):
            store.create()

    def test_cannot_delete_last(self):
        """Test the last collection cannot be deleted."""
        store = CollectionStore()
        record = store.create()
        with pytest.raises(RejectedOperation):
            store.delete(record.id)
        assert len(store) == 1

    def test_delete_active_switches(self):
        """Test deleting the active collection."""
        store = CollectionStore()
        first = store.create("A")
        second = store.create("B")
        store.delete(first.id)
        assert store.active_id == second.id

    def test_rename_and_recolor(self):
        """Test rename and recolor."""
        store = CollectionStore()
        record = store.create("A")
        store.rename(record.id, "Renamed")
        store.recolor(record.id, "#123456")
        assert store.get(record.id).name == "Renamed"
        assert store.get(record.id).color == "#123456"
        with pytest.raises(RejectedOperation):
            store.rename("proj-missing", "x")

    def test_switch_returns_graph(self, game_tree):
        """Test switch returns the stored graph."""
        store = CollectionStore()
        store.create("Empty")
        record = store.create("Game", state=game_tree)
        state = store.switch(record.id)
        assert store.active_id == record.id
        assert set(state.nodes) == set(game_tree.nodes)
        assert state.node("sword").vector is not None

    def test_switch_to_malformed_graph_keeps_active(self):
        """Test a graph that is not a tree cannot become active."""
        store = CollectionStore()
        good = store.create("Good")
        bad = store.create("Bad")
        bad.payload["edges"].append({"id": "e-root-root", "source": "root", "target": "root"})
        with pytest.raises(TreeInvariantError):
            store.switch(bad.id)
        assert store.active_id == good.id


class TestImportExport:

    def test_round_trip_between_stores(self, game_tree):
        """Test export from one store and import into another."""
        source = CollectionStore()
        record = source.create("Game", state=game_tree)
        document = source.export_collection(record.id)

        target = CollectionStore()
        target.create("Mine")
        result = target.import_json(json.dumps(document))
        assert result.success
        assert not result.is_duplicate
        imported = target.get(result.new_collection_id)
        assert imported.name == "Game"
        assert imported.content_hash == record.content_hash
        assert len(target) == 2

    def test_duplicate_detected(self, game_tree):
        """Test duplicate detection on import."""
        store = CollectionStore()
        record = store.create("Game", state=game_tree)
        moved = game_tree.copy()
        for node in moved.nodes.values():
            node.position = (9.0, 9.0)
        result = store.import_json(moved.to_dict())
        assert result.is_duplicate
        assert not result.success
        assert result.duplicate.id == record.id
        assert len(store) == 1

    def test_engine_export_is_duplicate_of_live_collection(self, game_table):
        """Test engine export matches the synced collection."""
        store = CollectionStore()
        store.create("Live")
        engine = IdeaMapEngine(embedder=StaticProvider(game_table), collections=store)
        engine.place_new_idea("combat")
        engine.place_new_idea("sword")
        result = store.import_json(engine.export_json())
        assert result.is_duplicate

    @pytest.mark.parametrize("document", [
        "{not json",
        json.dumps({"nodes": []}),
        json.dumps({"nodes": [{"id": "root"}], "edges": []}),
        json.dumps({"nodes": [{"id": "root", "data": {"label": "r", "vector": "abc"}}], "edges": []}),
        json.dumps({"nodes": [{"id": "root", "data": {"label": "r"}}], "edges": [], "colorIndex": "x"}),
        json.dumps({"nodes": [{"id": ["root"], "data": {"label": "r"}}], "edges": []}),
    ])
    def test_invalid_import_leaves_store_unchanged(self, document):
        """Test a failed import leaves the store unchanged."""
        store = CollectionStore()
        store.create("Only")
        with pytest.raises(ImportValidationError):
            store.import_json(document)
        assert len(store) == 1

    def test_exports_strip_vectors(self, game_tree):
        """Test exports carry no vectors."""
        store = CollectionStore()
        record = store.create("Game", state=game_tree)
        document = store.export_collection(record.id)
        assert document["version"] == "2.0"
        assert all("vector" not in n["data"] for n in document["nodes"])

        bundle = store.export_all()
        assert bundle["version"] == "2.0-bundle"
        assert bundle["projectCount"] == 1
        assert all("vector" not in n["data"] for n in bundle["projects"][0]["data"]["nodes"])
        # The stored record keeps its vectors
        assert store.switch(record.id).node("sword").vector is not None

    def test_export_unknown_collection(self):
        """Test export of an unknown collection."""
        assert CollectionStore().export_collection("proj-missing") is None


class TestPersistence:

    def test_save_load(self, tmp_path, game_tree):
        """Test save and load round trip."""
        path = tmp_path / "collections.json"
        store = CollectionStore()
        store.create("Empty")
        record = store.create("Game", state=game_tree)
        store.switch(record.id)
        store.save(str(path))

        loaded = CollectionStore.open(str(path))
        assert len(loaded) == 2
        assert loaded.active_id == record.id
        assert loaded.get(record.id).content_hash == record.content_hash
        state = loaded.switch(record.id)
        assert state.node("sword").vector.tolist() == pytest.approx([0.9, 0.4, 0.0])

    def test_open_missing_file_creates_default(self, tmp_path):
        """Test open on a missing file."""
        store = CollectionStore.open(str(tmp_path / "missing.json"))
        assert len(store) == 1
        assert store.active.name == "My First Brainstorm"
