#!/usr/bin/env python3
"""Brainstorm session example for ideamap.

This example demonstrates:
1. Placing ideas and watching them cluster under anchors
2. Forcing an idea under a chosen parent
3. Undo / redo
4. Saving the graph as a collection and exporting it

Runs offline: the keyword fallback embedder stands in for a real model.
Pass --local to use sentence-transformers instead.
"""

import argparse
import json
import logging

from ideamap import (
    CollectionStore,
    IdeaMapEngine,
    create_embedder,
)

IDEAS = [
    "idle game",
    "clicker upgrades",
    "mining ore",
    "iron and copper resources",
    "market prices",
    "auction house trade",
    "boss combat",
    "sword and armor crafting",
]


def demo_placement(engine: IdeaMapEngine):
    """Place a batch of ideas and show where each landed."""
    print("\n" + "=" * 60)
    print("1. Placing Ideas")
    print("=" * 60)

    for text in IDEAS:
        outcome = engine.place_new_idea(text)
        parent = engine.state.node(outcome.decision.parent_id)
        print(f"  {text:<28} -> {outcome.node.node_type.value:<9} under {parent.label!r}"
              f" (sim={outcome.decision.similarity:.3f})")

    print(f"\nGraph now holds {len(engine)} nodes")


def demo_forced(engine: IdeaMapEngine):
    """Attach an idea under an explicit parent, skipping the threshold."""
    print("\n" + "=" * 60)
    print("2. Forced Placement")
    print("=" * 60)

    anchor = next(n for n in engine.state.nodes.values() if n.is_anchor and n.id != "root")
    outcome = engine.place_new_idea("daily login rewards", parent_id=anchor.id)
    print(f"  'daily login rewards' forced under {anchor.label!r} (color {outcome.node.color})")


def demo_history(engine: IdeaMapEngine):
    """Undo and redo the last mutation."""
    print("\n" + "=" * 60)
    print("3. Undo / Redo")
    print("=" * 60)

    before = len(engine)
    engine.undo()
    print(f"  undo: {before} -> {len(engine)} nodes")
    engine.redo()
    print(f"  redo: back to {len(engine)} nodes")


def demo_export(engine: IdeaMapEngine, store: CollectionStore):
    """Markdown outline plus a collection export document."""
    print("\n" + "=" * 60)
    print("4. Export")
    print("=" * 60)

    print(engine.export_markdown())

    document = store.export_collection(store.active_id)
    print(f"\nCollection {document['projectName']!r}: "
          f"{document['metadata']['nodeCount']} nodes, "
          f"{len(json.dumps(document))} bytes of JSON")


def main():
    parser = argparse.ArgumentParser(description="ideamap brainstorm demo")
    parser.add_argument("--local", action="store_true",
                        help="Use a local sentence-transformers model")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    print("ideamap - Brainstorm Session Example")
    print("=" * 50)

    store = CollectionStore()
    store.create("Game Design")
    engine = IdeaMapEngine(
        embedder=create_embedder("local" if args.local else "fallback"),
        collections=store,
    )

    demo_placement(engine)
    demo_forced(engine)
    demo_history(engine)
    demo_export(engine, store)

    print("\nDone!")


if __name__ == "__main__":
    main()
