"""KnowledgeStore — append-only, unique by product_id."""

from __future__ import annotations

import json

from scout.pipeline import KnowledgeStore


def test_starts_empty():
    store = KnowledgeStore()
    assert len(store) == 0
    assert store.records == ()
    assert store.revision == 0


def test_merge_skips_known_ids(make_record):
    store = KnowledgeStore([make_record("P1")])
    added = store.merge([make_record("P1"), make_record("P2")])
    assert [r.product_id for r in added] == ["p2"]
    assert [r.product_id for r in store.records] == ["p1", "p2"]


def test_merge_same_record_twice_keeps_one(make_record):
    store = KnowledgeStore()
    store.merge([make_record("X", product_id="x")])
    store.merge([make_record("X again", product_id="x")])
    assert len(store) == 1
    assert store.get("x").product_name == "X"


def test_merge_dedups_within_one_call(make_record):
    store = KnowledgeStore()
    added = store.merge([make_record("A", product_id="x"), make_record("B", product_id="x")])
    assert len(added) == 1
    assert len(store) == 1


def test_snapshots_are_not_mutated_by_merge(make_record):
    store = KnowledgeStore([make_record("P1")])
    before = store.records
    store.merge([make_record("P2")])
    assert len(before) == 1
    assert len(store.records) == 2


def test_revision_only_moves_when_something_is_added(make_record):
    store = KnowledgeStore()
    store.merge([make_record("P1")])
    assert store.revision == 1
    store.merge([make_record("P1")])
    assert store.revision == 1


def test_lookup_helpers(make_record):
    store = KnowledgeStore([make_record("Sony WH-1000XM5")])
    assert "sony-wh-1000xm5" in store
    assert "other" not in store
    assert store.product_names() == {"Sony WH-1000XM5"}
    assert store.ids() == {"sony-wh-1000xm5"}
    assert store.get("other") is None


def test_to_json(make_record):
    store = KnowledgeStore([make_record("P1"), make_record("P2")])
    assert [r["product_id"] for r in json.loads(store.to_json())] == ["p1", "p2"]
    assert [r["product_id"] for r in json.loads(store.to_json([make_record("P3")]))] == ["p3"]
