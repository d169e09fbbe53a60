"""Tests for undo/redo history and direct document edits."""

from __future__ import annotations

import pytest

from canvas_engine.core.batch import execute_batch
from canvas_engine.core.document import Document
from canvas_engine.core.history import History
from canvas_engine.core.store import FlatStore, integrity_errors
from canvas_engine.models import BatchSuccess


def _store(*ids: str) -> FlatStore:
    return FlatStore.from_tree([{"id": node_id, "type": "rect"} for node_id in ids])


class TestHistory:
    def test_undo_and_redo(self) -> None:
        history = History()
        history.push(_store("a"))
        previous = history.undo(_store("a", "b"))
        assert previous is not None
        assert previous.root_ids == ["a"]
        following = history.redo(previous)
        assert following is not None
        assert following.root_ids == ["a", "b"]

    def test_empty_stacks(self) -> None:
        history = History()
        assert history.undo(_store()) is None
        assert history.redo(_store()) is None
        assert not history.can_undo
        assert not history.can_redo

    def test_push_clears_redo(self) -> None:
        history = History()
        history.push(_store("a"))
        history.undo(_store("a", "b"))
        assert history.can_redo
        history.push(_store("c"))
        assert not history.can_redo

    def test_limit_drops_oldest(self) -> None:
        history = History(limit=2)
        for node_id in ("a", "b", "c"):
            history.push(_store(node_id))
        assert history.depth == 2
        first = history.undo(_store())
        second = history.undo(_store())
        assert first is not None and second is not None
        assert (first.root_ids, second.root_ids) == (["c"], ["b"])
        assert history.undo(_store()) is None

    def test_snapshots_are_isolated(self) -> None:
        history = History()
        live = _store("a")
        history.push(live)
        live.root_ids.append("later")
        snapshot = history.undo(live)
        assert snapshot is not None
        assert snapshot.root_ids == ["a"]

    def test_invalid_limit(self) -> None:
        with pytest.raises(ValueError):
            History(limit=0)


class TestDocumentHistory:
    def test_undo_redo_round_trip(self, document: Document) -> None:
        result = execute_batch(document, 'D("box")')
        assert isinstance(result, BatchSuccess)
        assert "box" not in document.store
        assert document.undo()
        assert "box" in document.store
        assert document.redo()
        assert "box" not in document.store
        assert not document.redo()

    def test_tree_cache_is_invalidated(self, document: Document) -> None:
        before = document.tree()
        execute_batch(document, 'D("dark")')
        assert [node.id for node in document.tree()] == ["page"]
        document.undo()
        assert [node.id for node in document.tree()] == [node.id for node in before]

    def test_restore_is_a_new_baseline(self, document: Document) -> None:
        execute_batch(document, 'D("box")')
        document.restore(_store("x"))
        assert document.store.root_ids == ["x"]
        assert not document.history.can_undo


class TestDirectEdits:
    def test_detach_instance(self, document: Document) -> None:
        record = document.store.nodes_by_id["card1"]
        document.store.nodes_by_id["card1"] = {**record, "descendants": {"title": {"text": "Mine"}}}
        assert document.detach_instance("card1")

        frame = document.store.nodes_by_id["card1"]
        assert frame["type"] == "frame"
        assert not frame.get("reusable")
        assert document.store.children_by_id["page"] == ["card", "card1", "box"]
        children = [document.store.nodes_by_id[cid] for cid in document.store.children_by_id["card1"]]
        assert [child["type"] for child in children] == ["text", "frame", "group"]
        assert children[0]["text"] == "Mine"
        assert children[0]["id"] != "title"
        assert integrity_errors(document.store) == []
        assert document.history.depth == 1

    def test_detach_non_instance(self, document: Document) -> None:
        assert not document.detach_instance("box")
        assert not document.history.can_undo

    def test_reset_descendant_override(self, document: Document) -> None:
        execute_batch(document, 'U("card1/title", {"content": "Hi", "fill": "#f00"})')
        assert document.reset_descendant_override("card1/title", "fill")
        assert document.store.nodes_by_id["card1"]["descendants"] == {"title": {"text": "Hi"}}
        assert document.reset_descendant_override("card1/title")
        assert "descendants" not in document.store.nodes_by_id["card1"]
        assert not document.reset_descendant_override("card1/title")

    def test_reset_slot_content(self, document: Document) -> None:
        execute_batch(document, 'I("card1/body", {"type": "rect"})')
        assert document.reset_slot_content("card1", "body")
        assert "slotContent" not in document.store.nodes_by_id["card1"]
        assert not document.reset_slot_content("card1", "body")
        assert document.history.depth == 2

    def test_reset_absent_override_property_is_a_no_op(self, document: Document) -> None:
        execute_batch(document, 'U("card1/title", {"fill": "#f00"})')
        assert not document.reset_descendant_override("card1/title", "stroke")
        assert not document.reset_descendant_override("card1/footer")
        assert document.history.depth == 1
