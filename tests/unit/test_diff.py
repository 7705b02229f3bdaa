"""Tests for incremental node/edge diffing."""

from __future__ import annotations

from dataclasses import replace

import pytest

from storystack.graph.diff import (
    diff_edges,
    diff_nodes,
    edge_hash,
    node_hash,
    reconcile_edges,
    reconcile_nodes,
)
from storystack.models.render import (
    Position,
    RenderEdge,
    RenderNode,
    StoryNodeData,
    SuggestionNodeData,
)


def _node(node_id: str, x: float = 0.0, y: float = 0.0, **data: object) -> RenderNode:
    return RenderNode(
        id=node_id,
        data=StoryNodeData(label=node_id.upper(), **data),  # type: ignore[arg-type]
        position=Position(x, y),
    )


def _edge(source: str, target: str, **fields: object) -> RenderEdge:
    return RenderEdge(id=f"{source}-{target}", source=source, target=target, **fields)  # type: ignore[arg-type]


class TestDiffNodes:
    def test_identical_sets_are_unchanged(self) -> None:
        nodes = [_node("a"), _node("b", 100, 0)]

        diff = diff_nodes(nodes, nodes)

        assert diff.to_add == []
        assert diff.to_update == []
        assert diff.to_remove == []
        assert [n.id for n in diff.unchanged] == ["a", "b"]
        assert diff.is_empty

    def test_position_is_preserved_for_unchanged_node(self) -> None:
        """A dragged node stays where the user put it after re-layout."""
        current = [_node("n", 10, 10)]
        new = [_node("n", 500, 500)]

        diff = diff_nodes(current, new)

        assert diff.unchanged[0].position == Position(10, 10)
        assert diff.is_empty

    def test_semantic_change_keeps_position_within_threshold(self) -> None:
        current = [_node("n", 10, 10)]
        new = [_node("n", 10.5, 10, is_selected=True)]

        diff = diff_nodes(current, new)

        assert len(diff.to_update) == 1
        assert diff.to_update[0].position == Position(10, 10)
        assert diff.to_update[0].data.is_selected  # type: ignore[union-attr]

    def test_semantic_change_with_real_move_takes_new_position(self) -> None:
        current = [_node("n", 10, 10)]
        new = [_node("n", 300, 10, is_selected=True)]

        diff = diff_nodes(current, new)

        assert diff.to_update[0].position == Position(300, 10)

    def test_custom_threshold(self) -> None:
        current = [_node("n", 10, 10)]
        new = [_node("n", 15, 10, depth=3)]

        assert diff_nodes(current, new).to_update[0].position == Position(15, 10)
        kept = diff_nodes(current, new, position_threshold=10)
        assert kept.to_update[0].position == Position(10, 10)

    def test_add_and_remove(self) -> None:
        diff = diff_nodes([_node("a"), _node("b")], [_node("b"), _node("c")])

        assert [n.id for n in diff.to_add] == ["c"]
        assert diff.to_remove == ["a"]
        assert [n.id for n in diff.unchanged] == ["b"]

    def test_kind_change_is_an_update(self) -> None:
        current = [_node("n")]
        new = [RenderNode(id="n", data=SuggestionNodeData(source_card_id="a", title="N"))]

        assert [n.id for n in diff_nodes(current, new).to_update] == ["n"]

    def test_idempotent(self) -> None:
        current = [_node("a"), _node("b")]
        new = [_node("a", is_selected=True), _node("c")]

        assert diff_nodes(current, new) == diff_nodes(current, new)


class TestHashes:
    def test_node_hash_ignores_position(self) -> None:
        assert node_hash(_node("a", 0, 0)) == node_hash(_node("a", 99, 99))

    def test_node_hash_covers_flags(self) -> None:
        assert node_hash(_node("a")) != node_hash(_node("a", is_on_path=True))
        assert node_hash(_node("a")) != node_hash(_node("a", hidden_descendant_count=2))

    def test_suggestion_hover_changes_hash(self) -> None:
        data = SuggestionNodeData(source_card_id="a", title="Idea")
        plain = RenderNode(id="s", data=data)
        hovered = RenderNode(id="s", data=replace(data, is_hovered=True))

        assert node_hash(plain) != node_hash(hovered)

    def test_unknown_payload_raises(self) -> None:
        node = RenderNode(id="z", data="not a payload")  # type: ignore[arg-type]

        with pytest.raises(TypeError, match="Unknown node payload"):
            node_hash(node)

    def test_edge_hash_covers_style(self) -> None:
        assert edge_hash(_edge("a", "b")) != edge_hash(_edge("a", "b", is_on_path=True))
        assert edge_hash(_edge("a", "b")) != edge_hash(_edge("a", "b", label="Go"))


class TestDiffEdges:
    def test_unchanged_edges_are_current_objects(self) -> None:
        current = [_edge("a", "b")]
        new = [_edge("a", "b")]

        diff = diff_edges(current, new)

        assert diff.unchanged[0] is current[0]
        assert diff.is_empty

    def test_update_add_remove(self) -> None:
        current = [_edge("a", "b"), _edge("b", "c")]
        new = [_edge("a", "b", branch_count=2), _edge("a", "d")]

        diff = diff_edges(current, new)

        assert [e.id for e in diff.to_update] == ["a-b"]
        assert [e.id for e in diff.to_add] == ["a-d"]
        assert diff.to_remove == ["b-c"]


class TestReconcile:
    def test_returns_same_list_when_nothing_changed(self) -> None:
        current = [_node("a", 10, 10)]

        assert reconcile_nodes(current, [_node("a", 400, 400)]) is current

    def test_merges_in_current_order(self) -> None:
        current = [_node("a"), _node("b"), _node("c")]
        new = [_node("c"), _node("b", is_selected=True), _node("d")]

        merged = reconcile_nodes(current, new)

        assert [n.id for n in merged] == ["b", "c", "d"]
        assert merged[0].data.is_selected  # type: ignore[union-attr]

    def test_reconcile_edges(self) -> None:
        current = [_edge("a", "b")]

        assert reconcile_edges(current, [_edge("a", "b")]) is current
        merged = reconcile_edges(current, [_edge("a", "b"), _edge("b", "c")])
        assert [e.id for e in merged] == ["a-b", "b-c"]
