"""Tests for the render projection and DOT/Mermaid export."""

from __future__ import annotations

import pytest

from storystack.models.render import Position, StoryNodeData, SuggestionNodeData
from storystack.models.story import SuggestedCard
from storystack.render import (
    LAYOUT_MARGIN,
    RANK_SEPARATION,
    RenderGraph,
    build_render_graph,
    hidden_nodes,
    layered_layout,
    node_dimensions,
    render_dot,
    render_mermaid,
)
from tests.fixtures.stories import (
    make_branching_story,
    make_cards,
    make_choices,
    make_linear_story,
)


def _story_data(graph: RenderGraph, node_id: str) -> StoryNodeData:
    node = graph.get_node(node_id)
    assert node is not None
    assert isinstance(node.data, StoryNodeData)
    return node.data


class TestNodeDimensions:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Intro", (120, 100)),
            ("", (120, 100)),
            ("x" * 20, (120, 100)),
            ("x" * 30, (140, 100)),
            ("x" * 40, (140, 116)),
            ("x" * 70, (210, 116)),
            ("x" * 100, (220, 116)),
        ],
    )
    def test_sizes(self, title: str, expected: tuple[int, int]) -> None:
        assert node_dimensions(title) == expected

    def test_surrounding_whitespace_is_ignored(self) -> None:
        assert node_dimensions("   Intro   ") == node_dimensions("Intro")


class TestLayout:
    def test_columns_by_depth(self) -> None:
        sizes = {nid: (120, 100) for nid in "abcx"}
        positions = layered_layout(["a", "b", "c", "x"], {"a": 0, "b": 1, "c": 2}, sizes)

        assert positions["a"] == Position(LAYOUT_MARGIN, LAYOUT_MARGIN)
        assert positions["b"].x == LAYOUT_MARGIN + 120 + RANK_SEPARATION
        assert positions["x"].x > positions["c"].x

    def test_nodes_stack_within_a_column(self) -> None:
        sizes = {"a": (120, 100), "b": (120, 100), "c": (120, 100)}
        positions = layered_layout(["a", "b", "c"], {"a": 0, "b": 1, "c": 1}, sizes)

        assert positions["b"].x == positions["c"].x
        assert positions["c"].y == positions["b"].y + 100 + 60

    def test_deterministic(self) -> None:
        sizes = {nid: (120, 100) for nid in "abc"}
        depth = {"a": 0, "b": 1, "c": 1}

        assert layered_layout("abc", depth, sizes) == layered_layout("abc", depth, sizes)


class TestCollapse:
    def test_hidden_descendants(self) -> None:
        children = {"a": ["b", "c"], "b": ["d"], "c": ["d"], "d": ["a"]}

        hidden, counts = hidden_nodes(["b"], children)

        assert hidden == {"d", "a", "c"}
        assert counts == {"b": 3}

    def test_collapsed_card_hides_its_subtree(self) -> None:
        cards, choices, root = make_branching_story()

        graph = build_render_graph(cards, choices, root, collapsed=["b"])

        assert graph.hidden_nodes == {"d", "e"}
        assert {n.id for n in graph.nodes} == {"a", "b", "c", "x"}
        assert {e.id for e in graph.edges} == {"a-b", "a-c"}
        data = _story_data(graph, "b")
        assert data.is_collapsed
        assert data.hidden_descendant_count == 2


class TestBuildRenderGraph:
    def test_status_flags(self) -> None:
        cards, choices, root = make_branching_story()

        graph = build_render_graph(cards, choices, root, current_id="d")

        start = _story_data(graph, "a")
        assert start.is_first
        assert start.depth == 0
        assert start.choice_count == 2
        orphan = _story_data(graph, "x")
        assert orphan.is_orphaned
        assert orphan.is_dead_end
        assert orphan.depth == -1
        current = _story_data(graph, "d")
        assert current.is_selected
        assert current.is_on_path
        assert not _story_data(graph, "c").is_on_path

    def test_edges(self) -> None:
        cards, choices, root = make_branching_story()

        graph = build_render_graph(cards, choices, root, current_id="d")
        edges = {e.id: e for e in graph.edges}

        assert edges["a-b"].is_on_path
        assert edges["a-b"].stroke_width == 3.5
        assert edges["a-b"].label == "Go to b"
        assert edges["a-c"].branch_index == 1
        assert edges["a-c"].branch_count == 2
        assert edges["a-c"].stroke_width == 2.5
        assert edges["a-c"].z_index == 0
        assert edges["b-d"].label is None
        assert edges["b-d"].stroke_width == 3.0
        assert edges["d-e"].is_emphasized
        assert edges["d-e"].z_index == 100
        assert not edges["d-e"].is_on_path

    def test_given_positions_win_over_layout(self) -> None:
        cards, choices, root = make_linear_story()

        graph = build_render_graph(
            cards, choices, root, positions={"a": Position(5, 5), "ghost": Position(1, 1)}
        )

        assert graph.get_node("a").position == Position(5, 5)  # type: ignore[union-attr]
        assert graph.get_node("ghost") is None

    def test_untitled_label(self) -> None:
        cards, choices, root = make_linear_story()
        cards[1] = cards[1].model_copy(update={"title": ""})

        graph = build_render_graph(cards, choices, root)

        assert _story_data(graph, "b").label == "Untitled"
        assert not _story_data(graph, "b").has_title

    def test_suggestions(self) -> None:
        cards, choices, root = make_linear_story()
        suggestions = [
            SuggestedCard(
                id="s1", source_card_id="a", title="Idea", choice_label="Explore", confidence=0.9
            ),
            SuggestedCard(id="s2", source_card_id="ghost", title="Lost", confidence=0.2),
        ]

        graph = build_render_graph(
            cards, choices, root, suggestions=suggestions, hovered_suggestion_id="s1"
        )
        s1 = graph.get_node("s1")
        s2 = graph.get_node("s2")
        edges = {e.id: e for e in graph.edges}

        assert s1 is not None
        assert isinstance(s1.data, SuggestionNodeData)
        assert s1.data.is_hovered
        assert s1.position == Position(LAYOUT_MARGIN + 300, LAYOUT_MARGIN - 150)
        assert s2 is not None
        assert s2.position == Position(700, 200)
        edge = edges["suggestion-edge-s1"]
        assert edge.kind == "suggestion"
        assert edge.is_animated
        assert edge.is_dashed
        assert edge.label == "Explore"
        assert edge.confidence_level == "high"
        assert "suggestion-edge-s2" not in edges


class TestExport:
    def test_dot(self) -> None:
        cards, choices, root = make_branching_story()
        graph = build_render_graph(cards, choices, root)

        dot = render_dot(graph)

        assert dot.startswith("digraph story {")
        assert '"a" -> "b" [label="Go to b"];' in dot
        assert '"b" -> "d";' in dot
        assert "doubleoctagon" in dot

    def test_dot_without_labels(self) -> None:
        cards, choices, root = make_branching_story()

        dot = render_dot(build_render_graph(cards, choices, root), no_labels=True)

        assert "Go to b" not in dot

    def test_dot_shows_collapsed_count(self) -> None:
        cards, choices, root = make_branching_story()

        dot = render_dot(build_render_graph(cards, choices, root, collapsed=["b"]))

        assert 'label="B (+2)"' in dot

    def test_mermaid(self) -> None:
        cards, choices, root = make_branching_story()
        suggestions = [SuggestedCard(id="s-1", source_card_id="e", title="Next", choice_label="On")]
        graph = build_render_graph(cards, choices, root, suggestions=suggestions)

        text = render_mermaid(graph)

        assert text.startswith("graph LR")
        assert '  a["A"]:::start' in text
        assert '  a -->|"Go to b"| b' in text
        assert '  s_2d_1(["Next"]):::suggestion' in text
        assert '  e -.->|"On"| s_2d_1' in text

    def test_mermaid_ids_stay_distinct(self) -> None:
        cards = make_cards("a-b", "a_b", "a b")
        choices = make_choices(("a-b", "a_b"), ("a_b", "a b"))
        graph = build_render_graph(cards, choices, "a-b")

        text = render_mermaid(graph, no_labels=True)

        assert '  a_2d_b["A-B"]:::start' in text
        assert "  a_2d_b --> a_5f_b" in text
        assert "  a_5f_b --> a_20_b" in text
