"""Tests for fuzzy node search."""

from __future__ import annotations

from storystack.models.render import Position, RenderNode, StoryNodeData, SuggestionNodeData
from storystack.search import highlighted_ids, search_nodes


def _nodes() -> list[RenderNode]:
    labels = {
        "shore": "The Shore",
        "stairs": "Spiral Stairs",
        "cellar": "The Cellar",
        "lamp": "The Lamp Room",
        "tunnel": "Smugglers' Tunnel",
    }
    return [RenderNode(id=nid, data=StoryNodeData(label=label)) for nid, label in labels.items()]


def test_exact_word_ranks_first() -> None:
    results = search_nodes(_nodes(), "lamp")

    assert results[0].node_id == "lamp"
    assert results[0].label == "The Lamp Room"
    assert results[0].score == 0.0
    assert "shore" not in highlighted_ids(results)


def test_typo_still_matches() -> None:
    results = search_nodes(_nodes(), "lamb")

    assert [r.node_id for r in results] == ["lamp"]
    assert 0 < results[0].score < 0.4


def test_case_and_punctuation_are_ignored() -> None:
    results = search_nodes(_nodes(), "SMUGGLERS")

    assert [r.node_id for r in results] == ["tunnel"]


def test_id_match_counts() -> None:
    nodes = [RenderNode(id="chapter-9", data=StoryNodeData(label="Untitled"))]

    assert [r.node_id for r in search_nodes(nodes, "chapter-9")] == ["chapter-9"]


def test_short_query_returns_nothing() -> None:
    assert search_nodes(_nodes(), "") == []
    assert search_nodes(_nodes(), "   ") == []
    assert search_nodes(_nodes(), "la", min_query_length=3) == []


def test_results_sorted_best_first() -> None:
    results = search_nodes(_nodes(), "the")

    scores = [r.score for r in results]
    assert scores == sorted(scores)
    assert {"shore", "cellar", "lamp"} <= highlighted_ids(results)


def test_suggestions_are_not_searched() -> None:
    nodes = [
        RenderNode(
            id="s1",
            data=SuggestionNodeData(source_card_id="a", title="The Lamp Room"),
            position=Position(0, 0),
        )
    ]

    assert search_nodes(nodes, "lamp") == []
