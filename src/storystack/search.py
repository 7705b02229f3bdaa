"""Fuzzy search over story nodes.

Matches a query against each card's label and id with rapidfuzz, so a
typo such as "lamb" still finds "The Lamp Room". Labels weigh four
times as much as ids when ranking.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rapidfuzz import fuzz, utils

from storystack.models.render import StoryNodeData
from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.render import RenderNode

log = get_logger(__name__)

DEFAULT_SEARCH_THRESHOLD = 0.4
DEFAULT_MIN_QUERY_LENGTH = 1
LABEL_WEIGHT = 2.0
ID_WEIGHT = 0.5


@dataclass(frozen=True)
class SearchResult:
    """A node matching a search query.

    Attributes:
        node_id: Matching node.
        label: The node's label, for display.
        score: 0.0 for a perfect match up to 1.0 for no match; lower ranks first.
    """

    node_id: str
    label: str
    score: float


def _similarity(query: str, text: str) -> float:
    return fuzz.partial_ratio(query, text, processor=utils.default_process) / 100


def search_nodes(
    nodes: Sequence[RenderNode],
    query: str,
    *,
    threshold: float = DEFAULT_SEARCH_THRESHOLD,
    min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
) -> list[SearchResult]:
    """Find story nodes whose label or id resembles ``query``.

    Args:
        nodes: Render nodes to search. Suggestion nodes are skipped.
        query: Text typed by the user.
        threshold: Largest mismatch accepted, from 0.0 (exact) to 1.0
            (anything).
        min_query_length: Shorter queries return no results.

    Returns:
        Matches ordered best first; ties keep node order.
    """
    query = query.strip()
    if len(query) < min_query_length:
        return []

    results: list[SearchResult] = []
    for node in nodes:
        if not isinstance(node.data, StoryNodeData):
            continue
        label_sim = _similarity(query, node.data.label)
        id_sim = _similarity(query, node.id)
        if max(label_sim, id_sim) < 1 - threshold:
            continue
        relevance = (LABEL_WEIGHT * label_sim + ID_WEIGHT * id_sim) / (LABEL_WEIGHT + ID_WEIGHT)
        results.append(SearchResult(node.id, node.data.label, round(1 - relevance, 4)))

    results.sort(key=lambda r: r.score)
    log.debug("nodes_searched", query=query, matches=len(results))
    return results


def highlighted_ids(results: Iterable[SearchResult]) -> set[str]:
    """Node ids to highlight for a set of search results."""
    return {result.node_id for result in results}
