"""Root-to-card ancestry paths.

The path is found by walking backwards from the selected card toward the
start card over a parent index, so only the part of the graph that can
actually lead to the selected card is explored.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.story import Choice

log = get_logger(__name__)


class ParentLink(NamedTuple):
    """One incoming edge: the parent card and the choice that leads here."""

    parent_id: str
    choice_id: str


@dataclass
class AncestryPath:
    """Shortest path from the start card to a selected card.

    Attributes:
        ordered_path: Card ids from the start card to the selected card.
            Just the selected card when no path exists.
        ordered_edges: Choice ids along ``ordered_path``, one fewer than
            the number of cards.
        path_node_ids: The cards of ``ordered_path`` as a set.
        path_edge_ids: The choices of ``ordered_edges`` as a set.
        is_connected: True when the path starts at the start card.
    """

    ordered_path: list[str] = field(default_factory=list)
    ordered_edges: list[str] = field(default_factory=list)
    path_node_ids: set[str] = field(default_factory=set)
    path_edge_ids: set[str] = field(default_factory=set)
    is_connected: bool = False


def build_parent_index(choices: Iterable[Choice]) -> dict[str, list[ParentLink]]:
    """Map each target card to the cards and choices that lead to it."""
    index: dict[str, list[ParentLink]] = {}
    for choice in choices:
        if choice.target_card_id is None:
            continue
        index.setdefault(choice.target_card_id, []).append(
            ParentLink(choice.source_card_id, choice.id)
        )
    return index


def ancestry_path(
    current_id: str | None,
    root_id: str | None,
    choices: Iterable[Choice],
) -> AncestryPath:
    """Find the shortest start-to-card path for breadcrumb highlighting.

    Runs a BFS backwards from ``current_id`` over the parent index and
    stops the first time ``root_id`` is dequeued. A single visited set
    spans the whole search, so cycles terminate.

    Args:
        current_id: Selected card, or None when nothing is selected.
        root_id: Start card, or None when the story has none.
        choices: Story choices.

    Returns:
        AncestryPath. Empty when nothing is selected; only the selected
        card when it is disconnected from the start card or there is no
        start card. Never raises.
    """
    if current_id is None:
        return AncestryPath()

    if current_id == root_id:
        return AncestryPath(
            ordered_path=[current_id],
            path_node_ids={current_id},
            is_connected=True,
        )

    disconnected = AncestryPath(ordered_path=[current_id], path_node_ids={current_id})
    if root_id is None:
        return disconnected

    parents = build_parent_index(choices)

    # came_from[node] = (child it was reached from, choice leading node -> child)
    came_from: dict[str, tuple[str, str]] = {}
    visited = {current_id}
    queue = deque([current_id])

    while queue:
        node = queue.popleft()
        if node == root_id:
            return _unwind(root_id, current_id, came_from)
        for link in parents.get(node, []):
            if link.parent_id not in visited:
                visited.add(link.parent_id)
                came_from[link.parent_id] = (node, link.choice_id)
                queue.append(link.parent_id)

    log.debug("ancestry_disconnected", card_id=current_id, root_id=root_id, explored=len(visited))
    return disconnected


def _unwind(root_id: str, current_id: str, came_from: dict[str, tuple[str, str]]) -> AncestryPath:
    # Walking came_from from the root already yields root -> current order
    path = [root_id]
    edges: list[str] = []
    node = root_id
    while node != current_id:
        node, choice_id = came_from[node]
        path.append(node)
        edges.append(choice_id)
    return AncestryPath(
        ordered_path=path,
        ordered_edges=edges,
        path_node_ids=set(path),
        path_edge_ids=set(edges),
        is_connected=True,
    )
