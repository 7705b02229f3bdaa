"""Structural snapshots for deciding how much of a layout to recompute.

A snapshot records only what affects layout: which cards exist, their
titles (which size the node) and whether they have an image, plus the
choice wiring. Comparing two snapshots tells the caller which subtrees
moved and whether a full re-layout is cheaper than an incremental one.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.story import Card, Choice

log = get_logger(__name__)

# Full layout thresholds
AFFECTED_RATIO_LIMIT = 0.4
DISJOINT_SUBTREE_LIMIT = 3
DISJOINT_AFFECTED_RATIO_LIMIT = 0.25
ROOT_CHANGE_RATIO_LIMIT = 0.3


@dataclass(frozen=True)
class GraphSnapshot:
    """Layout-relevant state of a story at one point in time."""

    card_hashes: Mapping[str, str]
    choice_hashes: Mapping[str, str]
    edge_signatures: Mapping[str, str]
    children_map: Mapping[str, list[str]]
    root_id: str | None = None

    @property
    def card_ids(self) -> set[str]:
        return set(self.card_hashes)

    @property
    def choice_ids(self) -> set[str]:
        return set(self.choice_hashes)


@dataclass
class GraphDiff:
    """Differences between two snapshots."""

    added_nodes: set[str] = field(default_factory=set)
    removed_nodes: set[str] = field(default_factory=set)
    modified_nodes: set[str] = field(default_factory=set)
    added_edges: set[str] = field(default_factory=set)
    removed_edges: set[str] = field(default_factory=set)
    modified_edges: set[str] = field(default_factory=set)
    affected_subtree_roots: set[str] = field(default_factory=set)
    requires_full_layout: bool = False


def _card_hash(card: Card) -> str:
    # Content doesn't affect layout, only title length and the image slot
    return f"{card.id}|{card.title}|{'1' if card.has_image else '0'}"


def _choice_hash(choice: Choice) -> str:
    return f"{choice.id}|{choice.source_card_id}|{choice.target_card_id or ''}|{choice.order_index}"


def create_snapshot(
    cards: Sequence[Card],
    choices: Iterable[Choice],
    root_id: str | None,
) -> GraphSnapshot:
    """Capture the layout-relevant state of a story."""
    card_hashes = {card.id: _card_hash(card) for card in cards}
    choice_hashes: dict[str, str] = {}
    targets_by_source: dict[str, list[str]] = {}
    children_map: dict[str, list[str]] = {}

    for choice in choices:
        choice_hashes[choice.id] = _choice_hash(choice)
        target = choice.target_card_id
        if target is None:
            continue
        targets_by_source.setdefault(choice.source_card_id, []).append(target)
        children = children_map.setdefault(choice.source_card_id, [])
        if target not in children:
            children.append(target)

    edge_signatures = {
        source: ",".join(sorted(targets)) for source, targets in targets_by_source.items()
    }
    return GraphSnapshot(
        card_hashes=card_hashes,
        choice_hashes=choice_hashes,
        edge_signatures=edge_signatures,
        children_map=children_map,
        root_id=root_id,
    )


def compute_graph_diff(previous: GraphSnapshot | None, current: GraphSnapshot) -> GraphDiff:
    """Compare two snapshots and decide whether a full layout is needed.

    A full layout is required when there is no previous snapshot, when the
    start card changed, when more than 40% of the cards were affected,
    when more than three separate subtrees changed and over 25% of cards
    were affected, or when the start card's own subtree changed while more
    than 30% of cards were added or removed.

    Args:
        previous: Snapshot the current layout was computed from, if any.
        current: Snapshot of the story now.

    Returns:
        GraphDiff describing the change.
    """
    if previous is None:
        return GraphDiff(
            added_nodes=current.card_ids,
            added_edges=current.choice_ids,
            requires_full_layout=True,
        )

    prev_cards, curr_cards = previous.card_ids, current.card_ids
    prev_choices, curr_choices = previous.choice_ids, current.choice_ids

    diff = GraphDiff(
        added_nodes=curr_cards - prev_cards,
        removed_nodes=prev_cards - curr_cards,
        modified_nodes={
            cid
            for cid in curr_cards & prev_cards
            if previous.card_hashes[cid] != current.card_hashes[cid]
        },
        added_edges=curr_choices - prev_choices,
        removed_edges=prev_choices - curr_choices,
        modified_edges={
            cid
            for cid in curr_choices & prev_choices
            if previous.choice_hashes[cid] != current.choice_hashes[cid]
        },
    )

    affected = diff.affected_subtree_roots
    for source, signature in current.edge_signatures.items():
        if previous.edge_signatures.get(source) != signature:
            affected.add(source)
    for source in previous.edge_signatures:
        # Lost every outgoing edge but the card itself is still there
        if source not in current.edge_signatures and source in curr_cards:
            affected.add(source)
    for parent, children in current.children_map.items():
        if any(child in diff.added_nodes for child in children):
            affected.add(parent)

    total_nodes = len(curr_cards)
    changed_nodes = len(diff.added_nodes) + len(diff.removed_nodes)
    affected_ratio = (changed_nodes + len(affected)) / total_nodes if total_nodes else 0.0
    root_affected = current.root_id is not None and current.root_id in affected

    diff.requires_full_layout = (
        previous.root_id != current.root_id
        or (total_nodes > 0 and affected_ratio > AFFECTED_RATIO_LIMIT)
        or (len(affected) > DISJOINT_SUBTREE_LIMIT and affected_ratio > DISJOINT_AFFECTED_RATIO_LIMIT)
        or (root_affected and changed_nodes > total_nodes * ROOT_CHANGE_RATIO_LIMIT)
    )

    log.debug(
        "graph_diff_computed",
        added=len(diff.added_nodes),
        removed=len(diff.removed_nodes),
        modified=len(diff.modified_nodes),
        affected_roots=len(affected),
        full_layout=diff.requires_full_layout,
    )
    return diff


def subtree_nodes(root_id: str, children_map: Mapping[str, list[str]]) -> set[str]:
    """All cards reachable from ``root_id``, itself included."""
    seen = {root_id}
    stack = [root_id]
    while stack:
        node = stack.pop()
        for child in children_map.get(node, []):
            if child not in seen:
                seen.add(child)
                stack.append(child)
    return seen


def nodes_needing_layout(diff: GraphDiff, children_map: Mapping[str, list[str]]) -> set[str]:
    """Cards whose position must be recomputed.

    An empty set means "lay out everything": it is returned whenever the
    diff requires a full layout.
    """
    if diff.requires_full_layout:
        return set()

    needing = set(diff.added_nodes)
    for root_id in diff.affected_subtree_roots:
        needing |= subtree_nodes(root_id, children_map)
    return needing
