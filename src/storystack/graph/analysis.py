"""Structural analysis of a story graph.

Cards are nodes and choices with a target are directed edges. A single
pass over the choices yields adjacency and per-card choice counts; a BFS
from the start card yields depths. Everything here is a pure function of
the cards, choices and start card passed in, so classifications are
recomputed from scratch on every call rather than patched incrementally.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

from storystack.models.story import Card
from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.story import Choice

log = get_logger(__name__)

DEFAULT_PLACEHOLDER_TITLE = "Untitled Card"

CompletenessPolicy = Callable[[Card], bool]


# ---------------------------------------------------------------------------
# Completeness policy
# ---------------------------------------------------------------------------


def card_has_title(card: Card, placeholder_title: str = DEFAULT_PLACEHOLDER_TITLE) -> bool:
    """True when the card has a real title, not blank and not the placeholder."""
    title = card.title.strip()
    return bool(title) and card.title != placeholder_title


def card_has_content(card: Card) -> bool:
    return bool(card.content.strip())


def is_card_complete(card: Card, placeholder_title: str = DEFAULT_PLACEHOLDER_TITLE) -> bool:
    """Default completeness policy.

    A card is complete when it has non-blank content, an image, and a
    non-blank title that differs from the editor's placeholder title.
    """
    return (
        card_has_content(card)
        and card.has_image
        and card_has_title(card, placeholder_title)
    )


def completeness_policy(placeholder_title: str) -> CompletenessPolicy:
    """Build the default policy with a different placeholder title."""
    return partial(is_card_complete, placeholder_title=placeholder_title)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


@dataclass
class GraphAnalysis:
    """Derived structure of a story graph.

    Attributes:
        orphan_cards: Cards with no incoming choice that are not the start card.
        dead_end_cards: Cards with no outgoing choice at all.
        incomplete_cards: Cards the completeness policy rejected.
        choice_count: Outgoing choices per card, dangling ones included.
        depth: BFS distance from the start card. Unreachable cards are absent.
        children_map: Distinct targets per card, in choice order.
        parent_map: Distinct sources per card, in choice order.
    """

    orphan_cards: set[str] = field(default_factory=set)
    dead_end_cards: set[str] = field(default_factory=set)
    incomplete_cards: set[str] = field(default_factory=set)
    choice_count: dict[str, int] = field(default_factory=dict)
    depth: dict[str, int] = field(default_factory=dict)
    children_map: dict[str, list[str]] = field(default_factory=dict)
    parent_map: dict[str, list[str]] = field(default_factory=dict)

    @property
    def reachable(self) -> set[str]:
        """Cards reachable from the start card."""
        return set(self.depth)

    @property
    def max_depth(self) -> int:
        """Deepest BFS level reached, 0 for an empty or rootless story."""
        return max(self.depth.values(), default=0)

    def is_branch_point(self, card_id: str) -> bool:
        return self.choice_count.get(card_id, 0) > 1


def analyze(
    cards: Sequence[Card],
    choices: Iterable[Choice],
    root_id: str | None,
    *,
    is_complete: CompletenessPolicy = is_card_complete,
) -> GraphAnalysis:
    """Compute orphan, dead-end, incomplete sets, choice counts and depths.

    Choices whose source card does not exist are ignored. Choices whose
    target does not exist count toward their source's choice total but
    contribute no edge. A start card id that names no card yields an
    empty depth map.

    Args:
        cards: Story cards.
        choices: Story choices.
        root_id: Id of the start card, or None.
        is_complete: Completeness predicate applied to every card.

    Returns:
        GraphAnalysis for this snapshot.
    """
    card_ids = {card.id for card in cards}

    has_incoming: set[str] = set()
    choice_count: dict[str, int] = {card.id: 0 for card in cards}
    edges: dict[str, list[Choice]] = {card.id: [] for card in cards}
    dangling = 0

    for choice in choices:
        source = choice.source_card_id
        if source not in card_ids:
            log.debug("choice_source_missing", choice_id=choice.id, source=source)
            continue
        choice_count[source] += 1
        target = choice.target_card_id
        if target is None:
            continue
        if target not in card_ids:
            dangling += 1
            continue
        has_incoming.add(target)
        edges[source].append(choice)

    children_map: dict[str, list[str]] = {}
    parent_map: dict[str, list[str]] = {card.id: [] for card in cards}
    for source, outgoing in edges.items():
        children: list[str] = []
        # sorted() is stable, so equal order_index keeps input order
        for choice in sorted(outgoing, key=lambda c: c.order_index):
            target = choice.target_card_id
            if target is not None and target not in children:
                children.append(target)
                if source not in parent_map[target]:
                    parent_map[target].append(source)
        children_map[source] = children

    root_present = root_id is not None and root_id in card_ids
    if root_id is not None and not root_present:
        log.warning("root_card_missing", root_id=root_id, cards=len(card_ids))
    if root_present:
        has_incoming.add(root_id)

    depth = bfs_depths(root_id, children_map) if root_present else {}

    analysis = GraphAnalysis(
        orphan_cards={cid for cid in card_ids if cid not in has_incoming and cid != root_id},
        dead_end_cards={cid for cid, count in choice_count.items() if count == 0},
        incomplete_cards={card.id for card in cards if not is_complete(card)},
        choice_count=choice_count,
        depth=depth,
        children_map=children_map,
        parent_map=parent_map,
    )

    log.debug(
        "story_analyzed",
        cards=len(card_ids),
        reachable=len(depth),
        orphans=len(analysis.orphan_cards),
        dead_ends=len(analysis.dead_end_cards),
        incomplete=len(analysis.incomplete_cards),
        dangling_choices=dangling,
    )
    return analysis


def bfs_depths(root_id: str, children_map: Mapping[str, list[str]]) -> dict[str, int]:
    depth = {root_id: 0}
    queue = deque([root_id])
    while queue:
        current = queue.popleft()
        for child in children_map.get(current, []):
            if child not in depth:
                depth[child] = depth[current] + 1
                queue.append(child)
    return depth
