"""Parent recommendations for orphaned cards.

Every other card is scored as a potential parent of the orphan by adding
up independent factors (connectivity, content and title similarity,
branching room, creation order, start-card bonus). The reason strings
attached to each suggestion are shown to authors verbatim and are part of
the public interface.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.story import Card, Choice

log = get_logger(__name__)

REASON_CONNECTED = "Connected to story"
REASON_SIMILAR_CONTENT = "Similar content"
REASON_RELATED_TITLE = "Related title"
REASON_ONE_CHOICE = "Has one choice"
REASON_DEAD_END = "Dead end (needs choices)"
REASON_CREATED_NEARBY = "Created nearby"
REASON_STORY_START = "Story start"

DEFAULT_SUGGESTION_LIMIT = 5

# Score contributions
CONNECTED_SCORE = 30
MODERATE_DEPTH_SCORE = 10
DISCONNECTED_PENALTY = -20
CONTENT_SCORE_SCALE = 25
TITLE_SCORE_SCALE = 15
ONE_CHOICE_SCORE = 15
TWO_CHOICES_SCORE = 5
DEAD_END_SCORE = 20
NEARBY_SCORE = 10
CLOSE_SCORE = 5
STORY_START_SCORE = 5

# Thresholds
CONTENT_SCORE_THRESHOLD = 0.1
CONTENT_REASON_THRESHOLD = 0.2
TITLE_THRESHOLD = 0.2
MODERATE_DEPTH_RANGE = (1, 3)
NEARBY_ORDER_DISTANCE = 2
CLOSE_ORDER_DISTANCE = 5

_NON_WORD = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class ParentSuggestion:
    """A ranked candidate parent for an orphaned card.

    Attributes:
        card_id: Candidate parent.
        card_title: Its title, or "Untitled".
        score: Sum of all triggered factors.
        reasons: Reason strings in the order the factors were evaluated.
        distance: Candidate depth from the start card, or -1 if unreachable.
    """

    card_id: str
    card_title: str
    score: int
    reasons: tuple[str, ...] = field(default_factory=tuple)
    distance: int = -1


# ---------------------------------------------------------------------------
# Similarity measures
# ---------------------------------------------------------------------------


def _content_words(text: str) -> set[str]:
    cleaned = _NON_WORD.sub("", text.lower())
    return {word for word in cleaned.split() if len(word) > 3}


def content_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity of the significant words of two texts.

    Words are lower-cased with punctuation stripped, and only words longer
    than three characters count.
    """
    words1 = _content_words(text1)
    words2 = _content_words(text2)
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / len(words1 | words2)


def title_similarity(title1: str, title2: str) -> float:
    """Fraction of title words that appear inside a word of the other title."""
    t1 = title1.lower().strip()
    t2 = title2.lower().strip()
    if t1 == t2:
        return 1.0
    if not t1 or not t2:
        return 0.0

    words1 = t1.split()
    words2 = t2.split()
    matching = sum(1 for w1 in words1 if any(w1 in w2 or w2 in w1 for w2 in words2))
    return matching / max(len(words1), len(words2))


def _round_half_up(value: float) -> int:
    # Non-negative inputs only; rounds 0.5 up rather than to even
    return int(value + 0.5)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


def suggest_parents(
    orphan_id: str,
    cards: Sequence[Card],
    choices: Sequence[Choice],
    depth_map: Mapping[str, int],
    root_id: str | None,
    *,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> list[ParentSuggestion]:
    """Rank candidate parents for an orphaned card.

    Cards that already link to the orphan are skipped, as are candidates
    whose score is not positive or that triggered no reason. Ties keep
    the original card order.

    Args:
        orphan_id: The card that needs a parent.
        cards: Story cards, in story order.
        choices: Story choices.
        depth_map: Depth of each reachable card (from ``analyze``).
        root_id: Start card.
        limit: Maximum number of suggestions to return.

    Returns:
        Up to ``limit`` suggestions, best first. Empty when the orphan is unknown.
    """
    orphan = next((card for card in cards if card.id == orphan_id), None)
    if orphan is None:
        log.debug("orphan_not_found", orphan_id=orphan_id)
        return []

    outgoing_total: dict[str, int] = {}
    has_targeted_choice: set[str] = set()
    links_to_orphan: set[str] = set()
    for choice in choices:
        outgoing_total[choice.source_card_id] = outgoing_total.get(choice.source_card_id, 0) + 1
        if choice.target_card_id is not None:
            has_targeted_choice.add(choice.source_card_id)
            if choice.target_card_id == orphan_id:
                links_to_orphan.add(choice.source_card_id)

    suggestions: list[ParentSuggestion] = []
    for card in cards:
        if card.id == orphan_id or card.id in links_to_orphan:
            continue

        score, reasons = _score_candidate(
            card,
            orphan,
            depth=depth_map.get(card.id),
            choice_count=outgoing_total.get(card.id, 0),
            has_targeted_choice=card.id in has_targeted_choice,
            is_root=card.id == root_id,
        )
        if score > 0 and reasons:
            suggestions.append(
                ParentSuggestion(
                    card_id=card.id,
                    card_title=card.title or "Untitled",
                    score=score,
                    reasons=tuple(reasons),
                    distance=depth_map.get(card.id, -1),
                )
            )

    # sort() is stable: equal scores keep story order
    suggestions.sort(key=lambda s: s.score, reverse=True)
    ranked = suggestions[: max(limit, 0)]

    log.debug(
        "parents_suggested",
        orphan_id=orphan_id,
        candidates=len(suggestions),
        top=[s.card_id for s in ranked],
    )
    return ranked


def _score_candidate(
    card: Card,
    orphan: Card,
    *,
    depth: int | None,
    choice_count: int,
    has_targeted_choice: bool,
    is_root: bool,
) -> tuple[int, list[str]]:
    score = 0
    reasons: list[str] = []

    # Connectivity
    if depth is not None:
        score += CONNECTED_SCORE
        reasons.append(REASON_CONNECTED)
        low, high = MODERATE_DEPTH_RANGE
        if low <= depth <= high:
            score += MODERATE_DEPTH_SCORE
    else:
        score += DISCONNECTED_PENALTY

    # Content similarity
    content_sim = content_similarity(card.content, orphan.content)
    if content_sim > CONTENT_SCORE_THRESHOLD:
        score += _round_half_up(content_sim * CONTENT_SCORE_SCALE)
        if content_sim > CONTENT_REASON_THRESHOLD:
            reasons.append(REASON_SIMILAR_CONTENT)

    # Title similarity
    title_sim = title_similarity(card.title, orphan.title)
    if title_sim > TITLE_THRESHOLD:
        score += _round_half_up(title_sim * TITLE_SCORE_SCALE)
        reasons.append(REASON_RELATED_TITLE)

    # Branch suitability
    if has_targeted_choice:
        if choice_count == 1:
            score += ONE_CHOICE_SCORE
            reasons.append(REASON_ONE_CHOICE)
        elif choice_count == 2:
            score += TWO_CHOICES_SCORE
    elif depth is not None:
        score += DEAD_END_SCORE
        reasons.append(REASON_DEAD_END)

    # Recency
    order_distance = abs(card.order_index - orphan.order_index)
    if order_distance <= NEARBY_ORDER_DISTANCE:
        score += NEARBY_SCORE
        reasons.append(REASON_CREATED_NEARBY)
    elif order_distance <= CLOSE_ORDER_DISTANCE:
        score += CLOSE_SCORE

    if is_root:
        score += STORY_START_SCORE
        reasons.append(REASON_STORY_START)

    return score, reasons
