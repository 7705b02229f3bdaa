"""Branch depth, path progress and branch previews for the selected card.

Progress is measured against the deepest level reachable from the start
card anywhere in the story. That denominator only moves when the story's
overall depth changes, so editing an unrelated branch doesn't make the
progress bar jump backwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from storystack.graph.ancestry import ancestry_path
from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.graph.analysis import GraphAnalysis
    from storystack.models.story import Card, Choice

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Branch depth
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BranchDepth:
    """Depth figures for the selected card."""

    current_depth: int = 0
    max_depth_in_branch: int = 0
    is_terminal: bool = False


def max_reachable_depth(
    start_id: str,
    depth: Mapping[str, int],
    children_map: Mapping[str, list[str]],
) -> int:
    """Return the largest depth among cards reachable from ``start_id``.

    Iterative DFS that expands every card at most once, so diamonds and
    cycles cost O(V + E) instead of one walk per path.
    """
    best = depth.get(start_id, 0)
    visited = {start_id}
    stack = [start_id]
    while stack:
        node = stack.pop()
        best = max(best, depth.get(node, 0))
        for child in children_map.get(node, []):
            if child not in visited:
                visited.add(child)
                stack.append(child)
    return best


def branch_depth(
    current_id: str | None,
    root_id: str | None,
    analysis: GraphAnalysis,
) -> BranchDepth:
    """Compute depth, maximum depth and terminal status for a card.

    Args:
        current_id: Selected card.
        root_id: Start card.
        analysis: Analysis of the same story snapshot.

    Returns:
        BranchDepth. All zero when nothing is selected.
    """
    if current_id is None:
        return BranchDepth()

    max_depth = 0
    if root_id is not None and root_id in analysis.depth:
        max_depth = max_reachable_depth(root_id, analysis.depth, analysis.children_map)

    return BranchDepth(
        current_depth=analysis.depth.get(current_id, 0),
        max_depth_in_branch=max_depth,
        is_terminal=current_id in analysis.dead_end_cards,
    )


# ---------------------------------------------------------------------------
# Path progress
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Milestone:
    """A notable card on the path to the selected card.

    ``position`` is normalized the same way as the overall progress, so a
    marker for the milestone lines up with the progress bar.
    """

    card_id: str
    position: float
    depth: int
    is_start: bool = False
    is_current: bool = False
    is_terminal: bool = False
    is_branch_point: bool = False


@dataclass
class PathProgress:
    """Progress of the selected card through the story."""

    progress: float = 0.0
    previous_progress: float = 0.0
    is_moving_forward: bool = True
    current_depth: int = 0
    max_depth: int = 0
    is_terminal: bool = False
    milestones: list[Milestone] = field(default_factory=list)
    ordered_path: list[str] = field(default_factory=list)
    total_nodes: int = 0


def _normalize(depth: int, max_depth: int) -> float:
    return min(1.0, (depth + 1) / (max_depth + 1))


def path_progress(
    current_id: str | None,
    root_id: str | None,
    analysis: GraphAnalysis,
    choices: Iterable[Choice],
    *,
    previous_id: str | None = None,
    total_nodes: int | None = None,
) -> PathProgress:
    """Compute progress, direction of travel and milestones.

    Args:
        current_id: Selected card.
        root_id: Start card.
        analysis: Analysis of the same story snapshot.
        choices: Story choices (used for the ancestry path).
        previous_id: Card that was selected before, if any.
        total_nodes: Card count to report. Defaults to the analyzed card count.

    Returns:
        PathProgress. Defaults when there is no selection or no start card.
    """
    if total_nodes is None:
        total_nodes = len(analysis.choice_count)

    if current_id is None or root_id is None:
        return PathProgress(total_nodes=total_nodes)

    depths = branch_depth(current_id, root_id, analysis)
    max_depth = depths.max_depth_in_branch
    current_depth = depths.current_depth

    if previous_id is not None:
        previous_depth = analysis.depth.get(previous_id, 0)
        previous_progress = _normalize(previous_depth, max_depth)
        is_moving_forward = current_depth > previous_depth
    else:
        previous_progress = 0.0
        is_moving_forward = True

    path = ancestry_path(current_id, root_id, choices)
    milestones: list[Milestone] = []
    for card_id in path.ordered_path:
        card_depth = analysis.depth.get(card_id, 0)
        milestone = Milestone(
            card_id=card_id,
            position=_normalize(card_depth, max_depth),
            depth=card_depth,
            is_start=card_id == root_id,
            is_current=card_id == current_id,
            is_terminal=card_id in analysis.dead_end_cards,
            is_branch_point=analysis.is_branch_point(card_id),
        )
        if (
            milestone.is_start
            or milestone.is_current
            or milestone.is_terminal
            or milestone.is_branch_point
        ):
            milestones.append(milestone)

    return PathProgress(
        progress=_normalize(current_depth, max_depth),
        previous_progress=previous_progress,
        is_moving_forward=is_moving_forward,
        current_depth=current_depth,
        max_depth=max_depth,
        is_terminal=depths.is_terminal,
        milestones=milestones,
        ordered_path=path.ordered_path,
        total_nodes=total_nodes,
    )


# ---------------------------------------------------------------------------
# Branch preview
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BranchOption:
    """An outgoing choice of the previewed card and the card it leads to."""

    choice: Choice
    target: Card | None


@dataclass(frozen=True)
class PathStep:
    """One card along a previewed branch."""

    card: Card
    incoming_choice: Choice | None = None


@dataclass
class BranchPreview:
    """The branches of a card and the linear path along one of them."""

    card_id: str | None = None
    branches: list[BranchOption] = field(default_factory=list)
    selected_index: int = 0
    linear_path: list[PathStep] = field(default_factory=list)


def branch_preview(
    cards: Sequence[Card],
    choices: Iterable[Choice],
    card_id: str | None,
    branch_index: int = 0,
) -> BranchPreview:
    """Preview where one branch of a card leads.

    The path starts at ``card_id``, follows the selected outgoing choice
    and then the first choice (by ``order_index``) of each later card. It
    stops at a dangling choice, a missing card or a card already on the
    path.

    Args:
        cards: Story cards.
        choices: Story choices.
        card_id: Card whose branches to preview.
        branch_index: Which outgoing choice to follow. Clamped into range.

    Returns:
        BranchPreview. Empty when ``card_id`` is None or unknown.
    """
    if card_id is None:
        return BranchPreview()

    card_map = {card.id: card for card in cards}
    start = card_map.get(card_id)
    if start is None:
        return BranchPreview(card_id=card_id)

    by_source: dict[str, list[Choice]] = {}
    for choice in choices:
        by_source.setdefault(choice.source_card_id, []).append(choice)
    for outgoing in by_source.values():
        outgoing.sort(key=lambda c: c.order_index)

    outgoing = by_source.get(card_id, [])
    branches = [
        BranchOption(
            choice=choice,
            target=card_map.get(choice.target_card_id) if choice.target_card_id else None,
        )
        for choice in outgoing
    ]
    selected = max(0, min(branch_index, len(branches) - 1)) if branches else 0

    path = [PathStep(card=start)]
    visited = {card_id}
    current: Choice | None = branches[selected].choice if branches else None
    while current is not None and current.target_card_id is not None:
        target_id = current.target_card_id
        if target_id in visited:
            break
        target = card_map.get(target_id)
        if target is None:
            break
        visited.add(target_id)
        path.append(PathStep(card=target, incoming_choice=current))
        next_choices = by_source.get(target_id)
        current = next_choices[0] if next_choices else None

    return BranchPreview(
        card_id=card_id,
        branches=branches,
        selected_index=selected,
        linear_path=path,
    )
