"""Incremental diffing of render nodes and edges.

A freshly computed render set is reconciled against the set currently on
screen. Nodes are matched by id and compared by a hash of their semantic
fields, never their position, so a node whose card didn't materially
change keeps wherever the user dragged it. Both diffs are pure and run
in O(N + E) through id-keyed dicts.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from storystack.models.render import StoryNodeData, SuggestionNodeData
from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.render import RenderEdge, RenderNode

log = get_logger(__name__)

DEFAULT_POSITION_THRESHOLD = 1.0


@dataclass
class NodeDiff:
    """Result of reconciling two node sets.

    Attributes:
        to_add: New nodes with no current counterpart.
        to_update: Nodes whose semantic hash changed. They already carry
            the position they should be shown at.
        to_remove: Ids of current nodes missing from the new set.
        unchanged: Nodes whose hash matched, at their current position.
    """

    to_add: list[RenderNode] = field(default_factory=list)
    to_update: list[RenderNode] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)
    unchanged: list[RenderNode] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when applying the diff would change nothing."""
        return not (self.to_add or self.to_update or self.to_remove)


@dataclass
class EdgeDiff:
    """Result of reconciling two edge sets. Unchanged edges are the current objects."""

    to_add: list[RenderEdge] = field(default_factory=list)
    to_update: list[RenderEdge] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)
    unchanged: list[RenderEdge] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_update or self.to_remove)


# ---------------------------------------------------------------------------
# Hashes
# ---------------------------------------------------------------------------


def node_hash(node: RenderNode) -> tuple[object, ...]:
    """Hash of the fields that affect how a node looks, excluding position."""
    data = node.data
    if isinstance(data, StoryNodeData):
        return (
            "story",
            node.id,
            data.label,
            data.is_first,
            data.is_orphaned,
            data.is_dead_end,
            data.is_incomplete,
            data.is_selected,
            data.is_on_path,
            data.has_title,
            data.has_content,
            data.has_image,
            data.choice_count,
            data.depth,
            data.is_collapsed,
            data.hidden_descendant_count,
            data.width,
            data.height,
        )
    if isinstance(data, SuggestionNodeData):
        return (
            "suggestion",
            node.id,
            data.source_card_id,
            data.title,
            data.content,
            data.choice_label,
            data.confidence,
            data.is_hovered,
        )
    raise TypeError(f"Unknown node payload: {type(data).__name__}")


def edge_hash(edge: RenderEdge) -> tuple[object, ...]:
    """Hash of an edge's endpoints, style-affecting fields and label."""
    return (
        edge.kind,
        edge.id,
        edge.source,
        edge.target,
        edge.label,
        edge.branch_index,
        edge.branch_count,
        edge.stroke_width,
        edge.z_index,
        edge.is_on_path,
        edge.is_emphasized,
        edge.is_animated,
        edge.is_dashed,
        edge.confidence_level,
    )


# ---------------------------------------------------------------------------
# Diffs
# ---------------------------------------------------------------------------


def _moved(current: RenderNode, new: RenderNode, threshold: float) -> bool:
    return (
        abs(current.position.x - new.position.x) > threshold
        or abs(current.position.y - new.position.y) > threshold
    )


def diff_nodes(
    current: Sequence[RenderNode],
    new: Sequence[RenderNode],
    *,
    position_threshold: float = DEFAULT_POSITION_THRESHOLD,
) -> NodeDiff:
    """Reconcile freshly computed nodes against the nodes on screen.

    Unchanged nodes keep their current position. Updated nodes also keep
    it unless the new layout moved them by more than
    ``position_threshold`` on either axis, which signals a real layout
    change rather than float noise.

    Args:
        current: Nodes currently rendered.
        new: Nodes just computed.
        position_threshold: Largest per-axis move treated as noise.

    Returns:
        NodeDiff. Calling twice with the same inputs yields equal diffs.
    """
    current_by_id = {node.id: node for node in current}
    new_ids = {node.id for node in new}
    diff = NodeDiff()

    for node in new:
        existing = current_by_id.get(node.id)
        if existing is None:
            diff.to_add.append(node)
        elif node_hash(existing) != node_hash(node):
            if _moved(existing, node, position_threshold):
                diff.to_update.append(node)
            else:
                diff.to_update.append(node.moved_to(existing.position))
        else:
            diff.unchanged.append(node.moved_to(existing.position))

    diff.to_remove = [node.id for node in current if node.id not in new_ids]
    return diff


def diff_edges(current: Sequence[RenderEdge], new: Sequence[RenderEdge]) -> EdgeDiff:
    """Reconcile freshly computed edges against the edges on screen."""
    current_by_id = {edge.id: edge for edge in current}
    new_ids = {edge.id for edge in new}
    diff = EdgeDiff()

    for edge in new:
        existing = current_by_id.get(edge.id)
        if existing is None:
            diff.to_add.append(edge)
        elif edge_hash(existing) != edge_hash(edge):
            diff.to_update.append(edge)
        else:
            diff.unchanged.append(existing)

    diff.to_remove = [edge.id for edge in current if edge.id not in new_ids]
    return diff


# ---------------------------------------------------------------------------
# Applying diffs
# ---------------------------------------------------------------------------


def reconcile_nodes(
    current: list[RenderNode],
    new: Sequence[RenderNode],
    *,
    position_threshold: float = DEFAULT_POSITION_THRESHOLD,
) -> list[RenderNode]:
    """Apply a node diff and return the resulting node list.

    Current order is kept and additions are appended. When nothing
    changed, ``current`` itself is returned so callers can skip a redraw
    with an identity check.
    """
    diff = diff_nodes(current, new, position_threshold=position_threshold)
    if diff.is_empty:
        return current

    merged = {node.id: node for node in current}
    for node_id in diff.to_remove:
        merged.pop(node_id, None)
    for node in diff.to_update:
        merged[node.id] = node
    for node in diff.to_add:
        merged[node.id] = node

    log.debug(
        "nodes_reconciled",
        added=len(diff.to_add),
        updated=len(diff.to_update),
        removed=len(diff.to_remove),
        unchanged=len(diff.unchanged),
    )
    return list(merged.values())


def reconcile_edges(current: list[RenderEdge], new: Sequence[RenderEdge]) -> list[RenderEdge]:
    """Apply an edge diff; returns ``current`` itself when nothing changed."""
    diff = diff_edges(current, new)
    if diff.is_empty:
        return current

    merged = {edge.id: edge for edge in current}
    for edge_id in diff.to_remove:
        merged.pop(edge_id, None)
    for edge in diff.to_update:
        merged[edge.id] = edge
    for edge in diff.to_add:
        merged[edge.id] = edge

    log.debug(
        "edges_reconciled",
        added=len(diff.to_add),
        updated=len(diff.to_update),
        removed=len(diff.to_remove),
    )
    return list(merged.values())
