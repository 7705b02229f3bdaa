"""Keyboard navigation tables for the rendered story graph.

The navigation map turns the laid-out graph into lookup tables so a key
handler can answer "where does ArrowRight go from here?" in constant
time. Every lookup returns None when there is nowhere to go; pressing
Left on the start card is not an error.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, NamedTuple

from storystack.models.render import StoryNodeData

if TYPE_CHECKING:
    from storystack.models.render import RenderNode
    from storystack.models.story import Choice


class Direction(StrEnum):
    """Movement triggered by a navigation key."""

    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    HOME = "home"
    END = "end"
    PAGE_UP = "pageup"
    PAGE_DOWN = "pagedown"


KEY_DIRECTIONS: dict[str, Direction] = {
    "ArrowUp": Direction.UP,
    "ArrowDown": Direction.DOWN,
    "ArrowLeft": Direction.LEFT,
    "ArrowRight": Direction.RIGHT,
    "Home": Direction.HOME,
    "End": Direction.END,
    "PageUp": Direction.PAGE_UP,
    "PageDown": Direction.PAGE_DOWN,
}


class NavigationResult(NamedTuple):
    """Target of a key press. Both fields are None for unhandled keys."""

    node_id: str | None
    direction: Direction | None


@dataclass
class NavigationMap:
    """Parent, child, sibling and depth tables for keyboard traversal.

    Attributes:
        parents: Distinct parents of each node, in choice order.
        children: Distinct children of each node, in choice order.
        siblings: Other nodes at the same depth, top to bottom.
        depth_to_nodes: Nodes at each depth, sorted by vertical position.
        node_to_depth: Depth of each node (-1 for unreachable cards).
        focus_order: All nodes, depth by depth, top to bottom.
        root_id: Start card, if it is part of the map.
    """

    parents: dict[str, list[str]] = field(default_factory=dict)
    children: dict[str, list[str]] = field(default_factory=dict)
    siblings: dict[str, list[str]] = field(default_factory=dict)
    depth_to_nodes: dict[int, list[str]] = field(default_factory=dict)
    node_to_depth: dict[str, int] = field(default_factory=dict)
    focus_order: list[str] = field(default_factory=list)
    root_id: str | None = None
    edge_ids: dict[tuple[str, str], str] = field(default_factory=dict, repr=False)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.node_to_depth

    # --- Arrow keys ---

    def right(self, node_id: str) -> str | None:
        """First child."""
        return _first(self.children.get(node_id))

    def left(self, node_id: str) -> str | None:
        """First parent."""
        return _first(self.parents.get(node_id))

    def up(self, node_id: str) -> str | None:
        """Previous node at the same depth."""
        row, index = self._row(node_id)
        return row[index - 1] if index > 0 else None

    def down(self, node_id: str) -> str | None:
        """Next node at the same depth."""
        row, index = self._row(node_id)
        return row[index + 1] if 0 <= index < len(row) - 1 else None

    # --- Shortcuts ---

    def home(self) -> str | None:
        return self.root_id

    def end(self) -> str | None:
        return self.focus_order[-1] if self.focus_order else None

    def page_up(self, node_id: str) -> str | None:
        """First parent, else the first node one level up."""
        depth = self.node_to_depth.get(node_id, -1)
        if depth <= 0:
            return None
        return self.left(node_id) or _first(self.depth_to_nodes.get(depth - 1))

    def page_down(self, node_id: str) -> str | None:
        """First child, else the first node one level down."""
        depth = self.node_to_depth.get(node_id)
        if depth is None:
            return None
        return self.right(node_id) or _first(self.depth_to_nodes.get(depth + 1))

    def navigate(self, key: str, current_id: str | None) -> NavigationResult:
        """Resolve a DOM-style key name from the current node.

        Args:
            key: Key name such as "ArrowRight" or "PageDown".
            current_id: Focused node. Only Home and End work without one.

        Returns:
            NavigationResult with the target node (or None) and the
            direction; both None when the key isn't a navigation key.
        """
        direction = KEY_DIRECTIONS.get(key)
        if direction is None:
            return NavigationResult(None, None)
        if direction is Direction.HOME:
            return NavigationResult(self.home(), direction)
        if direction is Direction.END:
            return NavigationResult(self.end(), direction)
        if current_id is None or current_id not in self:
            return NavigationResult(None, direction)

        moves = {
            Direction.UP: self.up,
            Direction.DOWN: self.down,
            Direction.LEFT: self.left,
            Direction.RIGHT: self.right,
            Direction.PAGE_UP: self.page_up,
            Direction.PAGE_DOWN: self.page_down,
        }
        return NavigationResult(moves[direction](current_id), direction)

    # --- Edges ---

    def edge_id_between(self, parent_id: str, child_id: str) -> str | None:
        """Id of the first choice leading from ``parent_id`` to ``child_id``."""
        return self.edge_ids.get((parent_id, child_id))

    def connected_edges(self, node_id: str) -> list[str]:
        """Edge ids touching a node: outgoing first, then incoming."""
        outgoing = [self.edge_ids[(node_id, child)] for child in self.children.get(node_id, [])]
        incoming = [self.edge_ids[(parent, node_id)] for parent in self.parents.get(node_id, [])]
        return outgoing + incoming

    def _row(self, node_id: str) -> tuple[list[str], int]:
        depth = self.node_to_depth.get(node_id)
        if depth is None:
            return [], -1
        row = self.depth_to_nodes.get(depth, [])
        return row, row.index(node_id) if node_id in row else -1


def _first(items: list[str] | None) -> str | None:
    return items[0] if items else None


def build_navigation_map(
    nodes: Sequence[RenderNode],
    choices: Iterable[Choice],
    root_id: str | None,
) -> NavigationMap:
    """Build navigation tables from laid-out story nodes.

    Suggestion nodes are not navigable and are skipped. Choices are only
    mapped when both of their endpoints are present among the nodes, so
    collapsed or dangling parts of the graph are never navigated into.

    Args:
        nodes: Render nodes with positions and depths.
        choices: Story choices.
        root_id: Start card.

    Returns:
        NavigationMap for the visible graph.
    """
    nav = NavigationMap()
    y_position: dict[str, float] = {}

    for node in nodes:
        if not isinstance(node.data, StoryNodeData):
            continue
        nav.parents[node.id] = []
        nav.children[node.id] = []
        nav.node_to_depth[node.id] = node.data.depth
        y_position[node.id] = node.position.y

    for choice in sorted(choices, key=lambda c: c.order_index):
        source, target = choice.source_card_id, choice.target_card_id
        if target is None or source not in nav or target not in nav:
            continue
        if target not in nav.children[source]:
            nav.children[source].append(target)
            nav.edge_ids[(source, target)] = choice.id
        if source not in nav.parents[target]:
            nav.parents[target].append(source)

    for node_id, depth in nav.node_to_depth.items():
        nav.depth_to_nodes.setdefault(depth, []).append(node_id)

    for depth in sorted(nav.depth_to_nodes):
        row = nav.depth_to_nodes[depth]
        # Stable sort keeps input order for nodes at the same height
        row.sort(key=lambda nid: y_position[nid])
        for node_id in row:
            nav.siblings[node_id] = [other for other in row if other != node_id]
        nav.focus_order.extend(row)

    nav.root_id = root_id if root_id in nav else None
    return nav


# ---------------------------------------------------------------------------
# Accessibility labels
# ---------------------------------------------------------------------------


def node_status_label(data: StoryNodeData) -> str:
    """Describe a node's status for screen readers.

    Example: "Start, Dead end, 75% complete, 1 choice, Level 0".
    """
    parts: list[str] = []
    if data.is_first:
        parts.append("Start")
    if data.is_orphaned:
        parts.append("Orphaned")
    if data.is_dead_end:
        parts.append("Dead end")
    if data.is_incomplete:
        parts.append("Incomplete")

    checks = (data.has_title, data.has_content, data.has_image, data.has_choices)
    percent = round(sum(checks) / len(checks) * 100)
    parts.append(f"{percent}% complete")

    if data.choice_count > 0:
        noun = "choice" if data.choice_count == 1 else "choices"
        parts.append(f"{data.choice_count} {noun}")
    if data.depth >= 0:
        parts.append(f"Level {data.depth}")
    return ", ".join(parts)


def node_aria_label(data: StoryNodeData) -> str:
    """Full accessible label: the node label followed by its status."""
    return f"{data.label}. {node_status_label(data)}"
