"""Render projection of a story graph.

Turns cards, choices and the editor's transient state (selection,
collapsed cards, AI suggestions) into positioned node and edge
descriptors, and exports them as DOT (Graphviz) or Mermaid markup for
inspection. Descriptors carry semantic flags only; how a flag is drawn
is up to the consumer.
"""

from __future__ import annotations

import math
from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from storystack.graph.analysis import (
    DEFAULT_PLACEHOLDER_TITLE,
    GraphAnalysis,
    analyze,
    card_has_content,
    card_has_title,
)
from storystack.graph.ancestry import AncestryPath, ancestry_path
from storystack.models.render import (
    Position,
    RenderEdge,
    RenderNode,
    StoryNodeData,
    SuggestionNodeData,
    confidence_level,
)
from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.story import Card, Choice, SuggestedCard

log = get_logger(__name__)

# Node sizing
BASE_NODE_WIDTH = 140
MIN_NODE_WIDTH = 120
MAX_NODE_WIDTH = 220
PADDING_X = 16
PADDING_Y = 8
HEADER_HEIGHT = 28
FOOTER_HEIGHT = 32
LINE_HEIGHT = 16
MIN_TITLE_HEIGHT = 32
MAX_TITLE_LINES = 3
AVG_CHAR_WIDTH = 6.8

# Layout
RANK_SEPARATION = 250
NODE_SEPARATION = 60
LAYOUT_MARGIN = 80

# Suggestions sit to the right of their source card
SUGGESTION_OFFSET_X = 300
SUGGESTION_SPACING_Y = 150
DEFAULT_SUGGESTION_ANCHOR = Position(400, 200)

# Edge styling
BASE_STROKE_WIDTH = 2.0
BRANCH_STROKE_WIDTH = 2.5
EMPHASIS_Z_INDEX = 100

_START_COLOR = "#90EE90"  # light green
_ENDING_COLOR = "#FFB6C1"  # light pink
_DEFAULT_COLOR = "#ADD8E6"  # light blue
_INCOMPLETE_COLOR = "#D3D3D3"  # light grey
_SUGGESTION_COLOR = "#FFFACD"  # lemon chiffon
_ORPHAN_BORDER = "#FF4500"  # orange-red
_PATH_COLOR = "#6A5ACD"  # slate blue


@dataclass
class RenderGraph:
    """Render-ready nodes and edges plus collapse bookkeeping.

    Attributes:
        nodes: Visible story nodes, then suggestion nodes.
        edges: Story edges, then suggestion edges.
        hidden_nodes: Cards hidden under a collapsed ancestor.
        hidden_descendant_count: Number of cards each collapsed card hides.
    """

    nodes: list[RenderNode] = field(default_factory=list)
    edges: list[RenderEdge] = field(default_factory=list)
    hidden_nodes: set[str] = field(default_factory=set)
    hidden_descendant_count: dict[str, int] = field(default_factory=dict)

    def get_node(self, node_id: str) -> RenderNode | None:
        return next((node for node in self.nodes if node.id == node_id), None)


# ---------------------------------------------------------------------------
# Sizing
# ---------------------------------------------------------------------------


def node_dimensions(title: str) -> tuple[int, int]:
    """Estimate the width and height a card needs for its title.

    Short titles get the minimum width; longer ones grow the node up to
    the maximum, after which the title wraps onto at most three lines.

    Returns:
        (width, height) in pixels, width rounded to a multiple of 10.
    """
    text = title.strip() or "Untitled"
    text_width = len(text) * AVG_CHAR_WIDTH

    if len(text) <= 12:
        width: float = MIN_NODE_WIDTH
    elif len(text) <= 25:
        width = min(max(text_width / 2 + PADDING_X, MIN_NODE_WIDTH), MAX_NODE_WIDTH)
    else:
        width = min(max(text_width / 2.5 + PADDING_X, BASE_NODE_WIDTH), MAX_NODE_WIDTH)
    rounded = int(width / 10 + 0.5) * 10

    lines = min(math.ceil(text_width / (rounded - PADDING_X)), MAX_TITLE_LINES)
    title_height = max(lines * LINE_HEIGHT, MIN_TITLE_HEIGHT)
    height = HEADER_HEIGHT + title_height + FOOTER_HEIGHT + PADDING_Y
    return rounded, height


# ---------------------------------------------------------------------------
# Collapsing
# ---------------------------------------------------------------------------


def descendants(card_id: str, children_map: Mapping[str, list[str]]) -> set[str]:
    """Cards reachable from ``card_id``, excluding the card itself."""
    seen: set[str] = set()
    stack = list(children_map.get(card_id, []))
    while stack:
        node = stack.pop()
        if node in seen or node == card_id:
            continue
        seen.add(node)
        stack.extend(children_map.get(node, []))
    return seen


def hidden_nodes(
    collapsed: Iterable[str],
    children_map: Mapping[str, list[str]],
) -> tuple[set[str], dict[str, int]]:
    """Work out which cards collapsed cards hide.

    Returns:
        The set of hidden cards, and how many cards each collapsed card hides.
    """
    hidden: set[str] = set()
    counts: dict[str, int] = {}
    for card_id in collapsed:
        below = descendants(card_id, children_map)
        counts[card_id] = len(below)
        hidden |= below
    return hidden, counts


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


def layered_layout(
    node_ids: Sequence[str],
    depth: Mapping[str, int],
    sizes: Mapping[str, tuple[int, int]],
) -> dict[str, Position]:
    """Place nodes left to right in one column per depth.

    Cards without a depth go in a trailing column. Within a column nodes
    keep the order of ``node_ids``. The result depends only on the
    inputs, so the same story always lays out the same way.
    """
    columns: dict[int, list[str]] = {}
    trailing = max((depth[nid] for nid in node_ids if nid in depth), default=-1) + 1
    for node_id in node_ids:
        columns.setdefault(depth.get(node_id, trailing), []).append(node_id)

    positions: dict[str, Position] = {}
    x = float(LAYOUT_MARGIN)
    for column in sorted(columns):
        y = float(LAYOUT_MARGIN)
        column_width = 0
        for node_id in columns[column]:
            width, height = sizes[node_id]
            positions[node_id] = Position(x, y)
            y += height + NODE_SEPARATION
            column_width = max(column_width, width)
        x += column_width + RANK_SEPARATION
    return positions


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def build_render_graph(
    cards: Sequence[Card],
    choices: Sequence[Choice],
    root_id: str | None,
    *,
    analysis: GraphAnalysis | None = None,
    current_id: str | None = None,
    collapsed: Collection[str] = (),
    path: AncestryPath | None = None,
    positions: Mapping[str, Position] | None = None,
    suggestions: Sequence[SuggestedCard] = (),
    hovered_suggestion_id: str | None = None,
    placeholder_title: str = DEFAULT_PLACEHOLDER_TITLE,
) -> RenderGraph:
    """Project a story onto render nodes and edges.

    Args:
        cards: Story cards.
        choices: Story choices.
        root_id: Start card.
        analysis: Precomputed analysis of the same snapshot, if available.
        current_id: Selected card.
        collapsed: Cards whose descendants should be hidden.
        path: Ancestry path to highlight. Computed from ``current_id``
            when omitted.
        positions: Known node positions, e.g. after the user dragged
            nodes. Nodes without one are placed by ``layered_layout``.
        suggestions: AI-suggested cards to show beside their source.
        hovered_suggestion_id: Suggestion under the pointer.
        placeholder_title: Title that counts as "no title".

    Returns:
        RenderGraph with visible nodes and edges.
    """
    if analysis is None:
        analysis = analyze(cards, choices, root_id)
    if path is None:
        path = ancestry_path(current_id, root_id, choices)

    collapsed_set = set(collapsed)
    hidden, hidden_counts = hidden_nodes(collapsed_set, analysis.children_map)
    visible = [card for card in cards if card.id not in hidden]

    sizes = {card.id: node_dimensions(card.title) for card in visible}
    layout = layered_layout([card.id for card in visible], analysis.depth, sizes)
    if positions:
        layout.update({nid: pos for nid, pos in positions.items() if nid in layout})

    graph = RenderGraph(hidden_nodes=hidden, hidden_descendant_count=hidden_counts)
    for card in visible:
        width, height = sizes[card.id]
        data = StoryNodeData(
            label=card.title or "Untitled",
            is_first=card.id == root_id,
            is_orphaned=card.id in analysis.orphan_cards,
            is_dead_end=card.id in analysis.dead_end_cards,
            is_incomplete=card.id in analysis.incomplete_cards,
            is_selected=card.id == current_id,
            is_on_path=card.id in path.path_node_ids,
            has_title=card_has_title(card, placeholder_title),
            has_content=card_has_content(card),
            has_image=card.has_image,
            choice_count=analysis.choice_count.get(card.id, 0),
            depth=analysis.depth.get(card.id, -1),
            is_collapsed=card.id in collapsed_set,
            hidden_descendant_count=hidden_counts.get(card.id, 0),
            width=width,
            height=height,
        )
        graph.nodes.append(RenderNode(id=card.id, data=data, position=layout[card.id]))

    graph.edges.extend(_story_edges(choices, layout, analysis, path, current_id))
    _add_suggestions(graph, suggestions, layout, hovered_suggestion_id)

    log.debug(
        "render_graph_built",
        nodes=len(graph.nodes),
        edges=len(graph.edges),
        hidden=len(hidden),
        suggestions=len(suggestions),
    )
    return graph


def _story_edges(
    choices: Sequence[Choice],
    visible: Mapping[str, Position],
    analysis: GraphAnalysis,
    path: AncestryPath,
    current_id: str | None,
) -> list[RenderEdge]:
    by_source: dict[str, list[Choice]] = {}
    for choice in choices:
        if choice.source_card_id not in visible or choice.target_card_id not in visible:
            continue
        by_source.setdefault(choice.source_card_id, []).append(choice)

    edges: list[RenderEdge] = []
    for source, outgoing in by_source.items():
        outgoing.sort(key=lambda c: c.order_index)
        is_branching = analysis.choice_count.get(source, 0) > 1
        for index, choice in enumerate(outgoing):
            on_path = choice.id in path.path_edge_ids
            emphasized = source == current_id
            stroke = BRANCH_STROKE_WIDTH if is_branching else BASE_STROKE_WIDTH
            edges.append(
                RenderEdge(
                    id=choice.id,
                    source=source,
                    target=choice.target_card_id or "",
                    label=choice.label if is_branching else None,
                    branch_index=index,
                    branch_count=len(outgoing),
                    stroke_width=stroke + 1 if on_path else stroke,
                    z_index=EMPHASIS_Z_INDEX if on_path or emphasized else 0,
                    is_on_path=on_path,
                    is_emphasized=emphasized,
                )
            )
    return edges


def _add_suggestions(
    graph: RenderGraph,
    suggestions: Sequence[SuggestedCard],
    positions: Mapping[str, Position],
    hovered_id: str | None,
) -> None:
    for index, suggestion in enumerate(suggestions):
        anchor = positions.get(suggestion.source_card_id, DEFAULT_SUGGESTION_ANCHOR)
        graph.nodes.append(
            RenderNode(
                id=suggestion.id,
                data=SuggestionNodeData(
                    source_card_id=suggestion.source_card_id,
                    title=suggestion.title,
                    content=suggestion.content,
                    choice_label=suggestion.choice_label,
                    confidence=suggestion.confidence,
                    is_hovered=suggestion.id == hovered_id,
                ),
                position=Position(
                    anchor.x + SUGGESTION_OFFSET_X,
                    anchor.y + (index - 1) * SUGGESTION_SPACING_Y,
                ),
            )
        )
        if suggestion.source_card_id not in positions:
            continue
        graph.edges.append(
            RenderEdge(
                id=f"suggestion-edge-{suggestion.id}",
                source=suggestion.source_card_id,
                target=suggestion.id,
                label=suggestion.choice_label or None,
                kind="suggestion",
                stroke_width=BASE_STROKE_WIDTH,
                is_animated=True,
                is_dashed=True,
                confidence_level=confidence_level(suggestion.confidence),
            )
        )


# ---------------------------------------------------------------------------
# Text export
# ---------------------------------------------------------------------------


def render_dot(graph: RenderGraph, *, no_labels: bool = False) -> str:
    """Render a RenderGraph as DOT (Graphviz) markup.

    Args:
        graph: Render graph.
        no_labels: If True, omit choice labels on edges.

    Returns:
        DOT format string.
    """
    lines = [
        "digraph story {",
        "  rankdir=LR;",
        '  node [fontname="Helvetica" fontsize=10 style="filled,solid"];',
        '  edge [fontname="Helvetica" fontsize=8];',
        "",
    ]

    for node in graph.nodes:
        attrs = _dot_node_attrs(node)
        attr_str = " ".join(f"{k}={v}" for k, v in attrs.items())
        lines.append(f'  "{node.id}" [{attr_str}];')

    lines.append("")

    for edge in graph.edges:
        edge_attrs: dict[str, str] = {}
        if not no_labels and edge.label:
            edge_attrs["label"] = f'"{_dot_escape(edge.label)}"'
        if edge.is_dashed:
            edge_attrs["style"] = '"dashed"'
            edge_attrs["color"] = '"grey"'
        if edge.is_on_path:
            edge_attrs["color"] = f'"{_PATH_COLOR}"'
            edge_attrs["penwidth"] = f'"{edge.stroke_width:g}"'
        edge_attr_str = " ".join(f"{k}={v}" for k, v in edge_attrs.items())
        suffix = f" [{edge_attr_str}]" if edge_attr_str else ""
        lines.append(f'  "{edge.source}" -> "{edge.target}"{suffix};')

    lines.append("}")
    return "\n".join(lines)


def render_mermaid(graph: RenderGraph, *, no_labels: bool = False) -> str:
    """Render a RenderGraph as Mermaid markup.

    Args:
        graph: Render graph.
        no_labels: If True, omit choice labels on edges.

    Returns:
        Mermaid format string.
    """
    lines = ["graph LR"]

    for node in graph.nodes:
        safe_id = _mermaid_id(node.id)
        label = _mermaid_escape(_node_label(node))
        data = node.data
        if isinstance(data, SuggestionNodeData):
            lines.append(f'  {safe_id}(["{label}"]):::suggestion')
        elif data.is_first:
            lines.append(f'  {safe_id}["{label}"]:::start')
        elif data.is_dead_end:
            lines.append(f'  {safe_id}["{label}"]:::ending')
        elif data.is_orphaned:
            lines.append(f'  {safe_id}["{label}"]:::orphan')
        else:
            lines.append(f'  {safe_id}["{label}"]')

    lines.append("")

    for edge in graph.edges:
        src = _mermaid_id(edge.source)
        dst = _mermaid_id(edge.target)
        arrow = "-.->" if edge.is_dashed else "-->"
        if not no_labels and edge.label:
            label = _mermaid_escape(edge.label)
            lines.append(f'  {src} {arrow}|"{label}"| {dst}')
        else:
            lines.append(f"  {src} {arrow} {dst}")

    lines.append("")
    lines.append(f"  classDef start fill:{_START_COLOR},stroke:#333")
    lines.append(f"  classDef ending fill:{_ENDING_COLOR},stroke:#333")
    lines.append(f"  classDef orphan stroke:{_ORPHAN_BORDER},stroke-width:3px")
    lines.append(f"  classDef suggestion fill:{_SUGGESTION_COLOR},stroke-dasharray:5 5")
    path_indices = [i for i, e in enumerate(graph.edges) if e.is_on_path]
    if path_indices:
        idx_list = ",".join(str(i) for i in path_indices)
        lines.append(f"  linkStyle {idx_list} stroke:{_PATH_COLOR},stroke-width:3px")

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _truncate(text: str, max_len: int) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _node_label(node: RenderNode) -> str:
    data = node.data
    label = _truncate(data.label, 40)
    if isinstance(data, StoryNodeData) and data.is_collapsed and data.hidden_descendant_count:
        label += f" (+{data.hidden_descendant_count})"
    return label


def _dot_node_attrs(node: RenderNode) -> dict[str, str]:
    """Build DOT attribute dict for a node."""
    attrs: dict[str, str] = {}
    data = node.data

    if isinstance(data, SuggestionNodeData):
        attrs["shape"] = "note"
        attrs["style"] = '"filled,dashed"'
        attrs["fillcolor"] = f'"{_SUGGESTION_COLOR}"'
    elif data.is_first:
        attrs["shape"] = "doubleoctagon"
        attrs["fillcolor"] = f'"{_START_COLOR}"'
    elif data.is_dead_end:
        attrs["shape"] = "octagon"
        attrs["fillcolor"] = f'"{_ENDING_COLOR}"'
    else:
        attrs["shape"] = "box"
        color = _INCOMPLETE_COLOR if data.is_incomplete else _DEFAULT_COLOR
        attrs["fillcolor"] = f'"{color}"'

    if isinstance(data, StoryNodeData):
        if data.is_orphaned:
            attrs["color"] = f'"{_ORPHAN_BORDER}"'
            attrs["penwidth"] = '"2.5"'
        elif data.is_on_path:
            attrs["color"] = f'"{_PATH_COLOR}"'
            attrs["penwidth"] = '"2"'

    attrs["label"] = f'"{_dot_escape(_node_label(node))}"'
    return attrs


def _dot_escape(text: str) -> str:
    """Escape special characters for DOT labels."""
    return text.replace('"', '\\"').replace("\n", "\\n")


def _mermaid_id(node_id: str) -> str:
    """Convert a node ID to a Mermaid-safe identifier.

    ASCII letters and digits pass through; every other character, the
    underscore included, becomes ``_<hex code point>_`` so distinct IDs
    never collide.
    """
    return "".join(
        ch if ch.isascii() and ch.isalnum() else f"_{ord(ch):x}_" for ch in node_id
    )


def _mermaid_escape(text: str) -> str:
    """Escape special characters for Mermaid labels."""
    return text.replace('"', "&quot;").replace("\n", " ")
