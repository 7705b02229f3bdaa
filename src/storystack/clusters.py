"""Depth clusters over a rendered story.

Cards at the same depth from the start card form a cluster, named after
the stage of the story it usually holds ("Opening", "Act I", ...). A
cluster can be collapsed into a single marker placed at its center.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from storystack.models.render import DEFAULT_NODE_WIDTH, Position, StoryNodeData
from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.render import RenderNode

log = get_logger(__name__)

CLUSTER_PADDING = 32
MIN_CLUSTER_SIZE = 2
CLUSTER_NODE_HEIGHT = 95
COLLAPSED_CLUSTER_SIZE = 60

DEPTH_LABELS = (
    "Opening",
    "Act I",
    "Rising Action",
    "Midpoint",
    "Falling Action",
    "Climax",
    "Resolution",
)


def depth_label(depth: int) -> str:
    """Name of the story stage at ``depth``; deeper levels are numbered chapters."""
    if 0 <= depth < len(DEPTH_LABELS):
        return DEPTH_LABELS[depth]
    return f"Chapter {depth + 1}"


def cluster_id(depth: int) -> str:
    return f"cluster-depth-{depth}"


@dataclass(frozen=True)
class ClusterBounds:
    """Padded bounding box of a group of nodes."""

    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Position:
        return Position(self.min_x + self.width / 2, self.min_y + self.height / 2)

    def contains(self, point: Position) -> bool:
        """True when ``point`` lies inside or on the edge of the box."""
        return self.min_x <= point.x <= self.max_x and self.min_y <= point.y <= self.max_y


@dataclass(frozen=True)
class ClusterGroup:
    """Story nodes that share a depth.

    Attributes:
        id: ``cluster-depth-<depth>``.
        label: Stage name from ``depth_label``.
        depth: Shared depth of the members.
        node_ids: Member node ids in render order.
        bounds: Padded box around the members.
        is_collapsed: Whether the cluster is shown as a single marker.
    """

    id: str
    label: str
    depth: int
    node_ids: tuple[str, ...]
    bounds: ClusterBounds = field(default_factory=ClusterBounds)
    is_collapsed: bool = False

    @property
    def size(self) -> int:
        return len(self.node_ids)


def cluster_bounds(nodes: Iterable[RenderNode], padding: float = CLUSTER_PADDING) -> ClusterBounds:
    """Bounding box of ``nodes`` grown by ``padding`` on every side.

    Nodes without a size of their own count as 140x95. An empty input
    gives an all-zero box.
    """
    boxes = [
        (
            node.position.x,
            node.position.y,
            node.position.x + getattr(node.data, "width", DEFAULT_NODE_WIDTH),
            node.position.y + getattr(node.data, "height", CLUSTER_NODE_HEIGHT),
        )
        for node in nodes
    ]
    if not boxes:
        return ClusterBounds()
    return ClusterBounds(
        min_x=min(box[0] for box in boxes) - padding,
        min_y=min(box[1] for box in boxes) - padding,
        max_x=max(box[2] for box in boxes) + padding,
        max_y=max(box[3] for box in boxes) + padding,
    )


def create_depth_clusters(
    nodes: Sequence[RenderNode],
    collapsed: Collection[str] = (),
    *,
    min_size: int = MIN_CLUSTER_SIZE,
) -> list[ClusterGroup]:
    """Group story nodes by depth.

    Unreachable cards (depth -1) and suggestion nodes are left out, as
    are depths with fewer than ``min_size`` cards.

    Args:
        nodes: Render nodes, as built by ``build_render_graph``.
        collapsed: Ids of clusters the user collapsed.
        min_size: Smallest group that becomes a cluster.

    Returns:
        Clusters sorted by depth.
    """
    by_depth: dict[int, list[RenderNode]] = {}
    for node in nodes:
        if isinstance(node.data, StoryNodeData) and node.data.depth >= 0:
            by_depth.setdefault(node.data.depth, []).append(node)

    clusters = [
        ClusterGroup(
            id=cluster_id(depth),
            label=depth_label(depth),
            depth=depth,
            node_ids=tuple(node.id for node in members),
            bounds=cluster_bounds(members),
            is_collapsed=cluster_id(depth) in collapsed,
        )
        for depth, members in sorted(by_depth.items())
        if len(members) >= min_size
    ]
    log.debug("depth_clusters_created", clusters=len(clusters), depths=len(by_depth))
    return clusters


def collapsed_cluster_position(cluster: ClusterGroup) -> Position:
    """Top-left corner of the marker that stands in for a collapsed cluster."""
    center = cluster.bounds.center
    half = COLLAPSED_CLUSTER_SIZE / 2
    return Position(center.x - half, center.y - half)


def cluster_at(clusters: Iterable[ClusterGroup], point: Position) -> ClusterGroup | None:
    """First cluster whose bounds contain ``point``."""
    return next((c for c in clusters if c.bounds.contains(point)), None)
