"""Live editing session over a story graph.

``GraphSession`` keeps the node and edge lists a canvas shows and
applies engine settings at the points where they matter: rebuilds are
reconciled with the configured position threshold, viewport moves below
the viewport threshold are dropped, and visibility culling runs through
a throttle and debounce timed by the configured frame interval and
debounce delay.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import TYPE_CHECKING

from storystack.clusters import create_depth_clusters
from storystack.config import EngineConfig
from storystack.graph.analysis import analyze, completeness_policy
from storystack.graph.diff import reconcile_edges, reconcile_nodes
from storystack.observability.logging import get_logger
from storystack.render import build_render_graph
from storystack.search import search_nodes
from storystack.viewport import (
    ThrottleAndDebounce,
    Viewport,
    viewport_bounds,
    viewports_equal,
    visible_node_ids,
)

if TYPE_CHECKING:
    from storystack.clusters import ClusterGroup
    from storystack.graph.analysis import GraphAnalysis
    from storystack.models.render import Position, RenderEdge, RenderNode
    from storystack.models.story import StoryStack, SuggestedCard
    from storystack.search import SearchResult
    from storystack.viewport import Scheduler, ViewportBounds

log = get_logger(__name__)

DEFAULT_SCREEN_SIZE = (1280, 800)


class GraphSession:
    """Render state of one story as the user edits and explores it.

    Attributes:
        story: Story being shown.
        config: Engine settings.
        nodes: Nodes on screen, in stable order.
        edges: Edges on screen.
        viewport: Last accepted viewport.
        visible_ids: Nodes inside the viewport once panning settled.
    """

    def __init__(
        self,
        story: StoryStack,
        config: EngineConfig | None = None,
        *,
        screen_size: tuple[float, float] = DEFAULT_SCREEN_SIZE,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.story = story
        self.config = config or EngineConfig()
        self.screen_size = screen_size
        self.nodes: list[RenderNode] = []
        self.edges: list[RenderEdge] = []
        self.viewport = Viewport()
        self.live_viewport = self.viewport
        self.visible_ids: set[str] = set()
        self._analysis: GraphAnalysis | None = None
        self._pan = ThrottleAndDebounce.from_config(
            self._follow_viewport,
            self._settle_viewport,
            self.config,
            scheduler=scheduler,
        )

    @property
    def analysis(self) -> GraphAnalysis:
        if self._analysis is None:
            self._analysis = analyze(
                self.story.cards,
                self.story.choices,
                self.story.first_card_id,
                is_complete=completeness_policy(self.config.placeholder_title),
            )
        return self._analysis

    def get_node(self, node_id: str) -> RenderNode | None:
        return next((node for node in self.nodes if node.id == node_id), None)

    # -- graph updates --

    def refresh(
        self,
        *,
        current_id: str | None = None,
        collapsed: Collection[str] = (),
        suggestions: Sequence[SuggestedCard] = (),
    ) -> bool:
        """Rebuild the render graph and reconcile it with what is on screen.

        Returns:
            True if the nodes or edges changed.
        """
        graph = build_render_graph(
            self.story.cards,
            self.story.choices,
            self.story.first_card_id,
            analysis=self.analysis,
            current_id=current_id,
            collapsed=collapsed,
            suggestions=suggestions,
            placeholder_title=self.config.placeholder_title,
        )
        nodes = reconcile_nodes(
            self.nodes, graph.nodes, position_threshold=self.config.position_threshold
        )
        edges = reconcile_edges(self.edges, graph.edges)
        changed = nodes is not self.nodes or edges is not self.edges
        self.nodes, self.edges = nodes, edges
        if changed:
            self.visible_ids = visible_node_ids(self.nodes, self._bounds(self.viewport))
        return changed

    def update_story(
        self,
        story: StoryStack,
        *,
        current_id: str | None = None,
        collapsed: Collection[str] = (),
        suggestions: Sequence[SuggestedCard] = (),
    ) -> bool:
        """Swap in an edited story and refresh."""
        self.story = story
        self._analysis = None
        return self.refresh(current_id=current_id, collapsed=collapsed, suggestions=suggestions)

    def move_node(self, node_id: str, position: Position) -> None:
        """Record that the user dragged a node.

        Raises:
            KeyError: If no node with that id is on screen.
        """
        for index, node in enumerate(self.nodes):
            if node.id == node_id:
                self.nodes[index] = node.moved_to(position)
                return
        raise KeyError(node_id)

    # -- viewport --

    def set_viewport(self, viewport: Viewport) -> bool:
        """Accept a pan or zoom event.

        Moves smaller than ``config.viewport_threshold`` are ignored.

        Returns:
            True if the viewport was accepted.
        """
        if viewports_equal(self.viewport, viewport, threshold=self.config.viewport_threshold):
            return False
        self.viewport = viewport
        self._pan(viewport)
        return True

    def settle(self) -> None:
        """Run pending visibility work now, e.g. when the pointer is released."""
        self._pan.flush()

    def close(self) -> None:
        """Drop pending viewport work."""
        self._pan.cancel()

    def _follow_viewport(self, viewport: Viewport) -> None:
        self.live_viewport = viewport

    def _settle_viewport(self, viewport: Viewport) -> None:
        visible = visible_node_ids(self.nodes, self._bounds(viewport))
        if visible != self.visible_ids:
            self.visible_ids = visible
            log.debug("visible_nodes_changed", visible=len(visible), total=len(self.nodes))

    def _bounds(self, viewport: Viewport) -> ViewportBounds:
        width, height = self.screen_size
        return viewport_bounds(viewport, width, height)

    # -- queries --

    def search(self, query: str) -> list[SearchResult]:
        return search_nodes(self.nodes, query)

    def clusters(self, collapsed: Collection[str] = ()) -> list[ClusterGroup]:
        return create_depth_clusters(self.nodes, collapsed)
