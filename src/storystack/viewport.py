"""Rate limiting for high-frequency viewport events.

Pan and zoom fire many events per frame. ``FrameThrottle`` lets at most
one call through per frame with the latest arguments, ``Debounce`` waits
until the events stop, and ``ThrottleAndDebounce`` does both: cheap work
follows the pointer, expensive work runs once the interaction ends.

Timers go through a ``Scheduler``. An asyncio event loop is one, and the
running loop is used unless another scheduler is passed in.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from storystack.models.render import DEFAULT_NODE_HEIGHT, DEFAULT_NODE_WIDTH
from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.config import EngineConfig
    from storystack.models.render import RenderNode

log = get_logger(__name__)

DEFAULT_FRAME_INTERVAL = 1 / 60
DEFAULT_DEBOUNCE_DELAY = 0.15
DEFAULT_VIEWPORT_THRESHOLD = 0.5
ZOOM_THRESHOLD = 0.01
DEFAULT_VIEWPORT_PADDING = 200


class ScheduledHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay in seconds."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledHandle: ...


def _resolve(scheduler: Scheduler | None) -> Scheduler:
    if scheduler is not None:
        return scheduler
    return asyncio.get_running_loop()


class FrameThrottle:
    """Run a callback at most once per frame with the latest arguments.

    The first call in a frame schedules a run; later calls in the same
    frame only replace the arguments it will run with.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        *,
        scheduler: Scheduler | None = None,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
    ) -> None:
        self._callback = callback
        self._scheduler = scheduler
        self._frame_interval = frame_interval
        self._handle: ScheduledHandle | None = None
        self._last_args: tuple[Any, ...] | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any) -> None:
        self._last_args = args
        if self._handle is None:
            self._scheduler = _resolve(self._scheduler)
            self._handle = self._scheduler.call_later(self._frame_interval, self._run)

    def _run(self) -> None:
        self._handle = None
        args, self._last_args = self._last_args, None
        if args is not None:
            self._callback(*args)

    def cancel(self) -> None:
        """Drop the scheduled run, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._last_args = None


class Debounce:
    """Run a callback once calls have stopped for ``delay`` seconds."""

    def __init__(
        self,
        callback: Callable[..., Any],
        delay: float,
        *,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._callback = callback
        self._delay = delay
        self._scheduler = scheduler
        self._handle: ScheduledHandle | None = None
        self._last_args: tuple[Any, ...] | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: Any) -> None:
        self._last_args = args
        if self._handle is not None:
            self._handle.cancel()
        self._scheduler = _resolve(self._scheduler)
        self._handle = self._scheduler.call_later(self._delay, self._run)

    def _run(self) -> None:
        self._handle = None
        args, self._last_args = self._last_args, None
        if args is not None:
            self._callback(*args)

    def cancel(self) -> None:
        """Drop the pending run without calling the callback."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._last_args = None

    def flush(self) -> None:
        """Run the pending call now. Does nothing when nothing is pending."""
        if self._handle is None or self._last_args is None:
            return
        self._handle.cancel()
        self._run()


class ThrottleAndDebounce:
    """Feed every call to a frame throttle and a debounce.

    Args:
        throttled: Called at most once per frame during the interaction.
        debounced: Called once with the final arguments after it ends.
        debounce_delay: Quiet period in seconds.
        scheduler: Timer source shared by both halves.
        frame_interval: Frame length in seconds.
    """

    def __init__(
        self,
        throttled: Callable[..., Any],
        debounced: Callable[..., Any],
        *,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        scheduler: Scheduler | None = None,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
    ) -> None:
        self.throttle = FrameThrottle(throttled, scheduler=scheduler, frame_interval=frame_interval)
        self.debounce = Debounce(debounced, debounce_delay, scheduler=scheduler)

    @classmethod
    def from_config(
        cls,
        throttled: Callable[..., Any],
        debounced: Callable[..., Any],
        config: EngineConfig,
        *,
        scheduler: Scheduler | None = None,
    ) -> ThrottleAndDebounce:
        """Create a pair timed by ``config.debounce_delay`` and ``config.frame_interval``."""
        return cls(
            throttled,
            debounced,
            debounce_delay=config.debounce_delay,
            scheduler=scheduler,
            frame_interval=config.frame_interval,
        )

    def __call__(self, *args: Any) -> None:
        self.throttle(*args)
        self.debounce(*args)

    def cancel(self) -> None:
        self.throttle.cancel()
        self.debounce.cancel()

    def flush(self) -> None:
        """Run the debounced callback now if it is pending."""
        self.debounce.flush()


# ---------------------------------------------------------------------------
# Viewport comparison
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Viewport:
    """Pan offset and zoom of the canvas."""

    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


def viewports_equal(
    a: Viewport | None,
    b: Viewport | None,
    threshold: float = DEFAULT_VIEWPORT_THRESHOLD,
) -> bool:
    """True when two viewports differ by less than ``threshold`` pixels.

    Zoom uses a fixed tolerance of 0.01. Two missing viewports are equal;
    a missing and a present one are not.
    """
    if a is None or b is None:
        return a is b
    return (
        abs(a.x - b.x) < threshold
        and abs(a.y - b.y) < threshold
        and abs(a.zoom - b.zoom) < ZOOM_THRESHOLD
    )


# ---------------------------------------------------------------------------
# Visibility culling
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ViewportBounds:
    """Visible area of the canvas in graph coordinates."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float


def viewport_bounds(
    viewport: Viewport,
    width: float,
    height: float,
    *,
    padding: float = DEFAULT_VIEWPORT_PADDING,
) -> ViewportBounds:
    """Graph-space rectangle shown by a ``width`` x ``height`` screen.

    ``padding`` widens the rectangle on every side so nodes just off
    screen are already present when the user pans to them.

    Raises:
        ValueError: If the viewport zoom is not positive.
    """
    if viewport.zoom <= 0:
        raise ValueError(f"zoom must be positive, got {viewport.zoom}")
    return ViewportBounds(
        min_x=-viewport.x / viewport.zoom - padding,
        min_y=-viewport.y / viewport.zoom - padding,
        max_x=(width - viewport.x) / viewport.zoom + padding,
        max_y=(height - viewport.y) / viewport.zoom + padding,
    )


def is_node_visible(node: RenderNode, bounds: ViewportBounds) -> bool:
    """True when any part of the node's box overlaps ``bounds``."""
    width = getattr(node.data, "width", DEFAULT_NODE_WIDTH)
    height = getattr(node.data, "height", DEFAULT_NODE_HEIGHT)
    left, top = node.position.x, node.position.y
    return not (
        left + width < bounds.min_x
        or left > bounds.max_x
        or top + height < bounds.min_y
        or top > bounds.max_y
    )


def visible_node_ids(
    nodes: Iterable[RenderNode],
    bounds: ViewportBounds | None,
) -> set[str]:
    """Ids of the nodes inside ``bounds``; every node when bounds is None."""
    if bounds is None:
        return {node.id for node in nodes}
    return {node.id for node in nodes if is_node_visible(node, bounds)}
