"""Render descriptors handed to a drawing layer.

These are plain frozen dataclasses: they carry semantic flags only and
leave colors and shapes to whoever draws them. Node payloads are a
tagged variant so code that hashes or diffs nodes can branch on
``kind`` instead of probing attributes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal

NodeKind = Literal["story", "suggestion"]
EdgeKind = Literal["story", "suggestion"]
ConfidenceLevel = Literal["high", "medium", "low"]

DEFAULT_NODE_WIDTH = 140
DEFAULT_NODE_HEIGHT = 100


@dataclass(frozen=True)
class Position:
    """Top-left corner of a node in canvas coordinates."""

    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class StoryNodeData:
    """Payload of a node that projects a story card."""

    label: str
    is_first: bool = False
    is_orphaned: bool = False
    is_dead_end: bool = False
    is_incomplete: bool = False
    is_selected: bool = False
    is_on_path: bool = False
    has_title: bool = False
    has_content: bool = False
    has_image: bool = False
    choice_count: int = 0
    depth: int = -1
    is_collapsed: bool = False
    hidden_descendant_count: int = 0
    width: int = DEFAULT_NODE_WIDTH
    height: int = DEFAULT_NODE_HEIGHT
    kind: Literal["story"] = field(default="story", init=False)

    @property
    def has_choices(self) -> bool:
        return self.choice_count > 0


@dataclass(frozen=True)
class SuggestionNodeData:
    """Payload of a node that shows an AI-suggested card."""

    source_card_id: str
    title: str
    content: str = ""
    choice_label: str = ""
    confidence: float = 0.5
    is_hovered: bool = False
    kind: Literal["suggestion"] = field(default="suggestion", init=False)

    @property
    def label(self) -> str:
        return self.title


NodeData = StoryNodeData | SuggestionNodeData


@dataclass(frozen=True)
class RenderNode:
    """A positioned node descriptor."""

    id: str
    data: NodeData
    position: Position = field(default_factory=Position)

    @property
    def kind(self) -> NodeKind:
        return self.data.kind

    def moved_to(self, position: Position) -> RenderNode:
        """Return a copy of this node at another position."""
        return replace(self, position=position)


@dataclass(frozen=True)
class RenderEdge:
    """A directed edge descriptor.

    Story edges use the id of the choice they project, so ancestry edge
    ids can be matched against them directly.
    """

    id: str
    source: str
    target: str
    label: str | None = None
    kind: EdgeKind = "story"
    branch_index: int = 0
    branch_count: int = 1
    stroke_width: float = 2.0
    z_index: int = 0
    is_on_path: bool = False
    is_emphasized: bool = False
    is_animated: bool = False
    is_dashed: bool = False
    confidence_level: ConfidenceLevel | None = None


def confidence_level(confidence: float) -> ConfidenceLevel:
    """Bucket a suggestion confidence score."""
    if confidence >= 0.8:
        return "high"
    if confidence >= 0.5:
        return "medium"
    return "low"
