"""Data models for story content and render descriptors."""

from storystack.models.render import (
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    NodeData,
    Position,
    RenderEdge,
    RenderNode,
    StoryNodeData,
    SuggestionNodeData,
    confidence_level,
)
from storystack.models.story import Card, Choice, StoryStack, SuggestedCard

__all__ = [
    "DEFAULT_NODE_HEIGHT",
    "DEFAULT_NODE_WIDTH",
    "Card",
    "Choice",
    "NodeData",
    "Position",
    "RenderEdge",
    "RenderNode",
    "StoryNodeData",
    "StoryStack",
    "SuggestedCard",
    "SuggestionNodeData",
    "confidence_level",
]
