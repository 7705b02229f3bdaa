"""Story data models.

Cards are the scenes of a story and choices are the directed, labeled
links between them. Story files written by the editor use camelCase keys
(``sourceCardId``, ``orderIndex``); both that spelling and snake_case are
accepted. Older exports call the source field ``storyCardId``.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Cards and choices
# ---------------------------------------------------------------------------


class Card(BaseModel):
    """A single scene in the story graph."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    title: str = ""
    content: str = ""
    image_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("image_url", "imageUrl"),
        serialization_alias="imageUrl",
    )
    order_index: int = Field(
        default=0,
        validation_alias=AliasChoices("order_index", "orderIndex"),
        serialization_alias="orderIndex",
        description="Creation/display order within the story",
    )

    @field_validator("title", "content", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("image_url", mode="before")
    @classmethod
    def _blank_image_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def has_image(self) -> bool:
        return self.image_url is not None


class Choice(BaseModel):
    """A directed edge from one card to another.

    A choice with no target is "dangling": the author has written the
    option but not yet decided where it leads.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    source_card_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("source_card_id", "sourceCardId", "storyCardId"),
        serialization_alias="sourceCardId",
    )
    target_card_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("target_card_id", "targetCardId"),
        serialization_alias="targetCardId",
    )
    label: str = ""
    order_index: int = Field(
        default=0,
        validation_alias=AliasChoices("order_index", "orderIndex"),
        serialization_alias="orderIndex",
        description="Ordering among sibling choices from the same source",
    )

    @field_validator("label", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("target_card_id", mode="before")
    @classmethod
    def _blank_target_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value:
            return None
        return value

    @property
    def is_dangling(self) -> bool:
        return self.target_card_id is None


# ---------------------------------------------------------------------------
# Story container
# ---------------------------------------------------------------------------


class StoryStack(BaseModel):
    """A complete story: its cards, choices and designated start card."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    title: str = ""
    first_card_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("first_card_id", "firstCardId"),
        serialization_alias="firstCardId",
    )
    cards: list[Card] = Field(default_factory=list)
    choices: list[Choice] = Field(default_factory=list)

    @field_validator("first_card_id", mode="before")
    @classmethod
    def _blank_root_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value:
            return None
        return value

    @model_validator(mode="after")
    def _unique_ids(self) -> StoryStack:
        seen: set[str] = set()
        for card in self.cards:
            if card.id in seen:
                raise ValueError(f"duplicate card id '{card.id}'")
            seen.add(card.id)
        seen.clear()
        for choice in self.choices:
            if choice.id in seen:
                raise ValueError(f"duplicate choice id '{choice.id}'")
            seen.add(choice.id)
        return self

    def card_ids(self) -> list[str]:
        """Return card ids in story order."""
        return [card.id for card in self.cards]

    def get_card(self, card_id: str) -> Card | None:
        """Look up a card by id."""
        for card in self.cards:
            if card.id == card_id:
                return card
        return None


# ---------------------------------------------------------------------------
# AI suggestions
# ---------------------------------------------------------------------------


class SuggestedCard(BaseModel):
    """A card proposed by the assistant, not yet accepted into the story.

    Suggestions are displayed beside the card they would branch from,
    connected by a provisional choice labeled ``choice_label``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    source_card_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("source_card_id", "sourceCardId"),
        serialization_alias="sourceCardId",
    )
    title: str = ""
    content: str = ""
    choice_label: str = Field(
        default="",
        validation_alias=AliasChoices("choice_label", "choiceLabel"),
        serialization_alias="choiceLabel",
    )
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
