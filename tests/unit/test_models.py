"""Tests for story and render models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from storystack.models import Card, Choice, Position, StoryStack, SuggestedCard
from storystack.models.render import confidence_level


class TestCard:
    def test_camel_case_keys(self) -> None:
        card = Card.model_validate(
            {"id": "a", "title": "Gate", "imageUrl": "https://x/y.png", "orderIndex": 4}
        )

        assert card.image_url == "https://x/y.png"
        assert card.order_index == 4
        assert card.has_image

    def test_blank_image_is_none(self) -> None:
        card = Card.model_validate({"id": "a", "imageUrl": "   "})

        assert card.image_url is None
        assert not card.has_image

    def test_null_text_fields_become_empty(self) -> None:
        card = Card.model_validate({"id": "a", "title": None, "content": None})

        assert card.title == ""
        assert card.content == ""

    def test_id_is_required(self) -> None:
        with pytest.raises(ValidationError):
            Card.model_validate({"id": ""})

    def test_dump_uses_camel_case(self) -> None:
        dumped = Card(id="a", image_url="u", order_index=2).model_dump(by_alias=True)

        assert dumped["imageUrl"] == "u"
        assert dumped["orderIndex"] == 2


class TestChoice:
    def test_legacy_source_key(self) -> None:
        choice = Choice.model_validate({"id": "c", "storyCardId": "a", "targetCardId": "b"})

        assert choice.source_card_id == "a"
        assert choice.target_card_id == "b"
        assert not choice.is_dangling

    def test_empty_target_is_dangling(self) -> None:
        choice = Choice.model_validate({"id": "c", "sourceCardId": "a", "targetCardId": ""})

        assert choice.target_card_id is None
        assert choice.is_dangling

    def test_null_label_becomes_empty(self) -> None:
        choice = Choice.model_validate({"id": "c", "sourceCardId": "a", "label": None})

        assert choice.label == ""


class TestStoryStack:
    def test_lookup(self) -> None:
        story = StoryStack.model_validate(
            {"firstCardId": "a", "cards": [{"id": "a"}, {"id": "b"}]}
        )

        assert story.first_card_id == "a"
        assert story.card_ids() == ["a", "b"]
        assert story.get_card("b") is not None
        assert story.get_card("z") is None

    def test_blank_first_card_is_none(self) -> None:
        assert StoryStack.model_validate({"firstCardId": ""}).first_card_id is None

    def test_duplicate_card_ids(self) -> None:
        with pytest.raises(ValidationError, match="duplicate card id 'a'"):
            StoryStack.model_validate({"cards": [{"id": "a"}, {"id": "a"}]})

    def test_duplicate_choice_ids(self) -> None:
        with pytest.raises(ValidationError, match="duplicate choice id 'c'"):
            StoryStack.model_validate(
                {
                    "cards": [{"id": "a"}],
                    "choices": [
                        {"id": "c", "sourceCardId": "a"},
                        {"id": "c", "sourceCardId": "a"},
                    ],
                }
            )


class TestSuggestedCard:
    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            SuggestedCard(id="s", source_card_id="a", confidence=1.5)

    def test_default_confidence(self) -> None:
        assert SuggestedCard(id="s", source_card_id="a").confidence == 0.5

    @pytest.mark.parametrize(
        ("confidence", "level"),
        [(0.95, "high"), (0.8, "high"), (0.6, "medium"), (0.5, "medium"), (0.2, "low")],
    )
    def test_confidence_level(self, confidence: float, level: str) -> None:
        assert confidence_level(confidence) == level


class TestPosition:
    def test_value_equality(self) -> None:
        assert Position(1, 2) == Position(1.0, 2.0)
