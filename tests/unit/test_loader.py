"""Tests for story file loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from storystack.errors import StoryNotFoundError, StoryParseError
from storystack.loader import load_story
from tests.fixtures.stories import make_linear_story, story_document


class TestLoadStory:
    def test_json_export(self, tmp_path: Path) -> None:
        path = tmp_path / "story.json"
        path.write_text(json.dumps(story_document(*make_linear_story())), encoding="utf-8")

        story = load_story(path)

        assert story.first_card_id == "a"
        assert story.card_ids() == ["a", "b", "c"]
        assert story.choices[0].source_card_id == "a"

    def test_yaml_with_snake_case(self, tmp_path: Path) -> None:
        path = tmp_path / "story.yaml"
        path.write_text(
            "title: Cave\n"
            "first_card_id: start\n"
            "cards:\n"
            "  - id: start\n"
            "    title: Entrance\n"
            "  - id: deep\n"
            "choices:\n"
            "  - id: c1\n"
            "    source_card_id: start\n"
            "    target_card_id: deep\n"
            "    label: Descend\n",
            encoding="utf-8",
        )

        story = load_story(path)

        assert story.title == "Cave"
        assert story.get_card("start") is not None
        assert story.choices[0].target_card_id == "deep"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(StoryNotFoundError):
            load_story(tmp_path / "nope.json")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        with pytest.raises(StoryParseError, match="Empty file"):
            load_story(path)

    def test_malformed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text('{"cards": [', encoding="utf-8")

        with pytest.raises(StoryParseError):
            load_story(path)

    def test_schema_errors_are_listed(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text(
            json.dumps({"cards": [{"title": "No id"}], "choices": []}),
            encoding="utf-8",
        )

        with pytest.raises(StoryParseError) as exc_info:
            load_story(path)

        assert exc_info.value.details
        assert "cards.0.id" in exc_info.value.details[0]

    def test_duplicate_card_ids(self, tmp_path: Path) -> None:
        path = tmp_path / "dupes.json"
        path.write_text(
            json.dumps({"cards": [{"id": "a"}, {"id": "a"}]}),
            encoding="utf-8",
        )

        with pytest.raises(StoryParseError, match="duplicate card id"):
            load_story(path)

    def test_top_level_list_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(StoryParseError, match="mapping"):
            load_story(path)


class TestSampleStory:
    def test_lighthouse_loads_and_validates(self, examples_path: Path) -> None:
        from storystack.graph.validation import validate_story

        story = load_story(examples_path / "lighthouse.yaml")
        result = validate_story(story.cards, story.choices, story.first_card_id)

        assert story.first_card_id == "shore"
        assert len(story.cards) == 6
        assert {i.id for i in result.issues} == {
            "no-target-tunnel-onward",
            "orphan-cove",
            "dead-end-cove",
            "incomplete-tunnel",
        }
