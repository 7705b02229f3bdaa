"""Story file loading.

Story files are the editor's JSON exports or hand-written YAML. JSON is a
subset of YAML 1.2, so one ruamel.yaml parser reads both.
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from storystack.errors import StoryNotFoundError, StoryParseError
from storystack.models.story import StoryStack
from storystack.observability.logging import get_logger

log = get_logger(__name__)


def _format_validation_errors(error: ValidationError) -> list[str]:
    details: list[str] = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        details.append(f"{location}: {item['msg']}")
    return details


def parse_story(data: Any, path: Path) -> StoryStack:
    """Validate already-parsed story data.

    Raises:
        StoryParseError: If the data does not match the story schema.
    """
    if not isinstance(data, dict):
        raise StoryParseError(path, "expected a mapping at the top level")
    try:
        return StoryStack.model_validate(data)
    except ValidationError as e:
        raise StoryParseError(
            path,
            f"{e.error_count()} validation error(s)",
            _format_validation_errors(e),
        ) from e


def load_story(path: Path) -> StoryStack:
    """Load a story from a JSON or YAML file.

    Args:
        path: Story file.

    Returns:
        The validated StoryStack.

    Raises:
        StoryNotFoundError: If the file does not exist.
        StoryParseError: If the file cannot be read, parsed or validated.
    """
    if not path.exists():
        raise StoryNotFoundError(path)

    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
    except (OSError, YAMLError) as e:
        raise StoryParseError(path, str(e)) from e

    if data is None:
        raise StoryParseError(path, "Empty file")

    story = parse_story(data, path)
    log.info(
        "story_loaded",
        path=str(path),
        cards=len(story.cards),
        choices=len(story.choices),
    )
    return story
