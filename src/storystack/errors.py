"""Error types for StoryStack.

The graph engine itself never raises for bad story data: dangling
references are skipped and a missing start card degrades to empty
results. These errors come from the edges of the system, where a file
is read, a setting is parsed or a user names a card that does not exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches
from pathlib import Path  # noqa: TC003 - used at runtime in dataclass fields


class StoryStackError(Exception):
    """Base class for all StoryStack errors."""


@dataclass
class StoryNotFoundError(StoryStackError):
    """Raised when a story file does not exist.

    Attributes:
        path: The path that was looked up.
    """

    path: Path

    def __post_init__(self) -> None:
        super().__init__(f"Story file not found: {self.path}")


@dataclass
class StoryParseError(StoryStackError):
    """Raised when a story file cannot be read or fails schema validation.

    Attributes:
        path: The story file.
        reason: Human-readable description of the problem.
        details: Individual validation problems, one per entry.
    """

    path: Path
    reason: str
    details: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"Failed to parse story at {self.path}: {self.reason}"
        if self.details:
            msg += "\n" + "\n".join(f"  - {d}" for d in self.details)
        return msg


@dataclass
class CardNotFoundError(StoryStackError):
    """Raised when a command references a card id the story doesn't have.

    Attributes:
        card_id: The id that was referenced.
        available: Ids of the cards in the story.
        context: Where the reference came from (e.g. "orphan").
    """

    card_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def suggestions(self) -> list[str]:
        """Return ids close enough to the requested one to be likely typos."""
        return get_close_matches(self.card_id, self.available, n=3, cutoff=0.6)

    def _format_message(self) -> str:
        msg = f"Card '{self.card_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        matches = self.suggestions()
        if matches:
            msg += f". Did you mean: {', '.join(matches)}?"
        return msg


@dataclass
class ConfigError(StoryStackError):
    """Raised when configuration cannot be loaded or holds invalid values.

    Attributes:
        source: Where the bad value came from (file path or env var name).
        reason: What is wrong with it.
    """

    source: str
    reason: str

    def __post_init__(self) -> None:
        super().__init__(f"Invalid configuration in {self.source}: {self.reason}")
