"""Story validation with actionable fixes.

Each rule inspects a shared context and returns the issues it found.
Issues carry a severity, a category and, where one exists, a suggested
fix the editor can offer (apply automatically, open an editor, or jump
to a card).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from storystack.graph.analysis import (
    DEFAULT_PLACEHOLDER_TITLE,
    bfs_depths,
    card_has_content,
    card_has_title,
)
from storystack.observability.logging import get_logger

if TYPE_CHECKING:
    from storystack.models.story import Card, Choice

log = get_logger(__name__)

Severity = Literal["error", "warning", "info"]
Category = Literal[
    "missing_field",
    "unreachable_node",
    "invalid_relationship",
    "dead_end",
    "orphan",
    "circular_reference",
    "incomplete_content",
    "configuration",
]
FixKind = Literal["auto", "manual", "navigate"]
FixActionType = Literal[
    "set_first_card",
    "delete_choice",
    "delete_card",
    "navigate_to_card",
    "add_choice",
    "update_choice_target",
    "update_card_field",
]

SEVERITY_ORDER: dict[str, int] = {"error": 0, "warning": 1, "info": 2}

# Phrases that mark a card without choices as an intentional ending
ENDING_PHRASES = (
    "the end",
    "game over",
    "congratulations",
    "you win",
    "you lose",
    "thanks for playing",
)


@dataclass(frozen=True)
class FixAction:
    """What applying a fix does and to which card or choice."""

    type: FixActionType
    card_id: str | None = None
    choice_id: str | None = None
    target_card_id: str | None = None
    field: str | None = None


@dataclass(frozen=True)
class ValidationFix:
    """A fix the editor can offer for an issue."""

    kind: FixKind
    label: str
    action: FixAction


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found in a story.

    Attributes:
        id: Stable identifier, unique within one validation run.
        severity: "error", "warning" or "info".
        category: What kind of problem this is.
        card_id: Card the issue is about, if any.
        choice_id: Choice the issue is about, if any.
        title: Short headline.
        message: One-sentence explanation.
        fix: Suggested fix, if one exists.
    """

    id: str
    severity: Severity
    category: Category
    title: str
    message: str
    card_id: str | None = None
    choice_id: str | None = None
    fix: ValidationFix | None = None


@dataclass
class ValidationStats:
    total_cards: int = 0
    total_choices: int = 0
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    reachable_cards: int = 0
    orphaned_cards: int = 0
    dead_end_cards: int = 0
    incomplete_cards: int = 0


@dataclass
class ValidationResult:
    """All issues found in a story, errors first."""

    issues: list[ValidationIssue] = field(default_factory=list)
    stats: ValidationStats = field(default_factory=ValidationStats)

    @property
    def is_valid(self) -> bool:
        """True when no issue is an error."""
        return self.stats.errors == 0

    @property
    def summary(self) -> str:
        """Human-readable summary of issue counts."""
        parts: list[str] = []
        if self.stats.errors:
            parts.append(f"{self.stats.errors} errors")
        if self.stats.warnings:
            parts.append(f"{self.stats.warnings} warnings")
        if self.stats.infos:
            parts.append(f"{self.stats.infos} info")
        return ", ".join(parts) or "no issues"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass
class _Context:
    cards: Sequence[Card]
    choices: Sequence[Choice]
    root_id: str | None
    placeholder_title: str
    card_map: dict[str, Card]
    choices_by_card: dict[str, list[Choice]]
    reachable: set[str]


Rule = Callable[[_Context], list[ValidationIssue]]


def _display_title(card: Card) -> str:
    return card.title or "Untitled"


def _set_first_fix(card: Card) -> ValidationFix:
    return ValidationFix(
        kind="auto",
        label=f'Set "{_display_title(card)}" as first card',
        action=FixAction(type="set_first_card", card_id=card.id),
    )


def check_first_card(ctx: _Context) -> list[ValidationIssue]:
    """The story must have a start card, and it must exist."""
    suggested = ctx.cards[0] if ctx.cards else None
    fix = _set_first_fix(suggested) if suggested else None

    if ctx.root_id is None:
        return [
            ValidationIssue(
                id="no-first-card",
                severity="error",
                category="configuration",
                title="No entry point set",
                message=(
                    "The story has no starting card. "
                    "Set a first card to define where the story begins."
                ),
                fix=fix,
            )
        ]
    if ctx.root_id not in ctx.card_map:
        return [
            ValidationIssue(
                id="invalid-first-card",
                severity="error",
                category="invalid_relationship",
                card_id=ctx.root_id,
                title="Invalid entry point",
                message="The first card reference points to a non-existent card.",
                fix=fix,
            )
        ]
    return []


def check_orphaned_cards(ctx: _Context) -> list[ValidationIssue]:
    """Every card should be reachable from the start card."""
    issues: list[ValidationIssue] = []
    anchor = next((c for c in ctx.cards if c.id in ctx.reachable), None)

    for card in ctx.cards:
        if card.id == ctx.root_id or card.id in ctx.reachable:
            continue
        if anchor is not None:
            fix = ValidationFix(
                kind="navigate",
                label=f'Navigate to add a choice from "{_display_title(anchor)}"',
                action=FixAction(type="navigate_to_card", card_id=anchor.id),
            )
        else:
            fix = ValidationFix(
                kind="auto",
                label="Set as first card",
                action=FixAction(type="set_first_card", card_id=card.id),
            )
        issues.append(
            ValidationIssue(
                id=f"orphan-{card.id}",
                severity="warning",
                category="orphan",
                card_id=card.id,
                title="Orphaned scene",
                message=f'"{_display_title(card)}" is not reachable from the story start.',
                fix=fix,
            )
        )
    return issues


def looks_like_ending(card: Card) -> bool:
    """True when the card's text reads like a deliberate ending."""
    content = card.content.lower()
    return any(phrase in content for phrase in ENDING_PHRASES)


def check_dead_ends(ctx: _Context) -> list[ValidationIssue]:
    """Cards without choices should be deliberate endings."""
    return [
        ValidationIssue(
            id=f"dead-end-{card.id}",
            severity="warning",
            category="dead_end",
            card_id=card.id,
            title="Dead end scene",
            message=f'"{_display_title(card)}" has no choices for the player to continue.',
            fix=ValidationFix(
                kind="navigate",
                label="Add a choice",
                action=FixAction(type="add_choice", card_id=card.id),
            ),
        )
        for card in ctx.cards
        if not ctx.choices_by_card.get(card.id) and not looks_like_ending(card)
    ]


def check_choice_targets(ctx: _Context) -> list[ValidationIssue]:
    """Every choice needs a target, and the target must exist."""
    issues: list[ValidationIssue] = []
    for choice in ctx.choices:
        label = choice.label or "Untitled"
        if choice.target_card_id is None:
            issues.append(
                ValidationIssue(
                    id=f"no-target-{choice.id}",
                    severity="error",
                    category="invalid_relationship",
                    card_id=choice.source_card_id,
                    choice_id=choice.id,
                    title="Choice without destination",
                    message=f'Choice "{label}" has no target card.',
                    fix=ValidationFix(
                        kind="navigate",
                        label="Edit choice",
                        action=FixAction(
                            type="navigate_to_card", card_id=choice.source_card_id
                        ),
                    ),
                )
            )
        elif choice.target_card_id not in ctx.card_map:
            issues.append(
                ValidationIssue(
                    id=f"invalid-target-{choice.id}",
                    severity="error",
                    category="invalid_relationship",
                    card_id=choice.source_card_id,
                    choice_id=choice.id,
                    title="Invalid choice target",
                    message=f'Choice "{label}" points to a non-existent card.',
                    fix=ValidationFix(
                        kind="auto",
                        label="Delete this choice",
                        action=FixAction(type="delete_choice", choice_id=choice.id),
                    ),
                )
            )
    return issues


def check_incomplete_cards(ctx: _Context) -> list[ValidationIssue]:
    """Report cards missing a title, content or image."""
    issues: list[ValidationIssue] = []
    for card in ctx.cards:
        missing: list[str] = []
        if not card_has_title(card, ctx.placeholder_title):
            missing.append("title")
        if not card_has_content(card):
            missing.append("content")
        if not card.has_image:
            missing.append("image")
        if not missing:
            continue
        issues.append(
            ValidationIssue(
                id=f"incomplete-{card.id}",
                severity="info",
                category="incomplete_content",
                card_id=card.id,
                title="Incomplete scene",
                message=f'"{_display_title(card)}" is missing: {", ".join(missing)}.',
                fix=ValidationFix(
                    kind="navigate",
                    label="Complete this scene",
                    action=FixAction(type="navigate_to_card", card_id=card.id),
                ),
            )
        )
    return issues


def check_self_references(ctx: _Context) -> list[ValidationIssue]:
    """A choice that leads back to its own card is usually a mistake."""
    return [
        ValidationIssue(
            id=f"self-ref-{choice.id}",
            severity="warning",
            category="circular_reference",
            card_id=choice.source_card_id,
            choice_id=choice.id,
            title="Self-referencing choice",
            message=f'Choice "{choice.label or "Untitled"}" points back to its own card.',
            fix=ValidationFix(
                kind="navigate",
                label="Edit choice target",
                action=FixAction(type="navigate_to_card", card_id=choice.source_card_id),
            ),
        )
        for choice in ctx.choices
        if choice.target_card_id == choice.source_card_id
    ]


def check_duplicate_labels(ctx: _Context) -> list[ValidationIssue]:
    """Choices on one card should be distinguishable by their labels."""
    issues: list[ValidationIssue] = []
    for card in ctx.cards:
        by_label: dict[str, list[Choice]] = {}
        for choice in ctx.choices_by_card.get(card.id, []):
            label = choice.label.lower().strip()
            if label:
                by_label.setdefault(label, []).append(choice)
        for label, duplicates in by_label.items():
            if len(duplicates) < 2:
                continue
            issues.append(
                ValidationIssue(
                    id=f"dup-label-{card.id}-{label}",
                    severity="info",
                    category="configuration",
                    card_id=card.id,
                    choice_id=duplicates[0].id,
                    title="Duplicate choice labels",
                    message=f'Card has {len(duplicates)} choices with label "{label}".',
                    fix=ValidationFix(
                        kind="navigate",
                        label="Review choices",
                        action=FixAction(type="navigate_to_card", card_id=card.id),
                    ),
                )
            )
    return issues


def check_empty_labels(ctx: _Context) -> list[ValidationIssue]:
    """Players need visible text for every choice."""
    return [
        ValidationIssue(
            id=f"empty-label-{choice.id}",
            severity="warning",
            category="missing_field",
            card_id=choice.source_card_id,
            choice_id=choice.id,
            title="Empty choice label",
            message="A choice has no visible text for players.",
            fix=ValidationFix(
                kind="navigate",
                label="Edit choice",
                action=FixAction(type="navigate_to_card", card_id=choice.source_card_id),
            ),
        )
        for choice in ctx.choices
        if not choice.label.strip()
    ]


RULES: tuple[Rule, ...] = (
    check_first_card,
    check_orphaned_cards,
    check_dead_ends,
    check_choice_targets,
    check_incomplete_cards,
    check_self_references,
    check_duplicate_labels,
    check_empty_labels,
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def validate_story(
    cards: Sequence[Card],
    choices: Sequence[Choice],
    root_id: str | None,
    *,
    placeholder_title: str = DEFAULT_PLACEHOLDER_TITLE,
) -> ValidationResult:
    """Run every validation rule over a story.

    Args:
        cards: Story cards.
        choices: Story choices.
        root_id: Start card.
        placeholder_title: Title the editor gives new cards; such cards
            count as untitled.

    Returns:
        ValidationResult with issues sorted errors, then warnings, then info.
    """
    card_map = {card.id: card for card in cards}
    choices_by_card: dict[str, list[Choice]] = {}
    children_map: dict[str, list[str]] = {}
    for choice in choices:
        choices_by_card.setdefault(choice.source_card_id, []).append(choice)
        target = choice.target_card_id
        if target is not None and target in card_map:
            children_map.setdefault(choice.source_card_id, []).append(target)

    reachable: set[str] = set()
    if root_id is not None and root_id in card_map:
        reachable = set(bfs_depths(root_id, children_map))

    ctx = _Context(
        cards=cards,
        choices=choices,
        root_id=root_id,
        placeholder_title=placeholder_title,
        card_map=card_map,
        choices_by_card=choices_by_card,
        reachable=reachable,
    )

    issues: list[ValidationIssue] = []
    for rule in RULES:
        issues.extend(rule(ctx))
    # sort() is stable, so rule order is kept within a severity
    issues.sort(key=lambda issue: SEVERITY_ORDER[issue.severity])

    stats = ValidationStats(
        total_cards=len(cards),
        total_choices=len(choices),
        errors=sum(1 for i in issues if i.severity == "error"),
        warnings=sum(1 for i in issues if i.severity == "warning"),
        infos=sum(1 for i in issues if i.severity == "info"),
        reachable_cards=len(reachable),
        orphaned_cards=sum(1 for i in issues if i.category == "orphan"),
        dead_end_cards=sum(1 for i in issues if i.category == "dead_end"),
        incomplete_cards=sum(1 for i in issues if i.category == "incomplete_content"),
    )
    log.info(
        "story_validated",
        errors=stats.errors,
        warnings=stats.warnings,
        infos=stats.infos,
    )
    return ValidationResult(issues=issues, stats=stats)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def filter_by_severity(
    issues: Sequence[ValidationIssue], severities: Sequence[Severity]
) -> list[ValidationIssue]:
    return [issue for issue in issues if issue.severity in severities]


def filter_by_category(
    issues: Sequence[ValidationIssue], categories: Sequence[Category]
) -> list[ValidationIssue]:
    return [issue for issue in issues if issue.category in categories]


def issues_for_card(issues: Sequence[ValidationIssue], card_id: str) -> list[ValidationIssue]:
    return [issue for issue in issues if issue.card_id == card_id]
