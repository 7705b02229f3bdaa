"""Tests for story validation rules."""

from __future__ import annotations

from storystack.graph.validation import (
    ValidationResult,
    filter_by_category,
    filter_by_severity,
    issues_for_card,
    looks_like_ending,
    validate_story,
)
from tests.fixtures.stories import (
    make_branching_story,
    make_card,
    make_cards,
    make_choice,
    make_choices,
    make_linear_story,
)


def _ids(result: ValidationResult) -> list[str]:
    return [issue.id for issue in result.issues]


class TestEntryPoint:
    def test_missing_root(self) -> None:
        cards, choices, _ = make_linear_story()

        result = validate_story(cards, choices, None)
        issue = result.issues[0]

        assert issue.id == "no-first-card"
        assert issue.severity == "error"
        assert issue.fix is not None
        assert issue.fix.kind == "auto"
        assert issue.fix.action.type == "set_first_card"
        assert issue.fix.action.card_id == "a"
        assert not result.is_valid

    def test_root_naming_missing_card(self) -> None:
        cards, choices, _ = make_linear_story()

        result = validate_story(cards, choices, "ghost")

        assert result.issues[0].id == "invalid-first-card"
        assert result.issues[0].category == "invalid_relationship"

    def test_empty_story_without_root_has_no_fix(self) -> None:
        result = validate_story([], [], None)

        assert _ids(result) == ["no-first-card"]
        assert result.issues[0].fix is None


class TestOrphans:
    def test_orphan_points_to_a_reachable_card(self) -> None:
        cards, choices, root = make_branching_story()

        result = validate_story(cards, choices, root)
        orphan = next(i for i in result.issues if i.id == "orphan-x")

        assert orphan.severity == "warning"
        assert orphan.title == "Orphaned scene"
        assert orphan.fix is not None
        assert orphan.fix.kind == "navigate"
        assert orphan.fix.action.card_id == "a"
        assert result.stats.orphaned_cards == 1

    def test_orphan_without_reachable_cards_offers_set_first(self) -> None:
        cards = make_cards("a", "b")

        result = validate_story(cards, [], "ghost")
        orphan = next(i for i in result.issues if i.id == "orphan-a")

        assert orphan.fix is not None
        assert orphan.fix.action.type == "set_first_card"
        assert orphan.fix.action.card_id == "a"


class TestDeadEnds:
    def test_dead_end_without_ending_wording(self) -> None:
        cards, choices, root = make_linear_story()

        result = validate_story(cards, choices, root)

        assert "dead-end-c" in _ids(result)

    def test_ending_wording_is_not_a_dead_end(self) -> None:
        cards = [make_card("a"), make_card("b", content="And so... THE END.")]

        result = validate_story(cards, make_choices(("a", "b")), "a")

        assert "dead-end-b" not in _ids(result)

    def test_looks_like_ending(self) -> None:
        assert looks_like_ending(make_card("a", content="Game over, friend"))
        assert not looks_like_ending(make_card("a", content="The road goes on"))

    def test_dangling_choice_is_not_a_dead_end(self) -> None:
        cards = make_cards("a")
        choices = [make_choice("a", None, choice_id="open")]

        result = validate_story(cards, choices, "a")

        assert "dead-end-a" not in _ids(result)
        assert "no-target-open" in _ids(result)


class TestChoices:
    def test_choice_targets(self) -> None:
        cards = make_cards("a", "b")
        choices = [
            *make_choices(("a", "b")),
            make_choice("a", None, choice_id="open"),
            make_choice("b", "ghost", choice_id="broken"),
        ]

        result = validate_story(cards, choices, "a")
        by_id = {i.id: i for i in result.issues}

        assert by_id["no-target-open"].severity == "error"
        assert by_id["no-target-open"].title == "Choice without destination"
        assert by_id["invalid-target-broken"].fix is not None
        assert by_id["invalid-target-broken"].fix.action.type == "delete_choice"
        assert by_id["invalid-target-broken"].fix.action.choice_id == "broken"

    def test_self_reference(self) -> None:
        cards = make_cards("a")
        choices = [make_choice("a", "a", choice_id="loop")]

        result = validate_story(cards, choices, "a")
        issue = next(i for i in result.issues if i.id == "self-ref-loop")

        assert issue.category == "circular_reference"
        assert issue.severity == "warning"

    def test_duplicate_labels(self) -> None:
        cards = make_cards("a", "b", "c")
        choices = [
            make_choice("a", "b", label="Open the door"),
            make_choice("a", "c", label="  open the DOOR "),
        ]

        result = validate_story(cards, choices, "a")
        issue = next(i for i in result.issues if i.id.startswith("dup-label-"))

        assert issue.id == "dup-label-a-open the door"
        assert issue.severity == "info"
        assert issue.choice_id == "a-b"

    def test_empty_label(self) -> None:
        cards = make_cards("a", "b")
        choices = [make_choice("a", "b", label="   ")]

        result = validate_story(cards, choices, "a")
        issue = next(i for i in result.issues if i.id == "empty-label-a-b")

        assert issue.message == "A choice has no visible text for players."


class TestIncomplete:
    def test_missing_fields_are_listed(self) -> None:
        cards = [make_card("a", title="", content="", image_url=None)]

        result = validate_story(cards, [], "a")
        issue = next(i for i in result.issues if i.id == "incomplete-a")

        assert issue.severity == "info"
        assert issue.message == '"Untitled" is missing: title, content, image.'

    def test_custom_placeholder_title(self) -> None:
        cards = [make_card("a", title="New Scene")]

        default = validate_story(cards, [], "a")
        custom = validate_story(cards, [], "a", placeholder_title="New Scene")

        assert "incomplete-a" not in _ids(default)
        assert "incomplete-a" in _ids(custom)


class TestResult:
    def test_issues_sorted_by_severity(self) -> None:
        cards = [*make_cards("a", "b"), make_card("c", image_url=None)]
        choices = [make_choice("a", "ghost", choice_id="broken")]

        result = validate_story(cards, choices, "a")
        severities = [i.severity for i in result.issues]

        assert severities == sorted(severities, key=["error", "warning", "info"].index)
        assert severities[0] == "error"

    def test_stats(self) -> None:
        cards, choices, root = make_branching_story()

        result = validate_story(cards, choices, root)

        assert result.stats.total_cards == 6
        assert result.stats.total_choices == 5
        assert result.stats.reachable_cards == 5
        assert result.stats.errors == 0
        assert result.stats.dead_end_cards == 2
        assert result.is_valid
        assert result.summary == "3 warnings"

    def test_clean_story(self) -> None:
        cards = [make_card("a"), make_card("b", content="Thanks for playing!")]

        result = validate_story(cards, make_choices(("a", "b")), "a")

        assert result.issues == []
        assert result.summary == "no issues"

    def test_filters(self) -> None:
        cards, choices, root = make_branching_story()
        result = validate_story(cards, choices, root)

        warnings = filter_by_severity(result.issues, ["warning"])
        orphans = filter_by_category(result.issues, ["orphan"])

        assert {i.id for i in warnings} == {"orphan-x", "dead-end-e", "dead-end-x"}
        assert [i.id for i in orphans] == ["orphan-x"]
        assert {i.id for i in issues_for_card(result.issues, "x")} == {"orphan-x", "dead-end-x"}
