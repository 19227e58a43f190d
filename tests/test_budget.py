"""Tests for the calorie budget calculation."""

from datetime import UTC, date, datetime
from uuid import uuid4

import pytest

from thalilens.domain.profile import ActivityLevel, Goal, Sex, UserProfile
from thalilens.errors import ValidationError
from thalilens.services.budget import (
    BiometricInput,
    age_on,
    calculate_budget,
    goal_timeline,
    parse_activity_level,
    resolve_age,
)


def _input(**overrides) -> BiometricInput:
    values = {
        "sex": Sex.MALE,
        "height_cm": 175,
        "weight_kg": 70,
        "age": 30,
        "activity_level": ActivityLevel.MODERATE,
        "goal": Goal.MAINTAIN,
        "goal_pace": 0.5,
    }
    values.update(overrides)
    return BiometricInput(**values)


def test_maintain_budget_matches_tdee() -> None:
    plan = calculate_budget(_input())

    assert plan.bmr == 1649
    assert plan.tdee == 2556
    assert plan.daily_budget == 2556


def test_lose_budget_applies_weekly_deficit() -> None:
    plan = calculate_budget(_input(goal=Goal.LOSE))

    assert plan.daily_budget == 2006


def test_gain_budget_adds_surplus() -> None:
    plan = calculate_budget(_input(goal=Goal.GAIN))

    assert plan.daily_budget == 2856


def test_female_offset() -> None:
    plan = calculate_budget(
        _input(sex=Sex.FEMALE, activity_level=ActivityLevel.SEDENTARY)
    )

    assert plan.bmr == 1483
    assert plan.tdee == 1779


@pytest.mark.parametrize(
    "overrides",
    [
        {"height_cm": 0},
        {"weight_kg": -1},
        {"age": 0},
        {"goal": Goal.LOSE, "goal_pace": 0},
    ],
)
def test_invalid_inputs_are_rejected(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        calculate_budget(_input(**overrides))


def test_resolve_age_prefers_date_of_birth() -> None:
    today = date(2026, 6, 15)

    assert resolve_age(date(1996, 6, 16), 40, today) == 29
    assert resolve_age(None, 40, today) == 40


def test_resolve_age_requires_some_age() -> None:
    with pytest.raises(ValidationError):
        resolve_age(None, None, date(2026, 1, 1))


def test_age_on_birthday() -> None:
    assert age_on(date(2000, 3, 1), date(2026, 3, 1)) == 26


def test_parse_activity_level() -> None:
    assert parse_activity_level(1.725) is ActivityLevel.VERY_ACTIVE
    with pytest.raises(ValidationError):
        parse_activity_level(1.3)


def _profile(**overrides) -> UserProfile:
    values = {
        "uid": uuid4(),
        "email": None,
        "display_name": "",
        "date_of_birth": None,
        "created_at": datetime.now(tz=UTC),
        "goal": Goal.LOSE,
        "current_weight": 80.0,
        "target_weight": 75.0,
        "goal_pace": 0.5,
    }
    values.update(overrides)
    return UserProfile(**values)


def test_goal_timeline_in_weeks() -> None:
    assert goal_timeline(_profile()) == "Goal expected in 10 weeks"


def test_goal_timeline_when_maintaining() -> None:
    profile = _profile(goal=Goal.MAINTAIN, target_weight=80.0)

    assert goal_timeline(profile) == "Maintaining current weight"


def test_goal_timeline_without_plan() -> None:
    assert goal_timeline(_profile(goal_pace=None)) is None
