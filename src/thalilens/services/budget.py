"""Calorie budget calculation (Mifflin-St Jeor)."""

from dataclasses import dataclass
from datetime import date

from thalilens.domain.profile import (
    ActivityLevel,
    BudgetPlan,
    Goal,
    Sex,
    UserProfile,
)
from thalilens.errors import ValidationError
from thalilens.services.nutrition import round_half_up

KCAL_PER_KG = 7700
GAIN_SURPLUS_KCAL = 300


@dataclass(frozen=True)
class BiometricInput:
    """Resolved inputs for the budget calculation."""

    sex: Sex
    height_cm: float
    weight_kg: float
    age: int
    activity_level: ActivityLevel
    goal: Goal
    goal_pace: float = 0.0


def calculate_budget(data: BiometricInput) -> BudgetPlan:
    """Compute BMR, TDEE and the daily budget.

    Only the three outputs are rounded; intermediate values keep full
    precision.
    """
    _validate(data)
    bmr = 10 * data.weight_kg + 6.25 * data.height_cm - 5 * data.age
    bmr += 5 if data.sex is Sex.MALE else -161
    tdee = bmr * data.activity_level.value
    if data.goal is Goal.LOSE:
        daily_budget = tdee - (data.goal_pace * KCAL_PER_KG) / 7
    elif data.goal is Goal.GAIN:
        daily_budget = tdee + GAIN_SURPLUS_KCAL
    else:
        daily_budget = tdee
    return BudgetPlan(
        bmr=round_half_up(bmr),
        tdee=round_half_up(tdee),
        daily_budget=round_half_up(daily_budget),
    )


def resolve_age(
    date_of_birth: date | None, manual_age: int | None, today: date
) -> int:
    """Return the age to use; a birth date wins over a manual entry."""
    if date_of_birth is not None:
        return age_on(date_of_birth, today)
    if manual_age is not None:
        return manual_age
    raise ValidationError("age is required when no date of birth is on file")


def age_on(date_of_birth: date, today: date) -> int:
    """Return completed years between the birth date and ``today``."""
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def parse_activity_level(value: float) -> ActivityLevel:
    """Map a raw multiplier onto one of the supported activity levels."""
    try:
        return ActivityLevel(value)
    except ValueError as exc:
        raise ValidationError(f"unsupported activity level: {value}") from exc


def goal_timeline(profile: UserProfile) -> str | None:
    """Describe how long the current plan needs to reach the target weight."""
    if not (profile.current_weight and profile.target_weight and profile.goal_pace):
        return None
    diff = abs(profile.current_weight - profile.target_weight)
    if diff > 0:
        weeks = round_half_up(diff / profile.goal_pace)
        return f"Goal expected in {weeks} weeks"
    if profile.goal is Goal.MAINTAIN:
        return "Maintaining current weight"
    return None


def _validate(data: BiometricInput) -> None:
    if data.height_cm <= 0:
        raise ValidationError("height must be positive")
    if data.weight_kg <= 0:
        raise ValidationError("weight must be positive")
    if data.age <= 0:
        raise ValidationError("age must be positive")
    if data.goal is Goal.LOSE and data.goal_pace <= 0:
        raise ValidationError("goal pace must be positive when losing weight")
