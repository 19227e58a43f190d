"""Domain models for user profiles and calorie plans."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID


class Sex(str, Enum):
    """Biological sex used by the BMR formula."""

    MALE = "male"
    FEMALE = "female"


class Goal(str, Enum):
    """Weight goal selected during onboarding."""

    LOSE = "lose"
    MAINTAIN = "maintain"
    GAIN = "gain"


class ActivityLevel(float, Enum):
    """Activity multipliers applied to BMR."""

    SEDENTARY = 1.2
    LIGHT = 1.375
    MODERATE = 1.55
    VERY_ACTIVE = 1.725
    EXTRA_ACTIVE = 1.9


TRACKED_METRICS = frozenset({"fat", "protein", "water", "carbs"})


@dataclass(frozen=True)
class BudgetPlan:
    """Rounded outputs of the budget calculation."""

    bmr: int
    tdee: int
    daily_budget: int


@dataclass(frozen=True)
class UserProfile:
    """Account profile plus the optional onboarding plan."""

    uid: UUID
    email: str | None
    display_name: str
    date_of_birth: date | None
    created_at: datetime
    sex: Sex | None = None
    height: float | None = None
    current_weight: float | None = None
    activity_level: float | None = None
    goal: Goal | None = None
    target_weight: float | None = None
    goal_pace: float | None = None
    bmr: int | None = None
    tdee: int | None = None
    daily_budget: int | None = None
    additional_metrics: tuple[str, ...] = ()

    @property
    def is_onboarded(self) -> bool:
        """Return True once a daily budget has been computed."""
        return self.daily_budget is not None
