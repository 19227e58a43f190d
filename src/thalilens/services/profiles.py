"""User profiles and the onboarding calorie plan."""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol
from uuid import UUID

from thalilens.domain.profile import (
    TRACKED_METRICS,
    BudgetPlan,
    Goal,
    Sex,
    UserProfile,
)
from thalilens.errors import ValidationError
from thalilens.services.budget import (
    BiometricInput,
    calculate_budget,
    parse_activity_level,
    resolve_age,
)
from thalilens.services.ledger import require_user

_logger = logging.getLogger(__name__)

# Fields a client may change through a plain partial update. Plan inputs and
# outputs are only written together by onboarding.
EDITABLE_FIELDS = frozenset({"display_name", "date_of_birth", "additional_metrics"})


class ProfileRepository(Protocol):
    """Persistence interface for user profiles."""

    def get_profile(self, user_id: UUID) -> UserProfile | None:
        """Return the profile for a user, if present."""

    def create_profile(self, profile: UserProfile) -> UserProfile:
        """Store a new profile and return it."""

    def update_profile(self, user_id: UUID, fields: dict[str, object]) -> None:
        """Write only the named fields in one update."""


@dataclass(frozen=True)
class OnboardingInput:
    """Raw answers collected by the onboarding flow."""

    sex: Sex
    height: float | None
    current_weight: float | None
    activity_level: float
    goal: Goal
    target_weight: float | None = None
    goal_pace: float = 0.5
    age: int | None = None


@dataclass
class ProfileService:
    """Application service for profile lifecycle actions."""

    repository: ProfileRepository

    def create_profile(
        self,
        user_id: UUID | None,
        email: str | None,
        display_name: str,
        date_of_birth: date | None,
    ) -> UserProfile:
        """Create the identity part of a profile at sign-up."""
        uid = require_user(user_id)
        profile = UserProfile(
            uid=uid,
            email=email,
            display_name=display_name,
            date_of_birth=date_of_birth,
            created_at=datetime.now(tz=UTC),
        )
        return self.repository.create_profile(profile)

    def get_profile(self, user_id: UUID | None) -> UserProfile | None:
        """Return the caller's profile."""
        return self.repository.get_profile(require_user(user_id))

    def require_profile(self, user_id: UUID | None) -> UserProfile:
        """Return the caller's profile or fail validation."""
        profile = self.get_profile(user_id)
        if profile is None:
            raise ValidationError("profile not found")
        return profile

    def update_profile(
        self, user_id: UUID | None, fields: dict[str, object]
    ) -> UserProfile:
        """Apply a partial update to editable fields."""
        uid = require_user(user_id)
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"fields cannot be updated: {sorted(unknown)}")
        if "additional_metrics" in fields:
            fields = {
                **fields,
                "additional_metrics": _validate_metrics(fields["additional_metrics"]),
            }
        if fields:
            self.repository.update_profile(uid, fields)
        return self.require_profile(uid)

    def complete_onboarding(
        self,
        user_id: UUID | None,
        answers: OnboardingInput,
        today: date | None = None,
    ) -> UserProfile:
        """Compute the calorie plan and store it with its inputs at once."""
        profile = self.require_profile(user_id)
        if not answers.height or not answers.current_weight:
            raise ValidationError("height and weight are required")
        if answers.goal is not Goal.MAINTAIN and not answers.target_weight:
            raise ValidationError("target weight is required for this goal")
        age = resolve_age(
            profile.date_of_birth, answers.age, today or datetime.now(tz=UTC).date()
        )
        activity_level = parse_activity_level(answers.activity_level)
        plan = calculate_budget(
            BiometricInput(
                sex=answers.sex,
                height_cm=answers.height,
                weight_kg=answers.current_weight,
                age=age,
                activity_level=activity_level,
                goal=answers.goal,
                goal_pace=answers.goal_pace,
            )
        )
        fields = _plan_fields(answers, activity_level.value, plan)
        self.repository.update_profile(profile.uid, fields)
        _logger.info(
            "Onboarded user %s with daily budget %s", profile.uid, plan.daily_budget
        )
        return self.require_profile(profile.uid)

    def toggle_metric(self, user_id: UUID | None, metric: str) -> UserProfile:
        """Add the metric to the dashboard, or remove it if present."""
        profile = self.require_profile(user_id)
        if metric not in TRACKED_METRICS:
            raise ValidationError(f"unknown metric: {metric}")
        metrics = list(profile.additional_metrics)
        if metric in metrics:
            metrics.remove(metric)
        else:
            metrics.append(metric)
        self.repository.update_profile(
            profile.uid, {"additional_metrics": tuple(metrics)}
        )
        return self.require_profile(profile.uid)


def _plan_fields(
    answers: OnboardingInput, activity_level: float, plan: BudgetPlan
) -> dict[str, object]:
    return {
        "sex": answers.sex,
        "height": answers.height,
        "current_weight": answers.current_weight,
        "activity_level": activity_level,
        "goal": answers.goal,
        "target_weight": answers.target_weight or answers.current_weight,
        "goal_pace": answers.goal_pace,
        "bmr": plan.bmr,
        "tdee": plan.tdee,
        "daily_budget": plan.daily_budget,
    }


def _validate_metrics(raw: object) -> tuple[str, ...]:
    if not isinstance(raw, list | tuple):
        raise ValidationError("additional_metrics must be a list")
    metrics: list[str] = []
    for metric in raw:
        if metric not in TRACKED_METRICS:
            raise ValidationError(f"unknown metric: {metric}")
        if metric not in metrics:
            metrics.append(metric)
    return tuple(metrics)
