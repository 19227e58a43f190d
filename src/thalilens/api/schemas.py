"""Pydantic request models for the HTTP API."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from thalilens.domain.nutrition import FoodItem
from thalilens.domain.profile import Goal, Sex
from thalilens.services.profiles import OnboardingInput


class FoodItemPayload(BaseModel):
    """Dish as sent back by the client after review."""

    name: str = Field(pattern=r"\S")
    portion_size: str = ""
    description: str = ""
    calories: int = Field(ge=0)
    protein: int = Field(ge=0)
    carbs: int = Field(ge=0)
    fat: int = Field(ge=0)

    def to_domain(self) -> FoodItem:
        """Convert to the immutable domain item."""
        return FoodItem(
            name=self.name,
            portion_size=self.portion_size,
            description=self.description,
            calories=float(self.calories),
            protein=float(self.protein),
            carbs=float(self.carbs),
            fat=float(self.fat),
        )


class SaveMealRequest(BaseModel):
    """Items of a meal to append to a day."""

    items: list[FoodItemPayload] = Field(min_length=1)


class WaterRequest(BaseModel):
    """Water quick-log."""

    amount_ml: int


class TextAnalysisRequest(BaseModel):
    """Dish name typed by the user."""

    name: str


class DailyFeedbackRequest(BaseModel):
    """Goal wording used for the day's summary."""

    goal_description: str | None = None


class ProfileCreateRequest(BaseModel):
    """Identity fields captured at sign-up."""

    email: str | None = None
    display_name: str = ""
    date_of_birth: date | None = None


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; unset fields are left untouched.

    Plan inputs are changed by re-running onboarding.
    """

    model_config = ConfigDict(extra="forbid")

    display_name: str | None = None
    date_of_birth: date | None = None
    additional_metrics: list[str] | None = None

    def changed_fields(self) -> dict[str, object]:
        """Return only the fields the client sent."""
        return self.model_dump(exclude_unset=True)


class OnboardingRequest(BaseModel):
    """Answers from the onboarding flow."""

    sex: Sex
    height: float | None = None
    current_weight: float | None = None
    activity_level: float = 1.2
    goal: Goal
    target_weight: float | None = None
    goal_pace: float = 0.5
    age: int | None = None

    def to_domain(self) -> OnboardingInput:
        """Convert to the service input."""
        return OnboardingInput(
            sex=self.sex,
            height=self.height,
            current_weight=self.current_weight,
            activity_level=self.activity_level,
            goal=self.goal,
            target_weight=self.target_weight,
            goal_pace=self.goal_pace,
            age=self.age,
        )
