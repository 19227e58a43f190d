"""Nutrition domain models."""

import math
from dataclasses import dataclass

from thalilens.errors import ValidationError


@dataclass(frozen=True)
class NutritionInfo:
    """Calories plus macronutrients in grams."""

    calories: float
    protein: float
    carbs: float
    fat: float

    def __post_init__(self) -> None:
        for name in ("calories", "protein", "carbs", "fat"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValidationError(f"{name} must be a finite number")
            if value < 0:
                raise ValidationError(f"{name} must not be negative")

    @classmethod
    def zero(cls) -> "NutritionInfo":
        """Return the additive identity."""
        return cls(calories=0.0, protein=0.0, carbs=0.0, fat=0.0)

    def __add__(self, other: "NutritionInfo") -> "NutritionInfo":
        return NutritionInfo(
            calories=self.calories + other.calories,
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
        )


@dataclass(frozen=True)
class FoodItem(NutritionInfo):
    """A single dish estimated by analysis.

    Items are never patched in place; an edited dish is a new item.
    Calories are whole numbers so a day's stored total always equals the
    sum recomputed from its items.
    """

    name: str
    portion_size: str
    description: str

    def __post_init__(self) -> None:
        super().__post_init__()
        if not float(self.calories).is_integer():
            raise ValidationError("calories must be a whole number")
        if not self.name.strip():
            raise ValidationError("food item name must not be empty")
