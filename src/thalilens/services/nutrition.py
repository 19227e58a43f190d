"""Macro arithmetic over food items."""

import math
from collections.abc import Iterable

from thalilens.domain.nutrition import NutritionInfo


def sum_nutrition(items: Iterable[NutritionInfo]) -> NutritionInfo:
    """Sum items componentwise.

    Each component is summed with ``math.fsum``, which is exactly rounded,
    so any permutation of ``items`` produces the same result.
    """
    materialized = list(items)
    if not materialized:
        return NutritionInfo.zero()
    return NutritionInfo(
        calories=math.fsum(item.calories for item in materialized),
        protein=math.fsum(item.protein for item in materialized),
        carbs=math.fsum(item.carbs for item in materialized),
        fat=math.fsum(item.fat for item in materialized),
    )


def total_calories(items: Iterable[NutritionInfo]) -> int:
    """Return the summed calories rounded to a whole number."""
    return round_half_up(sum_nutrition(items).calories)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return math.floor(value + 0.5)
