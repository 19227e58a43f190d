"""Structured outputs expected from the analysis model."""

from pydantic import BaseModel, Field


class AnalyzedFood(BaseModel):
    """Single dish as returned by the model."""

    name: str = Field(pattern=r"\S")
    portion_size: str
    calories: int = Field(ge=0)
    protein: int = Field(ge=0)
    carbs: int = Field(ge=0)
    fat: int = Field(ge=0)
    description: str


class ImageAnalysis(BaseModel):
    """All dishes detected in one photo."""

    items: list[AnalyzedFood]


class EntrySummary(BaseModel):
    """Title and short feedback for a saved meal."""

    title: str = Field(pattern=r"\S")
    feedback: str


class DaySummary(BaseModel):
    """Summary of a whole day of eating."""

    summary: str = Field(pattern=r"\S")
