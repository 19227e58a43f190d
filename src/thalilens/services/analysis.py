"""Food analysis through a structured-output language model."""

import base64
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from thalilens.domain.analysis import (
    AnalyzedFood,
    DaySummary,
    EntrySummary,
    ImageAnalysis,
)
from thalilens.domain.ledger import LogEntry
from thalilens.domain.nutrition import FoodItem
from thalilens.errors import AnalysisError, ValidationError

FALLBACK_ENTRY_TITLE = "Meal"
FALLBACK_ENTRY_FEEDBACK = "Good job logging!"

FOOD_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "Name of the dish"},
        "portion_size": {
            "type": "string",
            "description": "Estimated portion size (e.g. 1 bowl, 2 pieces)",
        },
        "calories": {"type": "integer", "minimum": 0},
        "protein": {"type": "integer", "minimum": 0},
        "carbs": {"type": "integer", "minimum": 0},
        "fat": {"type": "integer", "minimum": 0},
        "description": {"type": "string"},
    },
    "required": [
        "name",
        "portion_size",
        "calories",
        "protein",
        "carbs",
        "fat",
        "description",
    ],
    "additionalProperties": False,
}

IMAGE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {"items": {"type": "array", "items": FOOD_SCHEMA}},
    "required": ["items"],
    "additionalProperties": False,
}

ENTRY_SUMMARY_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "feedback": {"type": "string"},
    },
    "required": ["title", "feedback"],
    "additionalProperties": False,
}

DAY_SUMMARY_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {"summary": {"type": "string"}},
    "required": ["summary"],
    "additionalProperties": False,
}

_IMAGE_PROMPT = (
    "Analyze this image of food. Identify each distinct dish or item "
    "(e.g. Butter Chicken, Dal Makhani, Garlic Naan, Basmati Rice, Raita). "
    "For each item, estimate the serving size visible in the image and the "
    "nutritional content (calories, protein, carbs, fat in grams). Be realistic "
    "about cooking methods that use ghee or oil. Give a short, appetizing "
    "description for each."
)

_ModelT = TypeVar("_ModelT", bound=BaseModel)

_logger = logging.getLogger(__name__)


class AnalysisClient(Protocol):
    """Interface for a structured-output language model."""

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        prompt: str,
        schema: dict[str, object],
        schema_name: str,
        image_data_url: str | None = None,
    ) -> dict[str, object]:
        """Return the decoded JSON object produced by the model."""


@dataclass
class FoodAnalysisService:
    """Turns model calls into validated domain values."""

    client: AnalysisClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def analyze_image(self, image_bytes: bytes) -> list[FoodItem]:
        """Estimate every dish visible in a meal photo."""
        if not image_bytes:
            raise ValidationError("image is empty")
        result = await self._generate(
            ImageAnalysis,
            prompt=_IMAGE_PROMPT,
            schema=IMAGE_SCHEMA,
            schema_name="meal_analysis",
            image_data_url=_to_data_url(image_bytes),
        )
        return [_to_food_item(item) for item in result.items]

    async def analyze_text(self, food_name: str) -> FoodItem:
        """Estimate nutrition for a dish typed in by the user."""
        if not food_name or not food_name.strip():
            raise ValidationError("food name must not be empty")
        prompt = (
            "Estimate the nutrition for one standard serving of "
            f'"{food_name.strip()}". '
            "Return the dish name, a typical portion size, calories, protein, "
            "carbs and fat in grams, and a short description."
        )
        result = await self._generate(
            AnalyzedFood,
            prompt=prompt,
            schema=FOOD_SCHEMA,
            schema_name="food_item",
        )
        return _to_food_item(result)

    async def summarize_entry(self, items: Sequence[FoodItem]) -> EntrySummary:
        """Title a meal and comment on it; never fails."""
        prompt = (
            "Here is a meal someone just logged:\n"
            f"{_describe_items(items)}\n"
            "Give it a short title (2-4 words) and one or two sentences of "
            "friendly, practical nutrition feedback."
        )
        try:
            summary = await self._generate(
                EntrySummary,
                prompt=prompt,
                schema=ENTRY_SUMMARY_SCHEMA,
                schema_name="entry_summary",
            )
        except AnalysisError:
            _logger.warning("Entry summary failed; using fallback text")
            return EntrySummary(
                title=FALLBACK_ENTRY_TITLE, feedback=FALLBACK_ENTRY_FEEDBACK
            )
        if not summary.feedback.strip():
            return EntrySummary(title=summary.title, feedback=FALLBACK_ENTRY_FEEDBACK)
        return summary

    async def summarize_day(
        self, entries: Sequence[LogEntry], goal_description: str
    ) -> DaySummary:
        """Summarize a day of meals against the user's goal."""
        meals = "\n".join(
            f"- {entry.title} ({entry.total_calories} kcal): "
            f"{', '.join(item.name for item in entry.items)}"
            for entry in entries
        )
        prompt = (
            f"The user's goal is: {goal_description}.\n"
            f"Today they logged these meals:\n{meals}\n"
            "Write a short, encouraging summary of the day with one concrete "
            "suggestion."
        )
        return await self._generate(
            DaySummary,
            prompt=prompt,
            schema=DAY_SUMMARY_SCHEMA,
            schema_name="day_summary",
        )

    async def _generate(
        self,
        result_type: type[_ModelT],
        *,
        prompt: str,
        schema: dict[str, object],
        schema_name: str,
        image_data_url: str | None = None,
    ) -> _ModelT:
        try:
            raw = await self.client.generate(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                prompt=prompt,
                schema=schema,
                schema_name=schema_name,
                image_data_url=image_data_url,
            )
        except AnalysisError:
            raise
        except Exception as exc:
            _logger.exception("Analysis call %s failed", schema_name)
            raise AnalysisError("analysis model call failed") from exc
        if not raw:
            raise AnalysisError("analysis model returned an empty result")
        try:
            return result_type.model_validate(raw)
        except PydanticValidationError as exc:
            _logger.warning(
                "Analysis result %s failed validation: %s", schema_name, exc
            )
            raise AnalysisError("analysis result failed validation") from exc


def _to_food_item(item: AnalyzedFood) -> FoodItem:
    return FoodItem(
        name=item.name,
        portion_size=item.portion_size,
        description=item.description,
        calories=float(item.calories),
        protein=float(item.protein),
        carbs=float(item.carbs),
        fat=float(item.fat),
    )


def _describe_items(items: Sequence[FoodItem]) -> str:
    return json.dumps(
        [
            {
                "name": item.name,
                "portion_size": item.portion_size,
                "calories": item.calories,
                "protein": item.protein,
                "carbs": item.carbs,
                "fat": item.fat,
            }
            for item in items
        ]
    )


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
