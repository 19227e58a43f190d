"""Domain models for the per-day nutrition ledger."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from thalilens.domain.nutrition import FoodItem


@dataclass(frozen=True)
class LogEntry:
    """One saved meal: a titled group of dishes."""

    id: UUID
    timestamp: datetime
    title: str
    items: tuple[FoodItem, ...]
    total_calories: int
    entry_feedback: str | None = None


@dataclass(frozen=True)
class DailyLog:
    """Everything logged by one user on one calendar day."""

    date: str
    total_calories: int
    water_intake: int
    current_weight: float
    entries: tuple[LogEntry, ...]
    daily_feedback: str | None = None
