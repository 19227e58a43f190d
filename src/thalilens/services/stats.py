"""Dashboard totals and monthly statistics."""

from dataclasses import dataclass
from uuid import UUID

from thalilens.domain.ledger import DailyLog
from thalilens.domain.nutrition import NutritionInfo
from thalilens.services.ledger import DailyLogService, derive_totals
from thalilens.services.nutrition import round_half_up


@dataclass(frozen=True)
class DayTotals:
    """Macros derived from a day's entries plus water."""

    day: str
    nutrition: NutritionInfo
    water_ml: int


@dataclass(frozen=True)
class MonthSummary:
    """Calories over a calendar month."""

    year: int
    month: int
    total_calories: int
    avg_calories: int
    days_tracked: int
    logs: list[DailyLog]


@dataclass
class StatsService:
    """Service for dashboard and history figures."""

    daily_log_service: DailyLogService

    def get_day_totals(self, user_id: UUID | None, day: str) -> DayTotals:
        """Return the derived totals for a day; empty days are zero."""
        log = self.daily_log_service.get(user_id, day)
        if log is None:
            return DayTotals(day=day, nutrition=NutritionInfo.zero(), water_ml=0)
        return day_totals(log)

    def get_month(self, user_id: UUID | None, year: int, month: int) -> MonthSummary:
        """Return totals and the average over days that have a log."""
        logs = self.daily_log_service.fetch_month(user_id, year, month)
        total = sum(log.total_calories for log in logs)
        avg = round_half_up(total / len(logs)) if logs else 0
        return MonthSummary(
            year=year,
            month=month,
            total_calories=total,
            avg_calories=avg,
            days_tracked=len(logs),
            logs=logs,
        )


def day_totals(log: DailyLog) -> DayTotals:
    """Derive dashboard totals from a log document."""
    return DayTotals(
        day=log.date, nutrition=derive_totals(log), water_ml=log.water_intake
    )
