"""Daily ledger semantics and the persistence-facing log service."""

import calendar
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from typing import Protocol
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from thalilens.domain.ledger import DailyLog, LogEntry
from thalilens.domain.nutrition import FoodItem, NutritionInfo
from thalilens.errors import NotAuthenticatedError, ValidationError
from thalilens.services.feed import LogChangeFeed, LogObserver, notify
from thalilens.services.nutrition import sum_nutrition, total_calories

DATE_KEY_FORMAT = "%Y-%m-%d"

_logger = logging.getLogger(__name__)


class DailyLogRepository(Protocol):
    """Document store for daily logs keyed by (user id, date key).

    ``append_entry`` and ``increment_water`` must be store-native atomic
    create-or-merge operations.
    """

    def get_log(self, user_id: UUID, day: str) -> DailyLog | None:
        """Return the stored log, if any."""

    def create_log_if_absent(self, user_id: UUID, seed: DailyLog) -> DailyLog:
        """Insert ``seed`` unless a log exists and return the stored log."""

    def append_entry(self, user_id: UUID, day: str, entry: LogEntry) -> None:
        """Append an entry and increment the calorie total atomically."""

    def increment_water(self, user_id: UUID, day: str, amount_ml: int) -> None:
        """Increment water intake atomically."""

    def set_daily_feedback_if_absent(self, user_id: UUID, day: str, text: str) -> bool:
        """Write the feedback only where it is still null."""

    def list_logs(self, user_id: UUID, start: str, end: str) -> list[DailyLog]:
        """Return logs whose date key lies in the inclusive range."""


def new_daily_log(day: str, current_weight: float = 0.0) -> DailyLog:
    """Return an empty log for ``day``."""
    return DailyLog(
        date=parse_date_key(day).strftime(DATE_KEY_FORMAT),
        total_calories=0,
        water_intake=0,
        current_weight=current_weight,
        entries=(),
    )


def build_entry(
    title: str,
    items: Sequence[FoodItem],
    entry_feedback: str | None,
    timestamp: datetime | None = None,
) -> LogEntry:
    """Create a new immutable entry for a saved meal."""
    if not items:
        raise ValidationError("a meal needs at least one item")
    return LogEntry(
        id=uuid4(),
        timestamp=timestamp or datetime.now(tz=UTC),
        title=title,
        items=tuple(items),
        total_calories=total_calories(items),
        entry_feedback=entry_feedback,
    )


def append_entry(log: DailyLog, entry: LogEntry) -> DailyLog:
    """Append ``entry`` in insertion order and bump the calorie total."""
    return replace(
        log,
        entries=(*log.entries, entry),
        total_calories=log.total_calories + entry.total_calories,
    )


def add_water(log: DailyLog, amount_ml: int) -> DailyLog:
    """Add water intake in millilitres."""
    validate_water_amount(amount_ml)
    return replace(log, water_intake=log.water_intake + amount_ml)


def set_daily_feedback(log: DailyLog, text: str) -> DailyLog:
    """Set the day's feedback once; later calls leave the log unchanged."""
    if not needs_daily_feedback(log):
        return log
    return replace(log, daily_feedback=text)


def needs_daily_feedback(log: DailyLog | None) -> bool:
    """Return True when the day has entries but no feedback yet."""
    return log is not None and bool(log.entries) and log.daily_feedback is None


def derive_totals(log: DailyLog) -> NutritionInfo:
    """Recompute macros from every item of every entry."""
    return sum_nutrition(item for entry in log.entries for item in entry.items)


def validate_water_amount(amount_ml: int) -> None:
    """Reject non-positive or non-integer water amounts."""
    if isinstance(amount_ml, bool) or not isinstance(amount_ml, int):
        raise ValidationError("water amount must be a whole number of millilitres")
    if amount_ml <= 0:
        raise ValidationError("water amount must be positive")


def date_key(day: date) -> str:
    """Format a calendar date as a ledger key."""
    return day.strftime(DATE_KEY_FORMAT)


def parse_date_key(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` key."""
    try:
        parsed = datetime.strptime(value, DATE_KEY_FORMAT).date()
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"invalid date key: {value!r}") from exc
    if date_key(parsed) != value:
        raise ValidationError(f"invalid date key: {value!r}")
    return parsed


def today_key(timezone_name: str, now: datetime | None = None) -> str:
    """Return today's key in the caller's timezone."""
    try:
        tz = ZoneInfo(timezone_name)
    except (ValueError, KeyError) as exc:
        raise ValidationError(f"unknown timezone: {timezone_name}") from exc
    current = now.astimezone(tz) if now else datetime.now(tz=tz)
    return date_key(current.date())


def month_range(year: int, month: int) -> tuple[str, str]:
    """Return the first and last date keys of a calendar month."""
    if not 1 <= month <= 12:  # noqa: PLR2004
        raise ValidationError(f"invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date_key(date(year, month, 1)), date_key(date(year, month, last_day))


@dataclass
class DailyLogService:
    """Store-facing operations on daily logs with live observers."""

    repository: DailyLogRepository
    feed: LogChangeFeed = field(default_factory=LogChangeFeed)

    def get(self, user_id: UUID | None, day: str) -> DailyLog | None:
        """Return the log for ``day`` if it exists."""
        uid = require_user(user_id)
        parse_date_key(day)
        return self.repository.get_log(uid, day)

    def create_if_absent(self, user_id: UUID | None, seed: DailyLog) -> DailyLog:
        """Create the day's log from ``seed`` unless one already exists."""
        uid = require_user(user_id)
        parse_date_key(seed.date)
        stored = self.repository.create_log_if_absent(uid, seed)
        self._publish(uid, seed.date, stored)
        return stored

    def merge_append_entry(
        self, user_id: UUID | None, day: str, entry: LogEntry
    ) -> None:
        """Append an entry, creating the log on the first write of the day."""
        uid = require_user(user_id)
        parse_date_key(day)
        self.repository.append_entry(uid, day, entry)
        _logger.info(
            "Appended entry %s to %s (%s kcal)", entry.id, day, entry.total_calories
        )
        self._refresh(uid, day)

    def merge_add_water(self, user_id: UUID | None, day: str, amount_ml: int) -> None:
        """Add water, creating the log on the first write of the day."""
        uid = require_user(user_id)
        validate_water_amount(amount_ml)
        parse_date_key(day)
        self.repository.increment_water(uid, day, amount_ml)
        self._refresh(uid, day)

    def set_daily_feedback(self, user_id: UUID | None, day: str, text: str) -> bool:
        """Store the day's feedback if none is stored yet."""
        uid = require_user(user_id)
        parse_date_key(day)
        applied = self.repository.set_daily_feedback_if_absent(uid, day, text)
        if applied:
            self._refresh(uid, day)
        return applied

    def subscribe(
        self, user_id: UUID | None, day: str, on_change: LogObserver
    ) -> Callable[[], None]:
        """Observe a day's log; the current state is delivered at once.

        Changes are published by this service after its own writes, so only
        writes made through this process reach the observer. A client that
        reconnects gets the stored state again as its first delivery.
        """
        uid = require_user(user_id)
        parse_date_key(day)
        unsubscribe = self.feed.register((uid, day), on_change)
        notify(on_change, self.repository.get_log(uid, day))
        return unsubscribe

    def fetch_range(
        self, user_id: UUID | None, start: str, end: str
    ) -> list[DailyLog]:
        """Return logs between two date keys inclusive, oldest first."""
        uid = require_user(user_id)
        if parse_date_key(start) > parse_date_key(end):
            raise ValidationError("range start must not be after its end")
        logs = self.repository.list_logs(uid, start, end)
        return sorted(logs, key=lambda log: log.date)

    def fetch_month(
        self, user_id: UUID | None, year: int, month: int
    ) -> list[DailyLog]:
        """Return the logs of a calendar month, oldest first."""
        start, end = month_range(year, month)
        return self.fetch_range(user_id, start, end)

    def _refresh(self, user_id: UUID, day: str) -> None:
        if self.feed.observer_count((user_id, day)) == 0:
            return
        self._publish(user_id, day, self.repository.get_log(user_id, day))

    def _publish(self, user_id: UUID, day: str, log: DailyLog | None) -> None:
        self.feed.publish((user_id, day), log)


def require_user(user_id: UUID | None) -> UUID:
    """Return the uid or fail when the caller is anonymous."""
    if not user_id:
        raise NotAuthenticatedError("User not authenticated")
    return user_id
