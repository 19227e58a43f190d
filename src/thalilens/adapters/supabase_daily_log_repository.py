"""Supabase repository for daily logs."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from thalilens.domain.ledger import DailyLog, LogEntry
from thalilens.domain.nutrition import FoodItem
from thalilens.errors import PersistenceError
from thalilens.services.ledger import DailyLogRepository

_COLUMNS = (
    "date, total_calories, water_intake, current_weight, entries, daily_feedback"
)


@dataclass
class SupabaseDailyLogRepository(DailyLogRepository):
    """Supabase implementation for daily logs.

    Appends and increments go through SQL functions that perform
    ``insert ... on conflict do update`` in one statement.
    """

    client: Client

    def get_log(self, user_id: UUID, day: str) -> DailyLog | None:
        """Return the log row for a day."""
        response = _execute(
            self.client.table("daily_logs")
            .select(_COLUMNS)
            .eq("user_id", str(user_id))
            .eq("date", day)
            .limit(1)
        )
        if not response.data:
            return None
        return _parse_log(response.data[0])

    def create_log_if_absent(self, user_id: UUID, seed: DailyLog) -> DailyLog:
        """Insert the seed row, ignoring a conflicting existing row."""
        _execute(
            self.client.table("daily_logs").upsert(
                {"user_id": str(user_id), **_log_to_row(seed)},
                on_conflict="user_id,date",
                ignore_duplicates=True,
            )
        )
        stored = self.get_log(user_id, seed.date)
        if stored is None:
            raise PersistenceError(f"Failed to create daily log {seed.date}")
        return stored

    def append_entry(self, user_id: UUID, day: str, entry: LogEntry) -> None:
        """Append an entry via the atomic SQL function."""
        _execute(
            self.client.rpc(
                "append_daily_log_entry",
                {
                    "p_user_id": str(user_id),
                    "p_date": day,
                    "p_entry": entry_to_json(entry),
                    "p_calories": entry.total_calories,
                },
            )
        )

    def increment_water(self, user_id: UUID, day: str, amount_ml: int) -> None:
        """Increment water via the atomic SQL function."""
        _execute(
            self.client.rpc(
                "increment_daily_water",
                {"p_user_id": str(user_id), "p_date": day, "p_amount": amount_ml},
            )
        )

    def set_daily_feedback_if_absent(self, user_id: UUID, day: str, text: str) -> bool:
        """Update the feedback only on a row where it is still null."""
        response = _execute(
            self.client.table("daily_logs")
            .update({"daily_feedback": text})
            .eq("user_id", str(user_id))
            .eq("date", day)
            .is_("daily_feedback", "null")
        )
        return bool(response.data)

    def list_logs(self, user_id: UUID, start: str, end: str) -> list[DailyLog]:
        """Return logs in the inclusive date range."""
        response = _execute(
            self.client.table("daily_logs")
            .select(_COLUMNS)
            .eq("user_id", str(user_id))
            .gte("date", start)
            .lte("date", end)
            .order("date", desc=False)
        )
        return [_parse_log(row) for row in response.data or []]


def _execute(query):  # type: ignore[no-untyped-def]
    try:
        return query.execute()
    except APIError as exc:
        raise PersistenceError(f"Supabase request failed: {exc.message}") from exc


def entry_to_json(entry: LogEntry) -> dict[str, object]:
    """Serialize an entry to the stored JSON shape."""
    return {
        "id": str(entry.id),
        "timestamp": entry.timestamp.isoformat(),
        "title": entry.title,
        "items": [item_to_json(item) for item in entry.items],
        "total_calories": entry.total_calories,
        "entry_feedback": entry.entry_feedback,
    }


def item_to_json(item: FoodItem) -> dict[str, object]:
    """Serialize a food item to the stored JSON shape."""
    return {
        "name": item.name,
        "portion_size": item.portion_size,
        "description": item.description,
        "calories": item.calories,
        "protein": item.protein,
        "carbs": item.carbs,
        "fat": item.fat,
    }


def _log_to_row(log: DailyLog) -> dict[str, object]:
    return {
        "date": log.date,
        "total_calories": log.total_calories,
        "water_intake": log.water_intake,
        "current_weight": log.current_weight,
        "entries": [entry_to_json(entry) for entry in log.entries],
        "daily_feedback": log.daily_feedback,
    }


def _parse_log(row: dict[str, object]) -> DailyLog:
    return DailyLog(
        date=str(row["date"]),
        total_calories=int(row.get("total_calories") or 0),
        water_intake=int(row.get("water_intake") or 0),
        current_weight=float(row.get("current_weight") or 0.0),
        entries=tuple(_parse_entry(entry) for entry in row.get("entries") or []),
        daily_feedback=row.get("daily_feedback"),
    )


def _parse_entry(raw: dict[str, object]) -> LogEntry:
    return LogEntry(
        id=UUID(str(raw["id"])),
        timestamp=datetime.fromisoformat(str(raw["timestamp"])),
        title=str(raw.get("title", "")),
        items=tuple(_parse_item(item) for item in raw.get("items") or []),
        total_calories=int(raw.get("total_calories") or 0),
        entry_feedback=raw.get("entry_feedback"),
    )


def _parse_item(raw: dict[str, object]) -> FoodItem:
    return FoodItem(
        name=str(raw.get("name", "")),
        portion_size=str(raw.get("portion_size", "")),
        description=str(raw.get("description", "")),
        calories=float(raw.get("calories", 0.0)),
        protein=float(raw.get("protein", 0.0)),
        carbs=float(raw.get("carbs", 0.0)),
        fat=float(raw.get("fat", 0.0)),
    )
