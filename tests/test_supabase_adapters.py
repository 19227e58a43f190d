"""Tests for Supabase adapter implementations."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

import pytest
from postgrest.exceptions import APIError

from thalilens.adapters.supabase_daily_log_repository import (
    SupabaseDailyLogRepository,
    entry_to_json,
)
from thalilens.adapters.supabase_identity_provider import SupabaseIdentityProvider
from thalilens.adapters.supabase_profile_repository import SupabaseProfileRepository
from thalilens.domain.profile import Goal, Sex
from thalilens.errors import NotAuthenticatedError, PersistenceError
from thalilens.services.ledger import build_entry, new_daily_log
from tests.conftest import food_item


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {
            "select": [],
            "insert": [],
            "update": [],
            "upsert": [],
            "rpc": [],
        }
    )
    last_payload: object | None = None
    last_options: dict[str, object] = field(default_factory=dict)
    last_filters: list[tuple[str, str, object]] = field(default_factory=list)
    error: APIError | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "insert"
        self.last_payload = payload
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "update"
        self.last_payload = payload
        return self

    def upsert(self, payload, **options) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._action = "upsert"
        self.last_payload = payload
        self.last_options = options
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("eq", column, value))
        return self

    def is_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("is", column, value))
        return self

    def gte(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("gte", column, value))
        return self

    def lte(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("lte", column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def order(self, _column: str, desc: bool = False) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        if self.error is not None:
            raise self.error
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)
    rpc_calls: list[tuple[str, dict[str, object]]] = field(default_factory=list)
    rpc_table: FakeTable = field(default_factory=lambda: FakeTable(name="rpc"))

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]

    def rpc(self, name: str, params: dict[str, object]) -> FakeTable:
        self.rpc_calls.append((name, params))
        self.rpc_table._action = "rpc"
        return self.rpc_table


def _log_row(day: str, **overrides) -> dict[str, object]:
    row: dict[str, object] = {
        "date": day,
        "total_calories": 0,
        "water_intake": 0,
        "current_weight": 0,
        "entries": [],
        "daily_feedback": None,
    }
    row.update(overrides)
    return row


def test_daily_log_repository_parses_entries() -> None:
    client = FakeSupabaseClient()
    entry = build_entry("Lunch", [food_item("Idli", 120.0)], "Light")
    client.table("daily_logs").queue(
        "select",
        [_log_row("2026-03-05", total_calories=120, entries=[entry_to_json(entry)])],
    )
    user_id = uuid4()

    log = SupabaseDailyLogRepository(client).get_log(user_id, "2026-03-05")

    assert log is not None
    assert log.entries == (entry,)
    assert log.total_calories == 120
    filters = client.table("daily_logs").last_filters
    assert ("eq", "user_id", str(user_id)) in filters


def test_daily_log_repository_missing_day() -> None:
    client = FakeSupabaseClient()

    assert SupabaseDailyLogRepository(client).get_log(uuid4(), "2026-03-05") is None


def test_daily_log_repository_appends_through_rpc() -> None:
    client = FakeSupabaseClient()
    entry = build_entry("Dinner", [food_item("Pulao", 420.0)], None)
    user_id = uuid4()

    SupabaseDailyLogRepository(client).append_entry(user_id, "2026-03-05", entry)

    name, params = client.rpc_calls[0]
    assert name == "append_daily_log_entry"
    assert params["p_user_id"] == str(user_id)
    assert params["p_calories"] == 420
    assert params["p_entry"]["title"] == "Dinner"


def test_daily_log_repository_increments_water_through_rpc() -> None:
    client = FakeSupabaseClient()

    SupabaseDailyLogRepository(client).increment_water(uuid4(), "2026-03-05", 250)

    assert client.rpc_calls[0][0] == "increment_daily_water"
    assert client.rpc_calls[0][1]["p_amount"] == 250


def test_daily_log_repository_create_ignores_duplicates() -> None:
    client = FakeSupabaseClient()
    table = client.table("daily_logs")
    table.queue("select", [_log_row("2026-03-05", current_weight=71.5)])

    stored = SupabaseDailyLogRepository(client).create_log_if_absent(
        uuid4(), new_daily_log("2026-03-05", 80.0)
    )

    assert table.last_options == {
        "on_conflict": "user_id,date",
        "ignore_duplicates": True,
    }
    assert stored.current_weight == 71.5


def test_daily_log_repository_feedback_only_when_null() -> None:
    client = FakeSupabaseClient()
    table = client.table("daily_logs")
    table.queue("update", [_log_row("2026-03-05", daily_feedback="Nice day")])
    repository = SupabaseDailyLogRepository(client)

    assert repository.set_daily_feedback_if_absent(uuid4(), "2026-03-05", "Nice day")
    assert ("is", "daily_feedback", "null") in table.last_filters
    assert not repository.set_daily_feedback_if_absent(uuid4(), "2026-03-05", "Again")


def test_daily_log_repository_lists_range() -> None:
    client = FakeSupabaseClient()
    table = client.table("daily_logs")
    table.queue("select", [_log_row("2026-03-01"), _log_row("2026-03-02")])

    logs = SupabaseDailyLogRepository(client).list_logs(
        uuid4(), "2026-03-01", "2026-03-31"
    )

    assert [log.date for log in logs] == ["2026-03-01", "2026-03-02"]
    assert ("gte", "date", "2026-03-01") in table.last_filters
    assert ("lte", "date", "2026-03-31") in table.last_filters


def test_daily_log_repository_maps_api_errors() -> None:
    client = FakeSupabaseClient()
    client.table("daily_logs").error = APIError({"message": "connection refused"})

    with pytest.raises(PersistenceError):
        SupabaseDailyLogRepository(client).get_log(uuid4(), "2026-03-05")


def test_profile_repository_roundtrip() -> None:
    client = FakeSupabaseClient()
    table = client.table("profiles")
    user_id = uuid4()
    row = {
        "uid": str(user_id),
        "email": "asha@example.com",
        "display_name": "Asha",
        "date_of_birth": "1996-06-16",
        "created_at": datetime(2026, 1, 1, tzinfo=UTC).isoformat(),
        "sex": "female",
        "height": 162,
        "current_weight": "58.5",
        "activity_level": 1.375,
        "goal": "lose",
        "target_weight": 55,
        "goal_pace": 0.25,
        "bmr": 1283,
        "tdee": 1764,
        "daily_budget": 1489,
        "additional_metrics": ["water"],
    }
    table.queue("select", [row])

    profile = SupabaseProfileRepository(client).get_profile(user_id)

    assert profile is not None
    assert profile.sex is Sex.FEMALE
    assert profile.goal is Goal.LOSE
    assert profile.current_weight == 58.5
    assert profile.additional_metrics == ("water",)
    assert profile.is_onboarded


def test_profile_repository_update_serializes_values() -> None:
    client = FakeSupabaseClient()
    table = client.table("profiles")

    SupabaseProfileRepository(client).update_profile(
        uuid4(), {"goal": Goal.GAIN, "additional_metrics": ("fat", "carbs")}
    )

    assert table.last_payload == {
        "goal": "gain",
        "additional_metrics": ["fat", "carbs"],
    }


def test_profile_repository_maps_api_errors() -> None:
    client = FakeSupabaseClient()
    client.table("profiles").error = APIError({"message": "denied"})

    with pytest.raises(PersistenceError):
        SupabaseProfileRepository(client).update_profile(uuid4(), {"display_name": "x"})


@dataclass
class _FakeAuth:
    user_id: str | None = None

    def get_user(self, _token: str):  # type: ignore[no-untyped-def]
        if self.user_id is None:
            raise RuntimeError("invalid JWT")
        user = type("User", (), {"id": self.user_id})()
        return type("UserResponse", (), {"user": user})()


@dataclass
class _FakeAuthClient:
    auth: _FakeAuth


def test_identity_provider_resolves_user() -> None:
    user_id = uuid4()
    provider = SupabaseIdentityProvider(_FakeAuthClient(_FakeAuth(str(user_id))))

    assert provider.resolve("token") == user_id


def test_identity_provider_rejects_bad_tokens() -> None:
    provider = SupabaseIdentityProvider(_FakeAuthClient(_FakeAuth()))

    with pytest.raises(NotAuthenticatedError):
        provider.resolve("token")
    with pytest.raises(NotAuthenticatedError):
        provider.resolve("")
