"""Supabase repository for user profiles."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from thalilens.domain.profile import Goal, Sex, UserProfile
from thalilens.errors import PersistenceError
from thalilens.services.profiles import ProfileRepository


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation for profile persistence."""

    client: Client

    def get_profile(self, user_id: UUID) -> UserProfile | None:
        """Return the profile row for a user, if present."""
        try:
            response = (
                self.client.table("profiles")
                .select("*")
                .eq("uid", str(user_id))
                .limit(1)
                .execute()
            )
        except APIError as exc:
            raise PersistenceError(f"Failed to load profile: {exc.message}") from exc
        if not response.data:
            return None
        return _parse_profile(response.data[0])

    def create_profile(self, profile: UserProfile) -> UserProfile:
        """Insert a profile row and return it."""
        payload = {
            "uid": str(profile.uid),
            "email": profile.email,
            "display_name": profile.display_name,
            "date_of_birth": _to_column(profile.date_of_birth),
            "created_at": profile.created_at.isoformat(),
        }
        try:
            response = self.client.table("profiles").insert(payload).execute()
        except APIError as exc:
            raise PersistenceError(f"Failed to create profile: {exc.message}") from exc
        if not response.data:
            raise PersistenceError("Failed to create profile in Supabase")
        return _parse_profile(response.data[0])

    def update_profile(self, user_id: UUID, fields: dict[str, object]) -> None:
        """Update only the given columns."""
        payload = {name: _to_column(value) for name, value in fields.items()}
        try:
            self.client.table("profiles").update(payload).eq(
                "uid", str(user_id)
            ).execute()
        except APIError as exc:
            raise PersistenceError(f"Failed to update profile: {exc.message}") from exc


def _to_column(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date | datetime):
        return value.isoformat()
    if isinstance(value, tuple):
        return list(value)
    return value


def _parse_profile(row: dict[str, object]) -> UserProfile:
    return UserProfile(
        uid=UUID(str(row["uid"])),
        email=row.get("email"),
        display_name=str(row.get("display_name") or ""),
        date_of_birth=_parse_date(row.get("date_of_birth")),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        sex=Sex(row["sex"]) if row.get("sex") else None,
        height=_optional_float(row.get("height")),
        current_weight=_optional_float(row.get("current_weight")),
        activity_level=_optional_float(row.get("activity_level")),
        goal=Goal(row["goal"]) if row.get("goal") else None,
        target_weight=_optional_float(row.get("target_weight")),
        goal_pace=_optional_float(row.get("goal_pace")),
        bmr=_optional_int(row.get("bmr")),
        tdee=_optional_int(row.get("tdee")),
        daily_budget=_optional_int(row.get("daily_budget")),
        additional_metrics=tuple(row.get("additional_metrics") or ()),
    )


def _parse_date(value: object) -> date | None:
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    return None


def _optional_float(value: object) -> float | None:
    return float(value) if value is not None else None


def _optional_int(value: object) -> int | None:
    return int(value) if value is not None else None
