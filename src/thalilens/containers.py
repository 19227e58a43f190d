"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from thalilens.adapters.openai_analysis_client import OpenAIAnalysisClient
from thalilens.adapters.supabase_daily_log_repository import (
    SupabaseDailyLogRepository,
)
from thalilens.adapters.supabase_identity_provider import (
    IdentityProvider,
    SupabaseIdentityProvider,
)
from thalilens.adapters.supabase_profile_repository import SupabaseProfileRepository
from thalilens.config import Settings, parse_reasoning_effort
from thalilens.services.analysis import FoodAnalysisService
from thalilens.services.insights import InsightsService
from thalilens.services.ledger import DailyLogService
from thalilens.services.meals import InMemoryDraftStore, MealService
from thalilens.services.profiles import ProfileService
from thalilens.services.stats import StatsService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    identity_provider: IdentityProvider
    analysis_service: FoodAnalysisService
    daily_log_service: DailyLogService
    meal_service: MealService
    profile_service: ProfileService
    insights_service: InsightsService
    stats_service: StatsService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    daily_log_repository = SupabaseDailyLogRepository(supabase_client)
    profile_repository = SupabaseProfileRepository(supabase_client)
    identity_provider = SupabaseIdentityProvider(supabase_client)
    openai_client = OpenAIAnalysisClient.create(
        resolved_settings.openai_api_key,
        timeout_seconds=resolved_settings.openai_timeout_seconds,
    )
    analysis_service = FoodAnalysisService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=parse_reasoning_effort(
            resolved_settings.openai_reasoning_effort
        ),
        store=resolved_settings.openai_store,
    )
    daily_log_service = DailyLogService(daily_log_repository)
    meal_service = MealService(
        analysis_service=analysis_service,
        daily_log_service=daily_log_service,
        drafts=InMemoryDraftStore(ttl_seconds=resolved_settings.draft_ttl_seconds),
    )
    profile_service = ProfileService(profile_repository)
    insights_service = InsightsService(
        analysis_service=analysis_service,
        daily_log_service=daily_log_service,
    )
    stats_service = StatsService(daily_log_service)

    async def close_resources() -> None:
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        identity_provider=identity_provider,
        analysis_service=analysis_service,
        daily_log_service=daily_log_service,
        meal_service=meal_service,
        profile_service=profile_service,
        insights_service=insights_service,
        stats_service=stats_service,
        close_resources=close_resources,
    )
