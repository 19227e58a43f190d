"""Tests for container wiring."""

import asyncio

from thalilens.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert container.meal_service.daily_log_service is container.daily_log_service
    assert container.stats_service.daily_log_service is container.daily_log_service
    assert container.analysis_service.model == settings.openai_model
    asyncio.run(container.close_resources())
