"""Lazily generated daily feedback."""

import logging
from dataclasses import dataclass
from uuid import UUID

from thalilens.errors import AnalysisError
from thalilens.services.analysis import FoodAnalysisService
from thalilens.services.ledger import DailyLogService, needs_daily_feedback

DEFAULT_GOAL_DESCRIPTION = "maintain health"

_logger = logging.getLogger(__name__)


@dataclass
class InsightsService:
    """Generates the day's feedback at most once."""

    analysis_service: FoodAnalysisService
    daily_log_service: DailyLogService

    async def ensure_daily_feedback(
        self,
        user_id: UUID | None,
        day: str,
        goal_description: str | None = None,
    ) -> str | None:
        """Return the day's feedback, generating it if it is missing.

        Returns None when there is nothing to summarise yet or the model
        failed; a later call will try again.
        """
        log = self.daily_log_service.get(user_id, day)
        if log is None:
            return None
        if not needs_daily_feedback(log):
            return log.daily_feedback
        try:
            result = await self.analysis_service.summarize_day(
                log.entries, goal_description or DEFAULT_GOAL_DESCRIPTION
            )
        except AnalysisError:
            _logger.warning("Daily summary for %s failed; leaving it empty", day)
            return None
        self.daily_log_service.set_daily_feedback(user_id, day, result.summary)
        stored = self.daily_log_service.get(user_id, day)
        return stored.daily_feedback if stored else result.summary
