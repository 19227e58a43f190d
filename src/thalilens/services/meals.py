"""Meal capture: review drafts and saving meals into the ledger."""

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID, uuid4

from thalilens.domain.ledger import LogEntry
from thalilens.domain.nutrition import FoodItem
from thalilens.errors import ValidationError
from thalilens.services.analysis import FoodAnalysisService
from thalilens.services.ledger import (
    DailyLogService,
    build_entry,
    parse_date_key,
    require_user,
)

_logger = logging.getLogger(__name__)


@dataclass
class MealDraft:
    """Analysed dishes under review before a meal is saved.

    Every slot carries a generation counter. Starting a revision bumps it,
    and a finished revision only lands if the counter is unchanged, so a
    slow response can never overwrite a newer edit.
    """

    id: UUID
    owner_id: UUID
    items: list[FoodItem]
    generations: list[int]
    created_at: datetime

    @classmethod
    def create(cls, owner_id: UUID, items: Sequence[FoodItem]) -> "MealDraft":
        """Start a draft from freshly analysed items."""
        return cls(
            id=uuid4(),
            owner_id=owner_id,
            items=list(items),
            generations=[0] * len(items),
            created_at=datetime.now(tz=UTC),
        )

    def begin_revision(self, index: int) -> int:
        """Reserve a new generation for slot ``index`` and return it."""
        self._check_index(index)
        self.generations[index] += 1
        return self.generations[index]

    def apply_revision(self, index: int, generation: int, item: FoodItem) -> bool:
        """Replace slot ``index`` unless a newer revision has started."""
        if index >= len(self.items) or self.generations[index] != generation:
            return False
        self.items[index] = item
        return True

    def remove(self, index: int) -> None:
        """Drop a slot; pending revisions for it become stale."""
        self._check_index(index)
        del self.items[index]
        del self.generations[index]
        # shifted slots must not accept responses addressed to old indexes
        for position in range(index, len(self.generations)):
            self.generations[position] += 1

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.items):
            raise ValidationError(f"no item at position {index}")


class DraftStore(Protocol):
    """Holds drafts between review requests."""

    def put(self, draft: MealDraft) -> None:
        """Store or refresh a draft."""

    def get(self, draft_id: UUID) -> MealDraft | None:
        """Return a live draft."""

    def discard(self, draft_id: UUID) -> None:
        """Forget a draft."""


@dataclass
class InMemoryDraftStore(DraftStore):
    """Process-local draft store with expiry."""

    ttl_seconds: int = 3600
    _drafts: dict[UUID, tuple[MealDraft, datetime]] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def put(self, draft: MealDraft) -> None:
        """Store a draft and restart its expiry clock."""
        expires_at = datetime.now(tz=UTC) + timedelta(seconds=self.ttl_seconds)
        with self._lock:
            self._drafts[draft.id] = (draft, expires_at)

    def get(self, draft_id: UUID) -> MealDraft | None:
        """Return a draft if it hasn't expired."""
        with self._lock:
            stored = self._drafts.get(draft_id)
            if stored is None:
                return None
            draft, expires_at = stored
            if datetime.now(tz=UTC) >= expires_at:
                self._drafts.pop(draft_id, None)
                return None
            return draft

    def discard(self, draft_id: UUID) -> None:
        """Remove a draft."""
        with self._lock:
            self._drafts.pop(draft_id, None)


@dataclass(frozen=True)
class RevisionResult:
    """Outcome of editing one dish in a draft."""

    draft: MealDraft
    item: FoodItem
    applied: bool


@dataclass
class MealService:
    """Coordinates analysis, review and ledger writes for meals."""

    analysis_service: FoodAnalysisService
    daily_log_service: DailyLogService
    drafts: DraftStore

    async def start_draft(self, user_id: UUID | None, image_bytes: bytes) -> MealDraft:
        """Analyse a photo and open a review draft for it."""
        uid = require_user(user_id)
        items = await self.analysis_service.analyze_image(image_bytes)
        draft = MealDraft.create(uid, items)
        self.drafts.put(draft)
        _logger.info("Opened draft %s with %s items", draft.id, len(items))
        return draft

    def get_draft(self, user_id: UUID | None, draft_id: UUID) -> MealDraft:
        """Return a live draft owned by the caller or fail validation."""
        uid = require_user(user_id)
        draft = self.drafts.get(draft_id)
        if draft is None or draft.owner_id != uid:
            raise ValidationError(f"draft {draft_id} not found or expired")
        return draft

    async def revise_item(
        self, user_id: UUID | None, draft_id: UUID, index: int, name: str
    ) -> RevisionResult:
        """Re-query a dish by name and replace it wholesale."""
        draft = self.get_draft(user_id, draft_id)
        generation = draft.begin_revision(index)
        item = await self.analysis_service.analyze_text(name)
        applied = draft.apply_revision(index, generation, item)
        if applied:
            self.drafts.put(draft)
        else:
            _logger.info(
                "Discarded stale revision for draft %s slot %s", draft_id, index
            )
        return RevisionResult(draft=draft, item=item, applied=applied)

    def remove_item(
        self, user_id: UUID | None, draft_id: UUID, index: int
    ) -> MealDraft:
        """Drop a dish from the draft."""
        draft = self.get_draft(user_id, draft_id)
        draft.remove(index)
        self.drafts.put(draft)
        return draft

    async def save_draft(
        self, user_id: UUID | None, draft_id: UUID, day: str
    ) -> LogEntry:
        """Save the reviewed dishes as a meal and close the draft."""
        draft = self.get_draft(user_id, draft_id)
        entry = await self.save_meal(user_id, day, list(draft.items))
        self.drafts.discard(draft_id)
        return entry

    async def save_meal(
        self, user_id: UUID | None, day: str, items: Sequence[FoodItem]
    ) -> LogEntry:
        """Title the meal, build its entry and append it to the day's log."""
        require_user(user_id)
        parse_date_key(day)
        if not items:
            raise ValidationError("a meal needs at least one item")
        summary = await self.analysis_service.summarize_entry(items)
        entry = build_entry(
            title=summary.title,
            items=items,
            entry_feedback=summary.feedback,
        )
        self.daily_log_service.merge_append_entry(user_id, day, entry)
        return entry
