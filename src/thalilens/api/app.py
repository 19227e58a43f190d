"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import (
    Depends,
    FastAPI,
    Header,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from thalilens.api.schemas import (
    DailyFeedbackRequest,
    OnboardingRequest,
    ProfileCreateRequest,
    ProfileUpdateRequest,
    SaveMealRequest,
    TextAnalysisRequest,
    WaterRequest,
)
from thalilens.app_logging import configure_logging
from thalilens.containers import AppContainer
from thalilens.domain.ledger import DailyLog
from thalilens.errors import (
    AnalysisError,
    NotAuthenticatedError,
    PersistenceError,
    ValidationError,
)
from thalilens.services.budget import goal_timeline
from thalilens.services.ledger import today_key
from thalilens.services.meals import MealDraft

ANALYSIS_RETRY_MESSAGE = "Failed to analyze. Please try again."


def _container(request: Request) -> AppContainer:
    return request.app.state.container


def current_user_id(
    request: Request, authorization: str | None = Header(default=None)
) -> UUID:
    """Resolve the bearer token on the request to a user id."""
    return _container(request).identity_provider.resolve(_bearer_token(authorization))


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(ValidationError)
    async def handle_validation(
        _request: Request, exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc)},
        )

    @app.exception_handler(AnalysisError)
    async def handle_analysis(_request: Request, exc: AnalysisError) -> JSONResponse:
        logger.warning("Analysis failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": ANALYSIS_RETRY_MESSAGE},
        )

    @app.exception_handler(NotAuthenticatedError)
    async def handle_not_authenticated(
        _request: Request, exc: NotAuthenticatedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": str(exc)},
        )

    @app.exception_handler(PersistenceError)
    async def handle_persistence(
        _request: Request, exc: PersistenceError
    ) -> JSONResponse:
        logger.error("Persistence failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Storage is unavailable. Please try again."},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/profile")
    async def get_profile(
        request: Request, user_id: UUID = Depends(current_user_id)
    ) -> dict[str, object]:
        """Return the caller's profile and onboarding state."""
        profile = _container(request).profile_service.require_profile(user_id)
        return {
            "profile": profile,
            "onboarded": profile.is_onboarded,
            "timeline": goal_timeline(profile),
        }

    @app.post("/profile", status_code=status.HTTP_201_CREATED)
    async def create_profile(
        payload: ProfileCreateRequest,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Create the caller's profile after sign-up."""
        profile = _container(request).profile_service.create_profile(
            user_id,
            email=payload.email,
            display_name=payload.display_name,
            date_of_birth=payload.date_of_birth,
        )
        return {"profile": profile}

    @app.patch("/profile")
    async def update_profile(
        payload: ProfileUpdateRequest,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Apply a partial profile update."""
        profile = _container(request).profile_service.update_profile(
            user_id, payload.changed_fields()
        )
        return {"profile": profile}

    @app.post("/profile/onboarding")
    async def complete_onboarding(
        payload: OnboardingRequest,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Compute and store the calorie plan."""
        profile = _container(request).profile_service.complete_onboarding(
            user_id, payload.to_domain()
        )
        return {
            "profile": profile,
            "plan": {
                "bmr": profile.bmr,
                "tdee": profile.tdee,
                "daily_budget": profile.daily_budget,
            },
        }

    @app.post("/profile/metrics/{metric}")
    async def toggle_metric(
        metric: str, request: Request, user_id: UUID = Depends(current_user_id)
    ) -> dict[str, object]:
        """Toggle a tracked dashboard metric."""
        profile = _container(request).profile_service.toggle_metric(user_id, metric)
        return {"additional_metrics": list(profile.additional_metrics)}

    @app.post("/analysis/image")
    async def analyze_image(
        request: Request, _user_id: UUID = Depends(current_user_id)
    ) -> dict[str, object]:
        """Analyse a raw image body without opening a draft."""
        items = await _container(request).analysis_service.analyze_image(
            await request.body()
        )
        return {"items": items}

    @app.post("/analysis/text")
    async def analyze_text(
        payload: TextAnalysisRequest,
        request: Request,
        _user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Look up a single dish by name."""
        item = await _container(request).analysis_service.analyze_text(payload.name)
        return {"item": item}

    @app.post("/drafts", status_code=status.HTTP_201_CREATED)
    async def start_draft(
        request: Request, user_id: UUID = Depends(current_user_id)
    ) -> dict[str, object]:
        """Analyse a raw image body and open a review draft."""
        draft = await _container(request).meal_service.start_draft(
            user_id, await request.body()
        )
        return _draft_payload(draft)

    @app.put("/drafts/{draft_id}/items/{index}")
    async def revise_draft_item(
        draft_id: UUID,
        index: int,
        payload: TextAnalysisRequest,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Replace one dish by re-querying it by name."""
        result = await _container(request).meal_service.revise_item(
            user_id, draft_id, index, payload.name
        )
        return {**_draft_payload(result.draft), "applied": result.applied}

    @app.delete("/drafts/{draft_id}/items/{index}")
    async def remove_draft_item(
        draft_id: UUID,
        index: int,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Remove one dish from a draft."""
        draft = _container(request).meal_service.remove_item(user_id, draft_id, index)
        return _draft_payload(draft)

    @app.post("/drafts/{draft_id}/save", status_code=status.HTTP_201_CREATED)
    async def save_draft(
        draft_id: UUID,
        request: Request,
        tz: str | None = None,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Save a reviewed draft into today's log."""
        state_container = _container(request)
        day = today_key(tz or state_container.settings.default_timezone)
        entry = await state_container.meal_service.save_draft(user_id, draft_id, day)
        return {"date": day, "entry": entry}

    @app.get("/logs/today")
    async def get_today(
        request: Request,
        tz: str | None = None,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Return today's log in the caller's timezone."""
        state_container = _container(request)
        day = today_key(tz or state_container.settings.default_timezone)
        return {"date": day, "log": state_container.daily_log_service.get(user_id, day)}

    @app.get("/logs")
    async def list_logs(
        start: str,
        end: str,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Return logs in an inclusive date range, oldest first."""
        logs = _container(request).daily_log_service.fetch_range(user_id, start, end)
        return {"logs": logs}

    @app.get("/logs/{day}")
    async def get_log(
        day: str, request: Request, user_id: UUID = Depends(current_user_id)
    ) -> dict[str, object]:
        """Return one day's log, or null when nothing was logged."""
        log = _container(request).daily_log_service.get(user_id, day)
        return {"date": day, "log": log}

    @app.get("/logs/{day}/totals")
    async def get_day_totals(
        day: str, request: Request, user_id: UUID = Depends(current_user_id)
    ) -> dict[str, object]:
        """Return macros derived from the day's entries plus water."""
        totals = _container(request).stats_service.get_day_totals(user_id, day)
        return {"totals": totals}

    @app.post("/logs/{day}/entries", status_code=status.HTTP_201_CREATED)
    async def save_meal(
        day: str,
        payload: SaveMealRequest,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Append a reviewed meal to a day."""
        entry = await _container(request).meal_service.save_meal(
            user_id, day, [item.to_domain() for item in payload.items]
        )
        return {"date": day, "entry": entry}

    @app.post("/logs/{day}/water")
    async def add_water(
        day: str,
        payload: WaterRequest,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Add water intake to a day."""
        service = _container(request).daily_log_service
        service.merge_add_water(user_id, day, payload.amount_ml)
        return {"date": day, "log": service.get(user_id, day)}

    @app.post("/logs/{day}/feedback")
    async def daily_feedback(
        day: str,
        request: Request,
        payload: DailyFeedbackRequest | None = None,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Return the day's feedback, generating it once if missing."""
        state_container = _container(request)
        goal_description = payload.goal_description if payload else None
        if goal_description is None:
            profile = state_container.profile_service.get_profile(user_id)
            if profile and profile.goal:
                goal_description = profile.goal.value
        feedback = await state_container.insights_service.ensure_daily_feedback(
            user_id, day, goal_description
        )
        return {"date": day, "daily_feedback": feedback}

    @app.get("/stats/month")
    async def month_stats(
        year: int,
        month: int,
        request: Request,
        user_id: UUID = Depends(current_user_id),
    ) -> dict[str, object]:
        """Return monthly totals and the per-day average."""
        summary = _container(request).stats_service.get_month(user_id, year, month)
        return {"month": summary}

    @app.websocket("/logs/{day}/stream")
    async def stream_log(
        websocket: WebSocket, day: str, token: str | None = None
    ) -> None:
        """Push the day's log now and after every change."""
        state_container: AppContainer = websocket.app.state.container
        try:
            user_id = state_container.identity_provider.resolve(token or "")
        except NotAuthenticatedError:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        await websocket.accept()
        loop = asyncio.get_running_loop()
        updates: asyncio.Queue[DailyLog | None] = asyncio.Queue()

        def on_change(log: DailyLog | None) -> None:
            loop.call_soon_threadsafe(updates.put_nowait, log)

        try:
            unsubscribe = state_container.daily_log_service.subscribe(
                user_id, day, on_change
            )
        except ValidationError as exc:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(exc))
            return

        async def push_updates() -> None:
            while True:
                log = await updates.get()
                await websocket.send_json({"date": day, "log": jsonable_encoder(log)})

        async def receive_until_closed() -> None:
            try:
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                return

        pusher = asyncio.create_task(push_updates())
        receiver = asyncio.create_task(receive_until_closed())
        try:
            done, _pending = await asyncio.wait(
                {pusher, receiver}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            unsubscribe()
            pusher.cancel()
            receiver.cancel()
        if pusher in done:
            error = pusher.exception()
            if receiver not in done and not isinstance(error, WebSocketDisconnect):
                logger.error("Log stream for %s failed: %s", day, error)
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
                return
        logger.info("Log stream for %s closed", day)

    return app


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        return ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def _draft_payload(draft: MealDraft) -> dict[str, object]:
    return {"draft_id": draft.id, "items": list(draft.items)}
