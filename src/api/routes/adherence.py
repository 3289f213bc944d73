"""
Client adherence API endpoints.

Feeds the trainer dashboard's "needs attention" panel. Signals are
computed on every request from the full workout and feedback
collections; nothing is cached. Clients post a 1-5 difficulty rating
after a workout, which shows up as avg_difficulty and difficulty_flag.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ...core.adherence.models import (
    MAX_FEEDBACK_NOTE_LENGTH,
    AdherenceSignal,
    AdherenceStatus,
    WorkoutFeedback,
)
from ...core.workouts.errors import WorkoutStoreError
from ..dependencies import AdherenceServiceDep, AuthenticatedUser

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class AdherenceSignalResponse(BaseModel):
    """Engagement signal for one client."""
    client_id: str
    status: str = Field(description="On Track, At Risk or Inactive")
    reason: Optional[str] = None
    days_since_last_activity: Optional[int] = Field(
        None,
        description="Null when the client has never completed a workout"
    )
    missed_workouts_last_7_days: int
    last_workout_date: Optional[datetime] = None
    avg_difficulty: Optional[float] = Field(None, description="Mean 1-5 rating over the window")
    difficulty_flag: Optional[str] = Field(None, description="Too Hard or Too Easy")

    @classmethod
    def from_signal(cls, signal: AdherenceSignal) -> "AdherenceSignalResponse":
        return cls(
            client_id=signal.client_id,
            status=signal.status.value,
            reason=signal.reason,
            days_since_last_activity=signal.days_since_last_activity,
            missed_workouts_last_7_days=signal.missed_workouts_last_7_days,
            last_workout_date=signal.last_workout_date,
            avg_difficulty=round(signal.avg_difficulty, 1) if signal.avg_difficulty is not None else None,
            difficulty_flag=signal.difficulty_flag.value if signal.difficulty_flag else None,
        )


class TrainerAdherenceResponse(BaseModel):
    trainer_id: str
    signals: list[AdherenceSignalResponse]
    inactive_count: int
    at_risk_count: int


class FeedbackRequest(BaseModel):
    """A client's rating of a workout they just did."""
    client_id: str = Field(min_length=1)
    workout_id: str = Field(min_length=1)
    difficulty_rating: int = Field(ge=1, le=5, description="1 = very easy, 5 = very hard")
    feedback_note: Optional[str] = Field(None, max_length=MAX_FEEDBACK_NOTE_LENGTH)


class FeedbackResponse(BaseModel):
    id: str
    client_id: str
    workout_id: str
    difficulty_rating: int
    feedback_note: Optional[str] = None
    submitted_at: datetime

    @classmethod
    def from_feedback(cls, feedback: WorkoutFeedback) -> "FeedbackResponse":
        return cls(
            id=feedback.id,
            client_id=feedback.client_id,
            workout_id=feedback.workout_id,
            difficulty_rating=feedback.difficulty_rating,
            feedback_note=feedback.feedback_note,
            submitted_at=feedback.submitted_at,
        )


class ActivitySummaryResponse(BaseModel):
    client_id: str
    completed: int
    missed: int
    total: int
    completion_rate: int = Field(description="Percent of recent workouts completed")
    period: str


def _store_unavailable(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Could not load workouts: {e}. Please retry.",
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/clients/{client_id}",
    response_model=AdherenceSignalResponse,
    summary="Adherence signal for a client",
)
async def client_signal(
    client_id: str,
    api_key: AuthenticatedUser = None,
    service: AdherenceServiceDep = None,
) -> AdherenceSignalResponse:
    try:
        signal = service.signal_for_client(client_id)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    return AdherenceSignalResponse.from_signal(signal)


@router.get(
    "/clients/{client_id}/summary",
    response_model=ActivitySummaryResponse,
    summary="Recent completion summary for a client",
)
async def client_activity_summary(
    client_id: str,
    days: int = Query(7, ge=1, le=90),
    api_key: AuthenticatedUser = None,
    service: AdherenceServiceDep = None,
) -> ActivitySummaryResponse:
    try:
        summary = service.activity_summary(client_id, days=days)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)

    return ActivitySummaryResponse(
        client_id=client_id,
        completed=summary.completed,
        missed=summary.missed,
        total=summary.total,
        completion_rate=summary.completion_rate,
        period=summary.period,
    )


@router.get(
    "/trainers/{trainer_id}",
    response_model=TrainerAdherenceResponse,
    summary="Adherence signals for a trainer's clients",
)
async def trainer_signals(
    trainer_id: str,
    client_ids: Annotated[Optional[list[str]], Query()] = None,
    attention_only: bool = True,
    api_key: AuthenticatedUser = None,
    service: AdherenceServiceDep = None,
) -> TrainerAdherenceResponse:
    """
    Signals for every client the trainer has assigned workouts to.

    Pass client_ids to include clients with nothing assigned yet; they
    show up as Inactive. With attention_only (the default) only At Risk
    and Inactive clients are returned, Inactive first.
    """
    try:
        if attention_only:
            signals = service.attention_list_for_trainer(trainer_id, client_ids=client_ids)
        else:
            signals = service.signals_for_trainer(trainer_id, client_ids=client_ids)
    except WorkoutStoreError as e:
        logger.error(
            "Failed to load adherence signals",
            extra={"trainer_id": trainer_id, "error": str(e)}
        )
        raise _store_unavailable(e)

    return TrainerAdherenceResponse(
        trainer_id=trainer_id,
        signals=[AdherenceSignalResponse.from_signal(s) for s in signals],
        inactive_count=sum(1 for s in signals if s.status == AdherenceStatus.INACTIVE),
        at_risk_count=sum(1 for s in signals if s.status == AdherenceStatus.AT_RISK),
    )


@router.post(
    "/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a client's difficulty rating for a workout",
)
async def record_feedback(
    request: FeedbackRequest,
    api_key: AuthenticatedUser = None,
    service: AdherenceServiceDep = None,
) -> FeedbackResponse:
    try:
        feedback = service.record_feedback(
            client_id=request.client_id,
            workout_id=request.workout_id,
            difficulty_rating=request.difficulty_rating,
            feedback_note=request.feedback_note,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    return FeedbackResponse.from_feedback(feedback)


@router.get(
    "/clients/{client_id}/feedback",
    response_model=list[FeedbackResponse],
    summary="A client's recent difficulty feedback",
)
async def client_feedback(
    client_id: str,
    days: int = Query(7, ge=1, le=90),
    api_key: AuthenticatedUser = None,
    service: AdherenceServiceDep = None,
) -> list[FeedbackResponse]:
    """Newest first."""
    try:
        feedback = service.recent_feedback(client_id, days=days)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    return [FeedbackResponse.from_feedback(f) for f in feedback]
