"""
Workout assignment API endpoints.

Trainers place workouts into a client's weekly slots (1-4). Before every
write the current week is re-read; if the slot is taken the API answers
409 with the occupying workout, and the trainer can replace it.

Replacing is a delete followed by a create. If the create fails after
the delete went through, the response says so (slot_cleared) and the
client should reload the week rather than trust what it has on screen.
"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ...core.workouts.errors import (
    ConflictCheckError,
    RecordNotFoundError,
    ReplaceError,
    WorkoutStoreError,
)
from ...core.workouts.models import Modification, Prescription, WorkoutRecord
from ...core.workouts.weeks import (
    describe_days_since_update,
    format_week_display,
    get_week_start,
)
from ..dependencies import AuthenticatedUser, ConflictResolverDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ModificationModel(BaseModel):
    """Easier or harder variant of an exercise."""
    title: str = Field(min_length=1, max_length=200)
    description: str = Field("", max_length=2000)


class PrescriptionModel(BaseModel):
    """Exercise prescription fields."""
    exercise_name: str = Field(min_length=1, max_length=200)
    sets: Optional[int] = Field(None, ge=0)
    reps: Optional[str] = Field(None, description="Rep target, e.g. '8-10' or 'AMRAP'")
    weight_or_resistance: Optional[str] = None
    tempo: Optional[str] = None
    rest_time_seconds: Optional[int] = Field(None, ge=0)
    exercise_notes: Optional[str] = None
    exercise_video_url: Optional[str] = None
    modifications: list[ModificationModel] = Field(default_factory=list, max_length=3)

    def to_domain(self) -> Prescription:
        return Prescription(
            exercise_name=self.exercise_name,
            sets=self.sets,
            reps=self.reps,
            weight_or_resistance=self.weight_or_resistance,
            tempo=self.tempo,
            rest_time_seconds=self.rest_time_seconds,
            exercise_notes=self.exercise_notes,
            exercise_video_url=self.exercise_video_url,
            modifications=tuple(
                Modification(title=m.title, description=m.description)
                for m in self.modifications
            ),
        )


class WorkoutSlotRequest(BaseModel):
    """Where a workout goes and what it prescribes."""
    client_id: str = Field(min_length=1)
    trainer_id: str = Field(min_length=1)
    week_start_date: date = Field(description="Any date in the target week; normalised to Monday")
    workout_slot: int = Field(ge=1, le=4)
    week_number: int = Field(1, ge=1)
    prescription: PrescriptionModel

    def to_record(self) -> WorkoutRecord:
        return WorkoutRecord(
            client_id=self.client_id,
            trainer_id=self.trainer_id,
            week_start_date=self.week_start_date,
            workout_slot=self.workout_slot,
            week_number=self.week_number,
            prescription=self.prescription.to_domain(),
        )


class AssignWorkoutRequest(WorkoutSlotRequest):
    force: bool = Field(
        False,
        description="Skip the conflict check. Only set after the conflict was resolved."
    )


class UpdateWorkoutRequest(BaseModel):
    """Partial prescription edit. Omitted fields are left alone."""
    exercise_name: Optional[str] = Field(None, min_length=1, max_length=200)
    sets: Optional[int] = Field(None, ge=0)
    reps: Optional[str] = None
    weight_or_resistance: Optional[str] = None
    tempo: Optional[str] = None
    rest_time_seconds: Optional[int] = Field(None, ge=0)
    exercise_notes: Optional[str] = None
    exercise_video_url: Optional[str] = None
    modifications: Optional[list[ModificationModel]] = Field(None, max_length=3)
    week_number: Optional[int] = Field(None, ge=1)


class WorkoutResponse(BaseModel):
    """A workout as shown to trainers and clients."""
    id: str
    client_id: str
    trainer_id: str
    week_start_date: date
    week_display: str = Field(description="e.g. 'Week of Aug 12'")
    week_number: int
    workout_slot: int
    status: str
    prescription: dict
    created_date: Optional[datetime] = None
    updated_date: Optional[datetime] = None
    updated_label: str = Field(description="e.g. 'Updated yesterday'")

    @classmethod
    def from_record(cls, record: WorkoutRecord) -> "WorkoutResponse":
        return cls(
            id=record.id,
            client_id=record.client_id,
            trainer_id=record.trainer_id,
            week_start_date=record.week_start_date,
            week_display=format_week_display(record.week_start_date),
            week_number=record.week_number,
            workout_slot=record.workout_slot,
            status=record.status.value,
            prescription=record.prescription.to_dict(),
            created_date=record.created_date,
            updated_date=record.updated_date,
            updated_label=describe_days_since_update(record.updated_date),
        )


class AssignmentResponse(BaseModel):
    success: bool
    message: str
    workout: Optional[WorkoutResponse] = None
    conflict: Optional[WorkoutResponse] = None
    states: list[str] = Field(default_factory=list, description="Steps the assignment went through")


class ConflictCheckResponse(BaseModel):
    conflict_found: bool
    conflict: Optional[WorkoutResponse] = None


class WeekWorkoutsResponse(BaseModel):
    week_start_date: date
    week_display: str
    workouts: list[WorkoutResponse]
    total: int


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------

def _store_unavailable(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Workout store unavailable: {e}. Please retry.",
    )


def _not_found(record_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Workout {record_id} not found",
    )


def _assignment_response(result, status_code: int) -> JSONResponse:
    body = AssignmentResponse(
        success=result.success,
        message=result.message,
        workout=WorkoutResponse.from_record(result.record) if result.record else None,
        conflict=WorkoutResponse.from_record(result.conflict) if result.conflict else None,
        states=[s.value for s in result.attempt.history] if result.attempt else [],
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/conflicts",
    response_model=ConflictCheckResponse,
    summary="Check whether a slot is taken",
)
async def check_conflict(
    client_id: str,
    week_start_date: date,
    slot: int = Query(ge=1, le=4),
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> ConflictCheckResponse:
    """Re-reads current state; the answer is only valid until the next write."""
    try:
        conflict = resolver.check_conflict(client_id, week_start_date, slot)
    except ConflictCheckError as e:
        raise _store_unavailable(e)

    return ConflictCheckResponse(
        conflict_found=conflict is not None,
        conflict=WorkoutResponse.from_record(conflict) if conflict else None,
    )


@router.post(
    "",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign a workout to a weekly slot",
    responses={409: {"description": "Slot already taken", "model": AssignmentResponse}},
)
async def assign_workout(
    request: AssignWorkoutRequest,
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> JSONResponse:
    """
    Assign a workout.

    Returns 409 with the occupying workout if the slot is taken and
    force is false. Nothing is written in that case.
    """
    logger.info(
        "Assigning workout",
        extra={
            "client_id": request.client_id,
            "week_start_date": request.week_start_date.isoformat(),
            "slot": request.workout_slot,
            "force": request.force,
        }
    )

    try:
        result = resolver.assign(
            client_id=request.client_id,
            trainer_id=request.trainer_id,
            week_start_date=request.week_start_date,
            slot=request.workout_slot,
            prescription=request.prescription.to_domain(),
            force=request.force,
            week_number=request.week_number,
        )
    except (ConflictCheckError, WorkoutStoreError) as e:
        raise _store_unavailable(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    if result.conflict_found:
        return _assignment_response(result, status.HTTP_409_CONFLICT)
    return _assignment_response(result, status.HTTP_201_CREATED)


@router.post(
    "/{workout_id}/replace",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Replace a conflicting workout",
)
async def replace_workout(
    workout_id: str,
    request: WorkoutSlotRequest,
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> JSONResponse:
    """
    Delete the workout occupying the slot and create the new one.

    A 502 with slot_cleared=true means the old workout is gone but the
    new one wasn't saved. Reload the week before retrying.
    """
    try:
        new_record = request.to_record()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    try:
        result = resolver.replace(workout_id, new_record)
    except ReplaceError as e:
        logger.error(
            "Replace failed",
            extra={"workout_id": workout_id, "slot_cleared": e.slot_cleared}
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(e), "slot_cleared": e.slot_cleared},
        )

    return _assignment_response(result, status.HTTP_201_CREATED)


@router.get(
    "/clients/{client_id}/week",
    response_model=WeekWorkoutsResponse,
    summary="A client's workouts for a week",
)
async def client_week(
    client_id: str,
    week_start_date: Optional[date] = None,
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> WeekWorkoutsResponse:
    """Workouts ordered by slot. Defaults to the current week."""
    try:
        records = resolver.list_week_for_client(client_id, week_start_date)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    return _week_response(records, week_start_date)


@router.get(
    "/trainers/{trainer_id}/week",
    response_model=WeekWorkoutsResponse,
    summary="All of a trainer's assignments for a week",
)
async def trainer_week(
    trainer_id: str,
    week_start_date: Optional[date] = None,
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> WeekWorkoutsResponse:
    """Workouts ordered by client, then slot. Defaults to the current week."""
    try:
        records = resolver.list_week_for_trainer(trainer_id, week_start_date)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    return _week_response(records, week_start_date)


@router.get(
    "/{workout_id}",
    response_model=WorkoutResponse,
    summary="Get a single workout",
)
async def get_workout(
    workout_id: str,
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> WorkoutResponse:
    try:
        record = resolver.get(workout_id)
    except RecordNotFoundError:
        raise _not_found(workout_id)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    return WorkoutResponse.from_record(record)


@router.patch(
    "/{workout_id}",
    response_model=WorkoutResponse,
    summary="Edit a workout's prescription",
)
async def update_workout(
    workout_id: str,
    request: UpdateWorkoutRequest,
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> WorkoutResponse:
    """Edits in place. Client, week and slot can't be changed here."""
    changes = request.model_dump(exclude_unset=True)

    try:
        resolver.update(workout_id, **changes)
        record = resolver.get(workout_id)
    except RecordNotFoundError:
        raise _not_found(workout_id)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    return WorkoutResponse.from_record(record)


@router.post(
    "/{workout_id}/complete",
    response_model=WorkoutResponse,
    summary="Mark a workout completed",
)
async def complete_workout(
    workout_id: str,
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> WorkoutResponse:
    try:
        record = resolver.complete(workout_id)
    except RecordNotFoundError:
        raise _not_found(workout_id)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    return WorkoutResponse.from_record(record)


@router.delete(
    "/{workout_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a workout",
)
async def delete_workout(
    workout_id: str,
    api_key: AuthenticatedUser = None,
    resolver: ConflictResolverDep = None,
) -> Response:
    try:
        resolver.delete(workout_id)
    except WorkoutStoreError as e:
        raise _store_unavailable(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _week_response(records: list[WorkoutRecord], week_start_date: Optional[date]) -> WeekWorkoutsResponse:
    week = get_week_start(week_start_date)
    return WeekWorkoutsResponse(
        week_start_date=week,
        week_display=format_week_display(week),
        workouts=[WorkoutResponse.from_record(r) for r in records],
        total=len(records),
    )
