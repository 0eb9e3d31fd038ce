"""Progress endpoints: recording sessions and reading derived progress."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status

from .authorization import CallerContext
from .dependencies import current_caller, not_found, raise_http_error
from .domain import AggregateProgress, EarnedAchievement, ExerciseSession, ExerciseStats, PathProgress, UnlockReport
from .errors import AccessDenied, ValidationFailure
from .fitness_store import fitness_store
from .payloads import SessionOutcomePayload, SessionRequest

router = APIRouter(prefix="/api/progress", tags=["progress"])
logger = logging.getLogger(__name__)


@router.post(
    "/{profile_id}/sessions",
    response_model=SessionOutcomePayload,
    status_code=status.HTTP_201_CREATED,
)
def record_session(
    profile_id: str,
    payload: SessionRequest,
    caller: CallerContext = Depends(current_caller),
) -> SessionOutcomePayload:
    try:
        outcome = fitness_store.record_session(
            caller,
            profile_id,
            payload.exercise_id,
            quality_rating=payload.quality_rating,
            duration_minutes=payload.duration_minutes,
            completed_at=payload.completed_at,
            path_id=payload.path_id,
            notes=payload.notes,
        )
    except (AccessDenied, ValidationFailure) as exc:
        raise_http_error(exc)
    return SessionOutcomePayload(**outcome.model_dump())


@router.get("/{profile_id}/sessions", response_model=List[ExerciseSession])
def list_sessions(
    profile_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    caller: CallerContext = Depends(current_caller),
) -> List[ExerciseSession]:
    return fitness_store.list_sessions(caller, profile_id, limit=limit)


@router.get("/{profile_id}/summary", response_model=AggregateProgress)
def progress_summary(profile_id: str, caller: CallerContext = Depends(current_caller)) -> AggregateProgress:
    aggregate = fitness_store.get_aggregate(caller, profile_id)
    if aggregate is None:
        raise not_found()
    return aggregate


@router.get("/{profile_id}/paths", response_model=List[PathProgress])
def path_overview(profile_id: str, caller: CallerContext = Depends(current_caller)) -> List[PathProgress]:
    return fitness_store.path_overview(caller, profile_id)


@router.get("/{profile_id}/exercise-stats", response_model=List[ExerciseStats])
def exercise_stats(profile_id: str, caller: CallerContext = Depends(current_caller)) -> List[ExerciseStats]:
    return fitness_store.exercise_stats(caller, profile_id)


@router.get("/{profile_id}/achievements", response_model=List[EarnedAchievement])
def earned_achievements(
    profile_id: str, caller: CallerContext = Depends(current_caller)
) -> List[EarnedAchievement]:
    return fitness_store.list_achievements(caller, profile_id)


@router.get("/{profile_id}/exercises/{exercise_id}/unlock", response_model=UnlockReport)
def unlock_status(
    profile_id: str,
    exercise_id: str,
    caller: CallerContext = Depends(current_caller),
) -> UnlockReport:
    try:
        report = fitness_store.unlock_report(caller, profile_id, exercise_id)
    except ValidationFailure as exc:
        raise_http_error(exc)
    if report is None:
        raise not_found()
    return report


__all__ = ["router"]
