"""FastAPI dependencies and error translation shared by the routers."""

from __future__ import annotations

import logging
from typing import NoReturn, Optional

from fastapi import Depends, HTTPException, Request, status

from .authorization import CallerContext
from .config import Settings, get_settings
from .errors import (
    AccessDenied,
    CyclicPrerequisite,
    DuplicateAchievement,
    DuplicateExercise,
    DuplicatePath,
    DuplicatePrerequisite,
    DuplicateProfile,
    DuplicateRelationship,
    ExerciseLocked,
    UnknownCaller,
    ValidationFailure,
)
from .fitness_store import fitness_store

logger = logging.getLogger(__name__)

NOT_FOUND_DETAIL = "Profile not found."

_CONFLICTS = (
    CyclicPrerequisite,
    DuplicateAchievement,
    DuplicateExercise,
    DuplicatePath,
    DuplicatePrerequisite,
    DuplicateProfile,
    DuplicateRelationship,
    ExerciseLocked,
)


def identity_from_request(request: Request, settings: Settings = Depends(get_settings)) -> str:
    raw: Optional[str] = request.headers.get(settings.identity_header)
    cleaned = (raw or "").strip()
    if not cleaned:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Caller identity is missing.",
        )
    return cleaned


def current_caller(external_id: str = Depends(identity_from_request)) -> CallerContext:
    """Resolve the caller once per request before any policy check runs."""
    try:
        return fitness_store.resolve_caller(external_id)
    except UnknownCaller as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


def not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_DETAIL)


def raise_http_error(exc: Exception) -> NoReturn:
    if isinstance(exc, AccessDenied):
        raise not_found() from exc
    if isinstance(exc, ValidationFailure):
        code = status.HTTP_409_CONFLICT if isinstance(exc, _CONFLICTS) else status.HTTP_422_UNPROCESSABLE_ENTITY
        raise HTTPException(
            status_code=code,
            detail={"code": exc.code, "message": exc.message},
        ) from exc
    raise exc


__all__ = [
    "NOT_FOUND_DETAIL",
    "current_caller",
    "identity_from_request",
    "not_found",
    "raise_http_error",
]
