"""Exercise catalog endpoints.

``router`` is always mounted and read-only. ``admin_router`` carries the
write endpoints used by seed tooling, is mounted only when
``FITPATH_CATALOG_ADMIN`` is enabled and requires a registered caller.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from .dependencies import current_caller, raise_http_error
from .domain import Achievement, AdventurePath, Difficulty, Exercise, PathExercise, Prerequisite
from .errors import ValidationFailure
from .fitness_store import fitness_store
from .payloads import AchievementRequest, ExerciseRequest, PathRequest, PrerequisiteRequest

router = APIRouter(prefix="/api/catalog", tags=["catalog"])
admin_router = APIRouter(
    prefix="/api/catalog",
    tags=["catalog-admin"],
    dependencies=[Depends(current_caller)],
)
logger = logging.getLogger(__name__)


@router.get("/exercises", response_model=List[Exercise])
def list_exercises(max_difficulty: Optional[Difficulty] = Query(default=None)) -> List[Exercise]:
    return fitness_store.list_exercises(max_difficulty=max_difficulty)


@router.get("/paths", response_model=List[AdventurePath])
def list_paths() -> List[AdventurePath]:
    return fitness_store.list_paths()


@router.get("/achievements", response_model=List[Achievement])
def list_achievements() -> List[Achievement]:
    return fitness_store.list_catalog_achievements()


@admin_router.post("/exercises", response_model=Exercise, status_code=status.HTTP_201_CREATED)
def create_exercise(payload: ExerciseRequest) -> Exercise:
    try:
        return fitness_store.add_exercise(Exercise(**payload.model_dump()))
    except ValidationFailure as exc:
        raise_http_error(exc)


@admin_router.post("/prerequisites", response_model=Prerequisite, status_code=status.HTTP_201_CREATED)
def create_prerequisite(payload: PrerequisiteRequest) -> Prerequisite:
    try:
        return fitness_store.add_prerequisite(Prerequisite(**payload.model_dump()))
    except ValidationFailure as exc:
        raise_http_error(exc)


@admin_router.post("/paths", response_model=AdventurePath, status_code=status.HTTP_201_CREATED)
def create_path(payload: PathRequest) -> AdventurePath:
    try:
        return fitness_store.add_path(AdventurePath(**payload.model_dump()))
    except ValidationFailure as exc:
        raise_http_error(exc)


@admin_router.post("/paths/{path_id}/exercises", response_model=AdventurePath, status_code=status.HTTP_201_CREATED)
def add_path_exercise(path_id: str, payload: PathExercise) -> AdventurePath:
    try:
        return fitness_store.add_path_exercise(path_id, payload)
    except ValidationFailure as exc:
        raise_http_error(exc)


@admin_router.delete("/paths/{path_id}/exercises/{exercise_id}", response_model=AdventurePath)
def remove_path_exercise(path_id: str, exercise_id: str) -> AdventurePath:
    try:
        return fitness_store.remove_path_exercise(path_id, exercise_id)
    except ValidationFailure as exc:
        raise_http_error(exc)


@admin_router.post("/achievements", response_model=Achievement, status_code=status.HTTP_201_CREATED)
def create_achievement(payload: AchievementRequest) -> Achievement:
    try:
        return fitness_store.add_achievement(Achievement(**payload.model_dump()))
    except ValidationFailure as exc:
        raise_http_error(exc)


__all__ = ["admin_router", "router"]
