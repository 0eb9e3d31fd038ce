from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Callable

import pytest

from fitpath.authorization import CallerContext
from fitpath.config import get_settings
from fitpath.db import models  # noqa: F401
from fitpath.db.base import Base
from fitpath.db.session import dispose_engine, get_engine
from fitpath.domain import AdventurePath, ChildCreation, Exercise, PathExercise
from fitpath.fitness_store import fitness_store

AS_OF = date(2025, 6, 1)


def _setup_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    db_path = tmp_path / "fitpath.db"
    monkeypatch.setenv("FITPATH_DATABASE_URL", f"sqlite:///{db_path}")
    get_settings.cache_clear()
    dispose_engine()
    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


@pytest.fixture
def database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    _setup_db(tmp_path, monkeypatch)
    yield get_engine()
    dispose_engine()
    get_settings.cache_clear()


@pytest.fixture
def make_parent(database) -> Callable[..., CallerContext]:
    def factory(external_id: str = "parent-1", display_name: str = "Alex") -> CallerContext:
        fitness_store.register_parent(external_id, display_name)
        return fitness_store.resolve_caller(external_id)

    return factory


@pytest.fixture
def make_child(database) -> Callable[..., ChildCreation]:
    def factory(caller: CallerContext, display_name: str = "Emma", age: int = 9) -> ChildCreation:
        born = date(AS_OF.year - age, 3, 15)
        return fitness_store.create_child_profile(caller, display_name, born, as_of=AS_OF)

    return factory


@pytest.fixture
def make_exercise(database) -> Callable[..., Exercise]:
    def factory(exercise_id: str, *, points: int = 10, difficulty: str = "Easy") -> Exercise:
        return fitness_store.add_exercise(
            Exercise(
                exercise_id=exercise_id,
                name=exercise_id.replace("-", " ").title(),
                difficulty=difficulty,
                adventure_points=points,
            )
        )

    return factory


@pytest.fixture
def make_path(database) -> Callable[..., AdventurePath]:
    def factory(path_id: str, exercise_ids: list[str], *, required_completed_paths: int = 0) -> AdventurePath:
        entries = [
            PathExercise(exercise_id=exercise_id, sequence_order=index + 1, week_number=index // 2 + 1)
            for index, exercise_id in enumerate(exercise_ids)
        ]
        return fitness_store.add_path(
            AdventurePath(
                path_id=path_id,
                title=path_id.replace("-", " ").title(),
                theme="foundation",
                required_completed_paths=required_completed_paths,
                exercises=entries,
            )
        )

    return factory
