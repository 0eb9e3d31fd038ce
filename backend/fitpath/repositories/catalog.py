"""Exercise catalog, prerequisite graph and adventure path persistence."""

from __future__ import annotations

import logging
from collections import defaultdict
from threading import Lock
from typing import Dict, List, Optional, Set

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..db.models import (
    AchievementModel,
    AdventurePathModel,
    ExerciseModel,
    PathExerciseModel,
    PrerequisiteModel,
)
from ..domain import (
    Achievement,
    AdventurePath,
    Exercise,
    PathExercise,
    Prerequisite,
    difficulty_rank,
)
from ..errors import (
    CyclicPrerequisite,
    DuplicateAchievement,
    DuplicateExercise,
    DuplicatePath,
    DuplicatePrerequisite,
    PathMembershipError,
    UnknownExercise,
    UnknownPath,
)
from ..prerequisites import would_create_cycle

logger = logging.getLogger(__name__)

# Serializes prerequisite inserts within the process so two concurrent edges
# cannot each pass the cycle check and close a loop together.
_graph_lock = Lock()


class CatalogRepository:
    def add_exercise(self, session: Session, exercise: Exercise) -> Exercise:
        if session.get(ExerciseModel, exercise.exercise_id) is not None:
            raise DuplicateExercise(f"Exercise '{exercise.exercise_id}' already exists.")
        model = ExerciseModel(
            exercise_id=exercise.exercise_id,
            name=exercise.name.strip(),
            description=exercise.description,
            difficulty=exercise.difficulty,
            adventure_points=exercise.adventure_points,
            estimated_minutes=exercise.estimated_minutes,
            is_active=exercise.is_active,
        )
        session.add(model)
        try:
            session.flush()
        except IntegrityError as exc:
            raise DuplicateExercise(f"Exercise '{exercise.exercise_id}' already exists.") from exc
        return self._exercise_to_domain(model)

    def get_exercise(self, session: Session, exercise_id: str) -> Optional[Exercise]:
        model = session.get(ExerciseModel, exercise_id)
        return self._exercise_to_domain(model) if model else None

    def list_exercises(
        self,
        session: Session,
        *,
        max_difficulty: Optional[str] = None,
        include_inactive: bool = False,
    ) -> List[Exercise]:
        stmt = select(ExerciseModel).order_by(ExerciseModel.name.asc())
        if not include_inactive:
            stmt = stmt.where(ExerciseModel.is_active.is_(True))
        exercises = [self._exercise_to_domain(model) for model in session.execute(stmt).scalars()]
        if max_difficulty is not None:
            ceiling = difficulty_rank(max_difficulty)
            exercises = [item for item in exercises if difficulty_rank(item.difficulty) <= ceiling]
        exercises.sort(key=lambda item: (difficulty_rank(item.difficulty), item.name))
        return exercises

    def requirement_map(self, session: Session) -> Dict[str, Set[str]]:
        """Every exercise mapped to the exercises it directly requires."""
        graph: Dict[str, Set[str]] = defaultdict(set)
        stmt = select(PrerequisiteModel.exercise_id, PrerequisiteModel.required_exercise_id)
        for exercise_id, required_id in session.execute(stmt):
            graph[exercise_id].add(required_id)
        return dict(graph)

    def add_prerequisite(self, session: Session, prerequisite: Prerequisite) -> Prerequisite:
        if prerequisite.exercise_id == prerequisite.required_exercise_id:
            raise CyclicPrerequisite("An exercise cannot require itself.")
        for exercise_id in (prerequisite.exercise_id, prerequisite.required_exercise_id):
            if session.get(ExerciseModel, exercise_id) is None:
                raise UnknownExercise(f"Exercise '{exercise_id}' does not exist.")

        with _graph_lock:
            graph = self.requirement_map(session)
            if prerequisite.required_exercise_id in graph.get(prerequisite.exercise_id, set()):
                raise DuplicatePrerequisite("This prerequisite already exists.")
            if would_create_cycle(graph, prerequisite.exercise_id, prerequisite.required_exercise_id):
                raise CyclicPrerequisite(
                    f"Requiring '{prerequisite.required_exercise_id}' before "
                    f"'{prerequisite.exercise_id}' would create a cycle."
                )
            model = PrerequisiteModel(
                exercise_id=prerequisite.exercise_id,
                required_exercise_id=prerequisite.required_exercise_id,
                minimum_completions=prerequisite.minimum_completions,
                minimum_rating=prerequisite.minimum_rating,
            )
            session.add(model)
            try:
                session.flush()
            except IntegrityError as exc:
                raise DuplicatePrerequisite("This prerequisite already exists.") from exc
        logger.debug(
            "Prerequisite added: %s requires %s", prerequisite.exercise_id, prerequisite.required_exercise_id
        )
        return self._prerequisite_to_domain(model)

    def prerequisites_for(self, session: Session, exercise_id: str) -> List[Prerequisite]:
        stmt = (
            select(PrerequisiteModel)
            .where(PrerequisiteModel.exercise_id == exercise_id)
            .order_by(PrerequisiteModel.created_at.asc())
        )
        return [self._prerequisite_to_domain(model) for model in session.execute(stmt).scalars()]

    def add_path(self, session: Session, path: AdventurePath) -> AdventurePath:
        if session.get(AdventurePathModel, path.path_id) is not None:
            raise DuplicatePath(f"Adventure path '{path.path_id}' already exists.")
        model = AdventurePathModel(
            path_id=path.path_id,
            title=path.title.strip(),
            description=path.description,
            theme=path.theme,
            difficulty_level=path.difficulty_level,
            estimated_weeks=path.estimated_weeks,
            required_completed_paths=path.required_completed_paths,
            reward_points=path.reward_points,
            is_active=path.is_active,
            display_order=path.display_order,
            total_exercises=0,
        )
        session.add(model)
        try:
            session.flush()
        except IntegrityError as exc:
            raise DuplicatePath(f"Adventure path '{path.path_id}' already exists.") from exc
        for entry in path.exercises:
            self._insert_entry(session, model, entry)
        self._refresh_total(session, model)
        return self._path_to_domain(model)

    def get_path(self, session: Session, path_id: str) -> Optional[AdventurePath]:
        model = session.get(AdventurePathModel, path_id)
        return self._path_to_domain(model) if model else None

    def list_paths(self, session: Session, *, include_inactive: bool = False) -> List[AdventurePath]:
        stmt = (
            select(AdventurePathModel)
            .options(selectinload(AdventurePathModel.entries))
            .order_by(AdventurePathModel.display_order.asc(), AdventurePathModel.title.asc())
        )
        if not include_inactive:
            stmt = stmt.where(AdventurePathModel.is_active.is_(True))
        return [self._path_to_domain(model) for model in session.execute(stmt).scalars()]

    def paths_containing(self, session: Session, exercise_id: str) -> List[AdventurePath]:
        stmt = (
            select(AdventurePathModel)
            .join(PathExerciseModel, PathExerciseModel.path_id == AdventurePathModel.path_id)
            .where(PathExerciseModel.exercise_id == exercise_id)
            .options(selectinload(AdventurePathModel.entries))
            .order_by(AdventurePathModel.display_order.asc())
        )
        return [self._path_to_domain(model) for model in session.execute(stmt).scalars().unique()]

    def add_path_exercise(self, session: Session, path_id: str, entry: PathExercise) -> AdventurePath:
        model = self._require_path(session, path_id)
        self._insert_entry(session, model, entry)
        self._refresh_total(session, model)
        return self._path_to_domain(model)

    def remove_path_exercise(self, session: Session, path_id: str, exercise_id: str) -> AdventurePath:
        model = self._require_path(session, path_id)
        entry = next((item for item in model.entries if item.exercise_id == exercise_id), None)
        if entry is None:
            raise PathMembershipError(f"Exercise '{exercise_id}' is not part of path '{path_id}'.")
        model.entries.remove(entry)
        session.flush()
        self._refresh_total(session, model)
        return self._path_to_domain(model)

    def add_achievement(self, session: Session, achievement: Achievement) -> Achievement:
        if session.get(AchievementModel, achievement.achievement_id) is not None:
            raise DuplicateAchievement(f"Achievement '{achievement.achievement_id}' already exists.")
        model = AchievementModel(
            achievement_id=achievement.achievement_id,
            title=achievement.title,
            description=achievement.description,
            achievement_type=achievement.achievement_type,
            threshold=achievement.threshold,
            points_reward=achievement.points_reward,
            is_active=achievement.is_active,
        )
        session.add(model)
        try:
            session.flush()
        except IntegrityError as exc:
            raise DuplicateAchievement(f"Achievement '{achievement.achievement_id}' already exists.") from exc
        return self._achievement_to_domain(model)

    def list_achievements(self, session: Session, *, include_inactive: bool = False) -> List[Achievement]:
        stmt = select(AchievementModel).order_by(AchievementModel.threshold.asc(), AchievementModel.title.asc())
        if not include_inactive:
            stmt = stmt.where(AchievementModel.is_active.is_(True))
        return [self._achievement_to_domain(model) for model in session.execute(stmt).scalars()]

    def _require_path(self, session: Session, path_id: str) -> AdventurePathModel:
        model = session.get(AdventurePathModel, path_id)
        if model is None:
            raise UnknownPath(f"Adventure path '{path_id}' does not exist.")
        return model

    def _insert_entry(self, session: Session, model: AdventurePathModel, entry: PathExercise) -> None:
        if session.get(ExerciseModel, entry.exercise_id) is None:
            raise UnknownExercise(f"Exercise '{entry.exercise_id}' does not exist.")
        for existing in model.entries:
            if existing.exercise_id == entry.exercise_id:
                raise PathMembershipError(
                    f"Exercise '{entry.exercise_id}' is already part of path '{model.path_id}'."
                )
            if existing.sequence_order == entry.sequence_order:
                raise PathMembershipError(
                    f"Sequence position {entry.sequence_order} is already taken in path '{model.path_id}'."
                )
        model.entries.append(
            PathExerciseModel(
                exercise_id=entry.exercise_id,
                sequence_order=entry.sequence_order,
                week_number=entry.week_number,
            )
        )
        try:
            session.flush()
        except IntegrityError as exc:
            raise PathMembershipError("Path membership changed concurrently; retry the request.") from exc

    def _refresh_total(self, session: Session, model: AdventurePathModel) -> None:
        count = session.execute(
            select(func.count(PathExerciseModel.id)).where(PathExerciseModel.path_id == model.path_id)
        ).scalar_one()
        model.total_exercises = int(count)
        session.flush()

    @staticmethod
    def _exercise_to_domain(model: ExerciseModel) -> Exercise:
        return Exercise(
            exercise_id=model.exercise_id,
            name=model.name,
            description=model.description,
            difficulty=model.difficulty,  # type: ignore[arg-type]
            adventure_points=model.adventure_points,
            estimated_minutes=model.estimated_minutes,
            is_active=model.is_active,
        )

    @staticmethod
    def _prerequisite_to_domain(model: PrerequisiteModel) -> Prerequisite:
        return Prerequisite(
            exercise_id=model.exercise_id,
            required_exercise_id=model.required_exercise_id,
            minimum_completions=model.minimum_completions,
            minimum_rating=model.minimum_rating,
        )

    @staticmethod
    def _path_to_domain(model: AdventurePathModel) -> AdventurePath:
        return AdventurePath(
            path_id=model.path_id,
            title=model.title,
            description=model.description,
            theme=model.theme,
            difficulty_level=model.difficulty_level,  # type: ignore[arg-type]
            estimated_weeks=model.estimated_weeks,
            required_completed_paths=model.required_completed_paths,
            reward_points=model.reward_points,
            total_exercises=model.total_exercises,
            is_active=model.is_active,
            display_order=model.display_order,
            exercises=[
                PathExercise(
                    exercise_id=entry.exercise_id,
                    sequence_order=entry.sequence_order,
                    week_number=entry.week_number,
                )
                for entry in sorted(model.entries, key=lambda item: item.sequence_order)
            ],
        )

    @staticmethod
    def _achievement_to_domain(model: AchievementModel) -> Achievement:
        return Achievement(
            achievement_id=model.achievement_id,
            title=model.title,
            description=model.description,
            achievement_type=model.achievement_type,  # type: ignore[arg-type]
            threshold=model.threshold,
            points_reward=model.points_reward,
            is_active=model.is_active,
        )


catalog = CatalogRepository()

__all__ = ["CatalogRepository", "catalog"]
