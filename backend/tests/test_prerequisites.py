"""Prerequisite graph and unlock evaluation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from fitpath.domain import Achievement, AdventurePath, Exercise, Prerequisite
from fitpath.errors import (
    CyclicPrerequisite,
    DuplicateAchievement,
    DuplicateExercise,
    DuplicatePath,
    DuplicatePrerequisite,
    ExerciseLocked,
    UnknownExercise,
)
from fitpath.fitness_store import fitness_store
from fitpath.prerequisites import evaluate_unlock, find_cycle, would_create_cycle

START = datetime(2025, 6, 2, 16, 0, tzinfo=timezone.utc)


def test_would_create_cycle_follows_transitive_requirements() -> None:
    graph = {"c": {"b"}, "b": {"a"}}
    assert would_create_cycle(graph, "a", "c") is True
    assert would_create_cycle(graph, "a", "a") is True
    assert would_create_cycle(graph, "d", "c") is False


def test_find_cycle_reports_loop() -> None:
    assert find_cycle({"a": {"b"}, "b": {"c"}}) is None
    cycle = find_cycle({"a": {"b"}, "b": {"c"}, "c": {"a"}})
    assert cycle is not None
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"a", "b", "c"}


def test_evaluate_unlock_counts_only_qualifying_ratings() -> None:
    edge = Prerequisite(exercise_id="e2", required_exercise_id="e1", minimum_completions=2, minimum_rating=3)
    report = evaluate_unlock("e2", [edge], {"e1": [2, 3]})
    assert report.unlocked is False
    assert report.requirements[0].qualifying_completions == 1

    report = evaluate_unlock("e2", [edge], {"e1": [2, 3, 5]})
    assert report.unlocked is True
    assert evaluate_unlock("e3", [], {}).unlocked is True


def test_unlock_requires_enough_qualifying_sessions(make_parent, make_child, make_exercise) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("e1")
    make_exercise("e2")
    fitness_store.add_prerequisite(
        Prerequisite(exercise_id="e2", required_exercise_id="e1", minimum_completions=2, minimum_rating=3)
    )

    assert fitness_store.is_unlocked(parent, child.profile_id, "e1") is True
    assert fitness_store.is_unlocked(parent, child.profile_id, "e2") is False

    fitness_store.record_session(parent, child.profile_id, "e1", quality_rating=2, completed_at=START)
    assert fitness_store.is_unlocked(parent, child.profile_id, "e2") is False
    with pytest.raises(ExerciseLocked):
        fitness_store.record_session(parent, child.profile_id, "e2", quality_rating=5, completed_at=START)

    fitness_store.record_session(
        parent, child.profile_id, "e1", quality_rating=3, completed_at=START + timedelta(hours=1)
    )
    assert fitness_store.is_unlocked(parent, child.profile_id, "e2") is False
    fitness_store.record_session(
        parent, child.profile_id, "e1", quality_rating=4, completed_at=START + timedelta(hours=2)
    )

    report = fitness_store.unlock_report(parent, child.profile_id, "e2")
    assert report is not None and report.unlocked is True
    assert report.requirements[0].qualifying_completions == 2
    outcome = fitness_store.record_session(
        parent, child.profile_id, "e2", quality_rating=5, completed_at=START + timedelta(hours=3)
    )
    assert outcome.session.exercise_id == "e2"


def test_unlock_report_is_silent_for_strangers(make_parent, make_child, make_exercise) -> None:
    parent = make_parent("parent-a")
    stranger = make_parent("parent-b", "Blake")
    child = make_child(parent).profile
    make_exercise("e1")

    assert fitness_store.unlock_report(stranger, child.profile_id, "e1") is None
    assert fitness_store.is_unlocked(stranger, child.profile_id, "e1") is False


def test_prerequisite_cycles_and_duplicates_are_rejected(make_exercise) -> None:
    for exercise_id in ("a", "b", "c"):
        make_exercise(exercise_id)
    fitness_store.add_prerequisite(Prerequisite(exercise_id="b", required_exercise_id="a"))
    fitness_store.add_prerequisite(Prerequisite(exercise_id="c", required_exercise_id="b"))

    with pytest.raises(CyclicPrerequisite):
        fitness_store.add_prerequisite(Prerequisite(exercise_id="a", required_exercise_id="c"))
    with pytest.raises(CyclicPrerequisite):
        fitness_store.add_prerequisite(Prerequisite(exercise_id="a", required_exercise_id="a"))
    with pytest.raises(DuplicatePrerequisite):
        fitness_store.add_prerequisite(Prerequisite(exercise_id="b", required_exercise_id="a"))
    with pytest.raises(UnknownExercise):
        fitness_store.add_prerequisite(Prerequisite(exercise_id="b", required_exercise_id="zzz"))


def test_prerequisite_defaults() -> None:
    edge = Prerequisite(exercise_id="x", required_exercise_id="y")
    assert edge.minimum_completions == 1
    assert edge.minimum_rating == 3


def test_duplicate_catalog_ids_are_rejected(make_exercise, make_path) -> None:
    make_exercise("e1")
    make_path("p1", ["e1"])
    fitness_store.add_achievement(
        Achievement(achievement_id="a1", title="First", achievement_type="total_points", threshold=10)
    )

    with pytest.raises(DuplicateExercise):
        make_exercise("e1")
    with pytest.raises(DuplicatePath):
        fitness_store.add_path(AdventurePath(path_id="p1", title="Again", theme="forest"))
    with pytest.raises(DuplicateAchievement):
        fitness_store.add_achievement(
            Achievement(achievement_id="a1", title="Again", achievement_type="total_points", threshold=20)
        )

    assert [item.name for item in fitness_store.list_exercises()] == ["E1"]
    assert [path.title for path in fitness_store.list_paths()] == ["P1"]
    assert fitness_store.add_exercise(Exercise(exercise_id="e2", name="Squats")).exercise_id == "e2"
