from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fitpath.domain import Achievement, AggregateProgress
from fitpath.fitness_store import fitness_store
from fitpath.progression import achievements_due

START = datetime(2025, 4, 5, 10, 0, tzinfo=timezone.utc)


def _achievement(achievement_id: str, kind: str, threshold: int, reward: int = 0, **extra) -> Achievement:  # type: ignore[no-untyped-def]
    return Achievement(
        achievement_id=achievement_id,
        title=achievement_id.replace("-", " ").title(),
        achievement_type=kind,
        threshold=threshold,
        points_reward=reward,
        **extra,
    )


def test_bonus_points_can_unlock_further_achievements() -> None:
    aggregate = AggregateProgress(profile_id="p", total_points=10)
    catalog = [
        _achievement("first-ten", "total_points", 10, reward=20),
        _achievement("thirty-club", "total_points", 30),
        _achievement("hundred-club", "total_points", 100),
    ]
    due = achievements_due(aggregate, catalog, [])
    assert [item.achievement_id for item in due] == ["first-ten", "thirty-club"]
    assert achievements_due(aggregate, catalog, ["first-ten"]) == []


def test_session_awards_each_achievement_once(make_parent, make_child, make_exercise) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("e1", points=10)
    fitness_store.add_achievement(_achievement("first-ten", "total_points", 10, reward=20))
    fitness_store.add_achievement(_achievement("thirty-club", "total_points", 30))
    fitness_store.add_achievement(_achievement("retired", "total_exercises", 0, is_active=False))

    first = fitness_store.record_session(parent, child.profile_id, "e1", quality_rating=5, completed_at=START)
    assert {item.achievement_id for item in first.achievements} == {"first-ten", "thirty-club"}
    assert first.aggregate.total_points == 30
    assert first.aggregate.achievements_earned == 2

    second = fitness_store.record_session(
        parent, child.profile_id, "e1", quality_rating=5, completed_at=START + timedelta(hours=1)
    )
    assert second.achievements == []
    aggregate = fitness_store.get_aggregate(parent, child.profile_id)
    assert aggregate.total_points == 40
    assert aggregate.achievements_earned == 2

    earned = fitness_store.list_achievements(parent, child.profile_id)
    assert sorted(item.achievement_id for item in earned) == ["first-ten", "thirty-club"]
    assert all(item.session_id == first.session.session_id for item in earned)


def test_paths_completed_achievement(make_parent, make_child, make_exercise, make_path) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("e1")
    make_exercise("e2")
    make_path("starter", ["e1", "e2"])
    fitness_store.add_achievement(_achievement("trailblazer", "paths_completed", 1, reward=50))

    first = fitness_store.record_session(parent, child.profile_id, "e1", quality_rating=5, completed_at=START)
    assert first.achievements == []

    second = fitness_store.record_session(
        parent, child.profile_id, "e2", quality_rating=5, completed_at=START + timedelta(minutes=5)
    )
    assert second.completed_paths == ["starter"]
    assert [item.achievement_id for item in second.achievements] == ["trailblazer"]
    assert second.aggregate.paths_completed == 1
    assert second.aggregate.total_points == 10 + 10 + 50


def test_streak_achievement(make_parent, make_child, make_exercise) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("e1")
    fitness_store.add_achievement(_achievement("three-day-streak", "streak_days", 3))

    awarded = []
    for day in range(3):
        outcome = fitness_store.record_session(
            parent, child.profile_id, "e1", quality_rating=4, completed_at=START + timedelta(days=day)
        )
        awarded.append([item.achievement_id for item in outcome.achievements])

    assert awarded == [[], [], ["three-day-streak"]]


def test_achievements_hidden_from_strangers(make_parent, make_child) -> None:
    parent = make_parent("parent-a")
    stranger = make_parent("parent-b", "Blake")
    child = make_child(parent).profile
    assert fitness_store.list_achievements(stranger, child.profile_id) == []
    assert fitness_store.list_catalog_achievements() == []
