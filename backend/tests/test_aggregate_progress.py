from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from fitpath.clock import local_date
from fitpath.domain import AggregateProgress
from fitpath.errors import AccessDenied, InvalidDuration, InvalidRating
from fitpath.fitness_store import fitness_store
from fitpath.progression import apply_session, next_streak, points_for


@pytest.mark.parametrize(
    ("points", "rating", "expected"),
    [(10, 3, 6), (15, 4, 12), (7, 3, 4), (7, 4, 6), (10, 5, 10), (0, 5, 0)],
)
def test_points_scale_with_rating(points: int, rating: int, expected: int) -> None:
    assert points_for(points, rating) == expected


def test_next_streak_rules() -> None:
    day = date(2025, 1, 10)
    assert next_streak(0, None, day) == 1
    assert next_streak(3, day - timedelta(days=1), day) == 4
    assert next_streak(3, day, day) == 3
    assert next_streak(3, day + timedelta(days=2), day) == 3
    assert next_streak(3, day - timedelta(days=2), day) == 1


def test_apply_session_keeps_latest_activity_date() -> None:
    aggregate = AggregateProgress(
        profile_id="p",
        total_exercises_completed=1,
        average_quality_rating=4.0,
        current_streak_days=2,
        longest_streak_days=2,
        last_activity_date=date(2025, 1, 10),
    )
    updated = apply_session(
        aggregate, points=5, duration_minutes=3.5, quality_rating=2, activity_date=date(2025, 1, 8)
    )
    assert updated.last_activity_date == date(2025, 1, 10)
    assert updated.current_streak_days == 2
    assert updated.average_quality_rating == 3.0
    assert updated.total_minutes == 3.5


def test_streaks_follow_calendar_days(make_parent, make_child, make_exercise) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("e1")

    moments = [
        datetime(2025, 1, 1, 17, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 2, 9, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 2, 18, 30, tzinfo=timezone.utc),
        datetime(2025, 1, 4, 8, 0, tzinfo=timezone.utc),
    ]
    streaks = []
    for moment in moments:
        outcome = fitness_store.record_session(
            parent, child.profile_id, "e1", quality_rating=5, completed_at=moment
        )
        streaks.append(outcome.aggregate.current_streak_days)

    assert streaks == [1, 2, 2, 1]
    aggregate = fitness_store.get_aggregate(parent, child.profile_id)
    assert aggregate.longest_streak_days == 2
    assert aggregate.last_activity_date == date(2025, 1, 4)


def test_totals_and_averages(make_parent, make_child, make_exercise) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("jumping-jacks", points=10)
    make_exercise("plank", points=15)
    start = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    fitness_store.record_session(
        parent, child.profile_id, "jumping-jacks", quality_rating=3, duration_minutes=5, completed_at=start
    )
    fitness_store.record_session(
        parent, child.profile_id, "plank", quality_rating=4, duration_minutes=2.5,
        completed_at=start + timedelta(hours=1),
    )

    aggregate = fitness_store.get_aggregate(parent, child.profile_id)
    assert aggregate.total_points == 18
    assert aggregate.total_exercises_completed == 2
    assert aggregate.total_minutes == 7.5
    assert aggregate.average_quality_rating == 3.5

    stats = {item.exercise_id: item for item in fitness_store.exercise_stats(parent, child.profile_id)}
    assert stats["plank"].times_completed == 1
    assert stats["plank"].best_quality_rating == 4
    assert stats["jumping-jacks"].total_minutes == 5.0

    sessions = fitness_store.list_sessions(parent, child.profile_id)
    assert [item.exercise_id for item in sessions] == ["plank", "jumping-jacks"]
    assert sessions[0].completed_at == start + timedelta(hours=1)


def test_concurrent_sessions_do_not_lose_updates(make_parent, make_child, make_exercise) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("e1", points=10)
    start = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    errors: list[BaseException] = []

    def record(offset: int) -> None:
        try:
            fitness_store.record_session(
                parent,
                child.profile_id,
                "e1",
                quality_rating=5,
                duration_minutes=1,
                completed_at=start + timedelta(minutes=offset),
            )
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=record, args=(index,)) for index in range(10)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    aggregate = fitness_store.get_aggregate(parent, child.profile_id)
    assert aggregate.total_exercises_completed == 10
    assert aggregate.total_points == 100
    assert aggregate.total_minutes == 10.0
    assert len(fitness_store.list_sessions(parent, child.profile_id)) == 10


def test_strangers_cannot_record_or_read(make_parent, make_child, make_exercise) -> None:
    parent = make_parent("parent-a")
    stranger = make_parent("parent-b", "Blake")
    child = make_child(parent).profile
    make_exercise("e1")

    with pytest.raises(AccessDenied):
        fitness_store.record_session(stranger, child.profile_id, "e1", quality_rating=5)
    with pytest.raises(AccessDenied):
        fitness_store.record_session(stranger, "no-such-profile", "e1", quality_rating=5)
    assert fitness_store.get_aggregate(stranger, child.profile_id) is None
    assert fitness_store.list_sessions(stranger, child.profile_id) == []
    assert fitness_store.exercise_stats(stranger, child.profile_id) == []


@pytest.mark.parametrize("rating", [0, 6, 9])
def test_out_of_range_rating_is_rejected_before_any_write(make_parent, make_child, make_exercise, rating: int) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("e1")

    with pytest.raises(InvalidRating):
        fitness_store.record_session(parent, child.profile_id, "e1", quality_rating=rating)

    assert fitness_store.list_sessions(parent, child.profile_id) == []
    assert fitness_store.get_aggregate(parent, child.profile_id).total_exercises_completed == 0


def test_negative_duration_is_rejected(make_parent, make_child, make_exercise) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    make_exercise("e1")

    with pytest.raises(InvalidDuration):
        fitness_store.record_session(parent, child.profile_id, "e1", quality_rating=4, duration_minutes=-1)

    assert fitness_store.list_sessions(parent, child.profile_id) == []


def test_profile_lock_is_stable_and_bounded() -> None:
    first = fitness_store._lock_for("profile-a")
    assert fitness_store._lock_for("profile-a") is first
    distinct = {id(fitness_store._lock_for(f"profile-{index}")) for index in range(500)}
    assert len(distinct) <= len(fitness_store._profile_locks)


def test_local_date_treats_naive_moments_as_utc() -> None:
    naive = datetime(2025, 1, 1, 23, 30)
    assert local_date(naive, "UTC") == date(2025, 1, 1)
    assert local_date(naive, "UTC") == local_date(naive.replace(tzinfo=timezone.utc), "UTC")
    assert local_date(naive + timedelta(hours=1), "UTC") == date(2025, 1, 2)
