"""Prerequisite graph helpers: cycle detection and unlock evaluation."""

from __future__ import annotations

from collections import deque
from typing import Iterable, List, Mapping, Optional, Sequence, Set

from .domain import Prerequisite, UnlockReport, UnlockRequirement


def would_create_cycle(
    requirements: Mapping[str, Iterable[str]],
    exercise_id: str,
    required_exercise_id: str,
) -> bool:
    """Return True when adding ``exercise_id -> required_exercise_id`` closes a loop.

    ``requirements`` maps each exercise to the exercises it directly requires.
    The new edge is cyclic when ``required_exercise_id`` already requires
    ``exercise_id`` transitively, or when both ids are the same.
    """
    if exercise_id == required_exercise_id:
        return True
    seen: Set[str] = {required_exercise_id}
    queue = deque([required_exercise_id])
    while queue:
        current = queue.popleft()
        for upstream in requirements.get(current, ()):
            if upstream == exercise_id:
                return True
            if upstream not in seen:
                seen.add(upstream)
                queue.append(upstream)
    return False


def find_cycle(requirements: Mapping[str, Iterable[str]]) -> Optional[List[str]]:
    """Return one cycle in the graph as a list of exercise ids, or None."""
    white, grey, black = 0, 1, 2
    colour = {node: white for node in requirements}
    for targets in requirements.values():
        for target in targets:
            colour.setdefault(target, white)

    for root in list(colour):
        if colour[root] != white:
            continue
        stack: list[tuple[str, Iterable[str]]] = [(root, iter(requirements.get(root, ())))]
        trail = [root]
        colour[root] = grey
        while stack:
            node, children = stack[-1]
            advanced = False
            for child in children:
                if colour[child] == grey:
                    return trail[trail.index(child):] + [child]
                if colour[child] == white:
                    colour[child] = grey
                    trail.append(child)
                    stack.append((child, iter(requirements.get(child, ()))))
                    advanced = True
                    break
            if not advanced:
                colour[node] = black
                trail.pop()
                stack.pop()
    return None


def evaluate_unlock(
    exercise_id: str,
    prerequisites: Sequence[Prerequisite],
    ratings_by_exercise: Mapping[str, Sequence[int]],
) -> UnlockReport:
    """Evaluate every prerequisite edge of ``exercise_id`` against session ratings.

    An exercise without edges is always unlocked.
    """
    requirements: list[UnlockRequirement] = []
    for edge in prerequisites:
        ratings = ratings_by_exercise.get(edge.required_exercise_id, ())
        qualifying = sum(1 for rating in ratings if rating >= edge.minimum_rating)
        requirements.append(
            UnlockRequirement(
                required_exercise_id=edge.required_exercise_id,
                minimum_completions=edge.minimum_completions,
                minimum_rating=edge.minimum_rating,
                qualifying_completions=qualifying,
                satisfied=qualifying >= edge.minimum_completions,
            )
        )
    return UnlockReport(
        exercise_id=exercise_id,
        unlocked=all(requirement.satisfied for requirement in requirements),
        requirements=requirements,
    )


__all__ = ["evaluate_unlock", "find_cycle", "would_create_cycle"]
