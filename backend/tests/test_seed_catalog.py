from __future__ import annotations

import json

import pytest

from fitpath.fitness_store import fitness_store
from scripts import seed_catalog


def test_default_seed_document_is_valid() -> None:
    document = seed_catalog.load_document(seed_catalog.DEFAULT_SEED)
    assert len(document.exercises) == 8
    assert [path.path_id for path in document.paths] == ["foundation-builder", "strength-explorer"]


def test_seed_populates_catalog(database) -> None:
    document = seed_catalog.load_document(seed_catalog.DEFAULT_SEED)

    counts = seed_catalog.seed(document)

    assert counts == {"exercises": 8, "prerequisites": 4, "paths": 2, "achievements": 6}
    paths = fitness_store.list_paths()
    assert [path.path_id for path in paths] == ["foundation-builder", "strength-explorer"]
    assert all(path.total_exercises == 4 for path in paths)
    easy = fitness_store.list_exercises(max_difficulty="Easy")
    assert {exercise.difficulty for exercise in easy} == {"Easy"}


def test_cyclic_seed_is_rejected(tmp_path) -> None:
    seed_file = tmp_path / "cyclic.json"
    seed_file.write_text(
        json.dumps(
            {
                "exercises": [
                    {"exercise_id": "a", "name": "A"},
                    {"exercise_id": "b", "name": "B"},
                ],
                "prerequisites": [
                    {"exercise_id": "a", "required_exercise_id": "b"},
                    {"exercise_id": "b", "required_exercise_id": "a"},
                ],
            }
        ),
        encoding="utf-8",
    )
    with pytest.raises(seed_catalog.SeedError, match="cycle"):
        seed_catalog.load_document(seed_file)


def test_unknown_exercise_reference_is_rejected(tmp_path) -> None:
    seed_file = tmp_path / "dangling.json"
    seed_file.write_text(
        json.dumps(
            {
                "exercises": [{"exercise_id": "a", "name": "A"}],
                "paths": [
                    {
                        "path_id": "p",
                        "title": "P",
                        "theme": "t",
                        "exercises": [{"exercise_id": "missing", "sequence_order": 1}],
                    }
                ],
            }
        ),
        encoding="utf-8",
    )
    with pytest.raises(seed_catalog.SeedError, match="missing"):
        seed_catalog.load_document(seed_file)


def test_dry_run_writes_nothing(database) -> None:
    assert seed_catalog.main([str(seed_catalog.DEFAULT_SEED), "--dry-run"]) == 0
    assert fitness_store.list_exercises() == []
    assert seed_catalog.main(["/does/not/exist.json"]) == 1
