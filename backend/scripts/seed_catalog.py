"""Load exercises, prerequisites, adventure paths and achievements from JSON.

The whole document is validated up front (schema and prerequisite cycles)
and written in a single transaction, so a bad file leaves the catalog as it
was.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from fitpath.db.session import session_scope
from fitpath.domain import Achievement, AdventurePath, Exercise, Prerequisite
from fitpath.prerequisites import find_cycle
from fitpath.repositories.catalog import catalog

LOGGER = logging.getLogger("fitpath.seed_catalog")
SCRIPT_DIR = Path(__file__).resolve().parent
DEFAULT_SEED = SCRIPT_DIR / "data" / "catalog_seed.json"


class CatalogDocument(BaseModel):
    exercises: List[Exercise] = Field(default_factory=list)
    prerequisites: List[Prerequisite] = Field(default_factory=list)
    paths: List[AdventurePath] = Field(default_factory=list)
    achievements: List[Achievement] = Field(default_factory=list)


class SeedError(RuntimeError):
    pass


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the exercise catalog from a JSON document.")
    parser.add_argument(
        "path",
        nargs="?",
        default=os.getenv("FITPATH_CATALOG_SEED", str(DEFAULT_SEED)),
        help="JSON file with exercises, prerequisites, paths and achievements.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the document without writing anything.",
    )
    return parser.parse_args(argv)


def load_document(path: Path) -> CatalogDocument:
    try:
        raw: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SeedError(f"Could not read catalog seed {path}: {exc}") from exc
    try:
        document = CatalogDocument.model_validate(raw)
    except ValidationError as exc:
        raise SeedError(f"Catalog seed {path} is invalid: {exc}") from exc
    validate_document(document)
    return document


def validate_document(document: CatalogDocument) -> None:
    known = {exercise.exercise_id for exercise in document.exercises}
    graph: Dict[str, set[str]] = {}
    for edge in document.prerequisites:
        for exercise_id in (edge.exercise_id, edge.required_exercise_id):
            if exercise_id not in known:
                raise SeedError(f"Prerequisite references unknown exercise '{exercise_id}'.")
        graph.setdefault(edge.exercise_id, set()).add(edge.required_exercise_id)
    cycle = find_cycle(graph)
    if cycle:
        raise SeedError(f"Prerequisite cycle detected: {' -> '.join(cycle)}")
    for path in document.paths:
        for entry in path.exercises:
            if entry.exercise_id not in known:
                raise SeedError(f"Path '{path.path_id}' references unknown exercise '{entry.exercise_id}'.")


def seed(document: CatalogDocument) -> Dict[str, int]:
    with session_scope() as session:
        for exercise in document.exercises:
            catalog.add_exercise(session, exercise)
        for edge in document.prerequisites:
            catalog.add_prerequisite(session, edge)
        for path in document.paths:
            catalog.add_path(session, path)
        for achievement in document.achievements:
            catalog.add_achievement(session, achievement)
    return {
        "exercises": len(document.exercises),
        "prerequisites": len(document.prerequisites),
        "paths": len(document.paths),
        "achievements": len(document.achievements),
    }


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    try:
        document = load_document(Path(args.path))
        if args.dry_run:
            LOGGER.info("Catalog seed %s is valid", args.path)
            return 0
        counts = seed(document)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Catalog seeding failed: %s", exc)
        return 1
    LOGGER.info("Seeded catalog: %s", counts)
    return 0


if __name__ == "__main__":
    sys.exit(main())
