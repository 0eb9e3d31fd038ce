"""Error taxonomy shared by the stores and the HTTP layer."""

from __future__ import annotations


class AccessDenied(LookupError):
    """Raised for unauthorized writes and for targets that do not exist.

    Both cases carry the same message so callers cannot probe for other
    families' data.
    """

    def __init__(self) -> None:
        super().__init__("Profile not found.")


class UnknownCaller(LookupError):
    """The external identity does not map to any profile."""


class ValidationFailure(ValueError):
    code = "validation_failed"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidParent(ValidationFailure):
    code = "invalid_parent"


class InvalidChild(ValidationFailure):
    code = "invalid_child"


class ChildAgeOutOfRange(ValidationFailure):
    code = "child_age_out_of_range"


class DuplicateProfile(ValidationFailure):
    code = "duplicate_profile"


class DuplicateRelationship(ValidationFailure):
    code = "duplicate_relationship"


class UnknownExercise(ValidationFailure):
    code = "unknown_exercise"


class UnknownPath(ValidationFailure):
    code = "unknown_path"


class CyclicPrerequisite(ValidationFailure):
    code = "cyclic_prerequisite"


class DuplicatePrerequisite(ValidationFailure):
    code = "duplicate_prerequisite"


class PathMembershipError(ValidationFailure):
    code = "path_membership"


class ExerciseLocked(ValidationFailure):
    code = "exercise_locked"


class InvalidRating(ValidationFailure):
    code = "invalid_rating"


class InvalidDuration(ValidationFailure):
    code = "invalid_duration"


class DuplicateExercise(ValidationFailure):
    code = "duplicate_exercise"


class DuplicatePath(ValidationFailure):
    code = "duplicate_path"


class DuplicateAchievement(ValidationFailure):
    code = "duplicate_achievement"


class InvariantViolation(RuntimeError):
    """Internal consistency failure; the surrounding transaction must abort."""


__all__ = [
    "AccessDenied",
    "ChildAgeOutOfRange",
    "CyclicPrerequisite",
    "DuplicateAchievement",
    "DuplicateExercise",
    "DuplicatePath",
    "DuplicatePrerequisite",
    "DuplicateProfile",
    "DuplicateRelationship",
    "ExerciseLocked",
    "InvalidChild",
    "InvalidDuration",
    "InvalidParent",
    "InvalidRating",
    "InvariantViolation",
    "PathMembershipError",
    "UnknownCaller",
    "UnknownExercise",
    "UnknownPath",
    "ValidationFailure",
]
