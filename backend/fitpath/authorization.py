"""Family-scoped authorization.

Evaluation happens in two phases. :func:`resolve_caller` maps the identity
provider's external id to a profile once per request; it reads ``profiles``
directly and is the only place that does. :func:`evaluate` then decides
ALLOW/DENY from the resolved :class:`CallerContext` by looking at
``parent_child_relationships`` only, with the caller's profile id bound as a
plain value. The evaluator never calls back into profile resolution, so it
cannot recurse into itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .db.models import ProfileModel, RelationshipModel
from .errors import AccessDenied, UnknownCaller

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    READ = "read"
    WRITE = "write"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class CallerContext:
    """Identity of the authenticated caller, resolved before any policy check."""

    profile_id: str
    external_id: str
    is_child: bool = False


def resolve_caller(session: Session, external_id: str) -> CallerContext:
    """Map an external login to its profile. Raises :class:`UnknownCaller`."""
    cleaned = (external_id or "").strip()
    if not cleaned:
        raise UnknownCaller("Caller identity is missing.")
    stmt = select(ProfileModel.profile_id, ProfileModel.is_child).where(
        ProfileModel.external_id == cleaned
    )
    row = session.execute(stmt).one_or_none()
    if row is None:
        raise UnknownCaller("Caller identity is not registered.")
    return CallerContext(profile_id=row.profile_id, external_id=cleaned, is_child=bool(row.is_child))


def _has_active_link(session: Session, parent_id: str, child_id: str) -> bool:
    stmt = (
        select(RelationshipModel.relationship_id)
        .where(
            RelationshipModel.parent_id == parent_id,
            RelationshipModel.child_id == child_id,
            RelationshipModel.active.is_(True),
        )
        .limit(1)
    )
    return session.execute(stmt).first() is not None


def evaluate(
    session: Session,
    caller: CallerContext,
    owner_profile_id: str,
    operation: Operation,
) -> Decision:
    if caller.profile_id == owner_profile_id:
        if operation is Operation.WRITE and caller.is_child:
            return Decision.DENY
        return Decision.ALLOW
    if caller.is_child:
        return Decision.DENY
    if _has_active_link(session, caller.profile_id, owner_profile_id):
        return Decision.ALLOW
    logger.debug(
        "Denied %s on profile %s for caller %s", operation.value, owner_profile_id, caller.profile_id
    )
    return Decision.DENY


def is_allowed(session: Session, caller: CallerContext, owner_profile_id: str, operation: Operation) -> bool:
    return evaluate(session, caller, owner_profile_id, operation) is Decision.ALLOW


def require(session: Session, caller: CallerContext, owner_profile_id: str, operation: Operation) -> None:
    """Raise :class:`AccessDenied` unless the caller may perform ``operation``."""
    if not is_allowed(session, caller, owner_profile_id, operation):
        raise AccessDenied()


def accessible_profile_ids(session: Session, caller: CallerContext) -> List[str]:
    """The caller's own profile followed by every actively linked child."""
    if caller.is_child:
        return [caller.profile_id]
    stmt = (
        select(RelationshipModel.child_id)
        .where(RelationshipModel.parent_id == caller.profile_id, RelationshipModel.active.is_(True))
        .order_by(RelationshipModel.created_at.asc())
    )
    children = [child_id for child_id in session.execute(stmt).scalars() if child_id != caller.profile_id]
    return [caller.profile_id, *children]


__all__ = [
    "CallerContext",
    "Decision",
    "Operation",
    "accessible_profile_ids",
    "evaluate",
    "is_allowed",
    "require",
    "resolve_caller",
]
