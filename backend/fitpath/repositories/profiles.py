"""Database-backed profile and relationship repository."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..clock import age_on, ensure_aware, utcnow
from ..db.models import AggregateProgressModel, AuditEventModel, ProfileModel, RelationshipModel
from ..domain import ChildCreation, Profile, Relationship, default_privacy_settings
from ..errors import (
    ChildAgeOutOfRange,
    DuplicateProfile,
    DuplicateRelationship,
    InvalidChild,
    InvalidParent,
    InvariantViolation,
)


def _normalize_display_name(value: str) -> str:
    cleaned = " ".join((value or "").split())
    if not cleaned:
        raise InvalidChild("Display name cannot be empty.")
    return cleaned


class ProfileRepository:
    """Persistence for profiles and the parent-child relationship graph.

    Methods here do not authorize; callers go through the store, which checks
    access before touching anything.
    """

    def get(self, session: Session, profile_id: str) -> Optional[Profile]:
        model = session.get(ProfileModel, profile_id)
        return self._to_domain(model) if model else None

    def register_parent(
        self,
        session: Session,
        external_id: str,
        display_name: str,
        *,
        date_of_birth: Optional[date] = None,
        language: str = "en",
    ) -> Profile:
        cleaned = (external_id or "").strip()
        if not cleaned:
            raise InvalidParent("Parent profiles require an external login reference.")
        existing = session.execute(
            select(ProfileModel.profile_id).where(ProfileModel.external_id == cleaned)
        ).first()
        if existing is not None:
            raise DuplicateProfile("A profile is already registered for this login.")

        now = utcnow()
        model = ProfileModel(
            external_id=cleaned,
            display_name=_normalize_display_name(display_name),
            date_of_birth=date_of_birth,
            is_child=False,
            consent_given=True,
            consent_date=now,
            privacy_settings=default_privacy_settings(),
            preferred_language=language,
        )
        session.add(model)
        try:
            session.flush()
        except IntegrityError as exc:
            raise DuplicateProfile("A profile is already registered for this login.") from exc
        session.add(AggregateProgressModel(profile_id=model.profile_id))
        session.flush()
        self._record_audit(session, model.profile_id, "parent_registered", {}, actor=model.profile_id)
        return self._to_domain(model)

    def create_child_with_link(
        self,
        session: Session,
        parent_profile_id: str,
        display_name: str,
        date_of_birth: date,
        *,
        as_of: date,
        min_age: int,
        max_age: int,
        language: str = "en",
    ) -> ChildCreation:
        """Insert child profile, relationship and zeroed aggregate in one unit.

        Validation runs before the first insert; any later failure propagates
        and the enclosing ``session_scope`` discards all three rows together.
        """
        parent = session.get(ProfileModel, parent_profile_id)
        if parent is None or parent.is_child or not parent.external_id:
            raise InvalidParent("Parent profile not found or is not a valid parent account.")
        name = _normalize_display_name(display_name)
        age = age_on(date_of_birth, as_of)
        if age < min_age or age > max_age:
            raise ChildAgeOutOfRange(f"Child age must be between {min_age} and {max_age} years old.")

        now = utcnow()
        child = ProfileModel(
            external_id=None,
            display_name=name,
            date_of_birth=date_of_birth,
            is_child=True,
            consent_given=True,
            consent_date=now,
            privacy_settings=default_privacy_settings(),
            preferred_language=language,
        )
        session.add(child)
        session.flush()
        link = RelationshipModel(
            parent_id=parent.profile_id,
            child_id=child.profile_id,
            relationship_type="parent",
            consent_given=True,
            consent_date=now,
            active=True,
        )
        session.add(link)
        session.add(AggregateProgressModel(profile_id=child.profile_id))
        session.flush()

        if child.external_id is not None:
            raise InvariantViolation("Child profile was persisted with a login reference.")
        self._record_audit(
            session,
            child.profile_id,
            "child_profile_insert",
            {"parent_id": parent.profile_id, "age": age},
            actor=parent.profile_id,
        )
        return ChildCreation(
            profile=self._to_domain(child),
            relationship=self._relationship_to_domain(link),
            age=age,
        )

    def create_relationship(
        self,
        session: Session,
        parent_id: str,
        child_id: str,
        *,
        consent: bool = True,
        relationship_type: str = "parent",
        actor: Optional[str] = None,
    ) -> Relationship:
        if parent_id == child_id:
            raise InvalidParent("A profile cannot be linked to itself.")
        parent = session.get(ProfileModel, parent_id)
        if parent is None or parent.is_child or not parent.external_id:
            raise InvalidParent("Parent profile not found or is not a valid parent account.")
        child = session.get(ProfileModel, child_id)
        if child is None or not child.is_child or child.external_id is not None:
            raise InvalidChild("Child profile not found or is not a valid child account.")

        duplicate = session.execute(
            select(RelationshipModel.relationship_id).where(
                RelationshipModel.parent_id == parent_id,
                RelationshipModel.child_id == child_id,
            )
        ).first()
        if duplicate is not None:
            raise DuplicateRelationship("These profiles are already linked.")

        link = RelationshipModel(
            parent_id=parent_id,
            child_id=child_id,
            relationship_type=relationship_type,
            consent_given=consent,
            consent_date=utcnow() if consent else None,
            active=True,
        )
        session.add(link)
        try:
            session.flush()
        except IntegrityError as exc:
            raise DuplicateRelationship("These profiles are already linked.") from exc
        self._record_audit(
            session,
            child_id,
            "relationship_insert",
            {"parent_id": parent_id, "relationship_type": relationship_type},
            actor=actor or parent_id,
        )
        return self._relationship_to_domain(link)

    def get_relationship(self, session: Session, relationship_id: str) -> Optional[Relationship]:
        model = session.get(RelationshipModel, relationship_id)
        return self._relationship_to_domain(model) if model else None

    def deactivate_relationship(
        self, session: Session, relationship_id: str, *, actor: Optional[str] = None
    ) -> Relationship:
        model = session.get(RelationshipModel, relationship_id)
        if model is None:
            raise LookupError(f"Relationship '{relationship_id}' does not exist.")
        if model.active:
            model.active = False
            model.deactivated_at = utcnow()
            session.flush()
            self._record_audit(
                session,
                model.child_id,
                "relationship_deactivate",
                {"parent_id": model.parent_id, "relationship_id": model.relationship_id},
                actor=actor or model.parent_id,
            )
        return self._relationship_to_domain(model)

    def list_children(self, session: Session, parent_id: str) -> List[Profile]:
        stmt = (
            select(ProfileModel)
            .join(RelationshipModel, RelationshipModel.child_id == ProfileModel.profile_id)
            .where(RelationshipModel.parent_id == parent_id, RelationshipModel.active.is_(True))
            .order_by(ProfileModel.created_at.asc())
        )
        return [self._to_domain(model) for model in session.execute(stmt).scalars()]

    def record_telemetry_event(
        self,
        session: Session,
        profile_id: str,
        event_type: str,
        payload: Dict[str, Any],
    ) -> bool:
        if session.get(ProfileModel, profile_id) is None:
            return False
        self._record_audit(session, profile_id, event_type, dict(payload), actor="telemetry")
        return True

    def recent_events(
        self,
        session: Session,
        profile_id: str,
        *,
        event_types: Optional[List[str]] = None,
        limit: int = 20,
    ) -> List[AuditEventModel]:
        stmt = select(AuditEventModel).where(AuditEventModel.profile_id == profile_id)
        if event_types:
            stmt = stmt.where(AuditEventModel.event_type.in_(event_types))
        stmt = stmt.order_by(AuditEventModel.created_at.desc()).limit(limit)
        return list(session.execute(stmt).scalars())

    def _to_domain(self, model: ProfileModel) -> Profile:
        return Profile(
            profile_id=model.profile_id,
            external_id=model.external_id,
            display_name=model.display_name,
            date_of_birth=model.date_of_birth,
            is_child=model.is_child,
            consent_given=model.consent_given,
            consent_date=ensure_aware(model.consent_date),
            privacy_settings=dict(model.privacy_settings or {}),
            preferred_language=model.preferred_language,
            created_at=ensure_aware(model.created_at) or utcnow(),
        )

    @staticmethod
    def _relationship_to_domain(model: RelationshipModel) -> Relationship:
        return Relationship(
            relationship_id=model.relationship_id,
            parent_id=model.parent_id,
            child_id=model.child_id,
            relationship_type=model.relationship_type,  # type: ignore[arg-type]
            consent_given=model.consent_given,
            consent_date=ensure_aware(model.consent_date),
            active=model.active,
            created_at=ensure_aware(model.created_at) or utcnow(),
            deactivated_at=ensure_aware(model.deactivated_at),
        )

    def _record_audit(
        self,
        session: Session,
        profile_id: Optional[str],
        event_type: str,
        payload: Dict[str, Any],
        *,
        actor: Optional[str] = None,
    ) -> None:
        session.add(
            AuditEventModel(
                profile_id=profile_id,
                event_type=event_type,
                payload=payload,
                actor=actor or "system",
            )
        )


profiles = ProfileRepository()

__all__ = ["ProfileRepository", "profiles"]
