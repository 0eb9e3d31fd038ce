"""Family graph endpoints: parent sign-up, child profiles and relationships."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from .authorization import CallerContext
from .dependencies import current_caller, identity_from_request, raise_http_error
from .domain import Profile, Relationship
from .errors import AccessDenied, ValidationFailure
from .fitness_store import fitness_store
from .payloads import (
    AccessibleProfilesPayload,
    ChildProfilePayload,
    ChildProfileRequest,
    ParentRegistrationRequest,
    RelationshipRequest,
)

router = APIRouter(prefix="/api/family", tags=["family"])
logger = logging.getLogger(__name__)


@router.post("/parents", response_model=Profile, status_code=status.HTTP_201_CREATED)
def register_parent(
    payload: ParentRegistrationRequest,
    external_id: str = Depends(identity_from_request),
) -> Profile:
    try:
        return fitness_store.register_parent(
            external_id,
            payload.display_name,
            date_of_birth=payload.date_of_birth,
            language=payload.preferred_language,
        )
    except ValidationFailure as exc:
        raise_http_error(exc)


@router.post("/children", response_model=ChildProfilePayload, status_code=status.HTTP_201_CREATED)
def create_child(
    payload: ChildProfileRequest,
    caller: CallerContext = Depends(current_caller),
) -> ChildProfilePayload:
    try:
        created = fitness_store.create_child_profile(
            caller,
            payload.display_name,
            payload.date_of_birth,
            language=payload.preferred_language,
        )
    except ValidationFailure as exc:
        raise_http_error(exc)
    logger.info("Child profile %s created by %s", created.profile.profile_id, caller.profile_id)
    return ChildProfilePayload(profile=created.profile, relationship=created.relationship, age=created.age)


@router.get("/children", response_model=List[Profile])
def list_children(caller: CallerContext = Depends(current_caller)) -> List[Profile]:
    return fitness_store.list_children(caller)


@router.get("/accessible-profiles", response_model=AccessibleProfilesPayload)
def accessible_profiles(caller: CallerContext = Depends(current_caller)) -> AccessibleProfilesPayload:
    return AccessibleProfilesPayload(profile_ids=fitness_store.accessible_profile_ids(caller))


@router.post("/relationships", response_model=Relationship, status_code=status.HTTP_201_CREATED)
def create_relationship(
    payload: RelationshipRequest,
    caller: CallerContext = Depends(current_caller),
) -> Relationship:
    try:
        return fitness_store.create_relationship(
            caller,
            payload.parent_id,
            payload.child_id,
            consent=payload.consent_given,
            relationship_type=payload.relationship_type,
        )
    except (AccessDenied, ValidationFailure) as exc:
        raise_http_error(exc)


@router.post("/relationships/{relationship_id}/deactivate", response_model=Relationship)
def deactivate_relationship(
    relationship_id: str,
    caller: CallerContext = Depends(current_caller),
) -> Relationship:
    try:
        return fitness_store.deactivate_relationship(caller, relationship_id)
    except AccessDenied as exc:
        raise_http_error(exc)


__all__ = ["router"]
