"""Tests for the two-phase family authorization evaluator."""

from __future__ import annotations

import re

import pytest
from sqlalchemy import event

from fitpath import authorization
from fitpath.authorization import CallerContext, Decision, Operation
from fitpath.db.session import session_scope
from fitpath.errors import AccessDenied, UnknownCaller
from fitpath.fitness_store import fitness_store


def _decide(caller: CallerContext, owner: str, operation: Operation) -> Decision:
    with session_scope(commit=False) as session:
        return authorization.evaluate(session, caller, owner, operation)


def test_parent_can_read_and_write_own_profile(make_parent) -> None:
    parent = make_parent()
    assert _decide(parent, parent.profile_id, Operation.READ) is Decision.ALLOW
    assert _decide(parent, parent.profile_id, Operation.WRITE) is Decision.ALLOW


def test_parent_reaches_linked_child_but_not_strangers(make_parent, make_child) -> None:
    parent = make_parent("parent-a")
    stranger = make_parent("parent-b", "Blake")
    child = make_child(parent).profile

    assert _decide(parent, child.profile_id, Operation.READ) is Decision.ALLOW
    assert _decide(parent, child.profile_id, Operation.WRITE) is Decision.ALLOW
    assert _decide(stranger, child.profile_id, Operation.READ) is Decision.DENY
    assert _decide(stranger, child.profile_id, Operation.WRITE) is Decision.DENY
    assert _decide(stranger, parent.profile_id, Operation.READ) is Decision.DENY


def test_missing_target_is_denied(make_parent) -> None:
    parent = make_parent()
    assert _decide(parent, "does-not-exist", Operation.READ) is Decision.DENY
    with session_scope(commit=False) as session:
        with pytest.raises(AccessDenied) as excinfo:
            authorization.require(session, parent, "does-not-exist", Operation.WRITE)
    assert str(excinfo.value) == "Profile not found."


def test_deactivated_link_revokes_access(make_parent, make_child) -> None:
    parent = make_parent()
    created = make_child(parent)
    fitness_store.deactivate_relationship(parent, created.relationship.relationship_id)
    assert _decide(parent, created.profile.profile_id, Operation.READ) is Decision.DENY


def test_child_context_cannot_write_itself_or_reach_others(make_parent, make_child) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    as_child = CallerContext(profile_id=child.profile_id, external_id="device-token", is_child=True)

    assert _decide(as_child, child.profile_id, Operation.READ) is Decision.ALLOW
    assert _decide(as_child, child.profile_id, Operation.WRITE) is Decision.DENY
    assert _decide(as_child, parent.profile_id, Operation.READ) is Decision.DENY


def test_resolve_caller_rejects_unknown_and_blank_identities(database) -> None:
    with pytest.raises(UnknownCaller):
        fitness_store.resolve_caller("nobody")
    with pytest.raises(UnknownCaller):
        fitness_store.resolve_caller("   ")


def test_resolve_caller_returns_profile_context(make_parent) -> None:
    caller = make_parent("parent-xyz")
    assert caller.external_id == "parent-xyz"
    assert caller.is_child is False
    assert caller.profile_id


def test_evaluator_never_queries_profiles(database, make_parent, make_child) -> None:
    parent = make_parent()
    child = make_child(parent).profile
    statements: list[str] = []

    def capture(conn, cursor, statement, parameters, context, executemany) -> None:  # type: ignore[no-untyped-def]
        statements.append(statement)

    event.listen(database, "before_cursor_execute", capture)
    try:
        _decide(parent, child.profile_id, Operation.READ)
        _decide(parent, "someone-else", Operation.WRITE)
    finally:
        event.remove(database, "before_cursor_execute", capture)

    assert statements, "Expected the evaluator to consult the relationships table"
    assert all(not re.search(r"\bprofiles\b", statement) for statement in statements)


def test_accessible_profiles_lists_self_then_children(make_parent, make_child) -> None:
    parent = make_parent()
    first = make_child(parent, "Emma").profile
    second = make_child(parent, "Noah", age=12)
    fitness_store.deactivate_relationship(parent, second.relationship.relationship_id)

    ids = fitness_store.accessible_profile_ids(parent)

    assert ids == [parent.profile_id, first.profile_id]
