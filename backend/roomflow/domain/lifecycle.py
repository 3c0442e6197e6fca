"""Event status state machine.

Every legal move is one row of ``TRANSITIONS`` keyed by (current status,
action). Callers never compare status strings themselves; they ask
``resolve_transition`` for the row and ``check_guard`` for the actor.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Tuple

from ..config import SchedulingPolicy
from ..errors import PermissionDeniedError, StateError
from .enums import EventAction, EventStatus, Role


@dataclass(frozen=True)
class Actor:
    user_id: str
    roles: FrozenSet[Role] = field(default_factory=frozenset)

    @classmethod
    def from_roles(cls, user_id: str, roles: Iterable[str | Role]) -> "Actor":
        return cls(user_id=user_id, roles=frozenset(Role(r) for r in roles))

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    @property
    def can_review(self) -> bool:
        return self.is_admin or Role.REVIEWER in self.roles


class Guard(str, Enum):
    OWNER_OR_ADMIN = "owner or admin"
    REVIEWER = "admin or reviewer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Transition:
    source: EventStatus
    action: EventAction
    target: EventStatus
    guard: Guard
    checks_conflicts: bool = False
    records_reviewer: bool = False


def _row(source, action, target, guard, **kw) -> Tuple[Tuple[EventStatus, EventAction], Transition]:
    return (source, action), Transition(source, action, target, guard, **kw)


TRANSITIONS: Dict[Tuple[EventStatus, EventAction], Transition] = dict([
    _row(EventStatus.DRAFT, EventAction.SUBMIT, EventStatus.PENDING_REVIEW, Guard.OWNER_OR_ADMIN),
    _row(EventStatus.PENDING_REVIEW, EventAction.APPROVE, EventStatus.APPROVED, Guard.REVIEWER,
         checks_conflicts=True, records_reviewer=True),
    _row(EventStatus.PENDING_REVIEW, EventAction.REJECT, EventStatus.REJECTED, Guard.REVIEWER,
         records_reviewer=True),
    _row(EventStatus.APPROVED, EventAction.PUBLISH, EventStatus.PUBLISHED, Guard.ADMIN, checks_conflicts=True),
    _row(EventStatus.APPROVED, EventAction.UNAPPROVE, EventStatus.PENDING_REVIEW, Guard.ADMIN),
    _row(EventStatus.PUBLISHED, EventAction.UNPUBLISH, EventStatus.APPROVED, Guard.ADMIN),
    _row(EventStatus.REJECTED, EventAction.RESUBMIT, EventStatus.PENDING_REVIEW, Guard.ADMIN),
])


def resolve_transition(current: EventStatus, action: EventAction, policy: SchedulingPolicy) -> Transition:
    current = EventStatus(current)
    action = EventAction(action)
    transition = TRANSITIONS.get((current, action))
    if transition is None:
        raise StateError("INVALID_TRANSITION", f"cannot {action.value} an event that is {current.value}")
    if action == EventAction.APPROVE and policy.auto_publish_on_approve:
        transition = replace(transition, target=EventStatus.PUBLISHED)
    return transition


def action_for_target(current: EventStatus, target: EventStatus, policy: SchedulingPolicy) -> EventAction:
    """Action that moves ``current`` to ``target`` under ``policy``."""
    current = EventStatus(current)
    target = EventStatus(target)
    for (source, action) in TRANSITIONS:
        if source == current and resolve_transition(source, action, policy).target == target:
            return action
    raise StateError("INVALID_TRANSITION", f"cannot move an event from {current.value} to {target.value}")


def check_guard(transition: Transition, actor: Actor, owner_id: str) -> None:
    if transition.guard == Guard.OWNER_OR_ADMIN:
        allowed = actor.is_admin or actor.user_id == owner_id
    elif transition.guard == Guard.REVIEWER:
        allowed = actor.can_review
    else:
        allowed = actor.is_admin
    if not allowed:
        raise PermissionDeniedError(
            "ROLE_REQUIRED",
            f"{transition.action.value} requires {transition.guard.value}",
        )


def can_edit(status: EventStatus, owner_id: str, actor: Actor) -> bool:
    """Drafts are editable by owner or admin; anything past draft by admin only."""
    if actor.is_admin:
        return True
    return EventStatus(status) == EventStatus.DRAFT and actor.user_id == owner_id


def ensure_can_edit(status: EventStatus, owner_id: str, actor: Actor) -> None:
    if not can_edit(status, owner_id, actor):
        required = "owner or admin" if EventStatus(status) == EventStatus.DRAFT else "admin"
        raise PermissionDeniedError(
            "ROLE_REQUIRED",
            f"editing a {EventStatus(status).value} event requires {required}",
        )
