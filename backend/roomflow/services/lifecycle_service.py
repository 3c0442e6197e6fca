from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import SchedulingPolicy
from ..db import models
from ..domain.enums import EventAction, EventStatus
from ..domain.lifecycle import Actor, Transition, check_guard, resolve_transition
from ..errors import BaseAppException, NotFoundError, StateError
from ..metrics import TRANSITION_COUNT
from ..repositories.event_repository import EventRepository, SqlAlchemyEventRepository
from .conflict_service import ConflictService

logger = logging.getLogger(__name__)


class EventLifecycleService:
    """Applies lifecycle transitions with guard, conflict and concurrency checks.

    Every call carries the status the caller believes the event is in. The
    room lock, conflict check and conditional status write share one
    transaction so two approvals for the same slot cannot both commit.
    """

    def __init__(
        self,
        repository: EventRepository | None = None,
        conflict_service: ConflictService | None = None,
        policy: SchedulingPolicy | None = None,
    ):
        self.policy = policy or SchedulingPolicy()
        self.repo = repository or SqlAlchemyEventRepository()
        self.conflicts = conflict_service or ConflictService(repository=self.repo, policy=self.policy)

    def _get(self, db: Session, event_id: str) -> models.Event:
        event = self.repo.get(db, event_id)
        if event is None:
            raise NotFoundError("EVENT_NOT_FOUND", f"event {event_id} not found")
        return event

    def _apply(
        self,
        db: Session,
        event: models.Event,
        action: EventAction,
        actor: Actor,
        expected_status: EventStatus,
        notes: Optional[str],
    ) -> Transition:
        if EventStatus(event.status) != expected_status:
            raise StateError(
                "STATUS_MISMATCH",
                f"event {event.id} is {event.status}, expected {expected_status.value}",
            )
        transition = resolve_transition(expected_status, action, self.policy)
        check_guard(transition, actor, event.created_by)

        if transition.checks_conflicts:
            self.repo.lock_room(db, event.room_id)
            self.conflicts.validate_reservation(db, event, transition.target)

        reviewer_id = actor.user_id if transition.records_reviewer else None
        written = self.repo.update_status(
            db,
            event.id,
            expected_status.value,
            transition.target.value,
            reviewer_id=reviewer_id,
            reviewer_notes=notes if transition.records_reviewer else None,
        )
        if not written:
            raise StateError("STATUS_MISMATCH", f"event {event.id} changed status concurrently")
        logger.info(
            "event %s %s: %s -> %s by %s",
            event.id, action.value, expected_status.value, transition.target.value, actor.user_id,
        )
        return transition

    def transition(
        self,
        db: Session,
        event_id: str,
        action: EventAction,
        actor: Actor,
        expected_status: EventStatus,
        notes: Optional[str] = None,
    ) -> models.Event:
        action = EventAction(action)
        expected_status = EventStatus(expected_status)
        event = self._get(db, event_id)
        try:
            self._apply(db, event, action, actor, expected_status, notes)
            db.commit()
        except BaseAppException as exc:
            db.rollback()
            TRANSITION_COUNT.labels(action=action.value, outcome=exc.code).inc()
            logger.warning("event %s %s refused: %s", event_id, action.value, exc.message)
            raise
        TRANSITION_COUNT.labels(action=action.value, outcome="ok").inc()
        db.refresh(event)
        return event

    def transition_series(
        self,
        db: Session,
        event_id: str,
        action: EventAction,
        actor: Actor,
        expected_status: EventStatus,
        notes: Optional[str] = None,
    ) -> List[models.Event]:
        """Apply ``action`` to every member of the event's series that is in ``expected_status``.

        All members move or none do.
        """
        action = EventAction(action)
        expected_status = EventStatus(expected_status)
        event = self._get(db, event_id)
        root_id = event.parent_event_id or event.id
        members = [m for m in self.repo.list_series(db, root_id) if EventStatus(m.status) == expected_status]
        if not members:
            raise StateError("STATUS_MISMATCH", f"no event in series {root_id} is {expected_status.value}")
        try:
            for member in members:
                self._apply(db, member, action, actor, expected_status, notes)
            db.commit()
        except BaseAppException as exc:
            db.rollback()
            TRANSITION_COUNT.labels(action=action.value, outcome=exc.code).inc()
            logger.warning("series %s %s refused: %s", root_id, action.value, exc.message)
            raise
        TRANSITION_COUNT.labels(action=action.value, outcome="ok").inc(len(members))
        for member in members:
            db.refresh(member)
        return members
