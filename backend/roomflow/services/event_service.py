from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import SchedulingPolicy
from ..db import models
from ..domain.enums import EventStatus
from ..domain.lifecycle import Actor, ensure_can_edit
from ..domain.recurrence import RecurrenceConfig, decode_rule, encode_rule
from ..errors import NotFoundError, ValidationAppError
from ..repositories.event_repository import EventRepository, SqlAlchemyEventRepository
from ..repositories.room_repository import RoomRepository, SqlAlchemyRoomRepository
from .conflict_service import ConflictService, is_reserving
from .occurrence_service import Occurrence, ensure_utc, expand_occurrences

logger = logging.getLogger(__name__)

_UNSET = object()


def canonical_rule(rule: Optional[str] = None, config: Optional[RecurrenceConfig] = None) -> Optional[str]:
    """Validate a rule string or config and return its canonical encoding."""
    if config is not None:
        return encode_rule(config)
    if rule is None or not rule.strip():
        return None
    return encode_rule(decode_rule(rule))


class EventService:
    def __init__(
        self,
        repository: EventRepository | None = None,
        room_repository: RoomRepository | None = None,
        conflict_service: ConflictService | None = None,
        policy: SchedulingPolicy | None = None,
    ):
        self.policy = policy or SchedulingPolicy()
        self.repo = repository or SqlAlchemyEventRepository()
        self.rooms = room_repository or SqlAlchemyRoomRepository()
        self.conflicts = conflict_service or ConflictService(self.repo, self.rooms, self.policy)

    def _active_room(self, db: Session, room_id: str) -> models.Room:
        room = self.rooms.get(db, room_id)
        if room is None:
            raise NotFoundError("ROOM_NOT_FOUND", f"room {room_id} not found")
        if not room.is_active:
            raise ValidationAppError("ROOM_INACTIVE", f"room {room.name} is not accepting bookings")
        return room

    @staticmethod
    def _check_times(starts_at: datetime, ends_at: datetime) -> None:
        if ensure_utc(ends_at) <= ensure_utc(starts_at):
            raise ValidationAppError("EVENT_INVALID_TIME", "end before start")

    def create_event(
        self,
        db: Session,
        actor: Actor,
        room_id: str,
        title: str,
        starts_at: datetime,
        ends_at: datetime,
        description: Optional[str] = None,
        recurrence_rule: Optional[str] = None,
        recurrence: Optional[RecurrenceConfig] = None,
    ) -> models.Event:
        self._check_times(starts_at, ends_at)
        self._active_room(db, room_id)
        rule = canonical_rule(recurrence_rule, recurrence)

        event = models.Event(
            room_id=room_id,
            title=title,
            description=description,
            starts_at=ensure_utc(starts_at),
            ends_at=ensure_utc(ends_at),
            recurrence_rule=rule,
            status=EventStatus.DRAFT.value,
            created_by=actor.user_id,
        )
        self.repo.add(db, event)
        db.commit()
        db.refresh(event)
        logger.info("event %s created in room %s by %s", event.id, room_id, actor.user_id)
        return event

    def get_event(self, db: Session, event_id: str) -> models.Event:
        event = self.repo.get(db, event_id)
        if not event:
            raise NotFoundError("EVENT_NOT_FOUND", f"event {event_id} not found")
        return event

    def list_events(self, db: Session, room_id: Optional[str] = None, statuses: Optional[List[EventStatus]] = None) -> List[models.Event]:
        return self.repo.list(db, room_id=room_id, statuses=[EventStatus(s).value for s in statuses or []])

    def update_event(
        self,
        db: Session,
        event_id: str,
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
        starts_at: Optional[datetime] = None,
        ends_at: Optional[datetime] = None,
        room_id: Optional[str] = None,
        recurrence_rule=_UNSET,
    ) -> models.Event:
        """Edit an event in place.

        Published events change immediately, with no new review round; a
        schedule change on a reserving event is re-checked for conflicts first.
        """
        event = self.get_event(db, event_id)
        ensure_can_edit(event.status, event.created_by, actor)

        new_start = starts_at if starts_at is not None else event.starts_at
        new_end = ends_at if ends_at is not None else event.ends_at
        self._check_times(new_start, new_end)
        new_room = room_id or event.room_id
        if new_room != event.room_id:
            self._active_room(db, new_room)
        new_rule = event.recurrence_rule if recurrence_rule is _UNSET else canonical_rule(recurrence_rule)

        reschedules = (
            ensure_utc(new_start) != ensure_utc(event.starts_at)
            or ensure_utc(new_end) != ensure_utc(event.ends_at)
            or new_room != event.room_id
            or new_rule != event.recurrence_rule
        )
        if reschedules and is_reserving(event.status, self.policy):
            proposed = models.Event(
                id=event.id,
                room_id=new_room,
                starts_at=ensure_utc(new_start),
                ends_at=ensure_utc(new_end),
                recurrence_rule=new_rule,
                status=event.status,
                parent_event_id=event.parent_event_id,
            )
            self.repo.lock_room(db, new_room)
            self.conflicts.validate_reservation(db, proposed, EventStatus(event.status))

        if title is not None:
            event.title = title
        if description is not None:
            event.description = description
        event.starts_at = ensure_utc(new_start)
        event.ends_at = ensure_utc(new_end)
        event.room_id = new_room
        event.recurrence_rule = new_rule
        event.updated_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(event)
        return event

    def occurrences(self, db: Session, event_id: str, window_start: datetime, window_end: datetime) -> List[Occurrence]:
        event = self.get_event(db, event_id)
        return expand_occurrences(event, window_start, window_end, self.policy.max_occurrences)

    def room_occurrences(
        self,
        db: Session,
        room_id: str,
        window_start: datetime,
        window_end: datetime,
        statuses: Optional[List[EventStatus]] = None,
    ) -> List[Occurrence]:
        """Every occurrence in ``room_id`` over the window, ordered by start.

        An occurrence expanded from a series parent that is also stored as a
        materialized instance is listed once.
        """
        if self.rooms.get(db, room_id) is None:
            raise NotFoundError("ROOM_NOT_FOUND", f"room {room_id} not found")
        wanted = {EventStatus(s) for s in statuses or []}
        seen = set()
        result: List[Occurrence] = []
        for event in self.repo.find_in_room_window(db, room_id, ensure_utc(window_start), ensure_utc(window_end)):
            if wanted and EventStatus(event.status) not in wanted:
                continue
            for occ in expand_occurrences(event, window_start, window_end, self.policy.max_occurrences):
                key = (event.parent_event_id or event.id, occ.starts_at)
                if key in seen:
                    continue
                seen.add(key)
                result.append(occ)
        if len(result) > self.policy.max_occurrences:
            raise ValidationAppError(
                "OCCURRENCE_CAP_EXCEEDED",
                f"room {room_id} has more than {self.policy.max_occurrences} occurrences in the window",
            )
        result.sort(key=lambda o: (o.starts_at, o.source_event_id or ""))
        return result

    def materialize_instances(self, db: Session, event_id: str, actor: Actor, window_start: datetime, window_end: datetime) -> List[models.Event]:
        """Persist each non-base occurrence in the window as its own child event.

        Children copy the parent's fields and status, carry no rule, and point
        back through ``parent_event_id``. Already-materialized starts are skipped.
        """
        parent = self.get_event(db, event_id)
        ensure_can_edit(parent.status, parent.created_by, actor)
        if not parent.recurrence_rule:
            raise ValidationAppError("EVENT_NOT_RECURRING", f"event {event_id} has no recurrence rule")
        if parent.parent_event_id:
            raise ValidationAppError("EVENT_NOT_RECURRING", f"event {event_id} is itself a materialized instance")

        existing = {
            ensure_utc(child.starts_at)
            for child in self.repo.list_series(db, parent.id)
            if child.id != parent.id
        }
        base_start = ensure_utc(parent.starts_at)
        created: List[models.Event] = []
        for occ in expand_occurrences(parent, window_start, window_end, self.policy.max_occurrences):
            if occ.starts_at == base_start or occ.starts_at in existing:
                continue
            child = models.Event(
                room_id=parent.room_id,
                title=parent.title,
                description=parent.description,
                starts_at=occ.starts_at,
                ends_at=occ.ends_at,
                recurrence_rule=None,
                status=parent.status,
                created_by=parent.created_by,
                reviewer_id=parent.reviewer_id,
                reviewer_notes=parent.reviewer_notes,
                parent_event_id=parent.id,
            )
            self.repo.add(db, child)
            created.append(child)
        db.commit()
        for child in created:
            db.refresh(child)
        logger.info("materialized %d instances of event %s", len(created), parent.id)
        return created
