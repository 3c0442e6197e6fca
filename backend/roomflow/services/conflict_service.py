from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import FrozenSet, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import SchedulingPolicy
from ..db import models
from ..domain.enums import EndType, EventStatus
from ..domain.recurrence import decode_rule
from ..errors import ConflictError, NotFoundError, ValidationAppError
from ..metrics import CONFLICTS_DETECTED
from ..repositories.event_repository import EventRepository, SqlAlchemyEventRepository
from ..repositories.room_repository import RoomRepository, SqlAlchemyRoomRepository
from .occurrence_service import Occurrence, ensure_utc, expand_occurrences, iter_series_starts

logger = logging.getLogger(__name__)

ConflictPair = Tuple[Occurrence, Occurrence]


def reserving_statuses(policy: SchedulingPolicy | None = None) -> FrozenSet[EventStatus]:
    policy = policy or SchedulingPolicy()
    statuses = {EventStatus.APPROVED, EventStatus.PUBLISHED}
    if policy.pending_reserves:
        statuses.add(EventStatus.PENDING_REVIEW)
    return frozenset(statuses)


def is_reserving(status: Optional[EventStatus], policy: SchedulingPolicy | None = None) -> bool:
    return status is not None and EventStatus(status) in reserving_statuses(policy)


def conflicting_occurrences(
    candidate: Occurrence,
    room_id: str,
    existing_in_room: Iterable[Occurrence],
    room,
    policy: SchedulingPolicy | None = None,
) -> List[Occurrence]:
    """Existing occurrences that ``candidate`` would double-book in ``room``."""
    if room.allow_overlap or not is_reserving(candidate.status, policy):
        return []
    hits = []
    for other in existing_in_room:
        if other.room_id is not None and other.room_id != room_id:
            continue
        if candidate.source_event_id is not None and other.source_event_id == candidate.source_event_id:
            continue
        if is_reserving(other.status, policy) and candidate.overlaps(other):
            hits.append(other)
    return hits


def conflicts(
    candidate: Occurrence,
    room_id: str,
    existing_in_room: Iterable[Occurrence],
    room,
    policy: SchedulingPolicy | None = None,
) -> bool:
    return bool(conflicting_occurrences(candidate, room_id, existing_in_room, room, policy))


class ConflictService:
    """Checks a whole event definition (every occurrence of its series) against its room."""

    def __init__(
        self,
        repository: EventRepository | None = None,
        room_repository: RoomRepository | None = None,
        policy: SchedulingPolicy | None = None,
    ):
        self.repo = repository or SqlAlchemyEventRepository()
        self.rooms = room_repository or SqlAlchemyRoomRepository()
        self.policy = policy or SchedulingPolicy()

    def series_window(self, event) -> Tuple[datetime, datetime]:
        """Span covered by every occurrence of ``event``'s series.

        Open-ended rules are cut at the configured conflict horizon.
        """
        start = ensure_utc(event.starts_at)
        duration = ensure_utc(event.ends_at) - start
        config = decode_rule(event.recurrence_rule)
        if not config.is_recurring:
            return start, start + duration
        if config.until is not None:
            return start, max(config.until, start) + duration
        if config.end_type == EndType.AFTER:
            if config.occurrences > self.policy.max_occurrences:
                raise ValidationAppError(
                    "OCCURRENCE_CAP_EXCEEDED",
                    f"COUNT={config.occurrences} exceeds {self.policy.max_occurrences} occurrences",
                )
            last = max(iter_series_starts(config, start, datetime.max.replace(tzinfo=start.tzinfo)))
            return start, last + duration
        return start, start + duration + timedelta(days=self.policy.conflict_horizon_days)

    def find_conflicts(
        self,
        db: Session,
        event: models.Event,
        target_status: Optional[EventStatus] = None,
        room_id: Optional[str] = None,
    ) -> List[ConflictPair]:
        """
        Pairs of (candidate occurrence, existing occurrence) that collide.

        Args:
            db: Database session
            event: Definition being reserved
            target_status: Status the event would hold; defaults to its current one
            room_id: Room to check against; defaults to the event's room
        """
        room_id = room_id or event.room_id
        room = self.rooms.get(db, room_id)
        if room is None:
            raise NotFoundError("ROOM_NOT_FOUND", f"room {room_id} not found")
        if room.allow_overlap:
            return []

        status = EventStatus(target_status or event.status)
        window_start, window_end = self.series_window(event)
        candidates = [
            replace(o, status=status, room_id=room_id)
            for o in expand_occurrences(event, window_start, window_end, self.policy.max_occurrences)
        ]

        series_root = event.parent_event_id or event.id
        existing: List[Occurrence] = []
        for other in self.repo.find_in_room_window(db, room_id, window_start, window_end, exclude_series=series_root):
            if not is_reserving(other.status, self.policy):
                continue
            existing.extend(expand_occurrences(other, window_start, window_end, self.policy.max_occurrences))

        pairs: List[ConflictPair] = []
        for candidate in candidates:
            for hit in conflicting_occurrences(candidate, room_id, existing, room, self.policy):
                pairs.append((candidate, hit))
        return pairs

    def validate_reservation(
        self,
        db: Session,
        event: models.Event,
        target_status: EventStatus,
        room_id: Optional[str] = None,
    ) -> None:
        """
        Raises:
            ConflictError: if any occurrence of ``event`` collides with a reserving event
        """
        if not is_reserving(target_status, self.policy):
            return
        pairs = self.find_conflicts(db, event, target_status, room_id=room_id)
        if not pairs:
            return
        CONFLICTS_DETECTED.inc()
        candidate, other = pairs[0]
        room = self.rooms.get(db, room_id or event.room_id)
        logger.warning("event %s conflicts with %s in room %s", event.id, other.source_event_id, room.id)
        raise ConflictError(
            "ROOM_CONFLICT",
            f"{room.name} is already booked from {other.starts_at.isoformat()} to {other.ends_at.isoformat()} "
            f"by event {other.source_event_id} (requested {candidate.starts_at.isoformat()} to "
            f"{candidate.ends_at.isoformat()})",
        )
