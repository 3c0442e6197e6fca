from __future__ import annotations
from typing import Protocol, List, Optional
from datetime import datetime, timezone
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..db import models


class EventRepository(Protocol):
    def get(self, db: Session, event_id: str) -> Optional[models.Event]: ...
    def add(self, db: Session, event: models.Event) -> models.Event: ...
    def list(self, db: Session, room_id: Optional[str] = None, statuses: Optional[List[str]] = None) -> List[models.Event]: ...
    def find_in_room_window(self, db: Session, room_id: str, start: datetime, end: datetime, exclude_series: Optional[str] = None) -> List[models.Event]: ...
    def list_series(self, db: Session, root_id: str) -> List[models.Event]: ...
    def lock_room(self, db: Session, room_id: str) -> None: ...
    def update_status(self, db: Session, event_id: str, expected: str, new: str, reviewer_id: Optional[str] = None, reviewer_notes: Optional[str] = None) -> bool: ...


class SqlAlchemyEventRepository:
    """SQLAlchemy-backed implementation.

    ``lock_room`` plus ``update_status`` give the atomic check-and-write the
    lifecycle needs: the room row lock serializes reservations for one room,
    and the conditional UPDATE refuses to overwrite a status that moved.
    """

    def get(self, db: Session, event_id: str) -> Optional[models.Event]:
        return db.query(models.Event).filter(models.Event.id == event_id).first()

    def add(self, db: Session, event: models.Event) -> models.Event:
        db.add(event)
        db.flush()
        return event

    def list(self, db: Session, room_id: Optional[str] = None, statuses: Optional[List[str]] = None) -> List[models.Event]:
        q = db.query(models.Event)
        if room_id:
            q = q.filter(models.Event.room_id == room_id)
        if statuses:
            q = q.filter(models.Event.status.in_(statuses))
        return q.order_by(models.Event.starts_at).all()

    def find_in_room_window(self, db: Session, room_id: str, start: datetime, end: datetime, exclude_series: Optional[str] = None) -> List[models.Event]:
        # Recurring definitions may reach into the window from an earlier base range
        q = db.query(models.Event)
        q = q.filter(models.Event.room_id == room_id)
        q = q.filter(models.Event.starts_at < end)
        q = q.filter(or_(models.Event.ends_at > start, models.Event.recurrence_rule.isnot(None)))
        if exclude_series:
            q = q.filter(models.Event.id != exclude_series)
            q = q.filter(or_(models.Event.parent_event_id.is_(None), models.Event.parent_event_id != exclude_series))
        return q.all()

    def list_series(self, db: Session, root_id: str) -> List[models.Event]:
        q = db.query(models.Event)
        q = q.filter(or_(models.Event.id == root_id, models.Event.parent_event_id == root_id))
        return q.order_by(models.Event.starts_at).all()

    def lock_room(self, db: Session, room_id: str) -> None:
        # No-op on SQLite, row lock on PostgreSQL
        db.query(models.Room).filter(models.Room.id == room_id).with_for_update().first()

    def update_status(self, db: Session, event_id: str, expected: str, new: str, reviewer_id: Optional[str] = None, reviewer_notes: Optional[str] = None) -> bool:
        values = {"status": new, "updated_at": datetime.now(timezone.utc)}
        if reviewer_id is not None:
            values["reviewer_id"] = reviewer_id
            values["reviewer_notes"] = reviewer_notes
        result = db.execute(
            update(models.Event)
            .where(models.Event.id == event_id, models.Event.status == expected)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1
