from sqlalchemy import Boolean, CheckConstraint, Column, String, DateTime, ForeignKey, Index
from datetime import datetime, timezone
from .session import Base
import uuid


def gen_uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class Room(Base):
    __tablename__ = "rooms"
    id = Column(String, primary_key=True, default=gen_uuid)
    name = Column(String, nullable=False)
    color = Column(String, nullable=True)
    allow_overlap = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_room_starts_at", "room_id", "starts_at"),
        CheckConstraint("ends_at > starts_at", name="ck_events_range"),
    )

    id = Column(String, primary_key=True, default=gen_uuid)
    room_id = Column(String, ForeignKey("rooms.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    # Canonical rule string, e.g. FREQ=WEEKLY;BYDAY=MO,WE. NULL for single events.
    recurrence_rule = Column(String, nullable=True)
    status = Column(String, nullable=False, default="draft", index=True)
    created_by = Column(String, nullable=False, index=True)
    reviewer_id = Column(String, nullable=True)
    reviewer_notes = Column(String, nullable=True)
    # Set when this row is a materialized instance of a recurring series
    parent_event_id = Column(String, ForeignKey("events.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
