from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..domain.enums import ActionScope, EndType, EventAction, EventStatus, Frequency
from ..domain.recurrence import RecurrenceConfig, decode_rule, describe_recurrence
from ..services.occurrence_service import ensure_utc


class RecurrenceIn(BaseModel):
    frequency: Frequency = Frequency.NONE
    interval: int = Field(default=1, ge=1)
    days_of_week: Optional[List[int]] = Field(default=None, alias="daysOfWeek")
    day_of_month: Optional[int] = Field(default=None, alias="dayOfMonth", ge=1, le=31)
    month_of_year: Optional[int] = Field(default=None, alias="monthOfYear", ge=1, le=12)
    end_type: EndType = Field(default=EndType.NEVER, alias="endType")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    occurrences: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(populate_by_name=True)

    def to_config(self) -> RecurrenceConfig:
        return RecurrenceConfig(
            frequency=self.frequency,
            interval=self.interval,
            days_of_week=tuple(self.days_of_week) if self.days_of_week else None,
            day_of_month=self.day_of_month,
            month_of_year=self.month_of_year,
            end_type=self.end_type,
            end_date=self.end_date,
            occurrences=self.occurrences,
        )


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1)
    color: Optional[str] = None
    allow_overlap: bool = Field(default=False, alias="allowOverlap")
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class RoomOut(BaseModel):
    id: str
    name: str
    color: Optional[str] = None
    allow_overlap: bool = Field(..., alias="allowOverlap")
    is_active: bool = Field(..., alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1)
    room_id: str = Field(..., alias="roomId")
    starts_at: datetime = Field(..., alias="startsAt")
    ends_at: datetime = Field(..., alias="endsAt")
    description: Optional[str] = None
    recurrence_rule: Optional[str] = Field(default=None, alias="recurrenceRule")
    recurrence: Optional[RecurrenceIn] = None

    model_config = ConfigDict(populate_by_name=True)


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    room_id: Optional[str] = Field(None, alias="roomId")
    starts_at: Optional[datetime] = Field(None, alias="startsAt")
    ends_at: Optional[datetime] = Field(None, alias="endsAt")
    recurrence_rule: Optional[str] = Field(None, alias="recurrenceRule")

    model_config = ConfigDict(populate_by_name=True)


class EventOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    room_id: str = Field(..., alias="roomId")
    starts_at: datetime = Field(..., alias="startsAt")
    ends_at: datetime = Field(..., alias="endsAt")
    recurrence_rule: Optional[str] = Field(None, alias="recurrenceRule")
    recurrence_summary: str = Field(..., alias="recurrenceSummary")
    status: EventStatus
    created_by: str = Field(..., alias="createdBy")
    reviewer_id: Optional[str] = Field(None, alias="reviewerId")
    reviewer_notes: Optional[str] = Field(None, alias="reviewerNotes")
    parent_event_id: Optional[str] = Field(None, alias="parentEventId")
    created_at: datetime = Field(..., alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_model(cls, event) -> "EventOut":
        return cls(
            id=event.id,
            title=event.title,
            description=event.description,
            roomId=event.room_id,
            startsAt=ensure_utc(event.starts_at),
            endsAt=ensure_utc(event.ends_at),
            recurrenceRule=event.recurrence_rule,
            recurrenceSummary=describe_recurrence(decode_rule(event.recurrence_rule)),
            status=event.status,
            createdBy=event.created_by,
            reviewerId=event.reviewer_id,
            reviewerNotes=event.reviewer_notes,
            parentEventId=event.parent_event_id,
            createdAt=ensure_utc(event.created_at),
        )


class TransitionIn(BaseModel):
    action: Optional[EventAction] = None
    target_status: Optional[EventStatus] = Field(None, alias="targetStatus")
    expected_status: EventStatus = Field(..., alias="expectedStatus")
    notes: Optional[str] = None
    scope: ActionScope = ActionScope.SINGLE

    model_config = ConfigDict(populate_by_name=True)


class OccurrenceOut(BaseModel):
    starts_at: datetime = Field(..., alias="startsAt")
    ends_at: datetime = Field(..., alias="endsAt")
    source_event_id: Optional[str] = Field(None, alias="sourceEventId")
    room_id: Optional[str] = Field(None, alias="roomId")
    status: Optional[EventStatus] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_occurrence(cls, occ) -> "OccurrenceOut":
        return cls(
            startsAt=occ.starts_at,
            endsAt=occ.ends_at,
            sourceEventId=occ.source_event_id,
            roomId=occ.room_id,
            status=occ.status,
        )


class ConflictOut(BaseModel):
    requested: OccurrenceOut
    existing: OccurrenceOut


class PositionedOut(BaseModel):
    occurrence: OccurrenceOut
    column: int
    total_columns: int = Field(..., alias="totalColumns")
    left_percent: float = Field(..., alias="leftPercent")
    width_percent: float = Field(..., alias="widthPercent")
    top: float
    height: float

    model_config = ConfigDict(populate_by_name=True)


class CalendarLinksOut(BaseModel):
    google_calendar_url: str = Field(..., alias="googleCalendarUrl")
    google_subscribe_url: str = Field(..., alias="googleSubscribeUrl")
    ics_url: str = Field(..., alias="icsUrl")

    model_config = ConfigDict(populate_by_name=True)
