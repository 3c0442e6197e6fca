from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db import models
from ..db.session import get_db
from ..domain.enums import EventStatus
from ..domain.lifecycle import Actor
from ..errors import NotFoundError, PermissionDeniedError
from ..repositories.room_repository import SqlAlchemyRoomRepository
from ..services.event_service import EventService
from ..services.layout_service import layout_occurrences
from .auth import get_current_actor
from .schemas import OccurrenceOut, PositionedOut, RoomCreate, RoomOut

router = APIRouter(prefix="/rooms", tags=["rooms"])


def _room_out(room: models.Room) -> RoomOut:
    return RoomOut(
        id=room.id,
        name=room.name,
        color=room.color,
        allowOverlap=room.allow_overlap,
        isActive=room.is_active,
    )


@router.post("", response_model=RoomOut, status_code=201)
def create_room(body: RoomCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    if not actor.is_admin:
        raise PermissionDeniedError("ROLE_REQUIRED", "creating rooms requires admin")
    room = models.Room(name=body.name, color=body.color, allow_overlap=body.allow_overlap, is_active=body.is_active)
    SqlAlchemyRoomRepository().add(db, room)
    db.commit()
    db.refresh(room)
    return _room_out(room)


@router.get("", response_model=List[RoomOut])
def list_rooms(active: bool = Query(False), db: Session = Depends(get_db)):
    return [_room_out(r) for r in SqlAlchemyRoomRepository().list(db, active_only=active)]


@router.get("/{room_id}", response_model=RoomOut)
def get_room(room_id: str, db: Session = Depends(get_db)):
    room = SqlAlchemyRoomRepository().get(db, room_id)
    if room is None:
        raise NotFoundError("ROOM_NOT_FOUND", f"room {room_id} not found")
    return _room_out(room)


@router.get("/{room_id}/occurrences", response_model=List[OccurrenceOut])
def room_occurrences(
    room_id: str,
    window_start: datetime = Query(..., alias="from"),
    window_end: datetime = Query(..., alias="to"),
    status: Optional[List[EventStatus]] = Query(None),
    db: Session = Depends(get_db),
):
    service = EventService(policy=get_settings().policy)
    occurrences = service.room_occurrences(db, room_id, window_start, window_end, statuses=status)
    return [OccurrenceOut.from_occurrence(o) for o in occurrences]


@router.get("/{room_id}/layout", response_model=List[PositionedOut])
def room_day_layout(
    room_id: str,
    day: date = Query(...),
    grid_start_hour: int = Query(6, alias="gridStartHour", ge=0, le=23),
    pixels_per_minute: float = Query(1.0, alias="pixelsPerMinute", gt=0),
    min_height: float = Query(20.0, alias="minHeight", ge=0),
    status: Optional[List[EventStatus]] = Query(None),
    db: Session = Depends(get_db),
):
    day_start = datetime.combine(day, time(0, 0), tzinfo=timezone.utc)
    service = EventService(policy=get_settings().policy)
    occurrences = service.room_occurrences(db, room_id, day_start, day_start + timedelta(days=1), statuses=status)
    positioned = layout_occurrences(occurrences, grid_start_hour * 60, pixels_per_minute, min_height)
    return [
        PositionedOut(
            occurrence=OccurrenceOut.from_occurrence(p.occurrence),
            column=p.column,
            totalColumns=p.total_columns,
            leftPercent=p.left_percent,
            widthPercent=p.width_percent,
            top=p.top,
            height=p.height,
        )
        for p in positioned
    ]
