from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.session import get_db
from ..domain.enums import ActionScope, EventStatus, ExportScope
from ..domain.lifecycle import Actor, action_for_target
from ..errors import ValidationAppError
from ..repositories.room_repository import SqlAlchemyRoomRepository
from ..services import export_service
from ..services.conflict_service import ConflictService
from ..services.event_service import EventService
from ..services.lifecycle_service import EventLifecycleService
from .auth import get_current_actor
from .schemas import CalendarLinksOut, ConflictOut, EventCreate, EventOut, EventUpdate, OccurrenceOut, TransitionIn

router = APIRouter(prefix="/events", tags=["events"])


def _event_service() -> EventService:
    return EventService(policy=get_settings().policy)


@router.post("", response_model=EventOut, status_code=201)
def create_event(body: EventCreate, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    event = _event_service().create_event(
        db,
        actor,
        room_id=body.room_id,
        title=body.title,
        starts_at=body.starts_at,
        ends_at=body.ends_at,
        description=body.description,
        recurrence_rule=body.recurrence_rule,
        recurrence=body.recurrence.to_config() if body.recurrence else None,
    )
    return EventOut.from_model(event)


@router.get("", response_model=List[EventOut])
def list_events(
    room_id: Optional[str] = Query(None, alias="roomId"),
    status: Optional[List[EventStatus]] = Query(None),
    db: Session = Depends(get_db),
):
    events = _event_service().list_events(db, room_id=room_id, statuses=status)
    return [EventOut.from_model(e) for e in events]


@router.get("/export.ics")
def export_ics(
    scope: ExportScope = Query(ExportScope.PUBLISHED),
    organization: str = Query("Events", alias="organizationName"),
    slug: str = Query("calendar", alias="organizationSlug"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    events = _event_service().list_events(db)
    rooms = {r.id: r for r in SqlAlchemyRoomRepository().list(db)}
    body = export_service.to_ics(
        events,
        scope,
        organization_name=organization,
        organization_slug=slug,
        rooms=rooms,
        user_id=actor.user_id,
        is_admin=actor.is_admin,
    )
    filename = export_service.export_filename(slug, scope)
    return Response(
        content=body,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    return EventOut.from_model(_event_service().get_event(db, event_id))


@router.put("/{event_id}", response_model=EventOut)
def update_event(event_id: str, body: EventUpdate, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    kwargs = {}
    if "recurrence_rule" in body.model_fields_set:
        kwargs["recurrence_rule"] = body.recurrence_rule
    event = _event_service().update_event(
        db,
        event_id,
        actor,
        title=body.title,
        description=body.description,
        starts_at=body.starts_at,
        ends_at=body.ends_at,
        room_id=body.room_id,
        **kwargs,
    )
    return EventOut.from_model(event)


@router.post("/{event_id}/transitions", response_model=List[EventOut])
def transition_event(event_id: str, body: TransitionIn, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    policy = get_settings().policy
    if body.action is None and body.target_status is None:
        raise ValidationAppError("TRANSITION_INVALID", "either action or targetStatus is required")
    action = body.action or action_for_target(body.expected_status, body.target_status, policy)
    service = EventLifecycleService(policy=policy)
    if body.scope == ActionScope.SERIES:
        events = service.transition_series(db, event_id, action, actor, body.expected_status, body.notes)
    else:
        events = [service.transition(db, event_id, action, actor, body.expected_status, body.notes)]
    return [EventOut.from_model(e) for e in events]


@router.get("/{event_id}/calendar-links", response_model=CalendarLinksOut)
def event_calendar_links(
    event_id: str,
    request: Request,
    scope: ExportScope = Query(ExportScope.PUBLISHED),
    db: Session = Depends(get_db),
):
    """Add-to-Google link for one event plus a subscription link for the ICS feed."""
    event = _event_service().get_event(db, event_id)
    room = SqlAlchemyRoomRepository().get(db, event.room_id)
    ics_url = str(request.url_for("export_ics").include_query_params(scope=ExportScope(scope).value))
    return CalendarLinksOut(
        googleCalendarUrl=export_service.to_google_calendar_url(event, room),
        googleSubscribeUrl=export_service.to_google_subscribe_url(ics_url),
        icsUrl=ics_url,
    )


@router.get("/{event_id}/occurrences", response_model=List[OccurrenceOut])
def event_occurrences(
    event_id: str,
    window_start: datetime = Query(..., alias="from"),
    window_end: datetime = Query(..., alias="to"),
    db: Session = Depends(get_db),
):
    occurrences = _event_service().occurrences(db, event_id, window_start, window_end)
    return [OccurrenceOut.from_occurrence(o) for o in occurrences]


@router.get("/{event_id}/conflicts", response_model=List[ConflictOut])
def event_conflicts(
    event_id: str,
    target_status: EventStatus = Query(EventStatus.APPROVED, alias="targetStatus"),
    db: Session = Depends(get_db),
):
    policy = get_settings().policy
    event = _event_service().get_event(db, event_id)
    pairs = ConflictService(policy=policy).find_conflicts(db, event, target_status)
    return [
        ConflictOut(requested=OccurrenceOut.from_occurrence(c), existing=OccurrenceOut.from_occurrence(o))
        for c, o in pairs
    ]


@router.post("/{event_id}/materialize", response_model=List[EventOut], status_code=201)
def materialize_event(
    event_id: str,
    window_start: datetime = Query(..., alias="from"),
    window_end: datetime = Query(..., alias="to"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    children = _event_service().materialize_instances(db, event_id, actor, window_start, window_end)
    return [EventOut.from_model(c) for c in children]
