"""Calendar export: iCalendar documents and Google Calendar template links."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote, urlencode

from icalendar import Calendar, Event as ICalEvent, vRecur

from ..db import models
from ..domain.enums import EventStatus, ExportScope
from ..errors import ValidationAppError
from .occurrence_service import ensure_utc

GOOGLE_RENDER_URL = "https://calendar.google.com/calendar/render"
GOOGLE_SUBSCRIBE_URL = "https://calendar.google.com/calendar/r"
_GOOGLE_DATE = "%Y%m%dT%H%M%SZ"

_SCOPE_STATUSES = {
    ExportScope.APPROVED: {EventStatus.APPROVED},
    ExportScope.PUBLISHED: {EventStatus.PUBLISHED},
    ExportScope.BOTH: {EventStatus.APPROVED, EventStatus.PUBLISHED},
}


def filter_by_scope(
    events: Iterable[models.Event],
    scope: ExportScope,
    user_id: Optional[str] = None,
    is_admin: bool = False,
) -> List[models.Event]:
    """Non-admins only ever export their own events; ``all`` ignores status."""
    scope = ExportScope(scope)
    result = []
    for event in events:
        if not is_admin and user_id and event.created_by != user_id:
            continue
        if scope != ExportScope.ALL and EventStatus(event.status) not in _SCOPE_STATUSES[scope]:
            continue
        result.append(event)
    return result


def to_ics(
    events: Iterable[models.Event],
    scope: ExportScope,
    organization_name: str,
    organization_slug: str = "calendar",
    rooms: Optional[Dict[str, models.Room]] = None,
    user_id: Optional[str] = None,
    is_admin: bool = False,
    include_description: bool = True,
    include_location: bool = True,
) -> bytes:
    selected = filter_by_scope(events, scope, user_id=user_id, is_admin=is_admin)
    if not selected:
        raise ValidationAppError("EXPORT_EMPTY", "No events available for export with the selected criteria.")
    rooms = rooms or {}

    cal = Calendar()
    cal.add("prodid", f"-//{organization_name}//Events Calendar//EN")
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("method", "PUBLISH")
    cal.add("x-wr-calname", f"{organization_name} Events")

    stamp = datetime.now(timezone.utc)
    for event in selected:
        vevent = ICalEvent()
        vevent.add("uid", f"{event.id}@{organization_slug}.events")
        vevent.add("dtstamp", stamp)
        vevent.add("dtstart", ensure_utc(event.starts_at))
        vevent.add("dtend", ensure_utc(event.ends_at))
        vevent.add("summary", event.title)
        if include_description and event.description:
            vevent.add("description", event.description)
        room = rooms.get(event.room_id)
        if include_location and room is not None:
            vevent.add("location", room.name)
        if event.recurrence_rule:
            vevent.add("rrule", vRecur.from_ical(event.recurrence_rule))
        vevent.add("status", "CONFIRMED" if EventStatus(event.status) == EventStatus.PUBLISHED else "TENTATIVE")
        cal.add_component(vevent)
    return cal.to_ical()


def export_filename(organization_slug: str, scope: ExportScope, today: Optional[datetime] = None) -> str:
    today = today or datetime.now(timezone.utc)
    return f"{organization_slug or 'events'}-{ExportScope(scope).value}-{today:%Y-%m-%d}.ics"


def to_google_calendar_url(event: models.Event, room: Optional[models.Room] = None) -> str:
    start = ensure_utc(event.starts_at).strftime(_GOOGLE_DATE)
    end = ensure_utc(event.ends_at).strftime(_GOOGLE_DATE)
    params = {"action": "TEMPLATE", "text": event.title, "dates": f"{start}/{end}"}
    if event.description:
        params["details"] = event.description
    if room is not None:
        params["location"] = room.name
    if event.recurrence_rule:
        params["recur"] = f"RRULE:{event.recurrence_rule}"
    return f"{GOOGLE_RENDER_URL}?{urlencode(params)}"


def to_google_subscribe_url(ics_url: str) -> str:
    return f"{GOOGLE_SUBSCRIBE_URL}?cid={quote(ics_url, safe='')}"
