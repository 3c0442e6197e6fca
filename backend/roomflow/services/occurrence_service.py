"""Expansion of event definitions into concrete occurrences.

Candidate start times come from dateutil's rrule, configured from the decoded
recurrence rule. The definition's own range is always occurrence 0 and counts
toward COUNT; the query window bounds iteration even for open-ended rules.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional

from dateutil.rrule import DAILY, MONTHLY, SU, WEEKLY, YEARLY, rrule, weekday

from ..domain.enums import EndType, EventStatus, Frequency
from ..domain.recurrence import RecurrenceConfig, decode_rule
from ..errors import ValidationAppError
from ..metrics import EXPANSION_SIZE

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 10_000

_FREQ = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}


def ensure_utc(dt: datetime) -> datetime:
    """Storage hands back naive datetimes; they are UTC by convention."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class Occurrence:
    starts_at: datetime
    ends_at: datetime
    source_event_id: Optional[str] = None
    room_id: Optional[str] = None
    status: Optional[EventStatus] = None

    @property
    def duration(self) -> timedelta:
        return self.ends_at - self.starts_at

    def overlaps(self, other: "Occurrence") -> bool:
        # Half-open: touching ranges do not overlap
        return self.starts_at < other.ends_at and other.starts_at < self.ends_at


def _dateutil_weekday(day: int) -> weekday:
    # 0 = Sunday here, 0 = Monday in dateutil
    return weekday((day + 6) % 7)


def build_rrule(config: RecurrenceConfig, dtstart: datetime) -> rrule:
    kwargs = {"dtstart": dtstart, "interval": config.interval, "wkst": SU}
    if config.frequency == Frequency.WEEKLY and config.days_of_week:
        kwargs["byweekday"] = [_dateutil_weekday(d) for d in sorted(config.days_of_week)]
    elif config.frequency == Frequency.MONTHLY:
        kwargs["bymonthday"] = config.day_of_month or dtstart.day
    elif config.frequency == Frequency.YEARLY:
        kwargs["bymonth"] = config.month_of_year or dtstart.month
        kwargs["bymonthday"] = config.day_of_month or dtstart.day
    if config.until is not None:
        kwargs["until"] = config.until
    return rrule(_FREQ[config.frequency], **kwargs)


def _same_period(frequency: Frequency, a: datetime, b: datetime) -> bool:
    # Monthly and yearly rules advance a whole period before landing on their day
    if frequency == Frequency.MONTHLY:
        return (a.year, a.month) == (b.year, b.month)
    if frequency == Frequency.YEARLY:
        return a.year == b.year
    return False


def iter_series_starts(config: RecurrenceConfig, base_start: datetime, stop_before: datetime) -> Iterator[datetime]:
    """Yield series start times in order, beginning with ``base_start``.

    Stops at UNTIL, COUNT, or the first start at or after ``stop_before``.
    Months/years lacking the requested day are skipped, never rolled over.
    Monthly and yearly rules never land again inside the base's own month or year.
    """
    yield base_start
    if not config.is_recurring:
        return
    limit = config.occurrences if config.end_type == EndType.AFTER else None
    emitted = 1
    for start in build_rrule(config, base_start):
        if start == base_start or _same_period(config.frequency, start, base_start):
            continue
        if start >= stop_before:
            return
        if limit is not None and emitted >= limit:
            return
        emitted += 1
        yield start


def expand_occurrences(
    definition,
    window_start: datetime,
    window_end: datetime,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> List[Occurrence]:
    """Occurrences of ``definition`` intersecting ``[window_start, window_end)``.

    ``definition`` is anything with ``starts_at``, ``ends_at`` and
    ``recurrence_rule`` (plus optional ``id``, ``room_id``, ``status``).
    Pure: the same inputs always produce the same list.
    """
    base_start = ensure_utc(definition.starts_at)
    base_end = ensure_utc(definition.ends_at)
    window_start = ensure_utc(window_start)
    window_end = ensure_utc(window_end)
    if base_end <= base_start:
        raise ValidationAppError("EVENT_INVALID_TIME", "end before start")
    if window_end <= window_start:
        raise ValidationAppError("WINDOW_INVALID", "window end must be after window start")

    config = decode_rule(getattr(definition, "recurrence_rule", None))
    duration = base_end - base_start
    status = getattr(definition, "status", None)
    source_id = getattr(definition, "id", None)
    room_id = getattr(definition, "room_id", None)

    result: List[Occurrence] = []
    for start in iter_series_starts(config, base_start, window_end):
        if start >= window_end:
            break
        end = start + duration
        if end <= window_start:
            continue
        result.append(Occurrence(
            starts_at=start,
            ends_at=end,
            source_event_id=source_id,
            room_id=room_id,
            status=EventStatus(status) if status else None,
        ))
        if len(result) > max_occurrences:
            raise ValidationAppError(
                "OCCURRENCE_CAP_EXCEEDED",
                f"expansion of event {source_id} exceeds {max_occurrences} occurrences; narrow the window",
            )
    EXPANSION_SIZE.observe(len(result))
    logger.debug("expanded event %s into %d occurrences", source_id, len(result))
    return result
