"""Recurrence configuration and its canonical rule-string encoding.

The wire format is a documented subset of RFC 5545 RRULE syntax:
semicolon-separated ``KEY=VALUE`` tokens, ``FREQ`` first, e.g.
``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=10``. ``BYSETPOS``, ``WKST`` and
multi-valued ``BYMONTH`` are not supported.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, Optional, Tuple

from ..errors import ValidationAppError
from .enums import EndType, Frequency

DAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
UNTIL_FORMAT = "%Y%m%dT%H%M%SZ"


@dataclass(frozen=True)
class RecurrenceConfig:
    frequency: Frequency = Frequency.NONE
    interval: int = 1
    days_of_week: Optional[Tuple[int, ...]] = None  # 0 = Sunday
    day_of_month: Optional[int] = None
    month_of_year: Optional[int] = None
    end_type: EndType = EndType.NEVER
    end_date: Optional[date] = None
    occurrences: Optional[int] = None

    @property
    def is_recurring(self) -> bool:
        return self.frequency != Frequency.NONE

    def validate(self) -> "RecurrenceConfig":
        if self.interval < 1:
            raise ValidationAppError("RECURRENCE_INVALID", f"interval must be >= 1, got {self.interval}")
        for d in self.days_of_week or ():
            if not 0 <= d <= 6:
                raise ValidationAppError("RECURRENCE_INVALID", f"day of week must be 0..6, got {d}")
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise ValidationAppError("RECURRENCE_INVALID", f"day of month must be 1..31, got {self.day_of_month}")
        if self.month_of_year is not None and not 1 <= self.month_of_year <= 12:
            raise ValidationAppError("RECURRENCE_INVALID", f"month must be 1..12, got {self.month_of_year}")
        if self.month_of_year is not None and self.day_of_month is not None:
            # Leap year so Feb 29 stays legal
            if self.day_of_month > calendar.monthrange(2000, self.month_of_year)[1]:
                raise ValidationAppError(
                    "RECURRENCE_INVALID",
                    f"{calendar.month_name[self.month_of_year]} never has a day {self.day_of_month}",
                )
        if self.end_type == EndType.ON and self.end_date is None:
            raise ValidationAppError("RECURRENCE_INVALID", "end date required when recurrence ends on a date")
        if self.end_type == EndType.AFTER and (self.occurrences is None or self.occurrences < 1):
            raise ValidationAppError("RECURRENCE_INVALID", "occurrences must be >= 1 when recurrence ends after a count")
        return self

    def normalized(self) -> "RecurrenceConfig":
        """Drop fields the frequency / end type does not use."""
        if self.frequency == Frequency.NONE:
            return RecurrenceConfig()
        days = None
        if self.frequency == Frequency.WEEKLY and self.days_of_week:
            days = tuple(sorted(set(self.days_of_week)))
        return replace(
            self,
            days_of_week=days,
            day_of_month=self.day_of_month if self.frequency in (Frequency.MONTHLY, Frequency.YEARLY) else None,
            month_of_year=self.month_of_year if self.frequency == Frequency.YEARLY else None,
            end_date=self.end_date if self.end_type == EndType.ON else None,
            occurrences=self.occurrences if self.end_type == EndType.AFTER else None,
        )

    @property
    def until(self) -> Optional[datetime]:
        """Last instant (UTC) at which an occurrence may start."""
        if self.end_type != EndType.ON or self.end_date is None:
            return None
        return datetime.combine(self.end_date, time(23, 59, 59), tzinfo=timezone.utc)


def encode_rule(config: RecurrenceConfig) -> Optional[str]:
    if config.frequency == Frequency.NONE:
        return None
    config = config.validate().normalized()

    parts = [f"FREQ={config.frequency.value.upper()}"]
    if config.interval > 1:
        parts.append(f"INTERVAL={config.interval}")
    if config.frequency == Frequency.WEEKLY and config.days_of_week:
        parts.append("BYDAY=" + ",".join(DAY_CODES[d] for d in config.days_of_week))
    if config.frequency in (Frequency.MONTHLY, Frequency.YEARLY) and config.day_of_month:
        parts.append(f"BYMONTHDAY={config.day_of_month}")
    if config.frequency == Frequency.YEARLY and config.month_of_year:
        parts.append(f"BYMONTH={config.month_of_year}")
    if config.end_type == EndType.ON:
        parts.append(f"UNTIL={config.until.strftime(UNTIL_FORMAT)}")
    elif config.end_type == EndType.AFTER:
        parts.append(f"COUNT={config.occurrences}")
    return ";".join(parts)


def _tokens(rule: str) -> Dict[str, str]:
    if rule.upper().startswith("RRULE:"):
        rule = rule[len("RRULE:"):]
    tokens: Dict[str, str] = {}
    for part in rule.split(";"):
        key, sep, value = part.partition("=")
        if not sep:
            continue
        tokens[key.strip().upper()] = value.strip()
    return tokens


def _int_token(key: str, value: str, low: int, high: Optional[int] = None) -> int:
    try:
        n = int(value)
    except ValueError:
        raise ValidationAppError("RRULE_INVALID", f"{key} must be an integer, got {value!r}")
    if n < low or (high is not None and n > high):
        bound = f"{low}..{high}" if high is not None else f">= {low}"
        raise ValidationAppError("RRULE_INVALID", f"{key} must be {bound}, got {n}")
    return n


def _parse_until(value: str) -> date:
    for fmt in (UNTIL_FORMAT, "%Y%m%dT%H%M%S", "%Y%m%d"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValidationAppError("RRULE_INVALID", f"UNTIL is not a compact UTC timestamp: {value!r}")


def decode_rule(rule: Optional[str]) -> RecurrenceConfig:
    if not rule or not rule.strip():
        return RecurrenceConfig()
    tokens = _tokens(rule)
    freq_raw = tokens.get("FREQ")
    if not freq_raw:
        return RecurrenceConfig()
    try:
        frequency = Frequency(freq_raw.lower())
    except ValueError:
        raise ValidationAppError("RRULE_INVALID", f"unsupported FREQ {freq_raw!r}")
    if frequency == Frequency.NONE:
        return RecurrenceConfig()

    fields = {"frequency": frequency}
    if "INTERVAL" in tokens:
        fields["interval"] = _int_token("INTERVAL", tokens["INTERVAL"], 1)
    if "BYDAY" in tokens:
        days = []
        for code in tokens["BYDAY"].split(","):
            code = code.strip().upper()
            if code not in DAY_CODES:
                raise ValidationAppError("RRULE_INVALID", f"unsupported BYDAY value {code!r}")
            days.append(DAY_CODES.index(code))
        fields["days_of_week"] = tuple(days)
    if "BYMONTHDAY" in tokens:
        fields["day_of_month"] = _int_token("BYMONTHDAY", tokens["BYMONTHDAY"], 1, 31)
    if "BYMONTH" in tokens:
        fields["month_of_year"] = _int_token("BYMONTH", tokens["BYMONTH"], 1, 12)
    if "UNTIL" in tokens:
        fields["end_type"] = EndType.ON
        fields["end_date"] = _parse_until(tokens["UNTIL"])
    elif "COUNT" in tokens:
        fields["end_type"] = EndType.AFTER
        fields["occurrences"] = _int_token("COUNT", tokens["COUNT"], 1)
    return RecurrenceConfig(**fields).normalized().validate()


def _ordinal(day: int) -> str:
    if 11 <= day <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def _unit(word: str, interval: int) -> str:
    return word if interval == 1 else f"{interval} {word}s"


def _join_days(days: Iterable[int]) -> str:
    return ", ".join(DAY_NAMES[d] for d in days)


def describe_recurrence(config: RecurrenceConfig) -> str:
    """Human readable summary, e.g. ``Repeats every 2 weeks on Monday, Wednesday``."""
    if config.frequency == Frequency.NONE:
        return "Does not repeat"
    unit = {
        Frequency.DAILY: "day",
        Frequency.WEEKLY: "week",
        Frequency.MONTHLY: "month",
        Frequency.YEARLY: "year",
    }[config.frequency]
    summary = f"Repeats every {_unit(unit, config.interval)}"

    if config.frequency == Frequency.WEEKLY and config.days_of_week:
        summary += f" on {_join_days(sorted(config.days_of_week))}"
    elif config.frequency == Frequency.MONTHLY and config.day_of_month:
        summary += f" on the {_ordinal(config.day_of_month)}"
    elif config.frequency == Frequency.YEARLY and config.month_of_year and config.day_of_month:
        summary += f" on {calendar.month_name[config.month_of_year]} {_ordinal(config.day_of_month)}"

    if config.end_type == EndType.ON and config.end_date:
        d = config.end_date
        summary += f", until {calendar.month_name[d.month]} {d.day}, {d.year}"
    elif config.end_type == EndType.AFTER and config.occurrences:
        plural = "s" if config.occurrences > 1 else ""
        summary += f", for {config.occurrences} occurrence{plural}"
    return summary
