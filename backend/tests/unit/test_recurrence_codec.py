import pytest
from datetime import date

from roomflow.domain.enums import EndType, Frequency
from roomflow.domain.recurrence import RecurrenceConfig, decode_rule, describe_recurrence, encode_rule
from roomflow.errors import ValidationAppError


def test_encode_none_is_null():
    assert encode_rule(RecurrenceConfig(frequency=Frequency.NONE, interval=3)) is None


def test_decode_null_and_empty_yield_default():
    default = RecurrenceConfig(frequency=Frequency.NONE, interval=1, end_type=EndType.NEVER)
    assert decode_rule(None) == default
    assert decode_rule("") == default
    assert decode_rule("   ") == default


def test_encode_weekly_orders_tokens_and_days():
    config = RecurrenceConfig(
        frequency=Frequency.WEEKLY,
        interval=2,
        days_of_week=(5, 1, 3),
        end_type=EndType.AFTER,
        occurrences=10,
    )
    assert encode_rule(config) == "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE,FR;COUNT=10"


def test_encode_omits_interval_of_one_and_never_end():
    assert encode_rule(RecurrenceConfig(frequency=Frequency.DAILY)) == "FREQ=DAILY"


def test_encode_until_is_end_of_day_utc():
    config = RecurrenceConfig(frequency=Frequency.DAILY, end_type=EndType.ON, end_date=date(2024, 3, 1))
    assert encode_rule(config) == "FREQ=DAILY;UNTIL=20240301T235959Z"


def test_encode_yearly_with_month_and_day():
    config = RecurrenceConfig(frequency=Frequency.YEARLY, day_of_month=25, month_of_year=12)
    assert encode_rule(config) == "FREQ=YEARLY;BYMONTHDAY=25;BYMONTH=12"


def test_encode_drops_fields_foreign_to_frequency():
    config = RecurrenceConfig(frequency=Frequency.MONTHLY, days_of_week=(1,), day_of_month=15, month_of_year=4)
    assert encode_rule(config) == "FREQ=MONTHLY;BYMONTHDAY=15"


@pytest.mark.parametrize("config", [
    RecurrenceConfig(frequency=Frequency.DAILY, interval=3, end_type=EndType.AFTER, occurrences=5),
    RecurrenceConfig(frequency=Frequency.WEEKLY, days_of_week=(0, 6), end_type=EndType.ON, end_date=date(2025, 1, 31)),
    RecurrenceConfig(frequency=Frequency.MONTHLY, interval=2, day_of_month=31),
    RecurrenceConfig(frequency=Frequency.YEARLY, day_of_month=29, month_of_year=2, end_type=EndType.AFTER, occurrences=3),
])
def test_decode_reverses_encode(config):
    assert decode_rule(encode_rule(config)) == config.normalized()


def test_decode_is_order_independent_and_ignores_unknown_tokens():
    config = decode_rule("COUNT=4;X-CUSTOM=1;BYDAY=WE,MO;WKST=SU;FREQ=WEEKLY;garbage")
    assert config.frequency == Frequency.WEEKLY
    assert config.interval == 1
    assert config.days_of_week == (1, 3)
    assert config.end_type == EndType.AFTER
    assert config.occurrences == 4


def test_decode_without_freq_is_default():
    assert decode_rule("INTERVAL=2;COUNT=3") == RecurrenceConfig()


def test_decode_accepts_rrule_prefix_and_bare_until_date():
    config = decode_rule("RRULE:FREQ=DAILY;UNTIL=20240105")
    assert config.end_type == EndType.ON
    assert config.end_date == date(2024, 1, 5)


@pytest.mark.parametrize("rule", [
    "FREQ=HOURLY",
    "FREQ=DAILY;INTERVAL=0",
    "FREQ=DAILY;INTERVAL=abc",
    "FREQ=WEEKLY;BYDAY=XX",
    "FREQ=MONTHLY;BYMONTHDAY=32",
    "FREQ=YEARLY;BYMONTH=2;BYMONTHDAY=30",
    "FREQ=DAILY;UNTIL=tomorrow",
    "FREQ=DAILY;COUNT=0",
])
def test_decode_rejects_malformed_values(rule):
    with pytest.raises(ValidationAppError) as exc_info:
        decode_rule(rule)
    assert exc_info.value.code in {"RRULE_INVALID", "RECURRENCE_INVALID"}


def test_encode_rejects_incomplete_end_condition():
    with pytest.raises(ValidationAppError):
        encode_rule(RecurrenceConfig(frequency=Frequency.DAILY, end_type=EndType.ON))
    with pytest.raises(ValidationAppError):
        encode_rule(RecurrenceConfig(frequency=Frequency.DAILY, end_type=EndType.AFTER))


def test_describe_recurrence():
    assert describe_recurrence(RecurrenceConfig()) == "Does not repeat"
    assert describe_recurrence(decode_rule("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;UNTIL=20240301T235959Z")) == (
        "Repeats every 2 weeks on Monday, Wednesday, until March 1, 2024"
    )
    assert describe_recurrence(decode_rule("FREQ=MONTHLY;BYMONTHDAY=31;COUNT=5")) == (
        "Repeats every month on the 31st, for 5 occurrences"
    )
    assert describe_recurrence(decode_rule("FREQ=YEARLY;BYMONTH=7;BYMONTHDAY=12;COUNT=1")) == (
        "Repeats every year on July 12th, for 1 occurrence"
    )
    assert describe_recurrence(decode_rule("FREQ=DAILY;INTERVAL=3")) == "Repeats every 3 days"
