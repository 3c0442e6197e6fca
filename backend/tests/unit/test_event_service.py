import pytest
from datetime import date

from conftest import make_event, make_room, utc
from roomflow.domain.enums import EndType, EventStatus, Frequency
from roomflow.domain.lifecycle import Actor
from roomflow.domain.recurrence import RecurrenceConfig
from roomflow.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationAppError
from roomflow.services.event_service import EventService, canonical_rule

ADMIN = Actor.from_roles("admin-1", ["admin"])
OWNER = Actor.from_roles("contrib-1", ["contributor"])
STRANGER = Actor.from_roles("contrib-2", ["contributor"])


@pytest.fixture
def service(event_repo, room_repo):
    return EventService(event_repo, room_repo)


@pytest.fixture
def room(room_repo):
    return make_room(room_repo, room_id="r1")


def test_canonical_rule():
    assert canonical_rule("BYDAY=WE,MO;FREQ=WEEKLY;INTERVAL=1") == "FREQ=WEEKLY;BYDAY=MO,WE"
    assert canonical_rule("  ") is None
    config = RecurrenceConfig(frequency=Frequency.MONTHLY, day_of_month=15, end_type=EndType.ON, end_date=date(2024, 12, 31))
    assert canonical_rule(config=config) == "FREQ=MONTHLY;BYMONTHDAY=15;UNTIL=20241231T235959Z"


def test_create_event_starts_as_draft(service, event_repo, room, db):
    event = service.create_event(db, OWNER, room.id, "Choir", utc(2024, 1, 1, 9), utc(2024, 1, 1, 10),
                                 recurrence_rule="FREQ=WEEKLY;BYDAY=MO")

    assert event.status == "draft"
    assert event.created_by == "contrib-1"
    assert event.recurrence_rule == "FREQ=WEEKLY;BYDAY=MO"
    assert event_repo.get(db, event.id) is event
    db.commit.assert_called_once()


def test_create_rejects_bad_times_and_rooms(service, room_repo, room, db):
    with pytest.raises(ValidationAppError) as exc_info:
        service.create_event(db, OWNER, room.id, "Backwards", utc(2024, 1, 1, 10), utc(2024, 1, 1, 9))
    assert exc_info.value.code == "EVENT_INVALID_TIME"
    assert "end before start" in exc_info.value.message

    with pytest.raises(NotFoundError):
        service.create_event(db, OWNER, "nowhere", "Lost", utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))

    closed = make_room(room_repo, name="Chapel", is_active=False, room_id="r2")
    with pytest.raises(ValidationAppError) as exc_info:
        service.create_event(db, OWNER, closed.id, "Closed", utc(2024, 1, 1, 9), utc(2024, 1, 1, 10))
    assert exc_info.value.code == "ROOM_INACTIVE"


def test_get_missing_event(service, db):
    with pytest.raises(NotFoundError) as exc_info:
        service.get_event(db, "nope")
    assert exc_info.value.code == "EVENT_NOT_FOUND"


def test_owner_edits_draft_but_not_after_submission(service, event_repo, room, db):
    event = make_event(event_repo, room.id, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), event_id="e1")

    service.update_event(db, "e1", OWNER, title="Renamed")
    assert event.title == "Renamed"

    with pytest.raises(PermissionDeniedError):
        service.update_event(db, "e1", STRANGER, title="Hijacked")

    event.status = "pending_review"
    with pytest.raises(PermissionDeniedError):
        service.update_event(db, "e1", OWNER, title="Too late")


def test_admin_reschedule_of_published_event_is_conflict_checked(service, event_repo, room, db):
    make_event(event_repo, room.id, utc(2024, 1, 1, 11), utc(2024, 1, 1, 12), status="approved", event_id="booked")
    event = make_event(event_repo, room.id, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), status="published", event_id="e1")

    with pytest.raises(ConflictError):
        service.update_event(db, "e1", ADMIN, starts_at=utc(2024, 1, 1, 10, 30), ends_at=utc(2024, 1, 1, 11, 30))
    assert event.starts_at == utc(2024, 1, 1, 9)

    service.update_event(db, "e1", ADMIN, starts_at=utc(2024, 1, 1, 8), ends_at=utc(2024, 1, 1, 9))
    assert event.starts_at == utc(2024, 1, 1, 8)
    assert event.status == "published"
    assert event_repo.locked_rooms == ["r1", "r1"]


def test_update_can_clear_the_recurrence_rule(service, event_repo, room, db):
    event = make_event(event_repo, room.id, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), rule="FREQ=DAILY", event_id="e1")

    service.update_event(db, "e1", OWNER, title="Same rule")
    assert event.recurrence_rule == "FREQ=DAILY"

    service.update_event(db, "e1", OWNER, recurrence_rule=None)
    assert event.recurrence_rule is None


def test_room_occurrences_merge_and_sort(service, event_repo, room_repo, room, db):
    make_event(event_repo, room.id, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), status="approved",
               rule="FREQ=DAILY;COUNT=3", event_id="p")
    # Materialized copy of the second occurrence
    make_event(event_repo, room.id, utc(2024, 1, 2, 9), utc(2024, 1, 2, 10), status="approved", event_id="c", parent="p")
    make_event(event_repo, room.id, utc(2024, 1, 1, 8), utc(2024, 1, 1, 8, 30), status="draft", event_id="early")
    elsewhere = make_room(room_repo, name="Gym", room_id="r2")
    make_event(event_repo, elsewhere.id, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), status="approved", event_id="gym")

    result = service.room_occurrences(db, room.id, utc(2024, 1, 1), utc(2024, 1, 4))

    assert [o.starts_at for o in result] == [
        utc(2024, 1, 1, 8), utc(2024, 1, 1, 9), utc(2024, 1, 2, 9), utc(2024, 1, 3, 9),
    ]
    approved_only = service.room_occurrences(db, room.id, utc(2024, 1, 1), utc(2024, 1, 4), [EventStatus.APPROVED])
    assert len(approved_only) == 3


def test_room_occurrences_unknown_room(service, db):
    with pytest.raises(NotFoundError):
        service.room_occurrences(db, "nope", utc(2024, 1, 1), utc(2024, 1, 2))


def test_materialize_instances(service, event_repo, room, db):
    parent = make_event(event_repo, room.id, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), status="approved",
                        rule="FREQ=DAILY;COUNT=4", event_id="p")
    parent.reviewer_id = "reviewer-1"

    created = service.materialize_instances(db, "p", ADMIN, utc(2024, 1, 1), utc(2024, 1, 3))

    assert [c.starts_at for c in created] == [utc(2024, 1, 2, 9)]
    child = created[0]
    assert child.parent_event_id == "p"
    assert child.recurrence_rule is None
    assert child.status == "approved"
    assert child.reviewer_id == "reviewer-1"

    # Re-running over a wider window only adds what is missing
    more = service.materialize_instances(db, "p", ADMIN, utc(2024, 1, 1), utc(2024, 2, 1))
    assert [c.starts_at for c in more] == [utc(2024, 1, 3, 9), utc(2024, 1, 4, 9)]


def test_materialize_requires_a_recurring_root(service, event_repo, room, db):
    make_event(event_repo, room.id, utc(2024, 1, 1, 9), utc(2024, 1, 1, 10), event_id="single")
    with pytest.raises(ValidationAppError) as exc_info:
        service.materialize_instances(db, "single", OWNER, utc(2024, 1, 1), utc(2024, 2, 1))
    assert exc_info.value.code == "EVENT_NOT_RECURRING"
