import os, sys
import pytest
import tempfile
import uuid
from datetime import datetime, timezone
from unittest.mock import Mock

# Ensure the local roomflow package wins over any installed copy
backend_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if backend_root not in sys.path:
    sys.path.insert(0, backend_root)

# Tests never touch the developer's local.db
_db_dir = tempfile.mkdtemp(prefix="roomflow-tests-")
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_db_dir}/test.db"

from fastapi.testclient import TestClient  # noqa: E402
from roomflow.main import app  # noqa: E402
from roomflow.db import models  # noqa: E402
from roomflow.db.session import engine, Base  # noqa: E402
from roomflow.services.occurrence_service import ensure_utc  # noqa: E402


ADMIN = {"X-User-Id": "admin-1", "X-User-Roles": "admin"}
REVIEWER = {"X-User-Id": "reviewer-1", "X-User-Roles": "reviewer"}
CONTRIBUTOR = {"X-User-Id": "contrib-1", "X-User-Roles": "contributor"}
OTHER_CONTRIBUTOR = {"X-User-Id": "contrib-2", "X-User-Roles": "contributor"}


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakeRoomRepository:
    def __init__(self):
        self.rooms = {}

    def add(self, db, room):
        if room.id is None:
            room.id = str(uuid.uuid4())
        self.rooms[room.id] = room
        return room

    def get(self, db, room_id):
        return self.rooms.get(room_id)

    def list(self, db, active_only=False):
        return [r for r in self.rooms.values() if r.is_active or not active_only]


class FakeEventRepository:
    def __init__(self):
        self.events = {}
        self.locked_rooms = []

    def add(self, db, event):
        if event.id is None:
            event.id = str(uuid.uuid4())
        self.events[event.id] = event
        return event

    def get(self, db, event_id):
        return self.events.get(event_id)

    def list(self, db, room_id=None, statuses=None):
        result = [
            e for e in self.events.values()
            if (room_id is None or e.room_id == room_id) and (not statuses or e.status in statuses)
        ]
        return sorted(result, key=lambda e: ensure_utc(e.starts_at))

    def find_in_room_window(self, db, room_id, start, end, exclude_series=None):
        result = []
        for e in self.events.values():
            if e.room_id != room_id:
                continue
            if exclude_series and (e.id == exclude_series or e.parent_event_id == exclude_series):
                continue
            if ensure_utc(e.starts_at) < end and (ensure_utc(e.ends_at) > start or e.recurrence_rule):
                result.append(e)
        return result

    def list_series(self, db, root_id):
        members = [e for e in self.events.values() if e.id == root_id or e.parent_event_id == root_id]
        return sorted(members, key=lambda e: ensure_utc(e.starts_at))

    def lock_room(self, db, room_id):
        self.locked_rooms.append(room_id)

    def update_status(self, db, event_id, expected, new, reviewer_id=None, reviewer_notes=None):
        event = self.events.get(event_id)
        if event is None or event.status != expected:
            return False
        event.status = new
        if reviewer_id is not None:
            event.reviewer_id = reviewer_id
            event.reviewer_notes = reviewer_notes
        return True


def make_room(repo, name="Sanctuary", allow_overlap=False, is_active=True, room_id=None):
    return repo.add(None, models.Room(id=room_id, name=name, allow_overlap=allow_overlap, is_active=is_active))


def make_event(repo, room_id, start, end, status="draft", created_by="contrib-1", rule=None, event_id=None, parent=None):
    return repo.add(None, models.Event(
        id=event_id,
        room_id=room_id,
        title=f"Event {event_id or ''}".strip(),
        starts_at=start,
        ends_at=end,
        status=status,
        created_by=created_by,
        recurrence_rule=rule,
        parent_event_id=parent,
    ))


@pytest.fixture
def room_repo():
    return FakeRoomRepository()


@pytest.fixture
def event_repo():
    return FakeEventRepository()


@pytest.fixture
def db():
    return Mock()


@pytest.fixture(scope="function")  # fresh DB per test
def client():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    return TestClient(app)


def api_room(client, name="Sanctuary", allow_overlap=False):
    res = client.post("/rooms", json={"name": name, "allowOverlap": allow_overlap}, headers=ADMIN)
    assert res.status_code == 201, res.text
    return res.json()


def api_event(client, room_id, start, end, headers=CONTRIBUTOR, **extra):
    body = {"title": extra.pop("title", "Choir practice"), "roomId": room_id, "startsAt": start, "endsAt": end}
    body.update(extra)
    res = client.post("/events", json=body, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def api_transition(client, event_id, action, expected, headers, **extra):
    body = {"action": action, "expectedStatus": expected}
    body.update(extra)
    return client.post(f"/events/{event_id}/transitions", json=body, headers=headers)
