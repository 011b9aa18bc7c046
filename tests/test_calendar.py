from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from dentist_ivr.calendar import BookingCommitter, BookingError
from dentist_ivr.config import GoogleOAuthConfig
from dentist_ivr.intent import AppointmentIntent

TZ = ZoneInfo("Asia/Jerusalem")
INTENT = AppointmentIntent("Jean Dupont", datetime(2026, 11, 15, 15, 0, tzinfo=TZ))


class FakeEvents:
    def __init__(self, error=None):
        self.error = error
        self.inserted = []

    def insert(self, calendarId, body):
        self.inserted.append((calendarId, body))
        return self

    def execute(self):
        if self.error:
            raise self.error
        return {"id": "evt-1"}


class FakeService:
    def __init__(self, events):
        self._events = events

    def events(self):
        return self._events


def _committer(events, minutes=30):
    return BookingCommitter(
        clinic_name="Doctor B's clinic",
        timezone="Asia/Jerusalem",
        minutes=minutes,
        calendar_id="clinic@group.calendar.google.com",
        service_factory=lambda: FakeService(events),
    )


def test_commit_inserts_one_event_with_window_and_phone():
    events = FakeEvents()
    record = _committer(events, minutes=45).commit(INTENT, "+33612345678")

    assert len(events.inserted) == 1
    calendar_id, body = events.inserted[0]
    assert calendar_id == "clinic@group.calendar.google.com"
    assert body["summary"] == "Doctor B's clinic – Appointment Jean Dupont"
    assert "+33612345678" in body["description"]
    start = datetime.fromisoformat(body["start"]["dateTime"])
    end = datetime.fromisoformat(body["end"]["dateTime"])
    assert (end - start).total_seconds() == 45 * 60
    assert start == INTENT.start_time
    assert body["start"]["timeZone"] == body["end"]["timeZone"] == "Asia/Jerusalem"
    assert record.end == end


def test_insert_failure_becomes_booking_error():
    events = FakeEvents(error=ConnectionError("network down"))
    with pytest.raises(BookingError):
        _committer(events).commit(INTENT, "+33612345678")
    assert len(events.inserted) == 1


def test_missing_oauth_credentials_is_booking_error():
    committer = BookingCommitter(
        oauth=GoogleOAuthConfig(client_id="id", client_secret=None, refresh_token=None),
        clinic_name="Doctor B's clinic",
        timezone="Asia/Jerusalem",
    )
    with pytest.raises(BookingError):
        committer.commit(INTENT, "+972500000000")
