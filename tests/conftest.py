from datetime import datetime
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from dentist_ivr.calendar import BookingCommitter
from dentist_ivr.dialogue import DialogueController
from dentist_ivr.intent import IntentExtractor
from dentist_ivr.languages import build_language_table

TZ = ZoneInfo("Asia/Jerusalem")
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=TZ)


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeCalendar:
    def __init__(self, error=None):
        self.error = error
        self.inserted = []

    def events(self):
        return self

    def insert(self, calendarId, body):
        self.inserted.append((calendarId, body))
        return self

    def execute(self):
        if self.error:
            raise self.error
        return {"id": "evt-1"}


class FakeFetcher:
    def __init__(self, audio=b"RIFF"):
        self.audio = audio
        self.urls = []

    def fetch(self, url):
        self.urls.append(url)
        return self.audio


class FakeChain:
    def __init__(self, text=""):
        self.text = text

    def transcribe(self, audio, hint):
        return self.text


@pytest.fixture
def make_controller():
    """Build a controller wired to in-memory fakes; returns (controller, fakes)."""

    def build(model_reply="{}", transcript="", calendar_error=None, public_base_url=None):
        completions = FakeCompletions(model_reply)
        calendar = FakeCalendar(calendar_error)
        fetcher = FakeFetcher()
        controller = DialogueController(
            languages=build_language_table(),
            clinic_name="Doctor B's clinic",
            fetcher=fetcher,
            chain=FakeChain(transcript),
            extractor=IntentExtractor(
                api_key=None,
                timezone="Asia/Jerusalem",
                clinic_name="Doctor B's clinic",
                client=SimpleNamespace(chat=SimpleNamespace(completions=completions)),
                now=lambda: NOW,
            ),
            committer=BookingCommitter(
                clinic_name="Doctor B's clinic",
                timezone="Asia/Jerusalem",
                minutes=30,
                service_factory=lambda: calendar,
            ),
            public_base_url=public_base_url,
        )
        return controller, SimpleNamespace(completions=completions, calendar=calendar, fetcher=fetcher)

    return build
