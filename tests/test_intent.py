from datetime import datetime, timedelta
from types import SimpleNamespace
from zoneinfo import ZoneInfo

from dentist_ivr.intent import IntentExtractor, correct_past_year
from dentist_ivr.languages import build_language_table

TZ = ZoneInfo("Asia/Jerusalem")
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=TZ)
LANGUAGES = build_language_table()
ENGLISH, FRENCH, HEBREW = LANGUAGES.get("1"), LANGUAGES.get("2"), LANGUAGES.get("3")


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _extractor(completions=None, **kwargs):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions)) if completions else None
    return IntentExtractor(
        api_key=None,
        timezone="Asia/Jerusalem",
        clinic_name="Doctor B's clinic",
        client=client,
        now=lambda: NOW,
        **kwargs,
    )


def test_model_reply_with_past_year_is_moved_to_current_year():
    completions = FakeCompletions('{"date_iso": "2025-11-16T15:00:00", "name": "Jean Dupont"}')
    intent = _extractor(completions).extract("Jean Dupont le 16 novembre à 15h", FRENCH)
    assert intent.patient_name == "Jean Dupont"
    assert intent.start_time == datetime(2026, 11, 16, 15, 0, tzinfo=TZ)
    assert intent.source == "model"

    call = completions.calls[0]
    assert call["temperature"] == 0.1
    assert call["response_format"] == {"type": "json_object"}
    assert "2026" in call["messages"][0]["content"]
    assert call["messages"][1] == {"role": "user", "content": "Jean Dupont le 16 novembre à 15h"}


def test_year_policy_can_be_disabled():
    completions = FakeCompletions('{"date_iso": "2025-11-16T15:00:00", "name": "Jean"}')
    intent = _extractor(completions, assume_future_year=False).extract("...", FRENCH)
    assert intent.start_time.year == 2025


def test_offset_times_are_converted_and_seconds_dropped():
    completions = FakeCompletions('{"date_iso": "2026-11-16T13:00:45Z", "name": "Sarah"}')
    intent = _extractor(completions).extract("...", ENGLISH)
    assert intent.start_time == datetime(2026, 11, 16, 15, 0, tzinfo=TZ)


def test_blank_name_becomes_placeholder():
    completions = FakeCompletions('{"date_iso": "2026-12-01T09:30:00", "name": ""}')
    assert _extractor(completions).extract("...", ENGLISH).patient_name == "Patient"


def test_malformed_json_runs_fallback_parser():
    completions = FakeCompletions("Sure! The appointment is tomorrow at 3pm.")
    intent = _extractor(completions).extract("My name is Sarah, tomorrow at 3 pm", ENGLISH)
    assert intent.source == "fallback"
    assert intent.patient_name == "Sarah"
    assert intent.start_time == datetime(2026, 10, 20, 15, 0, tzinfo=TZ)


def test_wrong_shape_without_date_phrase_defaults_to_next_day():
    completions = FakeCompletions('{"name": "Sarah"}')
    intent = _extractor(completions).extract("Hello, my name is Sarah", ENGLISH)
    assert intent.source == "default"
    assert intent.patient_name == "Sarah"
    assert intent.start_time == NOW + timedelta(hours=24)


def test_call_failure_uses_french_fallback():
    completions = FakeCompletions(error=RuntimeError("rate limited"))
    intent = _extractor(completions).extract("Je suis Jean, demain à 15h30", FRENCH)
    assert intent.patient_name == "Jean"
    assert intent.start_time == datetime(2026, 10, 20, 15, 30, tzinfo=TZ)


def test_hebrew_fallback_always_uses_default_date():
    completions = FakeCompletions(error=RuntimeError("down"))
    intent = _extractor(completions).extract("שמי דנה, מחר בשלוש", HEBREW)
    assert intent.patient_name == "דנה"
    assert intent.start_time == NOW + timedelta(hours=24)
    assert intent.source == "default"


def test_without_key_or_client_goes_straight_to_fallback():
    intent = _extractor().extract("I'm Tom", ENGLISH)
    assert intent.patient_name == "Tom"
    assert intent.start_time == NOW + timedelta(hours=24)


def test_correct_past_year_handles_leap_day():
    assert correct_past_year(datetime(2024, 2, 29, 9, 0), NOW) == datetime(2026, 2, 28, 9, 0)
    assert correct_past_year(datetime(2025, 3, 1, 9, 0), NOW) == datetime(2026, 3, 1, 9, 0)
    future = datetime(2027, 1, 5, 9, 0)
    assert correct_past_year(future, NOW) is future
