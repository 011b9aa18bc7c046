from datetime import datetime
from zoneinfo import ZoneInfo

from dentist_ivr import nlp

TZ = ZoneInfo("Asia/Jerusalem")
# Monday
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=TZ)


def _at(month, day, hour, minute=0, year=2026):
    return datetime(year, month, day, hour, minute, tzinfo=TZ)


def test_english_relative_day_and_time():
    assert nlp.parse_when("Tomorrow at 3 pm please", "en", NOW) == _at(10, 20, 15)
    assert nlp.parse_when("the day after tomorrow at noon", "en", NOW) == _at(10, 21, 12)


def test_english_ordinal_day_prefers_next_occurrence():
    assert nlp.parse_when("Jean Dupont, the fifteenth at three PM", "en", NOW) == _at(11, 15, 15)
    assert nlp.parse_when("on the 25th at 10:30", "en", NOW) == _at(10, 25, 10, 30)


def test_english_month_and_day():
    assert nlp.parse_when("November 16 at 9 am", "en", NOW) == _at(11, 16, 9)
    assert nlp.parse_when("the 2nd of March at half past four", "en", NOW) == _at(3, 2, 16, 30, year=2027)


def test_english_weekday_moves_forward():
    assert nlp.parse_when("Friday at 10", "en", NOW) == _at(10, 23, 10)
    # same weekday means next week
    assert nlp.parse_when("monday at 11 am", "en", NOW) == _at(10, 26, 11)


def test_bare_time_that_has_passed_moves_to_tomorrow():
    assert nlp.parse_when("at 9 am", "en", NOW) == _at(10, 20, 9)
    assert nlp.parse_when("at 4 pm", "en", NOW) == _at(10, 19, 16)


def test_date_without_time_defaults_to_midday():
    assert nlp.parse_when("tomorrow", "en", NOW) == _at(10, 20, 12)


def test_french_phrases():
    assert nlp.parse_when("Je m'appelle Jean, le 15 novembre à 15h30", "fr", NOW) == _at(11, 15, 15, 30)
    assert nlp.parse_when("demain à midi", "fr", NOW) == _at(10, 20, 12)
    assert nlp.parse_when("Après-demain à dix heures et demie", "fr", NOW) == _at(10, 21, 10, 30)
    assert nlp.parse_when("le quinze à quinze heures", "fr", NOW) == _at(11, 15, 15)
    assert nlp.parse_when("vendredi à 3 heures de l'après-midi", "fr", NOW) == _at(10, 23, 15)


def test_french_afternoon_is_not_noon():
    assert nlp._parse_time_fr("vendredi a 3 heures de l'apres midi") == (15, 0)
    assert nlp.parse_when("cet après-midi à 4 heures", "fr", NOW) == _at(10, 19, 16)


def test_french_small_hours_follow_clinic_afternoon():
    assert nlp.parse_when("demain à 3 heures", "fr", NOW) == _at(10, 20, 15)
    assert nlp.parse_when("demain à 7 heures du matin", "fr", NOW) == _at(10, 20, 7)
    assert nlp.parse_when("demain à une heure moins le quart", "fr", NOW) == _at(10, 20, 12, 45)


def test_dotted_clock_times_are_not_dates():
    assert nlp.parse_when("Friday at 10.30", "en", NOW) == _at(10, 23, 10, 30)
    assert nlp.parse_when("tomorrow at 3.30 pm", "en", NOW) == _at(10, 20, 15, 30)
    assert nlp.parse_when("on 15.11.2026 at 10 am", "en", NOW) == _at(11, 15, 10)


def test_quarter_to_keeps_the_afternoon_hour():
    assert nlp.parse_when("tomorrow at quarter to one", "en", NOW) == _at(10, 20, 12, 45)
    assert nlp.parse_when("tomorrow at quarter to eight", "en", NOW) == _at(10, 20, 7, 45)


def test_nothing_recognised_returns_none():
    assert nlp.parse_when("hello, I'd like to see the dentist", "en", NOW) is None
    assert nlp.parse_when("bonjour", "fr", NOW) is None


def test_locale_without_parser_returns_none():
    assert nlp.parse_when("tomorrow at 3 pm", None, NOW) is None
    assert nlp.parse_when("מחר בשלוש", "he", NOW) is None


def test_extract_name_patterns():
    assert nlp.extract_name("My name is Sarah and tomorrow works", "en") == "Sarah"
    assert nlp.extract_name("Hi, I'm Tom", "en") == "Tom"
    assert nlp.extract_name("Bonjour, je m’appelle Jean Dupont", "fr") == "Jean"
    assert nlp.extract_name("שמי דנה ואני רוצה תור", "he") == "דנה"
    assert nlp.extract_name("tomorrow at three", "en") is None
    assert nlp.extract_name("My name is Sarah", None) is None


def test_speak_datetime_per_locale():
    when = datetime(2026, 11, 16, 15, 0, tzinfo=TZ)
    assert nlp.speak_datetime(when, "en") == "Monday, November 16th at 3pm"
    assert nlp.speak_datetime(when, "fr") == "lundi 16 novembre à 15h"
    assert nlp.speak_datetime(when.replace(minute=30), "fr") == "lundi 16 novembre à 15h30"
    assert nlp.speak_datetime(when.replace(day=1, month=12), None) == "Tuesday, December 1st at 3pm"
