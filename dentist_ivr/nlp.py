"""Deterministic language helpers: fallback date parsing, names and spoken dates.

These run when the generative extractor is unavailable, so they must never
raise on caller input; anything they cannot understand yields ``None``.
"""

from __future__ import annotations

import calendar
import re
import unicodedata
from datetime import date as _date
from datetime import datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser

DEFAULT_HOUR = 12
# Without am/pm, small hours are read as clinic afternoon hours.
AFTERNOON_CUTOFF = 8


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalise_text(text: str) -> str:
    text = _strip_accents((text or "").lower())
    text = text.replace("’", "'").replace("-", " ")
    text = re.sub(r"[,;!?]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def _ordinal(n: int) -> str:
    """Turn 1 into 1st, 2 into 2nd, etc."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _alternation(words) -> str:
    return "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True))


_EN_UNITS = [
    "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten",
    "eleven", "twelve", "thirteen", "fourteen", "fifteen", "sixteen", "seventeen",
    "eighteen", "nineteen",
]
_EN_UNIT_ORDINALS = [
    "first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth", "ninth",
    "tenth", "eleventh", "twelfth", "thirteenth", "fourteenth", "fifteenth", "sixteenth",
    "seventeenth", "eighteenth", "nineteenth",
]


def _en_tables() -> tuple[dict[str, int], dict[str, int]]:
    numbers = {word: i for i, word in enumerate(_EN_UNITS, start=1)}
    numbers.update({"twenty": 20, "thirty": 30})
    ordinals = {word: i for i, word in enumerate(_EN_UNIT_ORDINALS, start=1)}
    ordinals.update({"twentieth": 20, "thirtieth": 30})
    for unit in range(1, 10):
        numbers[f"twenty {_EN_UNITS[unit - 1]}"] = 20 + unit
        ordinals[f"twenty {_EN_UNIT_ORDINALS[unit - 1]}"] = 20 + unit
    numbers["thirty one"] = 31
    ordinals["thirty first"] = 31
    return numbers, ordinals


def _fr_numbers() -> dict[str, int]:
    units = [
        "un", "deux", "trois", "quatre", "cinq", "six", "sept", "huit", "neuf", "dix",
        "onze", "douze", "treize", "quatorze", "quinze", "seize", "dix sept", "dix huit",
        "dix neuf",
    ]
    numbers = {word: i for i, word in enumerate(units, start=1)}
    numbers.update({"une": 1, "premier": 1, "1er": 1, "vingt": 20, "trente": 30})
    numbers["vingt et un"] = 21
    numbers["vingt et une"] = 21
    numbers["trente et un"] = 31
    for unit in range(2, 10):
        numbers[f"vingt {units[unit - 1]}"] = 20 + unit
    return numbers


EN_NUMBERS, EN_ORDINALS = _en_tables()
FR_NUMBERS = _fr_numbers()

EN_MONTHS = {name.lower(): i for i, name in enumerate(calendar.month_name) if name}
EN_MONTHS.update({abbr.lower(): i for i, abbr in enumerate(calendar.month_abbr) if abbr})
EN_MONTHS["sept"] = 9
FR_MONTHS = {
    "janvier": 1, "fevrier": 2, "mars": 3, "avril": 4, "mai": 5, "juin": 6, "juillet": 7,
    "aout": 8, "septembre": 9, "octobre": 10, "novembre": 11, "decembre": 12,
}

EN_WEEKDAYS = {name.lower(): i for i, name in enumerate(calendar.day_name)}
EN_WEEKDAYS.update({
    "mon": 0, "tue": 1, "tues": 1, "wed": 2, "thu": 3, "thur": 3, "thurs": 3,
    "fri": 4, "sat": 5,
})
FR_WEEKDAYS = {
    "lundi": 0, "mardi": 1, "mercredi": 2, "jeudi": 3, "vendredi": 4, "samedi": 5, "dimanche": 6,
}

EN_RELATIVE = {"today": 0, "tonight": 0, "this afternoon": 0, "tomorrow": 1, "day after tomorrow": 2}
FR_RELATIVE = {"aujourd'hui": 0, "aujourdhui": 0, "ce soir": 0, "demain": 1, "apres demain": 2}


class _Locale:
    """Compiled patterns for one fallback locale."""

    def __init__(
        self,
        *,
        numbers: dict[str, int],
        ordinals: dict[str, int],
        months: dict[str, int],
        weekdays: dict[str, int],
        relative: dict[str, int],
        day_first: bool,
    ) -> None:
        self.numbers = numbers
        self.ordinals = ordinals
        self.months = months
        self.weekdays = weekdays
        self.relative = relative
        self.day_first = day_first
        day_words = {**numbers, **ordinals}
        self.day_words = day_words
        day = rf"(\d{{1,2}})(?:st|nd|rd|th|er)?|({_alternation(day_words)})"
        month = _alternation(months)
        self.day_month = re.compile(rf"\b(?:{day})\s+(?:of\s+)?({month})\b")
        self.month_day = re.compile(rf"\b({month})\s+(?:the\s+)?(?:{day})\b")
        self.weekday = re.compile(rf"\b({_alternation(weekdays)})\b")
        self.relative_re = re.compile(rf"\b({_alternation(relative)})\b")
        # "10.30" is a clock time; dots only separate a date that carries a year.
        self.numeric = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b|\b(\d{1,2})\.(\d{1,2})\.(\d{2,4})\b")


_LOCALES = {
    "en": _Locale(
        numbers=EN_NUMBERS,
        ordinals=EN_ORDINALS,
        months=EN_MONTHS,
        weekdays=EN_WEEKDAYS,
        relative=EN_RELATIVE,
        day_first=False,
    ),
    "fr": _Locale(
        numbers=FR_NUMBERS,
        ordinals={},
        months=FR_MONTHS,
        weekdays=FR_WEEKDAYS,
        relative=FR_RELATIVE,
        day_first=True,
    ),
}

_EN_DAY_OF_MONTH = re.compile(
    rf"\bthe\s+(?:(\d{{1,2}})(?:st|nd|rd|th)?|({_alternation(EN_ORDINALS)}))\b|\b(\d{{1,2}})(?:st|nd|rd|th)\b"
)
_FR_DAY_OF_MONTH = re.compile(
    rf"\b(?:le|du)\s+(\d{{1,2}}|1er|{_alternation(FR_NUMBERS)})\b(?!\s*(?:h\b|heures?\b|\d))"
)

_EN_HOUR_WORDS = _alternation(_EN_UNITS[:12])
_EN_MINUTE_WORDS = {"o'clock": 0, "oclock": 0, "fifteen": 15, "thirty": 30, "forty five": 45}
_EN_MERIDIEM = r"(a\.?\s?m\.?|p\.?\s?m\.?|in the morning|in the afternoon|in the evening|at night)"
_EN_TIME_DIGITS = re.compile(rf"\b(\d{{1,2}})(?:[.:](\d{{2}}))?\s*{_EN_MERIDIEM}")
_EN_TIME_COLON = re.compile(r"\b(?:(\d{1,2}):|at\s+(\d{1,2})\.)(\d{2})\b")
_EN_TIME_WORDS = re.compile(
    rf"\b({_EN_HOUR_WORDS})(?:\s+({_alternation(_EN_MINUTE_WORDS)}))?\s*{_EN_MERIDIEM}?(?=\s|$)"
)
_EN_TIME_AT = re.compile(rf"\bat\s+(\d{{1,2}}|{_EN_HOUR_WORDS})\b(?!\s*(?:st|nd|rd|th)\b)")
_EN_HALF_QUARTER = re.compile(rf"\b(half past|quarter past|quarter to)\s+(\d{{1,2}}|{_EN_HOUR_WORDS})\b")

_FR_HOUR_WORDS = _alternation(w for w, n in FR_NUMBERS.items() if n <= 23 and w not in {"premier", "1er"})
_FR_TIME_DIGITS = re.compile(r"\b(\d{1,2})\s*(?:h|heures?)\s*(\d{2})?\b")
_FR_TIME_WORDS = re.compile(
    rf"\b({_FR_HOUR_WORDS})\s+heures?(?:\s+(et demie|et quart|moins le quart|trente|quinze|quarante cinq|\d{{2}}))?\b"
)
_FR_AFTERNOON = re.compile(r"\b(de l'apres midi|du soir|de l'aprem)\b")
_FR_MORNING = re.compile(r"\b(du matin)\b")
_FR_NOON = re.compile(r"(?<!apres )\bmidi\b")


def _word_or_int(value: Optional[str], table: dict[str, int]) -> Optional[int]:
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    return table.get(value)


def _apply_meridiem(hour: int, meridiem: Optional[str]) -> int:
    marker = (meridiem or "").replace(".", "").replace(" ", "")
    if marker.startswith("pm") or marker in {"intheafternoon", "intheevening", "atnight"}:
        return hour + 12 if hour < 12 else hour
    if marker.startswith("am") or marker == "inthemorning":
        return 0 if hour == 12 else hour
    if 1 <= hour < AFTERNOON_CUTOFF:
        return hour + 12
    return hour


def _valid_time(hour: int, minute: int) -> Optional[tuple[int, int]]:
    if 0 <= hour < 24 and 0 <= minute < 60:
        return hour, minute
    return None


def _parse_time_en(text: str) -> Optional[tuple[int, int]]:
    if re.search(r"\b(noon|midday)\b", text):
        return 12, 0
    if re.search(r"\bmidnight\b", text):
        return 0, 0

    match = _EN_HALF_QUARTER.search(text)
    if match:
        hour = _word_or_int(match.group(2), EN_NUMBERS)
        if hour is not None:
            kind = match.group(1)
            minute = {"half past": 30, "quarter past": 15, "quarter to": 45}[kind]
            hour = _apply_meridiem(hour, None)
            if kind == "quarter to":
                hour = (hour - 1) % 24
            return _valid_time(hour, minute)

    match = _EN_TIME_DIGITS.search(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        return _valid_time(_apply_meridiem(hour, match.group(3)), minute)

    match = _EN_TIME_COLON.search(text)
    if match:
        hour, minute = int(match.group(1) or match.group(2)), int(match.group(3))
        return _valid_time(hour if hour >= 12 else _apply_meridiem(hour, None), minute)

    for match in _EN_TIME_WORDS.finditer(text):
        minute_word, meridiem = match.group(2), match.group(3)
        if not minute_word and not meridiem:
            continue
        hour = EN_NUMBERS[match.group(1)]
        minute = _EN_MINUTE_WORDS.get(minute_word or "", 0)
        return _valid_time(_apply_meridiem(hour, meridiem), minute)

    match = _EN_TIME_AT.search(text)
    if match:
        hour = _word_or_int(match.group(1), EN_NUMBERS)
        if hour is not None:
            return _valid_time(_apply_meridiem(hour, None), 0)
    return None


def _parse_time_fr(text: str) -> Optional[tuple[int, int]]:
    if _FR_NOON.search(text):
        return 12, 0
    if re.search(r"\bminuit\b", text):
        return 0, 0

    afternoon = bool(_FR_AFTERNOON.search(text))
    quarter_to = False

    match = _FR_TIME_DIGITS.search(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
    else:
        match = _FR_TIME_WORDS.search(text)
        if not match:
            return None
        hour = FR_NUMBERS[match.group(1)]
        tail = match.group(2) or ""
        if tail == "et demie":
            minute = 30
        elif tail == "et quart":
            minute = 15
        elif tail == "moins le quart":
            quarter_to, minute = True, 45
        elif tail.isdigit():
            minute = int(tail)
        else:
            minute = {"trente": 30, "quinze": 15, "quarante cinq": 45}.get(tail, 0)

    if afternoon:
        hour = _apply_meridiem(hour, "pm")
    elif not _FR_MORNING.search(text):
        hour = _apply_meridiem(hour, None)
    if quarter_to:
        hour = (hour - 1) % 24
    return _valid_time(hour, minute)


def _safe_date(year: int, month: int, day: int) -> Optional[_date]:
    try:
        return _date(year, month, day)
    except ValueError:
        return None


def _next_month_day(base: _date, day: int) -> Optional[_date]:
    """Next date on or after ``base`` whose day of month is ``day``."""
    if not 1 <= day <= 31:
        return None
    year, month = base.year, base.month
    for _ in range(13):
        candidate = _safe_date(year, month, day)
        if candidate and candidate >= base:
            return candidate
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return None


def _month_day(base: _date, month: int, day: int) -> Optional[_date]:
    candidate = _safe_date(base.year, month, day)
    if candidate and candidate < base:
        candidate = _safe_date(base.year + 1, month, day)
    return candidate


def _parse_date(text: str, locale: _Locale, base: _date) -> Optional[_date]:
    match = locale.relative_re.search(text)
    if match:
        return base + timedelta(days=locale.relative[match.group(1)])

    for pattern, month_first in ((locale.day_month, False), (locale.month_day, True)):
        match = pattern.search(text)
        if not match:
            continue
        if month_first:
            month_word, day_digits, day_word = match.group(1), match.group(2), match.group(3)
        else:
            day_digits, day_word, month_word = match.group(1), match.group(2), match.group(3)
        day = int(day_digits) if day_digits else locale.day_words.get(day_word or "")
        if day:
            found = _month_day(base, locale.months[month_word], day)
            if found:
                return found

    match = locale.numeric.search(text)
    if match:
        try:
            parsed = date_parser.parse(
                match.group(0),
                dayfirst=locale.day_first,
                default=datetime(base.year, base.month, base.day),
            ).date()
        except (ValueError, OverflowError):
            parsed = None
        if parsed:
            if not (match.group(3) or match.group(6)) and parsed < base:
                parsed = _safe_date(parsed.year + 1, parsed.month, parsed.day) or parsed
            return parsed

    if locale is _LOCALES["en"]:
        match = _EN_DAY_OF_MONTH.search(text)
        if match:
            raw = match.group(1) or match.group(3)
            day = int(raw) if raw else EN_ORDINALS.get(match.group(2) or "")
            if day:
                return _next_month_day(base, day)
    else:
        match = _FR_DAY_OF_MONTH.search(text)
        if match:
            day = _word_or_int(match.group(1), FR_NUMBERS)
            if day:
                return _next_month_day(base, day)

    match = locale.weekday.search(text)
    if match:
        idx = locale.weekdays[match.group(1)]
        delta = (idx - base.weekday()) % 7
        if delta == 0:
            delta = 7
        return base + timedelta(days=delta)
    return None


def parse_when(text: str, locale: Optional[str], now: datetime) -> Optional[datetime]:
    """Find a future appointment instant in free text, or ``None``.

    ``now`` should be timezone-aware; the result carries the same tzinfo and
    has minute granularity.  Dates without a time default to midday and a bare
    time that has already passed today moves to tomorrow.
    """
    rules = _LOCALES.get((locale or "").lower())
    if rules is None or not text:
        return None
    cleaned = normalise_text(text)
    base = now.date()

    found_date = _parse_date(cleaned, rules, base)
    found_time = _parse_time_en(cleaned) if rules is _LOCALES["en"] else _parse_time_fr(cleaned)

    if found_date is None and found_time is None:
        return None
    hour, minute = found_time or (DEFAULT_HOUR, 0)
    when = datetime(
        (found_date or base).year,
        (found_date or base).month,
        (found_date or base).day,
        hour,
        minute,
        tzinfo=now.tzinfo,
    )
    if found_date is None and when <= now:
        when += timedelta(days=1)
    return when


NAME_PATTERNS = {
    "en": re.compile(r"\b(?:my name is|i am|i'm)\s+([^\W\d_][\w'-]*)", re.IGNORECASE),
    "fr": re.compile(r"\b(?:je m'appelle|je suis)\s+([^\W\d_][\w'-]*)", re.IGNORECASE),
    "he": re.compile(r"(?:קוראים לי|שמי)\s+([^\W\d_][\w'-]*)"),
}


def extract_name(text: str, language_hint: Optional[str]) -> Optional[str]:
    """Self-introduction match ("my name is X"); one word, as spoken."""
    pattern = NAME_PATTERNS.get((language_hint or "").lower())
    if pattern is None or not text:
        return None
    match = pattern.search(text.replace("’", "'"))
    if not match:
        return None
    return match.group(1).strip("'-") or None


FR_DAY_NAMES = ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"]
FR_MONTH_NAMES = [
    "", "janvier", "février", "mars", "avril", "mai", "juin", "juillet", "août",
    "septembre", "octobre", "novembre", "décembre",
]


def hhmm_to_12h(hour: int, minute: int) -> str:
    """Convert 24-hour values into a human friendly 12-hour form."""
    suffix = "am" if hour < 12 else "pm"
    display = hour % 12 or 12
    if minute:
        return f"{display}:{minute:02d}{suffix}"
    return f"{display}{suffix}"


def speak_datetime(when: datetime, locale: Optional[str]) -> str:
    """Render an instant the way a receptionist would say it."""
    if (locale or "").lower() == "fr":
        day = "1er" if when.day == 1 else str(when.day)
        clock = f"{when.hour}h{when.minute:02d}" if when.minute else f"{when.hour}h"
        return f"{FR_DAY_NAMES[when.weekday()]} {day} {FR_MONTH_NAMES[when.month]} à {clock}"
    return (
        f"{calendar.day_name[when.weekday()]}, {calendar.month_name[when.month]} "
        f"{_ordinal(when.day)} at {hhmm_to_12h(when.hour, when.minute)}"
    )


__all__ = [
    "extract_name",
    "hhmm_to_12h",
    "normalise_text",
    "parse_when",
    "speak_datetime",
]
