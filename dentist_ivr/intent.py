"""Turn a caller utterance into a patient name and an appointment start time."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse
from openai import OpenAI

from dentist_ivr import nlp
from dentist_ivr.languages import LanguageChoice

logger = logging.getLogger(__name__)

DEFAULT_NAME = "Patient"
DEFAULT_LEAD_TIME = timedelta(hours=24)


class IntentParseError(ValueError):
    """The model reply was not the ``{date_iso, name}`` object we asked for."""


@dataclass(frozen=True)
class AppointmentIntent:
    patient_name: str
    start_time: datetime
    # "model", "fallback" or "default"
    source: str = "model"


def correct_past_year(when: datetime, now: datetime) -> datetime:
    """Move ``when`` into the current year if the model left it in the past."""
    if when.year >= now.year:
        return when
    day = when.day
    if when.month == 2 and day == 29:
        try:
            return when.replace(year=now.year)
        except ValueError:
            day = 28
    return when.replace(year=now.year, day=day)


def parse_model_reply(content: Optional[str], tz: tzinfo) -> tuple[str, datetime]:
    """Strictly parse the model JSON; naive times are clinic-local."""
    if not content:
        raise IntentParseError("empty model reply")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise IntentParseError(f"reply is not JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise IntentParseError("reply is not a JSON object")

    date_iso = data.get("date_iso")
    if not isinstance(date_iso, str) or not date_iso.strip():
        raise IntentParseError("date_iso missing")
    try:
        when = isoparse(date_iso.strip())
    except (ValueError, OverflowError) as exc:
        raise IntentParseError(f"date_iso unparseable: {date_iso!r}") from exc
    when = when.replace(tzinfo=tz) if when.tzinfo is None else when.astimezone(tz)

    name = data.get("name")
    if name is not None and not isinstance(name, str):
        raise IntentParseError("name must be a string")
    return (name or "").strip() or DEFAULT_NAME, when


class IntentExtractor:
    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        timezone: str = "Asia/Jerusalem",
        clinic_name: str = "the clinic",
        assume_future_year: bool = True,
        client: Optional[OpenAI] = None,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.tz = ZoneInfo(timezone)
        self.timezone_name = timezone
        self.clinic_name = clinic_name
        self.assume_future_year = assume_future_year
        self._client = client
        self._now = now or (lambda: datetime.now(self.tz))

    def now(self) -> datetime:
        current = self._now()
        if current.tzinfo is None:
            return current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def extract(self, utterance: str, language: LanguageChoice) -> AppointmentIntent:
        now = self.now()
        intent = self._from_model(utterance, language, now) or self._fallback(utterance, language, now)
        start = intent.start_time.replace(second=0, microsecond=0)
        if self.assume_future_year:
            start = correct_past_year(start, now)
        logger.info(
            "Appointment intent extracted",
            extra={"source": intent.source, "start": start.isoformat(), "language": language.key},
        )
        return AppointmentIntent(intent.patient_name, start, intent.source)

    def _from_model(
        self, utterance: str, language: LanguageChoice, now: datetime
    ) -> Optional[AppointmentIntent]:
        if self._client is None:
            if not self.api_key:
                logger.info("No OpenAI key configured; using fallback parser")
                return None
            self._client = OpenAI(api_key=self.api_key)

        instruction = language.extraction_instruction.format(
            clinic=self.clinic_name,
            today=now.date().isoformat(),
            timezone=self.timezone_name,
            year=now.year,
        )
        try:
            completion = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": instruction},
                    {"role": "user", "content": utterance},
                ],
                temperature=0.1,
                response_format={"type": "json_object"},
            )
            name, when = parse_model_reply(completion.choices[0].message.content, self.tz)
        except IntentParseError as exc:
            logger.warning("Model reply rejected; using fallback parser", extra={"error": str(exc)})
            return None
        except Exception as exc:  # any call failure degrades to the fallback parser
            logger.warning(
                "Intent extraction call failed; using fallback parser",
                extra={"error": f"{type(exc).__name__}: {exc}"},
            )
            return None
        return AppointmentIntent(name, when, "model")

    def _fallback(self, utterance: str, language: LanguageChoice, now: datetime) -> AppointmentIntent:
        name = nlp.extract_name(utterance, language.transcription_hint) or DEFAULT_NAME
        when = nlp.parse_when(utterance, language.date_locale, now) if language.date_locale else None
        if when is None:
            return AppointmentIntent(name, now + DEFAULT_LEAD_TIME, "default")
        return AppointmentIntent(name, when, "fallback")


__all__ = [
    "AppointmentIntent",
    "DEFAULT_NAME",
    "IntentExtractor",
    "IntentParseError",
    "correct_past_year",
    "parse_model_reply",
]
