"""Caller-selectable languages and how each one is spoken and heard.

Every call picks exactly one :class:`LanguageChoice` at the ``lang`` step.  Its
key (the DTMF digit) is threaded through the remaining callback URLs, so the
table below is the only place a language is described.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

log = logging.getLogger(__name__)


class CaptureStrategy(str, Enum):
    NATIVE_SPEECH = "native-speech"
    RECORD_THEN_TRANSCRIBE = "record-then-transcribe"


@dataclass(frozen=True)
class LanguageChoice:
    key: str
    code: str
    name: str
    keywords: tuple[str, ...]
    menu_line: str
    prompt: str
    confirmation: str
    not_understood: str
    booking_failed: str
    fatal: str
    capture: CaptureStrategy
    speakable: bool = True
    voice: Optional[str] = None
    transcription_hint: Optional[str] = None
    date_locale: Optional[str] = None
    extraction_instruction: str = ""
    # cue file names under static/audio, used when ``speakable`` is False
    menu_cue: Optional[str] = None
    prompt_cue: Optional[str] = None
    confirmation_cue: Optional[str] = None
    not_understood_cue: Optional[str] = None
    booking_failed_cue: Optional[str] = None

    @property
    def native_speech(self) -> bool:
        return self.capture is CaptureStrategy.NATIVE_SPEECH


_EN_INSTRUCTION = (
    "You are a medical appointment assistant for {clinic}.\n"
    "Today is {today} and the clinic time zone is {timezone}.\n"
    "Extract the patient's *full name* and the *exact date and time* from the sentence.\n"
    "If no year is provided, assume it is {year}.\n"
    "Return strict JSON only, with the local clinic time and no offset:\n"
    '{{"date_iso":"YYYY-MM-DDTHH:MM:SS","name":"Patient name"}}.'
)

_FR_INSTRUCTION = (
    "Tu es un assistant de prise de rendez-vous médical pour {clinic}.\n"
    "Nous sommes le {today}, fuseau horaire du cabinet : {timezone}.\n"
    "Extrais le *nom complet* et la *date exacte* (avec l'heure) de la phrase donnée.\n"
    "Si aucune année n'est précisée, considère que nous sommes en {year}.\n"
    "Retourne un JSON strict, en heure locale du cabinet et sans décalage :\n"
    '{{"date_iso":"YYYY-MM-DDTHH:MM:SS","name":"Nom du patient"}}.'
)

_HE_INSTRUCTION = (
    "אתה עוזר קביעת תורים רפואיים עבור {clinic}. היום {today}, אזור הזמן {timezone}.\n"
    "מתוך המשפט של המטופל, הפק *שם מלא* ו-*תאריך מדויק* (כולל שעה אם קיימת).\n"
    "הנח שהשנה הנוכחית היא {year} אם לא צוין אחרת. החזר JSON תקין בלבד, בשעון המקומי וללא היסט:\n"
    '{{"date_iso":"YYYY-MM-DDTHH:MM:SS","name":"שם המטופל"}}.'
)


DEFAULT_LANGUAGES: tuple[LanguageChoice, ...] = (
    LanguageChoice(
        key="1",
        code="en-US",
        name="English",
        keywords=("english", "anglais", "inglit", "אנגלית"),
        menu_line="For service in English, press 1.",
        prompt=(
            "Welcome to {clinic}. Please say your name and the date and time "
            "you'd like for your appointment."
        ),
        confirmation="Thank you {name}. Your appointment has been scheduled for {when}. Goodbye!",
        not_understood="Sorry, I could not understand your message. Please try again later.",
        booking_failed="Sorry, there was an issue scheduling your appointment. Please call again later.",
        fatal="Sorry, something went wrong on our end.",
        capture=CaptureStrategy.NATIVE_SPEECH,
        voice="Polly.Joanna",
        transcription_hint="en",
        date_locale="en",
        extraction_instruction=_EN_INSTRUCTION,
    ),
    LanguageChoice(
        key="2",
        code="fr-FR",
        name="Français",
        keywords=("fran", "french"),
        menu_line="Pour le service en français, appuyez sur 2.",
        prompt=(
            "Bienvenue chez {clinic}. Veuillez indiquer votre nom ainsi que la date "
            "et l'heure souhaitées pour votre rendez-vous."
        ),
        confirmation=(
            "Merci {name}. Votre rendez-vous a bien été enregistré pour le {when}. À bientôt !"
        ),
        not_understood="Désolé, je n'ai pas compris votre message. Veuillez réessayer plus tard.",
        booking_failed=(
            "Désolé, un problème est survenu lors de l'enregistrement de votre rendez-vous. "
            "Veuillez rappeler plus tard."
        ),
        fatal="Désolé, une erreur est survenue de notre côté.",
        capture=CaptureStrategy.NATIVE_SPEECH,
        voice="Polly.Lea",
        transcription_hint="fr",
        date_locale="fr",
        extraction_instruction=_FR_INSTRUCTION,
    ),
    LanguageChoice(
        key="3",
        code="he-IL",
        name="עברית",
        keywords=("ivrit", "hebrew", "hébreu", "עברית"),
        menu_line="For Hebrew, press 3.",
        prompt="Please say your name and the date and time you'd like for your appointment.",
        confirmation="Appointment confirmed for {name}. Date and time {when}.",
        not_understood="Sorry, I could not understand your message. Please try again later.",
        booking_failed="Sorry, there was an issue scheduling your appointment. Please call again later.",
        fatal="Sorry, something went wrong on our end.",
        capture=CaptureStrategy.RECORD_THEN_TRANSCRIBE,
        speakable=False,
        voice="Polly.Joanna",
        transcription_hint="he",
        date_locale=None,
        extraction_instruction=_HE_INSTRUCTION,
        menu_cue="press-3-he.mp3",
        prompt_cue="welcome-he.mp3",
        confirmation_cue="confirm-he.mp3",
    ),
)

# Fields a clinic profile may override per language. Apology cues have no
# recorded default and stay spoken English until a profile names a file.
_OVERRIDABLE = {
    "menu_line",
    "prompt",
    "confirmation",
    "not_understood",
    "booking_failed",
    "fatal",
    "voice",
    "not_understood_cue",
    "booking_failed_cue",
}


class LanguageTable:
    """Ordered, immutable lookup of the languages offered on the menu."""

    def __init__(self, languages: Sequence[LanguageChoice]) -> None:
        if not languages:
            raise ValueError("At least one language must be configured")
        self._ordered = tuple(languages)
        self._by_key = {language.key: language for language in self._ordered}

    def __iter__(self):
        return iter(self._ordered)

    def __len__(self) -> int:
        return len(self._ordered)

    @property
    def primary(self) -> LanguageChoice:
        return self._ordered[0]

    def get(self, key: Optional[str]) -> LanguageChoice:
        """Return the language for ``key``; unknown or missing keys mean the primary."""
        cleaned = (key or "").strip()
        return self._by_key.get(cleaned, self.primary)

    def resolve(self, digits: Optional[str], speech: Optional[str]) -> LanguageChoice:
        """Pick a language from the caller's menu input.

        Exact digit match wins, then a case-insensitive substring match of the
        recognized speech against each language's keywords, then the primary.
        """
        pressed = (digits or "").strip()
        if pressed in self._by_key:
            return self._by_key[pressed]

        heard = (speech or "").strip().lower()
        if heard:
            for language in self._ordered:
                if any(keyword.lower() in heard for keyword in language.keywords):
                    return language
        return self.primary


def apply_overrides(
    languages: Iterable[LanguageChoice],
    overrides: Mapping[str, Mapping[str, str]],
) -> list[LanguageChoice]:
    result = []
    for language in languages:
        custom = overrides.get(language.key) or {}
        unknown = set(custom) - _OVERRIDABLE
        if unknown:
            log.warning(
                "Ignoring unknown language overrides",
                extra={"language": language.key, "fields": sorted(unknown)},
            )
        changes = {k: v for k, v in custom.items() if k in _OVERRIDABLE and v}
        result.append(replace(language, **changes) if changes else language)
    return result


def build_language_table(overrides: Optional[Mapping[str, Mapping[str, str]]] = None) -> LanguageTable:
    return LanguageTable(apply_overrides(DEFAULT_LANGUAGES, overrides or {}))


__all__ = [
    "CaptureStrategy",
    "LanguageChoice",
    "LanguageTable",
    "DEFAULT_LANGUAGES",
    "build_language_table",
]
