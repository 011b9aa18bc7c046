"""Webhook step machine for one phone call.

Twilio calls ``/voice`` once per step and the only state is what the previous
response put in the callback URL: ``step`` and, after the menu, ``lang``.
Each step is a plain function of that state plus the posted form fields.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Mapping, Optional
from urllib.parse import quote

from dentist_ivr import nlp, twiml
from dentist_ivr.calendar import BookingCommitter, BookingError
from dentist_ivr.intent import IntentExtractor
from dentist_ivr.languages import LanguageChoice, LanguageTable
from dentist_ivr.recording import RecordingFetcher, acquire_utterance
from dentist_ivr.transcription import TranscriptionChain

logger = logging.getLogger(__name__)

VOICE_PATH = "/voice"


class CallStep(str, Enum):
    START = "start"
    LANGUAGE_SELECT = "lang"
    COLLECT = "collect"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "CallStep":
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            return cls.START


def step_url(step: CallStep, language: Optional[LanguageChoice] = None) -> str:
    url = f"{VOICE_PATH}?step={step.value}"
    if language is not None:
        url += f"&lang={quote(language.key)}"
    return url


class DialogueController:
    def __init__(
        self,
        *,
        languages: LanguageTable,
        clinic_name: str,
        fetcher: RecordingFetcher,
        chain: TranscriptionChain,
        extractor: IntentExtractor,
        committer: BookingCommitter,
        public_base_url: Optional[str] = None,
    ) -> None:
        self.languages = languages
        self.clinic_name = clinic_name
        self.fetcher = fetcher
        self.chain = chain
        self.extractor = extractor
        self.committer = committer
        self.public_base_url = (public_base_url or "").rstrip("/") or None

    def handle(
        self,
        step_raw: Optional[str],
        lang_raw: Optional[str],
        form: Mapping[str, str],
        base_url: str = "",
    ) -> str:
        """Render the TwiML for one webhook; never raises."""
        step = CallStep.parse(step_raw)
        language = self.languages.get(lang_raw)
        base = self.public_base_url or (base_url or "").rstrip("/")
        logger.info(
            "Voice webhook",
            extra={"step": step.value, "lang": language.key, "call_sid": form.get("CallSid")},
        )
        try:
            if step is CallStep.LANGUAGE_SELECT:
                return self.select_language(form, base)
            if step is CallStep.COLLECT:
                return self.collect(language, form, base)
            return self.start(base)
        except Exception:
            logger.exception(
                "Voice webhook failed", extra={"step": step.value, "call_sid": form.get("CallSid")}
            )
            return twiml.final_message(language, language.fatal)

    def _cue_url(self, base: str):
        return lambda filename: f"{base}/audio/{quote(filename)}"

    def start(self, base: str) -> str:
        return twiml.language_menu(
            self.languages,
            action=step_url(CallStep.LANGUAGE_SELECT),
            cue_url=self._cue_url(base),
        )

    def select_language(self, form: Mapping[str, str], base: str) -> str:
        language = self.languages.resolve(form.get("Digits"), form.get("SpeechResult"))
        logger.info(
            "Language selected",
            extra={"lang": language.key, "code": language.code, "capture": language.capture.value},
        )
        return twiml.collect_prompt(
            language,
            language.prompt.format(clinic=self.clinic_name),
            action=step_url(CallStep.COLLECT, language),
            cue_url=self._cue_url(base),
        )

    def collect(self, language: LanguageChoice, form: Mapping[str, str], base: str) -> str:
        cue_url = self._cue_url(base)
        utterance = acquire_utterance(language, form, self.fetcher, self.chain)
        if not utterance:
            logger.info("No utterance captured", extra={"lang": language.key})
            return twiml.final_message(
                language, language.not_understood, cue=language.not_understood_cue, cue_url=cue_url
            )

        intent = self.extractor.extract(utterance, language)
        try:
            self.committer.commit(intent, form.get("From") or "")
        except BookingError as exc:
            logger.warning("Booking failed", extra={"lang": language.key, "error": str(exc)})
            return twiml.final_message(
                language, language.booking_failed, cue=language.booking_failed_cue, cue_url=cue_url
            )

        when = nlp.speak_datetime(intent.start_time, language.date_locale)
        message = language.confirmation.format(name=intent.patient_name, when=when)
        logger.info(
            "Appointment confirmed",
            extra={"lang": language.key, "start": intent.start_time.isoformat()},
        )
        return twiml.final_message(language, message, cue=language.confirmation_cue, cue_url=cue_url)


__all__ = ["CallStep", "DialogueController", "step_url"]
