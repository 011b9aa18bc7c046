from __future__ import annotations

from typing import Callable, Iterable, Optional

from twilio.twiml.voice_response import VoiceResponse

from dentist_ivr.languages import LanguageChoice

FALLBACK_SPEECH_LANGUAGE = "en-US"
MENU_TIMEOUT = 10
SPEECH_TIMEOUT = 60
RECORD_MAX_LENGTH = 60
RECORD_SILENCE_TIMEOUT = 6

CueUrl = Callable[[str], str]


def _say(parent, text: str, language: LanguageChoice) -> None:
    """Say ``text`` in the language's locale, or in English when it has no TTS."""
    locale = language.code if language.speakable else FALLBACK_SPEECH_LANGUAGE
    kwargs = {"language": locale}
    if language.voice:
        kwargs["voice"] = language.voice
    parent.say(text, **kwargs)


def _cue_or_say(parent, text: str, cue: Optional[str], language: LanguageChoice, cue_url: CueUrl) -> None:
    if not language.speakable and cue:
        parent.play(cue_url(cue))
    else:
        _say(parent, text, language)


def language_menu(languages: Iterable[LanguageChoice], *, action: str, cue_url: CueUrl) -> str:
    response = VoiceResponse()
    gather = response.gather(
        input="speech dtmf",
        action=action,
        method="POST",
        num_digits=1,
        timeout=MENU_TIMEOUT,
        speech_timeout="auto",
        barge_in=True,
    )
    for language in languages:
        _cue_or_say(gather, language.menu_line, language.menu_cue, language, cue_url)
    # No input falls through to the language step, which picks the primary language.
    response.redirect(action, method="POST")
    return str(response)


def collect_prompt(language: LanguageChoice, prompt: str, *, action: str, cue_url: CueUrl) -> str:
    response = VoiceResponse()
    if language.native_speech:
        gather = response.gather(
            input="speech",
            action=action,
            method="POST",
            language=language.code,
            speech_timeout="auto",
            timeout=SPEECH_TIMEOUT,
            barge_in=True,
        )
        _say(gather, prompt, language)
    else:
        _cue_or_say(response, prompt, language.prompt_cue, language, cue_url)
        response.record(
            action=action,
            method="POST",
            max_length=RECORD_MAX_LENGTH,
            timeout=RECORD_SILENCE_TIMEOUT,
            trim="do-not-trim",
            play_beep=False,
            finish_on_key="#",
        )
    response.redirect(action, method="POST")
    return str(response)


def final_message(
    language: LanguageChoice,
    text: str,
    *,
    cue: Optional[str] = None,
    cue_url: Optional[CueUrl] = None,
) -> str:
    """Speak ``text`` (after the cue, for languages without TTS) and hang up."""
    response = VoiceResponse()
    if cue and cue_url and not language.speakable:
        response.play(cue_url(cue))
    _say(response, text, language)
    response.hangup()
    return str(response)


__all__ = ["collect_prompt", "final_message", "language_menu"]
