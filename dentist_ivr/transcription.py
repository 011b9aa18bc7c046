"""Ordered speech-to-text providers for recorded caller audio.

The chain asks each configured provider in turn and stops at the first one
that returns non-empty text.  Provider failures never escape the chain: the
caller only ever sees a (possibly empty) string.
"""

from __future__ import annotations

import base64
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

import httpx
from openai import OpenAI

logger = logging.getLogger(__name__)


class TranscriptionError(RuntimeError):
    """A provider could not turn the audio into text."""


class ModelLoadingError(TranscriptionError):
    def __init__(self, wait_seconds: float) -> None:
        super().__init__(f"Model is loading, retry in {wait_seconds:.1f}s")
        self.wait_seconds = wait_seconds


@dataclass(slots=True)
class ProviderAttemptResult:
    provider_id: str
    succeeded: bool
    text: str
    latency_ms: float
    error: Optional[str] = None


class TranscriptionProvider(ABC):
    provider_id = "provider"
    # Longest we will block a webhook waiting for a cold model.
    max_model_wait = 20.0

    def __init__(self, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return True

    def transcribe(self, audio: bytes, language_hint: Optional[str]) -> str:
        try:
            return self._transcribe_once(audio, language_hint)
        except ModelLoadingError as exc:
            wait = min(exc.wait_seconds, self.max_model_wait)
            logger.info(
                "Transcription model loading; waiting once before retry",
                extra={"provider": self.provider_id, "wait_seconds": wait},
            )
            self._sleep(wait)
            return self._transcribe_once(audio, language_hint)

    @abstractmethod
    def _transcribe_once(self, audio: bytes, language_hint: Optional[str]) -> str:
        raise NotImplementedError


class _HttpProvider(TranscriptionProvider):
    def __init__(
        self,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(sleep=sleep)
        self._client = client
        self._timeout = timeout

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client


class HuggingFaceWhisperProvider(_HttpProvider):
    """Hosted open-source Whisper; works without a token on the free tier."""

    provider_id = "huggingface"
    base_url = "https://api-inference.huggingface.co/models"

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    @staticmethod
    def model_for(language_hint: Optional[str]) -> str:
        return "openai/whisper-small" if language_hint == "he" else "openai/whisper-base"

    def _transcribe_once(self, audio: bytes, language_hint: Optional[str]) -> str:
        headers = {"Content-Type": "audio/wav"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        url = f"{self.base_url}/{self.model_for(language_hint)}"
        response = self.client.post(url, content=audio, headers=headers)

        if response.status_code == 503:
            try:
                estimated = float(response.json().get("estimated_time") or 10)
            except (ValueError, AttributeError):
                estimated = 10.0
            raise ModelLoadingError(estimated)
        if response.status_code >= 400:
            raise TranscriptionError(
                f"Hugging Face STT error: {response.status_code} - {response.text[:200]}"
            )

        data = response.json()
        text = None
        if isinstance(data, dict):
            text = data.get("text")
        elif isinstance(data, list) and data and isinstance(data[0], dict):
            text = data[0].get("text") or data[0].get("transcription")
        return (text or "").strip()


GLADIA_LANGUAGES = {"he": "hebrew", "en": "english", "fr": "french"}


class GladiaProvider(_HttpProvider):
    provider_id = "gladia"
    base_url = "https://api.gladia.io/v2"
    poll_attempts = 30
    poll_interval = 1.0

    def __init__(self, api_key: Optional[str], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _transcribe_once(self, audio: bytes, language_hint: Optional[str]) -> str:
        headers = {"x-gladia-key": self.api_key or ""}

        upload = self.client.post(
            f"{self.base_url}/upload",
            json={"audio": base64.b64encode(audio).decode("ascii")},
            headers=headers,
        )
        if upload.status_code >= 400:
            raise TranscriptionError(f"Gladia upload error: {upload.status_code}")
        audio_url = upload.json().get("audio_url")
        if not audio_url:
            raise TranscriptionError("Gladia upload returned no audio_url")

        job = self.client.post(
            f"{self.base_url}/transcription",
            json={
                "audio_url": audio_url,
                "language": GLADIA_LANGUAGES.get(language_hint or "", "english"),
                "toggle_diarization": False,
            },
            headers=headers,
        )
        if job.status_code >= 400:
            raise TranscriptionError(f"Gladia transcription error: {job.status_code}")
        job_id = job.json().get("id")
        if not job_id:
            raise TranscriptionError("Gladia returned no transcription id")

        for attempt in range(self.poll_attempts):
            status = self.client.get(f"{self.base_url}/transcription/{job_id}", headers=headers).json()
            state = status.get("status")
            if state == "done":
                return _gladia_text(status.get("result") or {})
            if state == "error":
                raise TranscriptionError(f"Gladia transcription failed: {status.get('error') or 'unknown'}")
            if attempt < self.poll_attempts - 1:
                self._sleep(self.poll_interval)
        raise TranscriptionError(f"Gladia transcription {job_id} not done after {self.poll_attempts} polls")


def _gladia_text(result: dict) -> str:
    full = (result.get("transcription_full") or {}).get("text")
    if full:
        return full.strip()
    transcription = result.get("transcription")
    if isinstance(transcription, dict):
        return (transcription.get("full_transcript") or "").strip()
    if isinstance(transcription, list):
        return " ".join(str(part.get("text") or "") for part in transcription).strip()
    return ""


TRANSCRIPTION_PROMPTS = {
    "he": "שיחה לקביעת תור אצל רופא שיניים. שמות פרטיים ומשפחה בעברית, תאריכים ושעות בדיוק.",
    "fr": "Prise de rendez-vous chez le dentiste. Noms des patients, dates et heures.",
    "en": "Medical appointment booking conversation. Patient names, dates and times.",
}


class OpenAITranscriptionProvider(TranscriptionProvider):
    provider_id = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini-transcribe",
        *,
        client: Optional[OpenAI] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(sleep=sleep)
        self.api_key = api_key
        self.model = model
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.api_key or self._client)

    def _transcribe_once(self, audio: bytes, language_hint: Optional[str]) -> str:
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key)
        kwargs: dict[str, Any] = {
            "file": ("recording.wav", audio),
            "model": self.model,
            "response_format": "json",
            "prompt": TRANSCRIPTION_PROMPTS.get(language_hint or "", TRANSCRIPTION_PROMPTS["en"]),
        }
        if language_hint:
            kwargs["language"] = language_hint
        result = self._client.audio.transcriptions.create(**kwargs)
        return (getattr(result, "text", "") or "").strip()


class TranscriptionChain:
    def __init__(self, providers: Sequence[TranscriptionProvider]) -> None:
        self.providers = [provider for provider in providers if provider.enabled]

    def transcribe(self, audio: bytes, language_hint: Optional[str]) -> str:
        """First non-empty transcript from the ordered providers, else ``""``."""
        text, _ = self.transcribe_with_attempts(audio, language_hint)
        return text

    def transcribe_with_attempts(
        self, audio: bytes, language_hint: Optional[str]
    ) -> tuple[str, list[ProviderAttemptResult]]:
        attempts: list[ProviderAttemptResult] = []
        for provider in self.providers:
            started = time.perf_counter()
            text = ""
            error = None
            try:
                text = provider.transcribe(audio, language_hint) or ""
            except Exception as exc:  # any provider failure falls through to the next
                error = f"{type(exc).__name__}: {exc}"
            latency_ms = (time.perf_counter() - started) * 1000
            attempt = ProviderAttemptResult(
                provider_id=provider.provider_id,
                succeeded=bool(text.strip()),
                text=text.strip(),
                latency_ms=round(latency_ms, 1),
                error=error,
            )
            attempts.append(attempt)
            if error:
                logger.warning(
                    "Transcription provider failed",
                    extra={"provider": attempt.provider_id, "latency_ms": attempt.latency_ms, "error": error},
                )
            else:
                logger.info(
                    "Transcription provider finished",
                    extra={
                        "provider": attempt.provider_id,
                        "latency_ms": attempt.latency_ms,
                        "succeeded": attempt.succeeded,
                    },
                )
            if attempt.succeeded:
                return attempt.text, attempts
        return "", attempts


def build_default_chain(settings) -> TranscriptionChain:
    return TranscriptionChain(
        [
            HuggingFaceWhisperProvider(settings.huggingface_api_key),
            GladiaProvider(settings.gladia_api_key),
            OpenAITranscriptionProvider(settings.openai_api_key, settings.openai_transcribe_model),
        ]
    )


__all__ = [
    "GladiaProvider",
    "HuggingFaceWhisperProvider",
    "ModelLoadingError",
    "OpenAITranscriptionProvider",
    "ProviderAttemptResult",
    "TranscriptionChain",
    "TranscriptionError",
    "TranscriptionProvider",
    "build_default_chain",
]
