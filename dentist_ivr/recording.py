from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, Optional, Sequence

import httpx

from dentist_ivr.languages import LanguageChoice
from dentist_ivr.transcription import TranscriptionChain

logger = logging.getLogger(__name__)

# Twilio finalises the media shortly after the <Record> callback fires.
DOWNLOAD_DELAYS = (0.3, 0.5, 1.0, 2.0)


class RecordingUnavailableError(RuntimeError):
    def __init__(self, url: str, status: Optional[int]) -> None:
        super().__init__(f"Failed to download recording {url}: status {status}")
        self.url = url
        self.status = status


class RecordingFetcher:
    """Download caller recordings from Twilio with a short backoff."""

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        *,
        client: Optional[httpx.Client] = None,
        delays: Sequence[float] = DOWNLOAD_DELAYS,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 30.0,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.delays = tuple(delays)
        self._sleep = sleep
        self._client = client
        self._timeout = timeout

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            auth = (self.account_sid, self.auth_token) if self.account_sid and self.auth_token else None
            self._client = httpx.Client(auth=auth, follow_redirects=True, timeout=self._timeout)
        return self._client

    def fetch(self, recording_url: str) -> bytes:
        """Return the WAV bytes, retrying while the media is not yet ready."""
        url = f"{recording_url}.wav"
        status = None
        for attempt, delay in enumerate(self.delays, start=1):
            try:
                response = self.client.get(url)
                status = response.status_code
                if response.status_code < 400:
                    logger.info(
                        "Recording downloaded",
                        extra={"attempt": attempt, "status": status, "bytes": len(response.content)},
                    )
                    return response.content
            except httpx.TransportError as exc:
                logger.warning("Recording download error", extra={"attempt": attempt, "error": str(exc)})
            logger.info("Recording not ready", extra={"attempt": attempt, "status": status})
            if attempt < len(self.delays):
                self._sleep(delay)
        raise RecordingUnavailableError(url, status)


def acquire_utterance(
    language: LanguageChoice,
    form: Mapping[str, str],
    fetcher: RecordingFetcher,
    chain: TranscriptionChain,
) -> str:
    """The caller's words for the collect step, possibly empty."""
    if language.native_speech:
        return (form.get("SpeechResult") or "").strip()

    recording_url = (form.get("RecordingUrl") or "").strip()
    if not recording_url:
        logger.info("No recording supplied", extra={"language": language.key})
        return ""
    try:
        audio = fetcher.fetch(recording_url)
    except RecordingUnavailableError as exc:
        logger.warning("Recording unavailable", extra={"language": language.key, "status": exc.status})
        return ""
    return chain.transcribe(audio, language.transcription_hint)


__all__ = ["DOWNLOAD_DELAYS", "RecordingFetcher", "RecordingUnavailableError", "acquire_utterance"]
