from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool
from twilio.request_validator import RequestValidator

from dentist_ivr import twiml
from dentist_ivr.calendar import BookingCommitter
from dentist_ivr.config import get_settings
from dentist_ivr.debug import router as debug_router
from dentist_ivr.dialogue import DialogueController
from dentist_ivr.intent import IntentExtractor
from dentist_ivr.languages import DEFAULT_LANGUAGES, build_language_table
from dentist_ivr.logging_config import setup_logging
from dentist_ivr.recording import RecordingFetcher
from dentist_ivr.security import TwilioRequestValidationMiddleware
from dentist_ivr.tokens import MissingCredentialsError, build_voice_token
from dentist_ivr.transcription import build_default_chain

settings = get_settings()
setup_logging(settings.debug_log_json)

logger = logging.getLogger(__name__)

AUDIO_DIR = settings.audio_dir
AUDIO_TYPES = {".mp3": "audio/mpeg", ".wav": "audio/wav"}

app = FastAPI()
app.include_router(debug_router)

validator = RequestValidator(settings.twilio_auth_token) if settings.twilio_auth_token else None
app.add_middleware(
    TwilioRequestValidationMiddleware,
    validator=validator,
    enabled=settings.verify_twilio_signatures,
    protected_paths=("/voice",),
    public_base_url=settings.public_base_url,
)


@lru_cache(maxsize=1)
def get_controller() -> DialogueController:
    return DialogueController(
        languages=build_language_table(settings.clinic.languages),
        clinic_name=settings.clinic_name,
        fetcher=RecordingFetcher(settings.twilio_account_sid, settings.twilio_auth_token),
        chain=build_default_chain(settings),
        extractor=IntentExtractor(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timezone=settings.timezone,
            clinic_name=settings.clinic_name,
            assume_future_year=settings.assume_future_year,
        ),
        committer=BookingCommitter(
            oauth=settings.google,
            clinic_name=settings.clinic_name,
            timezone=settings.timezone,
            minutes=settings.appointment_minutes,
            calendar_id=settings.calendar_id,
        ),
        public_base_url=settings.public_base_url,
    )


def _twiml_response(content: str) -> Response:
    return Response(content=content, media_type="application/xml")


@app.get("/health")
async def health() -> JSONResponse:
    return JSONResponse({"ok": True})


@app.post("/voice")
async def voice_webhook(request: Request) -> Response:
    form = dict(await request.form())
    params = request.query_params
    try:
        controller = get_controller()
    except Exception:
        logger.exception("Unable to build dialogue controller")
        primary = DEFAULT_LANGUAGES[0]
        return _twiml_response(twiml.final_message(primary, primary.fatal))

    body = await run_in_threadpool(
        controller.handle,
        params.get("step"),
        params.get("lang"),
        form,
        str(request.base_url),
    )
    return _twiml_response(body)


@app.get("/audio/{filename}")
async def audio_asset(filename: str) -> Response:
    root = AUDIO_DIR.resolve()
    path = (root / filename).resolve()
    if path.parent != root or not path.is_file():
        return PlainTextResponse("Not found", status_code=404)
    media_type = AUDIO_TYPES.get(path.suffix.lower(), "application/octet-stream")
    return FileResponse(path, media_type=media_type)


@app.get("/token")
@app.get("/api/token")
async def voice_token() -> JSONResponse:
    try:
        token = build_voice_token(
            account_sid=settings.twilio_account_sid,
            api_key=settings.twilio_api_key,
            api_secret=settings.twilio_api_secret,
            twiml_app_sid=settings.twiml_app_sid,
        )
    except MissingCredentialsError as exc:
        logger.error("Token requested without Twilio credentials")
        return JSONResponse({"error": str(exc)}, status_code=500)
    return JSONResponse({"token": token})
