from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from yaml import YAMLError, safe_load


load_dotenv()

ROOT = Path(__file__).resolve().parent.parent
CLINIC_PROFILE = os.getenv("CLINIC_PROFILE", "").strip().lower()
_profiled_config = ROOT / "config" / f"clinic_{CLINIC_PROFILE}.yml"
CLINIC_CONFIG_PATH = _profiled_config if CLINIC_PROFILE and _profiled_config.exists() else ROOT / "config" / "clinic.yml"
AUDIO_DIR = ROOT / "static" / "audio"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _env_json(name: str) -> Optional[dict[str, Any]]:
    raw = os.getenv(name)
    if not raw or not raw.strip():
        return None
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"{name} is not valid JSON: {exc}") from exc
    if not isinstance(loaded, dict):
        raise RuntimeError(f"{name} must hold a JSON object")
    return loaded


@dataclass(slots=True)
class ClinicProfile:
    clinic_name: str
    timezone: str
    appointment_minutes: int
    calendar_id: str
    # per-language overrides keyed by DTMF digit, e.g. {"2": {"prompt": "..."}}
    languages: dict[str, dict[str, str]] = field(default_factory=dict)


def _load_clinic_profile() -> ClinicProfile:
    defaults: dict[str, Any] = {
        "clinic_name": "Doctor B's clinic",
        "timezone": "Asia/Jerusalem",
        "appointment_minutes": 30,
        "calendar_id": "primary",
        "languages": {},
    }

    if CLINIC_CONFIG_PATH.exists():
        try:
            loaded = safe_load(CLINIC_CONFIG_PATH.read_text(encoding="utf-8")) or {}
        except OSError as exc:  # pragma: no cover - configuration read errors are rare
            raise RuntimeError(f"Unable to read clinic configuration: {exc}") from exc
        except YAMLError as exc:
            raise RuntimeError(f"Invalid YAML in {CLINIC_CONFIG_PATH}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise RuntimeError(
                f"Invalid YAML in {CLINIC_CONFIG_PATH}: top-level document must be a mapping"
            )
        defaults.update({k: v for k, v in loaded.items() if v is not None})

    languages = {
        str(key): {str(k): str(v) for k, v in (overrides or {}).items()}
        for key, overrides in (defaults.get("languages") or {}).items()
    }

    return ClinicProfile(
        clinic_name=str(defaults.get("clinic_name") or "Doctor B's clinic"),
        timezone=str(defaults.get("timezone") or "Asia/Jerusalem"),
        appointment_minutes=int(defaults.get("appointment_minutes") or 30),
        calendar_id=str(defaults.get("calendar_id") or "primary"),
        languages=languages,
    )


@dataclass(slots=True)
class GoogleOAuthConfig:
    client_id: Optional[str]
    client_secret: Optional[str]
    refresh_token: Optional[str]
    token_uri: str = "https://oauth2.googleapis.com/token"

    @property
    def complete(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)


def _load_google_oauth() -> GoogleOAuthConfig:
    """Read OAuth client + refresh token from discrete vars or the JSON blobs."""
    client_id = os.getenv("GOOGLE_CLIENT_ID")
    client_secret = os.getenv("GOOGLE_CLIENT_SECRET")
    refresh_token = os.getenv("GOOGLE_REFRESH_TOKEN")
    token_uri = "https://oauth2.googleapis.com/token"

    credentials = _env_json("GOOGLE_CREDENTIALS_JSON")
    if credentials:
        client = credentials.get("installed") or credentials.get("web") or credentials
        client_id = client_id or client.get("client_id")
        client_secret = client_secret or client.get("client_secret")
        token_uri = client.get("token_uri") or token_uri

    token = _env_json("GOOGLE_TOKEN_JSON")
    if token:
        refresh_token = refresh_token or token.get("refresh_token")

    return GoogleOAuthConfig(
        client_id=client_id,
        client_secret=client_secret,
        refresh_token=refresh_token,
        token_uri=token_uri,
    )


@dataclass(slots=True)
class Settings:
    verify_twilio_signatures: bool
    debug_log_json: bool
    assume_future_year: bool
    twilio_account_sid: Optional[str]
    twilio_auth_token: Optional[str]
    twilio_api_key: Optional[str]
    twilio_api_secret: Optional[str]
    twiml_app_sid: Optional[str]
    openai_api_key: Optional[str]
    openai_model: str
    openai_transcribe_model: str
    huggingface_api_key: Optional[str]
    gladia_api_key: Optional[str]
    public_base_url: Optional[str]
    clinic_name: str
    timezone: str
    appointment_minutes: int
    calendar_id: str
    google: GoogleOAuthConfig
    clinic: ClinicProfile
    audio_dir: Path = AUDIO_DIR

    def __post_init__(self) -> None:
        if self.verify_twilio_signatures and not self.twilio_auth_token:
            raise RuntimeError(
                "VERIFY_TWILIO_SIGNATURES is enabled but TWILIO_AUTH_TOKEN is missing."
            )
        if self.appointment_minutes <= 0:
            raise RuntimeError("DEFAULT_APPT_MINUTES must be a positive number of minutes.")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    clinic = _load_clinic_profile()
    base_url = (os.getenv("PUBLIC_BASE_URL") or "").strip().rstrip("/")

    return Settings(
        verify_twilio_signatures=_env_bool("VERIFY_TWILIO_SIGNATURES", False),
        debug_log_json=_env_bool("DEBUG_LOG_JSON", False),
        assume_future_year=_env_bool("ASSUME_FUTURE_YEAR", True),
        twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
        twilio_api_key=os.getenv("TWILIO_API_KEY"),
        twilio_api_secret=os.getenv("TWILIO_API_SECRET"),
        twiml_app_sid=os.getenv("TWIML_APP_SID"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=(os.getenv("OPENAI_MODEL") or "gpt-4o-mini").strip(),
        openai_transcribe_model=(os.getenv("OPENAI_TRANSCRIBE_MODEL") or "gpt-4o-mini-transcribe").strip(),
        huggingface_api_key=os.getenv("HUGGINGFACE_API_KEY"),
        gladia_api_key=os.getenv("GLADIA_API_KEY"),
        public_base_url=base_url or None,
        clinic_name=(os.getenv("CLINIC_NAME") or clinic.clinic_name).strip(),
        timezone=(os.getenv("CLINIC_TIMEZONE") or clinic.timezone).strip(),
        appointment_minutes=_env_int("DEFAULT_APPT_MINUTES", clinic.appointment_minutes),
        calendar_id=(os.getenv("DEFAULT_CALENDAR_ID") or clinic.calendar_id).strip(),
        google=_load_google_oauth(),
        clinic=clinic,
    )


__all__ = ["ClinicProfile", "GoogleOAuthConfig", "Settings", "get_settings"]
