"""Google Calendar booking for resolved appointments.

One webhook produces at most one ``events().insert`` call.  There is no
deduplication key, so a caller who phones twice gets two events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from dentist_ivr.config import GoogleOAuthConfig
from dentist_ivr.intent import AppointmentIntent

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]


class BookingError(RuntimeError):
    """The appointment could not be written to the calendar."""


@dataclass(frozen=True)
class BookingRecord:
    summary: str
    description: str
    start: datetime
    end: datetime
    calendar_id: str
    timezone: str

    def to_event(self) -> dict[str, Any]:
        return {
            "summary": self.summary,
            "description": self.description,
            "start": {"dateTime": self.start.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": self.end.isoformat(), "timeZone": self.timezone},
        }


def build_booking_record(
    intent: AppointmentIntent,
    phone: str,
    *,
    clinic_name: str,
    minutes: int,
    calendar_id: str,
    timezone: str,
) -> BookingRecord:
    return BookingRecord(
        summary=f"{clinic_name} – Appointment {intent.patient_name}",
        description=f"Automatic booking – patient: {phone or 'unknown number'}",
        start=intent.start_time,
        end=intent.start_time + timedelta(minutes=minutes),
        calendar_id=calendar_id,
        timezone=timezone,
    )


def google_calendar_service(oauth: GoogleOAuthConfig):
    """Calendar v3 client authorised with the stored offline refresh token."""
    if not oauth.complete:
        raise BookingError("Google OAuth client id, secret and refresh token are required")
    creds = Credentials(
        token=None,
        refresh_token=oauth.refresh_token,
        client_id=oauth.client_id,
        client_secret=oauth.client_secret,
        token_uri=oauth.token_uri,
        scopes=SCOPES,
    )
    creds.refresh(Request())
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


class BookingCommitter:
    def __init__(
        self,
        *,
        oauth: Optional[GoogleOAuthConfig] = None,
        clinic_name: str,
        timezone: str,
        minutes: int = 30,
        calendar_id: str = "primary",
        service_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        if service_factory is None:
            if oauth is None:
                raise ValueError("either oauth or service_factory is required")
            service_factory = lambda: google_calendar_service(oauth)  # noqa: E731
        self._service_factory = service_factory
        self.clinic_name = clinic_name
        self.timezone = timezone
        self.minutes = minutes
        self.calendar_id = calendar_id

    def commit(self, intent: AppointmentIntent, phone: str) -> BookingRecord:
        """Insert exactly one event; every failure is raised as ``BookingError``."""
        record = build_booking_record(
            intent,
            phone,
            clinic_name=self.clinic_name,
            minutes=self.minutes,
            calendar_id=self.calendar_id,
            timezone=self.timezone,
        )
        try:
            service = self._service_factory()
            created = (
                service.events()
                .insert(calendarId=record.calendar_id, body=record.to_event())
                .execute()
            )
        except BookingError:
            raise
        except HttpError as exc:
            raise BookingError(f"Calendar rejected the event: {exc}") from exc
        except GoogleAuthError as exc:
            raise BookingError(f"Calendar authentication failed: {exc}") from exc
        except Exception as exc:  # network and client errors all end the booking attempt
            raise BookingError(f"Calendar insert failed: {exc}") from exc

        logger.info(
            "Calendar event created",
            extra={
                "event_id": (created or {}).get("id"),
                "start": record.start.isoformat(),
                "calendar_id": record.calendar_id,
            },
        )
        return record


__all__ = ["BookingCommitter", "BookingError", "BookingRecord", "build_booking_record", "google_calendar_service"]
