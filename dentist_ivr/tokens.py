from __future__ import annotations

from typing import Optional

from twilio.jwt.access_token import AccessToken
from twilio.jwt.access_token.grants import VoiceGrant

DEFAULT_IDENTITY = "browser_tester"
TOKEN_TTL_SECONDS = 3600


class MissingCredentialsError(RuntimeError):
    pass


def build_voice_token(
    *,
    account_sid: Optional[str],
    api_key: Optional[str],
    api_secret: Optional[str],
    twiml_app_sid: Optional[str],
    identity: str = DEFAULT_IDENTITY,
    ttl: int = TOKEN_TTL_SECONDS,
) -> str:
    """Short-lived Access Token letting a browser client place calls to the TwiML app."""
    if not (account_sid and api_key and api_secret and twiml_app_sid):
        raise MissingCredentialsError("Missing Twilio credentials")
    token = AccessToken(account_sid, api_key, api_secret, identity=identity, ttl=ttl)
    token.add_grant(VoiceGrant(outgoing_application_sid=twiml_app_sid, incoming_allow=True))
    jwt = token.to_jwt()
    return jwt.decode() if isinstance(jwt, bytes) else jwt


__all__ = ["DEFAULT_IDENTITY", "MissingCredentialsError", "build_voice_token"]
