"""One-off Google OAuth consent; prints the token JSON for GOOGLE_TOKEN_JSON.

Usage: python scripts/oauth_init.py [path/to/credentials.json]
Without a path the client is read from GOOGLE_CREDENTIALS_JSON.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from google_auth_oauthlib.flow import InstalledAppFlow

SCOPES = ["https://www.googleapis.com/auth/calendar"]


def _flow(argv: list[str]) -> InstalledAppFlow:
    if len(argv) > 1:
        path = Path(argv[1])
        if not path.exists():
            raise SystemExit(f"credentials file not found: {path}")
        return InstalledAppFlow.from_client_secrets_file(str(path), SCOPES)
    raw = os.getenv("GOOGLE_CREDENTIALS_JSON")
    if not raw:
        raise SystemExit("Pass a credentials.json path or set GOOGLE_CREDENTIALS_JSON")
    return InstalledAppFlow.from_client_config(json.loads(raw), SCOPES)


def main(argv: list[str]) -> int:
    load_dotenv()
    flow = _flow(argv)
    creds = flow.run_local_server(port=0, access_type="offline", prompt="consent")
    if not creds.refresh_token:
        print("Google did not return a refresh token; revoke access and retry.", file=sys.stderr)
        return 1
    print(json.dumps({"refresh_token": creds.refresh_token, "token_uri": creds.token_uri}))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
