import itertools
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from dentist_ivr.config import get_settings
from dentist_ivr.languages import build_language_table
from dentist_ivr.logging_config import LOG_FILE

router = APIRouter()


@router.get("/_debug/logs")
def debug_logs(n: Optional[int] = Query(50, ge=1, le=500)):
    if not LOG_FILE.exists():
        return PlainTextResponse("No logs yet.", status_code=200)
    lines = LOG_FILE.read_text(encoding="utf-8", errors="ignore").splitlines()
    tail = list(itertools.islice(lines, max(0, len(lines) - (n or 50)), None))
    return PlainTextResponse("\n".join(tail), status_code=200)


@router.get("/_debug/languages")
def debug_languages():
    table = build_language_table(get_settings().clinic.languages)
    return JSONResponse(
        [
            {
                "key": language.key,
                "code": language.code,
                "name": language.name,
                "capture": language.capture.value,
                "speakable": language.speakable,
            }
            for language in table
        ]
    )
