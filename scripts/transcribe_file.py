"""Run the transcription chain on a local recording.

Usage: python scripts/transcribe_file.py recording.wav [language_hint]
"""

from __future__ import annotations

import sys
from pathlib import Path

from dentist_ivr.config import get_settings
from dentist_ivr.logging_config import setup_logging
from dentist_ivr.transcription import build_default_chain


def main(argv: list[str]) -> int:
    if len(argv) < 2:
        print(__doc__.strip(), file=sys.stderr)
        return 2
    setup_logging(json_stdout=False)
    audio = Path(argv[1]).read_bytes()
    hint = argv[2] if len(argv) > 2 else "he"
    chain = build_default_chain(get_settings())
    text, attempts = chain.transcribe_with_attempts(audio, hint)
    for attempt in attempts:
        status = "ok" if attempt.succeeded else (attempt.error or "empty")
        print(f"{attempt.provider_id:<12} {attempt.latency_ms:>8.1f} ms  {status}")
    print(text or "(no transcript)")
    return 0 if text else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
