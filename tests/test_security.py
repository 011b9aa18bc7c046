from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient
from twilio.request_validator import RequestValidator

from dentist_ivr.security import TwilioRequestValidationMiddleware

TOKEN = "test-auth-token"
FORM = {"CallSid": "CA123", "Digits": "2"}


def _client(public_base_url=None) -> TestClient:
    app = FastAPI()

    @app.post("/voice")
    async def voice(request: Request):
        form = await request.form()
        return PlainTextResponse(form.get("Digits") or "")

    app.add_middleware(
        TwilioRequestValidationMiddleware,
        validator=RequestValidator(TOKEN),
        enabled=True,
        protected_paths=("/voice",),
        public_base_url=public_base_url,
    )
    return TestClient(app)


def test_missing_signature_is_rejected():
    response = _client().post("/voice?step=lang", data=FORM)
    assert response.status_code == 403


def test_valid_signature_passes_and_body_is_replayed():
    signature = RequestValidator(TOKEN).compute_signature("http://testserver/voice?step=lang", FORM)
    response = _client().post("/voice?step=lang", data=FORM, headers={"X-Twilio-Signature": signature})
    assert response.status_code == 200
    assert response.text == "2"


def test_public_base_url_is_what_gets_verified():
    public = "https://clinic.example"
    signature = RequestValidator(TOKEN).compute_signature(f"{public}/voice?step=lang", FORM)
    headers = {"X-Twilio-Signature": signature}
    assert _client(public).post("/voice?step=lang", data=FORM, headers=headers).status_code == 200
    assert _client().post("/voice?step=lang", data=FORM, headers=headers).status_code == 403
