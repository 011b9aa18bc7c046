import asyncio
import dataclasses
import json
from xml.etree import ElementTree as ET

import main
from main import audio_asset, health, voice_token, voice_webhook


class DummyRequest:
    def __init__(self, form_data: dict[str, str], query: dict[str, str] | None = None):
        self._form_data = form_data
        self.query_params = query or {}
        self.base_url = "http://testserver/"

    async def form(self) -> dict[str, str]:
        return self._form_data


def test_health_endpoint():
    response = asyncio.run(health())
    assert response.status_code == 200
    assert json.loads(response.body) == {"ok": True}


def test_voice_route_renders_controller_twiml(monkeypatch, make_controller):
    controller, _ = make_controller()
    monkeypatch.setattr(main, "get_controller", lambda: controller)
    response = asyncio.run(voice_webhook(DummyRequest({"Digits": "2"}, {"step": "lang"})))
    assert response.status_code == 200
    assert response.media_type == "application/xml"
    gather = ET.fromstring(response.body.decode()).find("Gather")
    assert gather.attrib["language"] == "fr-FR"


def test_voice_route_survives_broken_configuration(monkeypatch):
    def broken():
        raise RuntimeError("unknown time zone")

    monkeypatch.setattr(main, "get_controller", broken)
    response = asyncio.run(voice_webhook(DummyRequest({}, {"step": "collect"})))
    assert response.status_code == 200
    root = ET.fromstring(response.body.decode())
    assert root.find("Say").text == "Sorry, something went wrong on our end."
    assert root.find("Hangup") is not None


def test_audio_asset_served_with_audio_type(monkeypatch, tmp_path):
    (tmp_path / "welcome-he.mp3").write_bytes(b"ID3")
    monkeypatch.setattr(main, "AUDIO_DIR", tmp_path)
    response = asyncio.run(audio_asset("welcome-he.mp3"))
    assert response.status_code == 200
    assert response.media_type == "audio/mpeg"


def test_audio_asset_missing_or_outside_directory_is_404(monkeypatch, tmp_path):
    (tmp_path / "secret.mp3").write_bytes(b"ID3")
    audio_dir = tmp_path / "audio"
    audio_dir.mkdir()
    monkeypatch.setattr(main, "AUDIO_DIR", audio_dir)
    assert asyncio.run(audio_asset("missing.mp3")).status_code == 404
    assert asyncio.run(audio_asset("../secret.mp3")).status_code == 404


def test_token_requires_all_credentials(monkeypatch):
    settings = dataclasses.replace(
        main.settings,
        twilio_account_sid="AC" + "0" * 32,
        twilio_api_key=None,
        twilio_api_secret="secret",
        twiml_app_sid="AP" + "0" * 32,
    )
    monkeypatch.setattr(main, "settings", settings)
    response = asyncio.run(voice_token())
    assert response.status_code == 500
    assert json.loads(response.body) == {"error": "Missing Twilio credentials"}


def test_token_is_issued_with_credentials(monkeypatch):
    settings = dataclasses.replace(
        main.settings,
        twilio_account_sid="AC" + "0" * 32,
        twilio_api_key="SK" + "0" * 32,
        twilio_api_secret="secret",
        twiml_app_sid="AP" + "0" * 32,
    )
    monkeypatch.setattr(main, "settings", settings)
    response = asyncio.run(voice_token())
    assert response.status_code == 200
    token = json.loads(response.body)["token"]
    assert token.count(".") == 2
