"""Fixtures for API tests: an app over a temporary SQLite store."""

import httpx
import pytest
from fastapi.testclient import TestClient

from kalimat.config.app_config import AppConfig, StoreConfig
from kalimat.core.auth import LocalTokenVerifier
from kalimat.quran.client import QuranApiClient
from kalimat.web.api import build_services, create_app

VERSE_1_1 = {
    "verse": {
        "words": [
            {"position": 1, "text_uthmani": "بِسْمِ", "audio_url": "wbw/001_001_001.mp3"},
            {"position": 2, "text_uthmani": "ٱللَّهِ", "audio_url": "wbw/001_001_002.mp3"},
        ]
    }
}

TAFSIR_16 = {
    "tafsirs": [
        {"verse_key": "1:1", "text": "البسملة"},
        {"verse_key": "1:2", "text": "الحمد"},
        {"verse_key": "2:1", "text": "الم"},
    ]
}


def quran_handler(request: httpx.Request) -> httpx.Response:
    """Fake Quran API: one verse and one tafsir, everything else 404."""
    if request.url.path.endswith("/verses/by_key/1:1"):
        return httpx.Response(200, json=VERSE_1_1)
    if request.url.path.endswith("/quran/tafsirs/16"):
        return httpx.Response(200, json=TAFSIR_16)
    return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def services(db_path):
    config = AppConfig(store=StoreConfig(kind="sqlite", db_path=str(db_path)))
    return build_services(
        config,
        verifier=LocalTokenVerifier(db_path),
        quran_api=QuranApiClient(config.quran_api, transport=httpx.MockTransport(quran_handler)),
    )


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(db_path):
    """Factory: issue a token for an email and return request headers."""
    verifier = LocalTokenVerifier(db_path)

    def make(email: str, user_id: str | None = None) -> dict[str, str]:
        token = verifier.issue(user_id or f"u-{email.split('@')[0]}", email)
        return {"Authorization": f"Bearer {token}"}

    return make


@pytest.fixture
def alice_headers(auth_headers, alice):
    return auth_headers(alice.email, alice.id)


@pytest.fixture
def bob_headers(auth_headers, bob):
    return auth_headers(bob.email, bob.id)
