import pytest
from fastapi.testclient import TestClient

from northpole.config import Settings
from northpole.main import create_app
from northpole.models.schemas import Tone
from northpole.services.santa_service import SantaReply


class FakeSantaGenerator:
    def __init__(self, reply=None, error=None):
        self.reply = reply or SantaReply(
            message="Ho ho ho! Hello from the North Pole!",
            tone=Tone.MERRY,
            suggestions=["Ask about the reindeer"],
        )
        self.error = error
        self.calls = []

    async def generate(self, message, context):
        self.calls.append((message, context))
        if self.error:
            raise self.error
        return self.reply


class FakeVoiceInput:
    def __init__(self, transcript="Hello Santa"):
        self.transcript = transcript
        self.received = []

    async def transcribe(self, audio):
        self.received.append(audio)
        return self.transcript


class FakeVoiceOutput:
    def __init__(self, audio=b"mp3-bytes"):
        self.audio = audio
        self.spoken = []

    async def synthesize(self, text):
        self.spoken.append(text)
        return self.audio


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        SECRET_KEY="test-secret",
        SANTA_STRATEGY="rules",
        OPENAI_API_KEY="",
        ELEVENLABS_API_KEY="",
        RATE_LIMIT_ENABLED=False,
        CHAT_CONTEXT_MESSAGES=10,
    )


@pytest.fixture
def generator():
    return FakeSantaGenerator()


@pytest.fixture
def voice_input():
    return FakeVoiceInput()


@pytest.fixture
def voice_output():
    return FakeVoiceOutput()


@pytest.fixture
def client(settings, generator, voice_input, voice_output):
    app = create_app(settings, generator=generator, voice_input=voice_input, voice_output=voice_output)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def signup(client):
    """Register an account and return Bearer headers for it (cookie jar left empty)."""

    def _signup(username, password="snowflake", **extra):
        resp = client.post(
            "/api/auth/register",
            json={"username": username, "password": password, **extra},
        )
        assert resp.status_code == 201, resp.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _signup
