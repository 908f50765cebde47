"""
Shared fixtures: settings, a mocked OpenAI client and an in-process app client.

No test talks to OpenAI, ElevenLabs or Twilio.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.main import create_app

from .helpers import make_openai_client


@pytest.fixture
def settings():
    return Settings(openai_api_key="test-key-for-testing")


@pytest.fixture
def openai_client():
    return make_openai_client()


@pytest.fixture
async def client(settings, openai_client):
    """Create async test client."""
    app = create_app(settings, openai_client=openai_client)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
