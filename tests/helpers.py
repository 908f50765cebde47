"""
Test doubles for the OpenAI client and ElevenLabs upstream.
"""

import json
from types import SimpleNamespace
from typing import List
from unittest.mock import AsyncMock, MagicMock

import httpx

DEFAULT_REPLY = "Nous sommes ouverts du lundi au samedi, de 9h à 19h."
AUDIO_BYTES = b"ID3\x03\x00\x00\x00\x00\x00\x0f\xff\xfb\x90\x64" * 64


def make_completion(content):
    """Shape of an openai ChatCompletion as far as the generator reads it."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


def make_openai_client(content=DEFAULT_REPLY, side_effect=None):
    client = MagicMock()
    if side_effect is not None:
        client.chat.completions.create = AsyncMock(side_effect=side_effect)
    else:
        client.chat.completions.create = AsyncMock(return_value=make_completion(content))
    return client


class FakeElevenLabs:
    """Records requests and answers like the ElevenLabs streaming endpoint."""

    def __init__(self, status_code=200, content=AUDIO_BYTES, error=None):
        self.status_code = status_code
        self.content = content
        self.error = error
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        headers = {"content-type": "audio/mpeg"} if self.status_code == 200 else {}
        return httpx.Response(self.status_code, content=self.content, headers=headers)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def last_payload(self) -> dict:
        return json.loads(self.requests[-1].content)
