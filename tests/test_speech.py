"""Speech synthesizer tests against an httpx.MockTransport provider."""

import asyncio
import json

import httpx
import pytest

from daybook.errors import ExternalServiceUnavailable
from daybook.services.speech import build_speech_text

from conftest import FAKE_MP3, disabled_speech, speech_with


def test_speech_text_flattens_newlines():
    assert build_speech_text("Day\none", "Went\nhiking") == (
        "Title. Day one Content. Went hiking"
    )
    assert build_speech_text("Day one", None) == "Title. Day one Content."


def test_empty_key_disables_speech():
    assert disabled_speech().enabled is False


@pytest.mark.asyncio
async def test_synthesize_posts_text_and_returns_audio():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=FAKE_MP3)

    audio = await speech_with(handler).synthesize("Day one", "Went hiking")

    assert audio == FAKE_MP3
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert request.headers["Accept"] == "audio/mpeg"
    assert json.loads(request.content) == {
        "input": "Title. Day one Content. Went hiking",
        "voice_id": "lisa",
    }


@pytest.mark.asyncio
async def test_non_200_is_unavailable():
    speech = speech_with(lambda request: httpx.Response(401, text="bad key"))
    with pytest.raises(ExternalServiceUnavailable, match="401"):
        await speech.synthesize("Day one", None)


@pytest.mark.asyncio
async def test_empty_body_is_unavailable():
    speech = speech_with(lambda request: httpx.Response(200, content=b""))
    with pytest.raises(ExternalServiceUnavailable):
        await speech.synthesize("Day one", None)


@pytest.mark.asyncio
async def test_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExternalServiceUnavailable):
        await speech_with(handler).synthesize("Day one", None)


@pytest.mark.asyncio
async def test_slow_provider_times_out():
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, content=FAKE_MP3)

    with pytest.raises(ExternalServiceUnavailable, match="timed out"):
        await speech_with(handler).synthesize("Day one", None)
