"""Speech synthesis client — turns an entry's text into MP3 audio.

Learn: The provider is an external HTTP API, so every call is bounded
twice: httpx enforces the connect timeout, and asyncio.wait_for caps
the whole exchange (connect + upload + streaming the audio back).
A slow provider can never hold a request handler longer than
speech_total_timeout_seconds.

All failures surface as ExternalServiceUnavailable. Callers treat that
as a soft failure: the entry is kept, just without audio.
"""

import asyncio
from typing import Optional

import httpx
import structlog

from daybook.config import Settings, settings
from daybook.errors import ExternalServiceUnavailable

logger = structlog.get_logger()

# Anything smaller is almost certainly an error payload, not speech
MIN_EXPECTED_AUDIO_BYTES = 10_000


def build_speech_text(title: str, content: Optional[str]) -> str:
    """Flatten an entry into a single line for the provider."""
    title = title.replace("\n", " ")
    content = (content or "").replace("\n", " ")
    return f"Title. {title} Content. {content}".strip()


class SpeechSynthesizer:
    """Async client for a text-to-speech streaming endpoint."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        voice_id: str = "lisa",
        connect_timeout: float = 10.0,
        total_timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.voice_id = voice_id
        self.connect_timeout = connect_timeout
        self.total_timeout = total_timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, cfg: Settings) -> "SpeechSynthesizer":
        return cls(
            cfg.speech_api_url,
            cfg.speech_api_key,
            voice_id=cfg.speech_voice_id,
            connect_timeout=cfg.speech_connect_timeout_seconds,
            total_timeout=cfg.speech_total_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def synthesize(self, title: str, content: Optional[str]) -> bytes:
        """Return MP3 bytes for the entry text.

        Raises ExternalServiceUnavailable on timeout, transport error,
        non-200 status or an empty body.
        """
        body = {"input": build_speech_text(title, content), "voice_id": self.voice_id}
        headers = {
            "Accept": "audio/mpeg",
            "Authorization": f"Bearer {self.api_key}",
        }
        timeout = httpx.Timeout(self.total_timeout, connect=self.connect_timeout)

        try:
            async with httpx.AsyncClient(
                timeout=timeout, transport=self._transport
            ) as client:
                response = await asyncio.wait_for(
                    client.post(self.api_url, json=body, headers=headers),
                    timeout=self.total_timeout,
                )
        except asyncio.TimeoutError as e:
            raise ExternalServiceUnavailable(
                f"speech synthesis timed out after {self.total_timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceUnavailable(f"speech synthesis failed: {e}") from e

        if response.status_code != 200:
            raise ExternalServiceUnavailable(
                f"speech provider returned {response.status_code}: {response.text[:200]}"
            )

        audio = response.content
        if not audio:
            raise ExternalServiceUnavailable("speech provider returned no audio")
        if len(audio) < MIN_EXPECTED_AUDIO_BYTES:
            logger.warning("speech.audio_small", size=len(audio))
        else:
            logger.info("speech.audio_received", size=len(audio))
        return audio


# Process-wide instance; tests swap it out via the get_speech dependency
speech_synthesizer = SpeechSynthesizer.from_settings(settings)


def get_speech() -> SpeechSynthesizer:
    """FastAPI dependency — returns the configured speech client."""
    return speech_synthesizer
