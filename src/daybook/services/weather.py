"""Weather lookup for the user greeting.

Learn: Not part of the journal's correctness story — a failed lookup
just means the greeting says "Weather data not available".
"""

from dataclasses import dataclass, field
from typing import Optional

import httpx
import structlog

from daybook.config import settings
from daybook.errors import ExternalServiceUnavailable
from daybook.services.app_config import ConfigSnapshot

logger = structlog.get_logger()

_AIR_QUALITY_FIELDS = [
    ("co", "Air Quality CO"),
    ("no2", "NO2"),
    ("o3", "O3"),
    ("so2", "SO2"),
    ("pm2_5", "PM2.5"),
    ("pm10", "PM10"),
]


@dataclass
class WeatherReport:
    temperature: Optional[float]
    description: Optional[str]
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    air_quality: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "WeatherReport":
        current = payload.get("current")
        if not isinstance(current, dict):
            raise ExternalServiceUnavailable(
                f"weather provider returned no current conditions: {payload.get('error')}"
            )
        descriptions = current.get("weather_descriptions") or []
        astro = current.get("astro") or {}
        air = current.get("air_quality") or {}
        return cls(
            temperature=current.get("temperature"),
            description=descriptions[0] if descriptions else None,
            sunrise=astro.get("sunrise"),
            sunset=astro.get("sunset"),
            air_quality={k: str(v) for k, v in air.items() if v is not None},
        )

    def lines(self) -> list[str]:
        out = [f"Temperature: {self.temperature}°C"]
        if self.description:
            out.append(f"Feels like: {self.description}")
        if self.sunrise:
            out.append(f"Sunrise: {self.sunrise}")
        if self.sunset:
            out.append(f"Sunset: {self.sunset}")
        for key, label in _AIR_QUALITY_FIELDS:
            if key in self.air_quality:
                out.append(f"{label}: {self.air_quality[key]}")
        return out


class WeatherClient:
    """Client for a weatherstack-style current-conditions endpoint."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, snapshot: ConfigSnapshot) -> "WeatherClient":
        """Build from settings, letting app_config rows override the URL."""
        return cls(
            snapshot.get("weather_api_url", settings.weather_api_url),
            settings.weather_api_key,
            timeout=settings.weather_timeout_seconds,
        )

    async def current(self, city: str) -> WeatherReport:
        params = {"access_key": self.api_key, "query": city}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(self.api_url, params=params)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceUnavailable(f"weather lookup failed: {e}") from e
        return WeatherReport.from_payload(payload)


async def build_greeting(username: str, client: WeatherClient, city: str) -> str:
    """Greeting text for the user, with the current weather when available."""
    try:
        report = await client.current(city)
    except ExternalServiceUnavailable as e:
        logger.warning("weather.unavailable", city=city, error=str(e))
        return f"Hi {username}\nWeather data not available"
    return "\n".join([f"Hi {username}", *report.lines()])
