"""Pass-through client for the OpenWeatherMap One Call API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

ONE_CALL_URL = "https://api.openweathermap.org/data/3.0/onecall"


class WeatherUnavailable(RuntimeError):
    """Raised when the upstream weather service cannot be reached or parsed."""


class WeatherClient:
    def __init__(
        self,
        api_key: Optional[str],
        lat: float,
        lon: float,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.lat = lat
        self.lon = lon
        self._timeout = timeout
        self._transport = transport

    async def fetch(self) -> Dict[str, Any]:
        params = {
            "lat": self.lat,
            "lon": self.lon,
            "appid": self.api_key or "",
            "units": "metric",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(ONE_CALL_URL, params=params)
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Weather API error: %s", exc)
            raise WeatherUnavailable("Failed to fetch weather data") from exc

        logger.info("Weather request served")
        return payload
