"""
Current weather lookup.

OpenWeatherMap is the primary provider. When it times out, errors, or sends
a payload without the fields the widget reads, Open-Meteo is used instead and
its answer is reshaped into the OpenWeatherMap layout, so callers only ever
see one shape.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from errors import InvalidOperation, UpstreamServiceError
from upstream import json_object

logger = logging.getLogger(__name__)

# WMO weather interpretation codes used by Open-Meteo.
WMO_DESCRIPTIONS = {
    0: "clear sky",
    1: "mainly clear",
    2: "partly cloudy",
    3: "overcast",
    45: "fog",
    48: "depositing rime fog",
    51: "light drizzle",
    53: "moderate drizzle",
    55: "dense drizzle",
    61: "slight rain",
    63: "moderate rain",
    65: "heavy rain",
    71: "slight snow",
    73: "moderate snow",
    75: "heavy snow",
    80: "rain showers",
    81: "heavy rain showers",
    82: "violent rain showers",
    95: "thunderstorm",
    96: "thunderstorm with hail",
    99: "thunderstorm with heavy hail",
}


class WeatherService:
    OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5/weather"
    GEOCODE_URL = "https://geocoding-api.open-meteo.com/v1/search"
    FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

    def __init__(self, api_key: Optional[str] = None, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={"User-Agent": "WorkdayDashboard/1.0"},
        )

    async def current(self, city: str) -> Dict[str, Any]:
        """Current conditions for ``city`` in the OpenWeatherMap shape."""
        city = (city or "").strip()
        if not city:
            raise InvalidOperation("City is required", field="city")

        async with self._client() as client:
            if self.api_key:
                try:
                    return await self._primary(client, city)
                except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
                    logger.warning(f"OpenWeatherMap failed for {city!r}, using fallback: {e}")
            try:
                return await self._fallback(client, city)
            except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
                logger.error(f"Fallback weather provider failed for {city!r}: {e}", exc_info=True)
                raise UpstreamServiceError("weather", "Weather service is temporarily unavailable")

    async def _primary(self, client: httpx.AsyncClient, city: str) -> Dict[str, Any]:
        response = await client.get(
            self.OPENWEATHER_URL,
            params={"q": city, "appid": self.api_key, "units": "metric"},
        )
        response.raise_for_status()
        data = json_object(response)
        if "main" not in data or not data.get("weather"):
            raise ValueError("malformed OpenWeatherMap payload")
        data["source"] = "openweathermap"
        return data

    async def _fallback(self, client: httpx.AsyncClient, city: str) -> Dict[str, Any]:
        geo = await client.get(self.GEOCODE_URL, params={"name": city, "count": 1})
        geo.raise_for_status()
        results = json_object(geo).get("results") or []
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            raise ValueError(f"unknown city {city!r}")
        place = results[0]

        forecast = await client.get(
            self.FORECAST_URL,
            params={
                "latitude": place["latitude"],
                "longitude": place["longitude"],
                "current_weather": "true",
                "hourly": "relativehumidity_2m",
                "forecast_days": 1,
            },
        )
        forecast.raise_for_status()
        payload = json_object(forecast)
        current = payload["current_weather"]
        if not isinstance(current, dict):
            raise ValueError("malformed Open-Meteo payload")
        hourly = payload.get("hourly")
        humidity = hourly.get("relativehumidity_2m") if isinstance(hourly, dict) else None
        humidity = humidity[0] if isinstance(humidity, list) and humidity else None
        code = int(current.get("weathercode", -1))

        return {
            "name": place.get("name", city),
            "sys": {"country": place.get("country_code", "")},
            "coord": {"lat": place["latitude"], "lon": place["longitude"]},
            "main": {"temp": current["temperature"], "humidity": humidity},
            "weather": [{"main": WMO_DESCRIPTIONS.get(code, "unknown").title(),
                         "description": WMO_DESCRIPTIONS.get(code, "unknown")}],
            # Open-Meteo reports km/h, OpenWeatherMap metric reports m/s.
            "wind": {"speed": round(current.get("windspeed", 0) / 3.6, 2)},
            "source": "open-meteo",
        }
