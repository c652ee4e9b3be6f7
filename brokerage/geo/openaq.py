from __future__ import annotations

import logging
import math
from typing import Any

import httpx

from .config import DEFAULT_GEODATA_CONFIG, GeodataConfig
from .overpass import GeodataError

logger = logging.getLogger(__name__)


def first_pm25(payload: Any) -> float | None:
    """Return the first numeric PM2.5 measurement in an OpenAQ ``latest`` payload.

    Raises ``GeodataError`` when the payload is not shaped like one.
    """
    if not isinstance(payload, dict):
        raise GeodataError("OpenAQ returned a non-object payload")
    results = payload.get("results") or []
    if not isinstance(results, list):
        raise GeodataError("OpenAQ 'results' is not a list")
    for location in results:
        if not isinstance(location, dict):
            continue
        measurements = location.get("measurements") or []
        if not isinstance(measurements, list):
            raise GeodataError("OpenAQ 'measurements' is not a list")
        for measurement in measurements:
            if not isinstance(measurement, dict) or measurement.get("parameter") != "pm25":
                continue
            value = measurement.get("value")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            try:
                value = float(value)
            except OverflowError:
                continue
            if math.isfinite(value):
                return value
    return None


class AirQualityClient:
    """Client for the OpenAQ ``latest`` endpoint (nearest PM2.5 reading)."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: GeodataConfig = DEFAULT_GEODATA_CONFIG,
    ) -> None:
        self._client = client
        self.config = config

    async def _get(self, client: httpx.AsyncClient, params: dict[str, Any]) -> Any:
        headers = {"X-API-Key": self.config.openaq_api_key} if self.config.openaq_api_key else {}
        response = await client.get(self.config.openaq_url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()

    async def nearest_pm25(self, lat: float, lon: float, radius_m: float) -> float | None:
        """PM2.5 reading within ``radius_m`` of the point, or ``None`` if no station reports one."""
        params = {
            "coordinates": f"{lat},{lon}",
            "radius": int(radius_m),
            "parameter": "pm25",
            "limit": self.config.openaq_result_limit,
        }
        try:
            if self._client is not None:
                payload = await self._get(self._client, params)
            else:
                async with httpx.AsyncClient(timeout=self.config.openaq_timeout) as client:
                    payload = await self._get(client, params)
        except (httpx.HTTPError, ValueError) as exc:
            raise GeodataError(f"OpenAQ query failed: {exc}") from exc

        value = first_pm25(payload)
        logger.debug("OpenAQ PM2.5 near (%s, %s): %s", lat, lon, value)
        return value
