from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

import httpx

from .config import DEFAULT_GEODATA_CONFIG, GeodataConfig

logger = logging.getLogger(__name__)

ELEMENT_TYPES = ("node", "way", "relation")


class GeodataError(Exception):
    """An external geodata source could not answer a query."""


@dataclass(frozen=True)
class GeoFeature:
    """One OSM element. Ways and relations carry their centroid, if any."""

    tags: dict[str, str] = field(default_factory=dict)
    lat: float | None = None
    lon: float | None = None

    @property
    def has_position(self) -> bool:
        return self.lat is not None and self.lon is not None


def build_query(
    tag_filters: list[str],
    lat: float,
    lon: float,
    radius_m: float,
    timeout: int = 25,
) -> str:
    """Build an Overpass QL union of ``tag_filters`` around a point.

    Each filter is an Overpass tag selector such as ``["amenity"="school"]``
    and is applied to nodes, ways and relations.
    """
    around = f"(around:{radius_m:g},{lat},{lon})"
    lines = [f"[out:json][timeout:{timeout}];", "("]
    for tag_filter in tag_filters:
        for element_type in ELEMENT_TYPES:
            lines.append(f"  {element_type}{tag_filter}{around};")
    lines.append(");")
    lines.append("out center;")
    return "\n".join(lines)


def _parse_element(element: dict[str, Any]) -> GeoFeature:
    tags = element.get("tags") or {}
    if not isinstance(tags, dict):
        raise TypeError(f"element tags must be an object, got {type(tags).__name__}")
    tags = {str(key): str(value) for key, value in tags.items()}
    if element.get("type") == "node":
        lat, lon = element.get("lat"), element.get("lon")
    else:
        center = element.get("center") or {}
        if not isinstance(center, dict):
            raise TypeError(f"element center must be an object, got {type(center).__name__}")
        lat, lon = center.get("lat"), center.get("lon")
    if lat is None or lon is None:
        return GeoFeature(tags=tags)
    lat, lon = float(lat), float(lon)
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValueError(f"non-finite position ({lat}, {lon})")
    return GeoFeature(tags=tags, lat=lat, lon=lon)


def parse_elements(payload: Any) -> list[GeoFeature]:
    """Turn an Overpass JSON payload into features.

    Raises ``GeodataError`` when the payload does not have the documented
    shape (non-object body, ``elements`` not a list, unreadable positions).
    """
    if not isinstance(payload, dict):
        raise GeodataError("Overpass returned a non-object payload")
    elements = payload.get("elements") or []
    if not isinstance(elements, list):
        raise GeodataError("Overpass 'elements' is not a list")
    try:
        return [_parse_element(el) for el in elements if isinstance(el, dict)]
    except (TypeError, ValueError, AttributeError, OverflowError) as exc:
        raise GeodataError(f"Malformed Overpass element: {exc}") from exc


class OverpassClient:
    """Client for the OpenStreetMap Overpass API.

    Answers "features matching these tag filters within R meters of a
    point". Used both for amenity POIs and for land-use / road features.
    One attempt per query; any transport, status or decoding failure is
    raised as ``GeodataError``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        config: GeodataConfig = DEFAULT_GEODATA_CONFIG,
    ) -> None:
        self._client = client
        self.config = config

    async def _post(self, client: httpx.AsyncClient, query: str) -> dict[str, Any]:
        response = await client.post(
            self.config.overpass_url,
            content=query,
            headers={"Content-Type": "text/plain"},
        )
        response.raise_for_status()
        return response.json()

    async def features_around(
        self,
        tag_filters: list[str],
        lat: float,
        lon: float,
        radius_m: float,
    ) -> list[GeoFeature]:
        query = build_query(tag_filters, lat, lon, radius_m, self.config.overpass_query_timeout)
        try:
            if self._client is not None:
                payload = await self._post(self._client, query)
            else:
                async with httpx.AsyncClient(timeout=self.config.overpass_timeout) as client:
                    payload = await self._post(client, query)
        except (httpx.HTTPError, ValueError) as exc:
            raise GeodataError(f"Overpass query failed: {exc}") from exc

        features = parse_elements(payload)
        logger.debug("Overpass returned %d elements for %s", len(features), tag_filters)
        return features
