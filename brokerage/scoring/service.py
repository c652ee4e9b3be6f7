"""
Location score service.

Turns a coordinate into four 0-100 sub-scores (amenity, environment,
safety, pollution) and a weighted overall score. External lookups are
single attempts; a failing lookup degrades to the documented default for
its sub-score instead of raising, so once coordinates validate a full
result is always produced.
"""
from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Any

from ..geo.distance import distance_meters, validate_coordinate
from ..geo.openaq import AirQualityClient
from ..geo.overpass import GeodataError, GeoFeature, OverpassClient
from . import formulas
from .config import (
    AMENITY_CATEGORIES,
    CCTV_FILTERS,
    DEFAULT_SCORING_CONFIG,
    GREEN_FILTERS,
    INDUSTRIAL_FILTERS,
    MAJOR_ROAD_FILTERS,
    NIGHTLIFE_FILTERS,
    POLICE_FILTERS,
    AmenityCategory,
    ScoringConfig,
)
from .models import (
    AmenityDetail,
    EnvironmentDetails,
    LocationScoreResult,
    PollutionDataSource,
    PollutionDetails,
    SafetyDetails,
    ScoreDetails,
)

logger = logging.getLogger(__name__)

_GREEN_TAGS = {("leisure", "park"), ("leisure", "garden"), ("landuse", "forest"), ("natural", "wood")}
_NIGHTLIFE_TAGS = {("amenity", "bar"), ("amenity", "nightclub"), ("amenity", "pub"), ("shop", "alcohol")}
_MAJOR_HIGHWAYS = ("primary", "secondary", "tertiary", "trunk")


def _has_any_tag(feature: GeoFeature, pairs: set[tuple[str, str]]) -> bool:
    return any(feature.tags.get(key) == value for key, value in pairs)


def _is_industrial(feature: GeoFeature) -> bool:
    return feature.tags.get("landuse") == "industrial" or feature.tags.get("industrial") == "yes"


def _is_major_road(feature: GeoFeature) -> bool:
    highway = feature.tags.get("highway", "")
    return any(kind in highway for kind in _MAJOR_HIGHWAYS)


def _nearest(lat: float, lon: float, features: list[GeoFeature]) -> float | None:
    best = math.inf
    for feature in features:
        if feature.has_position:
            best = min(best, distance_meters(lat, lon, feature.lat, feature.lon))
    return None if best == math.inf else best


class LocationScoreService:
    """Aggregates the four sub-scorers for a coordinate.

    ``calculate_all_scores`` is the only entry point callers should use.
    ``poi_client`` answers amenity and safety lookups, ``landuse_client``
    green / industrial / road lookups; both default to the public Overpass
    API.
    """

    def __init__(
        self,
        poi_client: OverpassClient | None = None,
        landuse_client: OverpassClient | None = None,
        air_quality_client: AirQualityClient | None = None,
        config: ScoringConfig = DEFAULT_SCORING_CONFIG,
    ) -> None:
        self.poi_client = poi_client or OverpassClient()
        self.landuse_client = landuse_client or self.poi_client
        self.air_quality_client = air_quality_client or AirQualityClient()
        self.config = config

    # ── Amenity ──────────────────────────────────────────────────────────

    async def _nearest_amenity(self, category: AmenityCategory, lat: float, lon: float) -> AmenityDetail:
        try:
            features = await self.poi_client.features_around(
                [category.tag_filter], lat, lon, self.config.search_radius_m,
            )
        except GeodataError:
            logger.warning("Amenity lookup for %s failed, counting as not found", category.key, exc_info=True)
            return AmenityDetail(found=False, distance=None, error=True)

        distance = _nearest(lat, lon, features)
        return AmenityDetail(found=distance is not None, distance=distance)

    async def _amenity(self, lat: float, lon: float) -> tuple[int, dict[str, AmenityDetail]]:
        details: dict[str, AmenityDetail] = {}
        for category in AMENITY_CATEGORIES:
            details[category.key] = await self._nearest_amenity(category, lat, lon)

        score = formulas.amenity_score(
            [d.distance if d.found else None for d in details.values()],
            len(AMENITY_CATEGORIES),
            self.config.search_radius_m,
        )
        return score, details

    # ── Environment ──────────────────────────────────────────────────────

    async def _measure_environment(self, lat: float, lon: float) -> tuple[int, EnvironmentDetails]:
        """Environment score without the failure default; raises ``GeodataError``."""
        features = await self.landuse_client.features_around(
            GREEN_FILTERS + INDUSTRIAL_FILTERS + MAJOR_ROAD_FILTERS,
            lat,
            lon,
            self.config.search_radius_m,
        )
        green = sum(1 for f in features if _has_any_tag(f, _GREEN_TAGS))
        industrial = sum(1 for f in features if _is_industrial(f))
        nearest_road = _nearest(lat, lon, [f for f in features if _is_major_road(f)])

        score = formulas.environment_score(green, industrial, nearest_road, self.config)
        return score, EnvironmentDetails(
            green_features=green,
            industrial_features=industrial,
            nearest_major_road=nearest_road,
        )

    async def _environment(self, lat: float, lon: float) -> tuple[int, EnvironmentDetails]:
        try:
            return await self._measure_environment(lat, lon)
        except GeodataError:
            logger.warning("Environment lookup failed, using default score", exc_info=True)
            return self.config.default_score, EnvironmentDetails()

    # ── Safety ───────────────────────────────────────────────────────────

    async def _safety(self, lat: float, lon: float) -> tuple[int, SafetyDetails]:
        try:
            features = await self.poi_client.features_around(
                POLICE_FILTERS + CCTV_FILTERS + NIGHTLIFE_FILTERS,
                lat,
                lon,
                self.config.search_radius_m,
            )
        except GeodataError:
            logger.warning("Safety lookup failed, using default score", exc_info=True)
            return self.config.default_score, SafetyDetails()

        police = [f for f in features if f.tags.get("amenity") == "police"]
        cctv = sum(1 for f in features if f.tags.get("surveillance") == "camera")
        nightlife = sum(1 for f in features if _has_any_tag(f, _NIGHTLIFE_TAGS))
        nearest_police = _nearest(lat, lon, police)

        score = formulas.safety_score(len(police), nearest_police, cctv, nightlife, self.config)
        return score, SafetyDetails(
            police_stations=len(police),
            nearest_police_distance=nearest_police,
            cctv_cameras=cctv,
            nightlife_spots=nightlife,
        )

    # ── Pollution ────────────────────────────────────────────────────────

    async def _pollution(self, lat: float, lon: float) -> tuple[int, PollutionDetails]:
        pm25: float | None = None
        try:
            pm25 = await self.air_quality_client.nearest_pm25(lat, lon, self.config.air_quality_radius_m)
        except GeodataError:
            logger.warning("Air-quality lookup failed, estimating from environment", exc_info=True)

        if pm25 is not None:
            return (
                formulas.pm25_score(pm25, self.config.pm25_ceiling),
                PollutionDetails(pm25_value=pm25, data_source=PollutionDataSource.measured),
            )

        try:
            environment, _ = await self._measure_environment(lat, lon)
        except GeodataError:
            logger.warning("Pollution estimate unavailable, using default score", exc_info=True)
            return self.config.default_score, PollutionDetails(data_source=PollutionDataSource.default)

        return (
            formulas.estimated_pollution_score(environment),
            PollutionDetails(data_source=PollutionDataSource.estimated),
        )

    # ── Aggregate ────────────────────────────────────────────────────────

    async def calculate_all_scores(self, lat: Any, lon: Any) -> LocationScoreResult:
        """Score a coordinate.

        Raises ``CoordinateValidationError`` before any external lookup when
        the coordinate is non-numeric or out of range. Otherwise never raises
        for geodata failures.
        """
        lat, lon = validate_coordinate(lat, lon)
        logger.info("Calculating location scores for (%s, %s)", lat, lon)

        (amenity, amenity_details), (environment, env_details), (safety, safety_details), (
            pollution,
            pollution_details,
        ) = await asyncio.gather(
            self._amenity(lat, lon),
            self._environment(lat, lon),
            self._safety(lat, lon),
            self._pollution(lat, lon),
        )

        return LocationScoreResult(
            amenity_score=amenity,
            environment_score=environment,
            safety_score=safety,
            pollution_score=pollution,
            overall_score=formulas.overall_score(amenity, environment, safety, pollution, self.config),
            score_details=ScoreDetails(
                amenity_details=amenity_details,
                environment_details=env_details,
                safety_details=safety_details,
                pollution_details=pollution_details,
            ),
            scores_calculated_at=datetime.now(timezone.utc),
        )
