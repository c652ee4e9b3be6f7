from __future__ import annotations

import math
from numbers import Real
from typing import Any

import numpy as np

EARTH_RADIUS_M = 6_371_000.0


class CoordinateValidationError(ValueError):
    """Raised when a latitude/longitude pair is not a usable coordinate."""


def distance_meters(lat_a: float, lon_a: float, lat_b: float, lon_b: float) -> float:
    """Haversine distance in meters between two points in decimal degrees."""
    d_lat = math.radians(lat_b - lat_a)
    d_lon = math.radians(lon_b - lon_a)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat_a)) * math.cos(math.radians(lat_b)) * math.sin(d_lon / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distances_from(lat: float, lon: float, lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Vectorised haversine from one point to many. NaN coordinates give NaN."""
    lat_r = np.radians(lat)
    lats_r = np.radians(np.asarray(lats, dtype=float))
    d_lat = lats_r - lat_r
    d_lon = np.radians(np.asarray(lons, dtype=float) - lon)
    a = np.sin(d_lat / 2) ** 2 + np.cos(lat_r) * np.cos(lats_r) * np.sin(d_lon / 2) ** 2
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def _as_degrees(value: Any, name: str) -> float:
    # bool is an int subclass but never a coordinate
    if isinstance(value, bool) or not isinstance(value, Real):
        raise CoordinateValidationError(f"{name} must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number):
        raise CoordinateValidationError(f"{name} must be finite, got {value!r}")
    return number


def validate_coordinate(lat: Any, lon: Any) -> tuple[float, float]:
    """Return ``(lat, lon)`` as floats or raise ``CoordinateValidationError``."""
    lat_f = _as_degrees(lat, "latitude")
    lon_f = _as_degrees(lon, "longitude")
    if not -90.0 <= lat_f <= 90.0:
        raise CoordinateValidationError(f"latitude {lat_f} is outside [-90, 90]")
    if not -180.0 <= lon_f <= 180.0:
        raise CoordinateValidationError(f"longitude {lon_f} is outside [-180, 180]")
    return lat_f, lon_f
