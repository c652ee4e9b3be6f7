"""Pure sub-score formulas. Every function maps raw geodata measurements to 0-100."""

from __future__ import annotations

import math
from collections.abc import Iterable

from .config import DEFAULT_SCORING_CONFIG, ScoringConfig


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (``round`` would give banker's rounding)."""
    return int(math.floor(value + 0.5))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def proximity_ratio(distance_m: float | None, radius_m: float) -> float:
    """1 at the point itself, 0 at or beyond ``radius_m``; 0 when nothing was found."""
    if distance_m is None:
        return 0.0
    return max(0.0, 1.0 - min(distance_m, radius_m) / radius_m)


def amenity_score(
    nearest_distances: Iterable[float | None],
    category_count: int,
    radius_m: float = DEFAULT_SCORING_CONFIG.search_radius_m,
) -> int:
    """Each category is worth ``100 / category_count``; missing ones add nothing."""
    weight = 100.0 / category_count
    total = sum(weight * proximity_ratio(d, radius_m) for d in nearest_distances)
    return round_half_up(total)


def environment_score(
    green_count: int,
    industrial_count: int,
    nearest_road_m: float | None,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> int:
    w = config.environment_weights
    green = min(1.0, green_count / config.green_saturation)
    road = 1.0 if nearest_road_m is None else min(1.0, nearest_road_m / config.search_radius_m)
    no_industry = 0.0 if industrial_count > 0 else 1.0
    return round_half_up(100 * (w["green"] * green + w["road"] * road + w["industry"] * no_industry))


def safety_score(
    police_count: int,
    nearest_police_m: float | None,
    cctv_count: int,
    nightlife_count: int,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> int:
    w = config.safety_weights
    raw = (
        w["police_proximity"] * proximity_ratio(nearest_police_m, config.search_radius_m)
        + w["police_count"] * min(1.0, police_count / config.police_saturation)
        + w["cctv"] * min(1.0, cctv_count / config.cctv_saturation)
        + w["road"] * config.safety_road_default
        - w["nightlife_penalty"] * min(1.0, nightlife_count / config.nightlife_saturation)
    )
    return round_half_up(100 * clamp01(raw))


def pm25_score(pm25: float, ceiling: float = DEFAULT_SCORING_CONFIG.pm25_ceiling) -> int:
    capped = max(0.0, min(ceiling, pm25))
    return round_half_up(100 * (1 - capped / ceiling))


def estimated_pollution_score(environment: int) -> int:
    return max(0, 100 - environment)


def overall_score(
    amenity: int,
    environment: int,
    safety: int,
    pollution: int,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> int:
    w = config.overall_weights
    return round_half_up(
        w["amenity"] * amenity
        + w["environment"] * environment
        + w["safety"] * safety
        + w["pollution"] * pollution
    )
