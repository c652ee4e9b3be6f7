from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AmenityCategory:
    key: str
    label: str
    tag_filter: str


AMENITY_CATEGORIES: tuple[AmenityCategory, ...] = (
    AmenityCategory("hospital", "Hospital", '["amenity"="hospital"]'),
    AmenityCategory("school", "School", '["amenity"="school"]'),
    AmenityCategory("college", "College", '["amenity"="college"]'),
    AmenityCategory("mall", "Mall", '["shop"="mall"]'),
    AmenityCategory("pharmacy", "Pharmacy", '["amenity"="pharmacy"]'),
    AmenityCategory("police", "Police Station", '["amenity"="police"]'),
    AmenityCategory("bus_stop", "Bus Stop", '["highway"="bus_stop"]'),
)

GREEN_FILTERS = ['["leisure"="park"]', '["landuse"="forest"]', '["natural"="wood"]']
INDUSTRIAL_FILTERS = ['["landuse"="industrial"]', '["industrial"="yes"]']
MAJOR_ROAD_FILTERS = ['["highway"~"primary|secondary|tertiary|trunk"]']

POLICE_FILTERS = ['["amenity"="police"]']
CCTV_FILTERS = ['["surveillance"="camera"]']
NIGHTLIFE_FILTERS = [
    '["amenity"="bar"]',
    '["amenity"="nightclub"]',
    '["amenity"="pub"]',
    '["shop"="alcohol"]',
]


@dataclass(frozen=True)
class ScoringConfig:
    search_radius_m: float = 2000.0
    # Air-quality stations are sparser than POIs
    air_quality_radius_factor: float = 10.0
    air_quality_radius_cap_m: float = 50_000.0
    default_score: int = 50

    green_saturation: int = 8
    police_saturation: int = 3
    cctv_saturation: int = 5
    nightlife_saturation: int = 5
    pm25_ceiling: float = 250.0

    environment_weights: dict[str, float] = field(
        default_factory=lambda: {"green": 0.6, "road": 0.25, "industry": 0.15}
    )
    safety_weights: dict[str, float] = field(
        default_factory=lambda: {
            "police_proximity": 0.4,
            "police_count": 0.2,
            "cctv": 0.15,
            "road": 0.15,
            "nightlife_penalty": 0.1,
        }
    )
    safety_road_default: float = 0.5
    overall_weights: dict[str, float] = field(
        default_factory=lambda: {
            "amenity": 0.30,
            "environment": 0.25,
            "safety": 0.25,
            "pollution": 0.20,
        }
    )

    @property
    def air_quality_radius_m(self) -> float:
        return min(self.air_quality_radius_cap_m, self.search_radius_m * self.air_quality_radius_factor)


DEFAULT_SCORING_CONFIG = ScoringConfig()
