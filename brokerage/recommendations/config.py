from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RecommendationConfig:
    fallback_city: str = "Pune"
    # Share of the requested limit given to each generator in the blend (rounded up)
    blend_shares: dict[str, float] = field(default_factory=lambda: {
        "similar": 0.4,
        "location": 0.3,
        "popular": 0.2,
        "high_score": 0.1,
    })
    type_scores: dict[str, int] = field(default_factory=lambda: {
        "similar_to_favorites": 95,
        "high_location_score": 90,
        "nearby_to_favorites": 88,
        "location_match": 85,
        "preference_match": 85,
        "trending": 75,
    })
    high_score_threshold: int = 75
    trending_window_days: int = 7
    nearby_radius_km: float = 10.0
    recent_favorites: int = 5
    similar_price_band: float = 0.3
    dashboard_sections: dict[str, int] = field(default_factory=lambda: {
        "personalized": 8,
        "nearby": 4,
        "high_score": 6,
        "trending": 4,
    })
    dashboard_recent_favorites: int = 6


DEFAULT_RECOMMENDATION_CONFIG = RecommendationConfig()
