"""
Brokerage platform core.

Responsibilities:
- Score a property location from external geodata (amenities, environment,
  safety, air quality).
- Rank listings for buyers from their favorites and preferences.
- Serve both through a thin FastAPI layer.
"""
