"""
Buyer recommendation engine.

Responsibilities:
- Generate candidate listings from favorites, preferences, popularity and
  location scores.
- Blend, deduplicate and rank candidates for one buyer.
- Keep each buyer's preference profile up to date as they favorite listings.
"""
