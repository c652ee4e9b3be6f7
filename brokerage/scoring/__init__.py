"""
Location scoring.

Responsibilities:
- Query geodata around a listing's coordinate.
- Reduce it to amenity / environment / safety / pollution sub-scores.
- Combine them into a weighted overall score.
"""
