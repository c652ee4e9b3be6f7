"""
Geodata layer.

Responsibilities:
- Great-circle distances between coordinates.
- Coordinate validation.
- Clients for the Overpass (POI / land-use) and OpenAQ (air quality) APIs.
"""
