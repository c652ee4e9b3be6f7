from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class GeodataConfig:
    overpass_url: str = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter")
    openaq_url: str = os.getenv("OPENAQ_URL", "https://api.openaq.org/v2/latest")
    openaq_api_key: str = os.getenv("OPENAQ_API_KEY", "")
    overpass_timeout: float = float(os.getenv("GEODATA_TIMEOUT", "30"))
    openaq_timeout: float = 10.0
    # Server-side limit embedded in every Overpass QL query
    overpass_query_timeout: int = 25
    openaq_result_limit: int = 10


DEFAULT_GEODATA_CONFIG = GeodataConfig()
