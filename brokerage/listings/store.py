"""
In-memory listing catalogue.

The catalogue is a pandas DataFrame indexed by listing id, seeded from
``data/listings.csv``. Reads filter it with boolean masks; writes replace
whole cells. A listing's location score document is always written as a
unit by ``save_scores``. Writes hold the store lock, so concurrent view
counts and inserts from the request threadpool are not lost.
"""
from __future__ import annotations

import math
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from ..geo.distance import distances_from
from ..scoring.models import LocationScoreResult
from .models import Listing

_SEED_CSV = Path(__file__).resolve().parent.parent / "data" / "listings.csv"

SCORE_COLUMNS = [
    "amenity_score",
    "environment_score",
    "safety_score",
    "pollution_score",
    "overall_score",
]

COLUMNS = [
    "id",
    "title",
    "description",
    "property_type",
    "listing_type",
    "price",
    "currency",
    "bedrooms",
    "bathrooms",
    "city",
    "state",
    "latitude",
    "longitude",
    "status",
    "featured",
    "owner",
    "views",
    "inquiries",
    "created_at",
    *SCORE_COLUMNS,
    "scores_calculated_at",
]

_NUMERIC_COLUMNS = ["price", "bedrooms", "bathrooms", "latitude", "longitude", "views", "inquiries", *SCORE_COLUMNS]
_TEXT_COLUMNS = ["title", "description", "property_type", "listing_type", "currency", "city", "state", "status", "owner"]
_DEFAULT_SORT = ("featured", "views", "created_at")


class ListingNotFoundError(KeyError):
    pass


@dataclass
class ListingQuery:
    """Filter over the catalogue.

    ``status``, ``exclude_ids``, ``city_contains``, ``min_overall_score`` and
    ``created_after`` always apply. The preference conditions (types, cities,
    price band, bedroom and bathroom bounds) are ANDed, or ORed when
    ``match_any`` is set.
    """

    status: str | None = "active"
    property_types: list[str] = field(default_factory=list)
    cities: list[str] = field(default_factory=list)
    city_contains: str | None = None
    price_min: float | None = None
    price_max: float | None = None
    bedrooms_min: int | None = None
    bedrooms_max: int | None = None
    bathrooms_min: int | None = None
    bathrooms_max: int | None = None
    min_overall_score: float | None = None
    created_after: datetime | None = None
    exclude_ids: list[str] = field(default_factory=list)
    match_any: bool = False
    sort_by: tuple[str, ...] = _DEFAULT_SORT
    limit: int | None = None


def _coerce(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    for col in COLUMNS[1:]:
        if col not in df.columns:
            df[col] = np.nan
    for col in _NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    for col in ["views", "inquiries"]:
        df[col] = df[col].fillna(0)
    for col in _TEXT_COLUMNS:
        df[col] = df[col].fillna("").astype(str)
    df["featured"] = df["featured"].fillna(False).astype(str).str.lower().isin(["true", "1", "yes"])
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True, errors="coerce")
    df["scores_calculated_at"] = pd.to_datetime(df["scores_calculated_at"], utc=True, errors="coerce")
    return df[COLUMNS[1:]]


def _to_python(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def _as_int(value: Any) -> int | None:
    value = _to_python(value)
    return None if value is None else int(value)


class ListingStore:
    def __init__(self, frame: pd.DataFrame | None = None) -> None:
        if frame is None:
            frame = pd.DataFrame(columns=COLUMNS)
        self._df = _coerce(frame.set_index("id") if "id" in frame.columns else frame)
        self._df.index = self._df.index.astype(str)
        self._score_details: dict[str, dict[str, Any]] = {}
        self._lock = threading.RLock()

    @classmethod
    def from_csv(cls, path: Path = _SEED_CSV) -> "ListingStore":
        return cls(pd.read_csv(path, dtype={"id": str}))

    @classmethod
    def from_listings(cls, listings: list[Listing]) -> "ListingStore":
        store = cls()
        for listing in listings:
            store.add(listing)
        return store

    def __len__(self) -> int:
        return len(self._df)

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex[:12]

    # ── Reads ────────────────────────────────────────────────────────────

    def _row_to_listing(self, listing_id: str, row: pd.Series) -> Listing:
        scores = None
        if _to_python(row["overall_score"]) is not None:
            scores = LocationScoreResult(
                **{col: _as_int(row[col]) for col in SCORE_COLUMNS},
                score_details=self._score_details.get(listing_id, {}),
                scores_calculated_at=_to_python(row["scores_calculated_at"]),
            )
        return Listing(
            id=listing_id,
            title=row["title"],
            description=row["description"],
            property_type=row["property_type"],
            listing_type=row["listing_type"] or "sale",
            price=float(row["price"]),
            currency=row["currency"] or "INR",
            bedrooms=_as_int(row["bedrooms"]),
            bathrooms=_as_int(row["bathrooms"]),
            city=row["city"],
            state=row["state"],
            latitude=_to_python(row["latitude"]),
            longitude=_to_python(row["longitude"]),
            status=row["status"] or "active",
            featured=bool(row["featured"]),
            owner=row["owner"],
            views=int(row["views"]),
            inquiries=int(row["inquiries"]),
            created_at=_to_python(row["created_at"]) or datetime.now(timezone.utc),
            location_scores=scores,
        )

    def _to_listings(self, frame: pd.DataFrame) -> list[Listing]:
        return [self._row_to_listing(str(idx), row) for idx, row in frame.iterrows()]

    def get(self, listing_id: str) -> Listing:
        if listing_id not in self._df.index:
            raise ListingNotFoundError(listing_id)
        return self._row_to_listing(listing_id, self._df.loc[listing_id])

    def _mask(self, query: ListingQuery) -> pd.Series:
        df = self._df
        mask = pd.Series(True, index=df.index)

        if query.status:
            mask &= df["status"] == query.status
        if query.exclude_ids:
            mask &= ~df.index.isin(query.exclude_ids)
        if query.city_contains:
            mask &= df["city"].str.contains(query.city_contains, case=False, regex=False, na=False)
        if query.min_overall_score is not None:
            mask &= df["overall_score"] >= query.min_overall_score
        if query.created_after is not None:
            since = pd.Timestamp(query.created_after)
            if since.tzinfo is None:
                since = since.tz_localize("UTC")
            mask &= df["created_at"] >= since

        conditions: list[pd.Series] = []
        if query.property_types:
            conditions.append(df["property_type"].isin(query.property_types))
        if query.cities:
            conditions.append(df["city"].isin(query.cities))
        if query.price_min is not None or query.price_max is not None:
            lo = query.price_min if query.price_min is not None else -np.inf
            hi = query.price_max if query.price_max is not None else np.inf
            conditions.append(df["price"].between(lo, hi))
        for col, lo, hi in (
            ("bedrooms", query.bedrooms_min, query.bedrooms_max),
            ("bathrooms", query.bathrooms_min, query.bathrooms_max),
        ):
            if lo is not None:
                conditions.append(df[col] >= lo)
            if hi is not None:
                conditions.append(df[col] <= hi)

        if conditions:
            combined = conditions[0]
            for cond in conditions[1:]:
                combined = (combined | cond) if query.match_any else (combined & cond)
            mask &= combined
        return mask

    def _sorted(self, frame: pd.DataFrame, sort_by: tuple[str, ...]) -> pd.DataFrame:
        if not sort_by or frame.empty:
            return frame
        return frame.sort_values(list(sort_by), ascending=False, kind="stable", na_position="last")

    def find(self, query: ListingQuery) -> list[Listing]:
        matched = self._sorted(self._df.loc[self._mask(query)], query.sort_by)
        if query.limit is not None:
            matched = matched.head(query.limit)
        return self._to_listings(matched)

    def near(
        self,
        lat: float,
        lon: float,
        radius_m: float,
        query: ListingQuery | None = None,
    ) -> list[tuple[Listing, float]]:
        """Listings within ``radius_m`` of a point, closest first."""
        query = query or ListingQuery()
        matched = self._df.loc[self._mask(query)]
        if matched.empty:
            return []
        distances = pd.Series(
            distances_from(lat, lon, matched["latitude"].to_numpy(), matched["longitude"].to_numpy()),
            index=matched.index,
        )
        distances = distances[distances <= radius_m].sort_values(kind="stable")
        if query.limit is not None:
            distances = distances.head(query.limit)
        return [
            (self._row_to_listing(str(idx), matched.loc[idx]), float(dist))
            for idx, dist in distances.items()
        ]

    def cities(self) -> list[str]:
        return sorted(c for c in self._df["city"].dropna().unique().tolist() if c)

    # ── Writes ───────────────────────────────────────────────────────────

    def add(self, listing: Listing) -> Listing:
        record = listing.model_dump(exclude={"location_scores"})
        record["property_type"] = listing.property_type.value
        record["listing_type"] = listing.listing_type.value
        record["status"] = listing.status.value
        row = pd.DataFrame([record]).set_index("id")
        with self._lock:
            combined = row if self._df.empty else pd.concat([self._df, row])
            self._df = _coerce(combined)
            if listing.location_scores is not None:
                self.save_scores(listing.id, listing.location_scores)
            return self.get(listing.id)

    def save_scores(self, listing_id: str, result: LocationScoreResult) -> Listing:
        """Replace the listing's whole score document."""
        calculated_at = pd.NaT
        if result.scores_calculated_at is not None:
            calculated_at = pd.Timestamp(result.scores_calculated_at)
            if calculated_at.tzinfo is None:
                calculated_at = calculated_at.tz_localize("UTC")
        with self._lock:
            if listing_id not in self._df.index:
                raise ListingNotFoundError(listing_id)
            for col in SCORE_COLUMNS:
                value = getattr(result, col)
                self._df.at[listing_id, col] = np.nan if value is None else value
            self._df.at[listing_id, "scores_calculated_at"] = calculated_at
            self._score_details[listing_id] = result.score_details.model_dump()
            return self.get(listing_id)

    def record_view(self, listing_id: str) -> Listing:
        with self._lock:
            if listing_id not in self._df.index:
                raise ListingNotFoundError(listing_id)
            self._df.at[listing_id, "views"] += 1
            return self.get(listing_id)


_store: ListingStore | None = None


def get_listing_store() -> ListingStore:
    """Return the process-wide catalogue, loading the seed data on first call."""
    global _store
    if _store is None:
        _store = ListingStore.from_csv()
    return _store


def reset_listing_store() -> None:
    global _store
    _store = None
