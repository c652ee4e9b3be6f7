from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class PollutionDataSource(str, Enum):
    measured = "measured"
    estimated = "estimated"
    default = "default"


class AmenityDetail(BaseModel):
    found: bool = False
    distance: float | None = None
    error: bool = False


class EnvironmentDetails(BaseModel):
    green_features: int = 0
    industrial_features: int = 0
    nearest_major_road: float | None = None


class SafetyDetails(BaseModel):
    police_stations: int = 0
    nearest_police_distance: float | None = None
    cctv_cameras: int = 0
    nightlife_spots: int = 0


class PollutionDetails(BaseModel):
    pm25_value: float | None = None
    data_source: PollutionDataSource = PollutionDataSource.default


class ScoreDetails(BaseModel):
    amenity_details: dict[str, AmenityDetail] = Field(default_factory=dict)
    environment_details: EnvironmentDetails = Field(default_factory=EnvironmentDetails)
    safety_details: SafetyDetails = Field(default_factory=SafetyDetails)
    pollution_details: PollutionDetails = Field(default_factory=PollutionDetails)


class LocationScoreResult(BaseModel):
    amenity_score: int | None = Field(default=None, ge=0, le=100)
    environment_score: int | None = Field(default=None, ge=0, le=100)
    safety_score: int | None = Field(default=None, ge=0, le=100)
    pollution_score: int | None = Field(default=None, ge=0, le=100)
    overall_score: int | None = Field(default=None, ge=0, le=100)
    score_details: ScoreDetails = Field(default_factory=ScoreDetails)
    scores_calculated_at: datetime | None = None


class CoordinateRequest(BaseModel):
    # Range checks happen in the scoring core so the endpoint reports them as 400
    latitude: float
    longitude: float
