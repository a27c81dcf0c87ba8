from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Union

from services.dive_insight.types import DiveInsight


class LocationPayload(BaseModel):
    name: Optional[str] = None
    country: Optional[str] = None


class DivePayload(BaseModel):
    """Dive as posted by the client. Everything optional; numbers may be numeric strings."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[Union[str, int]] = None
    location_id: Optional[str] = None
    location: Optional[str] = None
    country: Optional[str] = None
    locationName: Optional[str] = None
    locationCountry: Optional[str] = None
    locations: Optional[LocationPayload] = None
    date: Optional[str] = None
    depth: Optional[Union[float, str]] = None
    avg_depth: Optional[Union[float, str]] = None
    duration: Optional[Union[float, str]] = None
    water_temp: Optional[Union[float, str]] = None
    visibility: Optional[str] = None
    dive_type: Optional[str] = None
    water_type: Optional[str] = None
    exposure: Optional[str] = None
    currents: Optional[str] = None
    weight: Optional[Union[float, str]] = None
    gas: Optional[str] = None
    nitrox_percent: Optional[Union[float, str]] = None
    start_pressure: Optional[Union[float, str]] = None
    end_pressure: Optional[Union[float, str]] = None
    air_usage: Optional[Union[float, str]] = None
    cylinder_type: Optional[str] = None
    cylinder_size: Optional[Union[float, str]] = None
    equipment: Optional[List[str]] = None
    wildlife: Optional[List[str]] = None
    notes: Optional[str] = None


class DiverProfilePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    certification_level: Optional[str] = Field(default=None, alias="certificationLevel")
    total_logged_dives: Optional[int] = Field(default=None, alias="totalLoggedDives")
    years_diving: Optional[float] = Field(default=None, alias="yearsDiving")


class SummarizeDiveRequest(BaseModel):
    dive: Optional[DivePayload] = None
    profile: Optional[DiverProfilePayload] = None
    regenerate: bool = False


class InsightMetaResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cached: bool
    model: str
    prompt_version: str = Field(alias="promptVersion")
    generated_at: str = Field(alias="generatedAt")


class SummarizeDiveResponse(BaseModel):
    summary: str
    insight: DiveInsight
    meta: InsightMetaResponse


class RateLimitResponse(BaseModel):
    error: str = "rate_limit"
    next_reset: Optional[str] = None
