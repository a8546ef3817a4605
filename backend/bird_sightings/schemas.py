"""
Pydantic models for provider payloads and API responses
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_observation_date(value: str) -> datetime:
    """
    Parse an eBird date string ("2024-05-01 07:30", "2024-05-01" or ISO)

    Returned datetimes are naive so they compare with each other; eBird
    reports local time at the observation site anyway.
    """
    if "T" in value:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
    for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognised observation date: {value!r}")


class RawObservation(BaseModel):
    """A single observation as returned by the eBird recent-observations API"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    species_code: str = Field(alias="speciesCode")
    common_name: str = Field(alias="comName")
    scientific_name: str = Field("", alias="sciName")
    location_name: str = Field("", alias="locName")
    observation_date: str = Field(alias="obsDt")
    count: Optional[int] = Field(None, alias="howMany")
    lat: float
    lng: float
    checklist_id: str = Field(alias="subId")

    @field_validator("observation_date")
    @classmethod
    def _date_must_parse(cls, value: str) -> str:
        parse_observation_date(value)
        return value

    @property
    def observed_at(self) -> datetime:
        return parse_observation_date(self.observation_date)


class ChecklistMetadata(BaseModel):
    """Observer details for one checklist (eBird "checklist view")"""
    model_config = ConfigDict(populate_by_name=True)

    checklist_id: str = Field(alias="subId")
    observer_name: Optional[str] = Field(None, alias="userDisplayName")
    checklist_date: Optional[str] = Field(None, alias="obsDt")


class EnrichedObservation(RawObservation):
    """A raw observation annotated with resolved checklist metadata"""

    observer_name: str = "Anonymous"
    checklist_date: str


class NormalizedObservation(BaseModel):
    """Response model for one sighting"""
    model_config = ConfigDict(populate_by_name=True)

    species_code: str = Field(alias="speciesCode")
    species_name: str = Field(alias="speciesName")
    scientific_name: str = Field(alias="scientificName")
    location_name: str = Field(alias="locationName")
    observation_date: str = Field(alias="observationDate")
    observation_count: int = Field(alias="observationCount")
    lat: float
    lng: float
    checklist_id: str = Field(alias="checklistId")
    checklist_url: str = Field(alias="checklistUrl")
    observer_name: str = Field(alias="observerName")
    checklist_date: str = Field(alias="checklistDate")


class Location(BaseModel):
    """A resolved search location"""
    display_name: str
    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lng: float = Field(ge=-180, le=180, allow_inf_nan=False)


class PlaceSuggestion(BaseModel):
    """A geocoding candidate, in Nominatim's own field names"""
    display_name: str
    lat: str
    lon: str


class SpeciesEntry(BaseModel):
    """Response model for the species list"""
    code: str
    comName: str
    sciName: str


class BirdSearchResult(BaseModel):
    """Response model for bird name autocomplete"""
    speciesCode: str
    comName: str
    sciName: str


class ErrorResponse(BaseModel):
    """Body returned with every non-2xx response"""
    error: str
    details: Optional[str] = None
