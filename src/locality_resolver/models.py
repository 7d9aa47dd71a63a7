from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class LocalityRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    display_label: str
    region: str = ""


class PlaceCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    description: str = ""


class PlacePrediction(BaseModel):
    place_id: str
    description: str
    main_text: str = ""
    secondary_text: str = ""

    def to_candidate(self) -> PlaceCandidate:
        return PlaceCandidate(id=self.place_id, label=self.main_text or self.description, description=self.secondary_text)


class Coordinate(BaseModel):
    latitude: float
    longitude: float


class AddressFields(BaseModel):
    city: Optional[str] = None
    town: Optional[str] = None
    village: Optional[str] = None
    locality: Optional[str] = None
    state_district: Optional[str] = None
    county: Optional[str] = None
    state: Optional[str] = None


class ReverseGeocodeResult(BaseModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    address: Optional[AddressFields] = None


class AddressComponent(BaseModel):
    long_name: str
    short_name: str = ""
    types: list[str] = Field(default_factory=list)


class PlaceDetails(BaseModel):
    address_components: list[AddressComponent] = Field(default_factory=list)
    formatted_address: str = ""


class ParsedAddress(BaseModel):
    street: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""


Candidate = Union[LocalityRecord, PlaceCandidate]


class ResultSource(str, Enum):
    PROVIDER = "provider"
    CACHE = "cache"
    FALLBACK = "fallback"
    EMPTY = "empty"


class SearchResultSet(BaseModel):
    items: list[Candidate] = Field(default_factory=list)
    source_query: str = ""
    generation: int = 0
    source: ResultSource = ResultSource.EMPTY


class TwoPhaseResult(BaseModel):
    establishment_candidates: list[PlaceCandidate] = Field(default_factory=list)
    address_candidates: list[PlaceCandidate] = Field(default_factory=list)
    merged: list[PlaceCandidate] = Field(default_factory=list)
    address_phase_dispatched: bool = False
    failed_phases: int = 0


class DetectionState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    RESOLVED = "resolved"
    PERMISSION_DENIED = "permission_denied"
    FAILED = "failed"
