from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator


class CacheConfig(BaseModel):
    search_ttl_seconds: float = 300.0
    location_ttl_seconds: float = 600.0

    @field_validator("search_ttl_seconds", "location_ttl_seconds")
    @classmethod
    def ensure_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("TTL must be positive")
        return value


class SearchConfig(BaseModel):
    debounce_seconds: float = 0.3
    min_query_length: int = 1
    address_min_query_length: int = 3
    # empty provider answers for shorter queries are replaced by the bundled dataset
    fallback_below_length: int = 4
    country: Optional[str] = "ca"
    city_types: list[str] = Field(default_factory=lambda: ["(cities)"])
    region_terms: list[str] = Field(default_factory=lambda: ["British Columbia", "BC"])
    filter_to_region: bool = True


class RankingConfig(BaseModel):
    establishment_threshold: int = 3
    domain_keywords: list[str] = Field(
        default_factory=lambda: ["clinic", "hospital", "medical", "health", "care"]
    )

    @field_validator("establishment_threshold")
    @classmethod
    def ensure_threshold(cls, value: int) -> int:
        if value < 1:
            raise ValueError("establishment_threshold must be at least 1")
        return value

    @field_validator("domain_keywords")
    @classmethod
    def lower_keywords(cls, value: list[str]) -> list[str]:
        return [keyword.strip().lower() for keyword in value if keyword.strip()]


class ProviderConfig(BaseModel):
    api_key: str = ""
    autocomplete_url: str = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
    details_url: str = "https://maps.googleapis.com/maps/api/place/details/json"
    reverse_url: str = "https://nominatim.openstreetmap.org/reverse"
    user_agent: str = "locality-resolver/0.1"
    timeout_seconds: float = 5.0
    reverse_zoom: int = 10


class DetectionConfig(BaseModel):
    auto_detect_delay_seconds: float = 1.0


class DatasetConfig(BaseModel):
    file: Optional[Path] = None
    sheet: Optional[str] = None


class RuntimeConfig(BaseModel):
    log_level: str = "INFO"


class ResolverConfig(BaseModel):
    cache: CacheConfig = Field(default_factory=CacheConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    dataset: DatasetConfig = Field(default_factory=DatasetConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)


def load_config(path: str | Path) -> ResolverConfig:
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return ResolverConfig(**(data or {}))
