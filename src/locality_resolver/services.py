from __future__ import annotations

import time
from typing import List, Optional

from loguru import logger

from .address_parser import AddressParser, is_placeholder
from .cache import Clock, InFlightRegistry, KeyedCache
from .config import ResolverConfig
from .coordinator import ErrorCallback, QueryField, ResultsCallback
from .dataset import LocalityDataset
from .errors import ProviderError
from .models import Candidate, LocalityRecord, ParsedAddress, PlaceCandidate
from .normalizer import QueryNormalizer
from .providers import HttpSearchProvider, SearchProvider
from .ranker import CandidateRanker, RankingPolicy
from .resolver import GeolocationResolver, LocationDetector, LocationPrompt, PositionSource
from .search import AddressSearch, CitySearch, SearchStrategy
from .two_phase import TwoPhaseSearch


class LocationServices:
    """Owns the state shared by every form on the page.

    Both caches, the in-flight registry and the geolocation resolver live here.
    Build a fresh instance per test; the application uses the module default.
    """

    def __init__(
        self,
        config: ResolverConfig,
        provider: SearchProvider,
        dataset: LocalityDataset | None = None,
        position_source: PositionSource | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config
        self.provider = provider
        self.dataset = dataset if dataset is not None else self._load_dataset(config)
        self.clock = clock
        self.search_cache: KeyedCache[List[Candidate]] = KeyedCache(config.cache.search_ttl_seconds, clock=clock, name="search-cache")
        self.location_cache: KeyedCache[str] = KeyedCache(config.cache.location_ttl_seconds, clock=clock, name="location-cache")
        self.inflight = InFlightRegistry()
        self.normalizer = QueryNormalizer()
        self.address_parser = AddressParser()
        self.resolver = GeolocationResolver(provider, self.location_cache, self.inflight, position_source)

        self.city_search = CitySearch(provider, self.dataset, config.search)
        self.address_search = AddressSearch(provider, config.search)
        self.clinic_search = TwoPhaseSearch(
            provider,
            config.search,
            config.ranking,
            CandidateRanker(RankingPolicy(domain_keywords=config.ranking.domain_keywords)),
        )

    def strategy(self, mode: str) -> SearchStrategy:
        strategies = {s.name: s for s in (self.city_search, self.address_search, self.clinic_search)}
        try:
            return strategies[mode]
        except KeyError:
            raise ValueError(f"unknown search mode {mode!r}; expected one of {', '.join(strategies)}") from None

    def field(
        self,
        mode: str = "city",
        on_results: ResultsCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> QueryField:
        if mode == "city":
            min_length = self.config.search.min_query_length
        else:
            min_length = self.config.search.address_min_query_length
        return QueryField(
            self.strategy(mode),
            self.search_cache,
            self.inflight,
            debounce_seconds=self.config.search.debounce_seconds,
            min_query_length=min_length,
            normalizer=self.normalizer,
            on_results=on_results,
            on_error=on_error,
        )

    def detector(self, prompt: LocationPrompt | None = None) -> LocationDetector:
        return LocationDetector(self.resolver, prompt, auto_detect_delay=self.config.detection.auto_detect_delay_seconds)

    async def select_place(self, candidate: PlaceCandidate) -> Optional[ParsedAddress]:
        """Expand a picked suggestion into form fields; the label alone is used when details are unavailable."""
        if is_placeholder(candidate.label):
            return None
        try:
            details = await self.provider.place_details(candidate.id)
        except ProviderError as exc:
            logger.warning("place details for {id} unavailable: {error}", id=candidate.id, error=exc)
            return ParsedAddress(street=candidate.label)
        return self.address_parser.parse(details)

    def select_city(self, record: LocalityRecord) -> Optional[str]:
        if is_placeholder(record.display_label):
            return None
        return record.display_label

    async def aclose(self) -> None:
        await self.provider.aclose()

    def _load_dataset(self, config: ResolverConfig) -> LocalityDataset:
        if config.dataset.file is None:
            return LocalityDataset.bundled()
        return LocalityDataset.from_table(config.dataset.file, sheet_name=config.dataset.sheet)


_default: Optional[LocationServices] = None


def get_services(config: ResolverConfig | None = None) -> LocationServices:
    global _default
    if _default is None:
        cfg = config or ResolverConfig()
        _default = LocationServices(cfg, HttpSearchProvider(cfg.provider))
    return _default


async def reset_services() -> None:
    global _default
    services, _default = _default, None
    if services is not None:
        await services.aclose()
