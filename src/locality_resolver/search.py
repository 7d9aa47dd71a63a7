from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Sequence

from loguru import logger

from .config import SearchConfig
from .dataset import LocalityDataset
from .errors import ProviderError
from .models import Candidate, LocalityRecord, PlacePrediction, ResultSource
from .normalizer import NormalizedQuery, extract_region, matches_region
from .providers import SearchProvider
from .ranker import CandidateRanker, RankingPolicy


@dataclass
class SearchOutcome:
    items: List[Candidate] = field(default_factory=list)
    source: ResultSource = ResultSource.PROVIDER
    # only successful provider answers may be written to the search cache
    cacheable: bool = True


class SearchStrategy(ABC):
    name: str = "search"

    @abstractmethod
    async def run(self, query: NormalizedQuery) -> SearchOutcome:
        ...


class CitySearch(SearchStrategy):
    """City combobox search: provider first, bundled dataset when the provider is unavailable."""

    name = "city"

    def __init__(self, provider: SearchProvider, dataset: LocalityDataset, config: SearchConfig) -> None:
        self.provider = provider
        self.dataset = dataset
        self.config = config

    async def run(self, query: NormalizedQuery) -> SearchOutcome:
        try:
            predictions = await self.provider.predict(query.text, country=self.config.country, types=self.config.city_types)
        except ProviderError as exc:
            logger.warning("city search for {query!r} failed, using bundled localities: {error}", query=query.text, error=exc)
            return self.fallback(query)

        records = self._to_records(predictions)
        if records:
            return SearchOutcome(items=list(records))
        if len(query) < self.config.fallback_below_length:
            logger.debug("no provider cities for short query {query!r}, using bundled localities", query=query.text)
            return self.fallback(query)
        return SearchOutcome(items=[])

    def fallback(self, query: NormalizedQuery) -> SearchOutcome:
        return SearchOutcome(items=list(self.dataset.search(query.text)), source=ResultSource.FALLBACK, cacheable=False)

    def _to_records(self, predictions: Sequence[PlacePrediction]) -> List[LocalityRecord]:
        unique: dict[str, LocalityRecord] = {}
        for prediction in predictions:
            label = prediction.main_text or prediction.description
            if self.config.filter_to_region and not (
                matches_region(prediction.description, self.config.region_terms) or self.dataset.is_known(label)
            ):
                continue
            unique.setdefault(
                label,
                LocalityRecord(id=prediction.place_id, display_label=label, region=extract_region(prediction.secondary_text)),
            )
        return list(unique.values())


class AddressSearch(SearchStrategy):
    """Plain street-address search, ranked by how well the label matches the query."""

    name = "address"

    def __init__(self, provider: SearchProvider, config: SearchConfig, ranker: CandidateRanker | None = None) -> None:
        self.provider = provider
        self.config = config
        self.ranker = ranker or CandidateRanker(RankingPolicy())

    async def run(self, query: NormalizedQuery) -> SearchOutcome:
        try:
            predictions = await self.provider.predict(query.text, country=self.config.country, types=["address"])
        except ProviderError as exc:
            logger.warning("address search for {query!r} failed: {error}", query=query.text, error=exc)
            return SearchOutcome(items=[], cacheable=False)
        candidates = [
            prediction.to_candidate()
            for prediction in filter_to_region(predictions, self.config)
        ]
        return SearchOutcome(items=list(self.ranker.rank(candidates, query.text)))


def filter_to_region(predictions: Sequence[PlacePrediction], config: SearchConfig) -> List[PlacePrediction]:
    if not config.filter_to_region:
        return list(predictions)
    return [prediction for prediction in predictions if matches_region(prediction.description, config.region_terms)]
