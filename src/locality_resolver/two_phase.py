from __future__ import annotations

from typing import List, Optional

from loguru import logger

from .config import RankingConfig, SearchConfig
from .errors import ProviderError
from .models import PlaceCandidate, TwoPhaseResult
from .normalizer import NormalizedQuery
from .providers import SearchProvider
from .ranker import CandidateRanker, RankingPolicy, dedupe_by_id
from .search import SearchOutcome, SearchStrategy, filter_to_region

ESTABLISHMENT = "establishment"
ADDRESS = "address"


class TwoPhaseSearch(SearchStrategy):
    """Clinic search: establishments first, street addresses only when too few establishments match.

    A failing phase counts as an empty phase. When both fail the caller gets an
    empty list rather than an error.
    """

    name = "clinic"

    def __init__(
        self,
        provider: SearchProvider,
        search_config: SearchConfig,
        ranking_config: RankingConfig,
        ranker: CandidateRanker | None = None,
    ) -> None:
        self.provider = provider
        self.search_config = search_config
        self.threshold = ranking_config.establishment_threshold
        self.ranker = ranker or CandidateRanker(RankingPolicy(domain_keywords=ranking_config.domain_keywords))

    async def search(self, query: str) -> TwoPhaseResult:
        result = TwoPhaseResult()
        establishments = await self._phase(query, ESTABLISHMENT)
        if establishments is None:
            result.failed_phases += 1
            establishments = []
        result.establishment_candidates = establishments

        if len(establishments) >= self.threshold:
            result.merged = self.ranker.rank(establishments, query)
            return result

        result.address_phase_dispatched = True
        addresses = await self._phase(query, ADDRESS)
        if addresses is None:
            result.failed_phases += 1
            addresses = []
        result.address_candidates = addresses
        result.merged = self.ranker.rank(dedupe_by_id(establishments, addresses), query)
        return result

    async def run(self, query: NormalizedQuery) -> SearchOutcome:
        result = await self.search(query.text)
        return SearchOutcome(items=list(result.merged), cacheable=result.failed_phases == 0)

    async def _phase(self, query: str, place_type: str) -> Optional[List[PlaceCandidate]]:
        try:
            predictions = await self.provider.predict(query, country=self.search_config.country, types=[place_type])
        except ProviderError as exc:
            logger.warning("{phase} phase for {query!r} failed: {error}", phase=place_type, query=query, error=exc)
            return None
        return [prediction.to_candidate() for prediction in filter_to_region(predictions, self.search_config)]
