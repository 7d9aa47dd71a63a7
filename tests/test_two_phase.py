import pytest

from conftest import prediction
from locality_resolver.config import RankingConfig, SearchConfig
from locality_resolver.errors import ProviderError
from locality_resolver.models import PlaceCandidate, ResultSource
from locality_resolver.ranker import CandidateRanker, RankingPolicy, dedupe_by_id
from locality_resolver.two_phase import TwoPhaseSearch


def clinic_search(provider, threshold: int = 3) -> TwoPhaseSearch:
    return TwoPhaseSearch(provider, SearchConfig(), RankingConfig(establishment_threshold=threshold))


def candidate(place_id: str, label: str) -> PlaceCandidate:
    return PlaceCandidate(id=place_id, label=label)


@pytest.mark.asyncio
async def test_few_establishments_trigger_address_phase_and_merge(provider):
    provider.responses[("main", "establishment")] = [
        prediction("e1", "Cedar Hospital"),
        prediction("e2", "Maple Family Practice"),
    ]
    provider.responses[("main", "address")] = [
        prediction("a1", "123 Main St"),
        prediction("a2", "8 Pine St"),
        prediction("a3", "9 Oak Ave"),
        prediction("a4", "45 Care Way"),
        prediction("a5", "77 Health Rd"),
    ]

    result = await clinic_search(provider).search("main")

    assert result.address_phase_dispatched
    assert result.failed_phases == 0
    assert [c.label for c in result.merged] == [
        "45 Care Way",
        "77 Health Rd",
        "Cedar Hospital",
        "123 Main St",
        "8 Pine St",
        "9 Oak Ave",
        "Maple Family Practice",
    ]
    assert provider.predict_calls == [("main", "establishment"), ("main", "address")]


@pytest.mark.asyncio
async def test_enough_establishments_skip_address_phase(provider):
    provider.responses[("care", "establishment")] = [
        prediction(f"e{i}", f"Care Centre {i}") for i in range(4)
    ]

    result = await clinic_search(provider).search("care")

    assert not result.address_phase_dispatched
    assert len(result.merged) == 4
    assert provider.predict_calls == [("care", "establishment")]


@pytest.mark.asyncio
async def test_threshold_is_configurable(provider):
    provider.responses[("dent", "establishment")] = [prediction("e1", "Dental Group")]

    result = await clinic_search(provider, threshold=1).search("dent")

    assert not result.address_phase_dispatched
    assert [c.id for c in result.merged] == ["e1"]


@pytest.mark.asyncio
async def test_out_of_region_and_duplicate_candidates_are_dropped(provider):
    provider.responses[("royal", "establishment")] = [
        prediction("e1", "Royal Columbian Hospital", "New Westminster, BC, Canada"),
        prediction("e2", "Royal Alexandra Hospital", "Edmonton, AB, Canada"),
    ]
    provider.responses[("royal", "address")] = [
        prediction("e1", "Royal Columbian Hospital", "New Westminster, BC, Canada"),
        prediction("a1", "Royal Oak Ave", "Burnaby, British Columbia, Canada"),
    ]

    result = await clinic_search(provider).search("royal")

    assert [c.id for c in result.merged] == ["e1", "a1"]
    assert [c.id for c in result.establishment_candidates] == ["e1"]


@pytest.mark.asyncio
async def test_failed_establishment_phase_still_searches_addresses(provider):
    provider.responses[("oak", "establishment")] = ProviderError("quota exceeded")
    provider.responses[("oak", "address")] = [prediction("a1", "9 Oak Ave")]

    result = await clinic_search(provider).search("oak")

    assert result.failed_phases == 1
    assert result.address_phase_dispatched
    assert [c.label for c in result.merged] == ["9 Oak Ave"]


@pytest.mark.asyncio
async def test_both_phases_failing_yield_empty_result(provider):
    provider.responses["elm"] = ProviderError("offline")

    result = await clinic_search(provider).search("elm")

    assert result.failed_phases == 2
    assert result.merged == []


@pytest.mark.asyncio
async def test_clinic_field_does_not_cache_failed_searches(services, provider):
    provider.responses["birch"] = ProviderError("offline")
    field = services.field("clinic")

    first = await field.search_now("birch")
    assert first.items == []
    assert first.source is ResultSource.PROVIDER
    assert field.error is None
    assert services.search_cache.get("clinic:birch") is None

    provider.responses["birch"] = [prediction("e1", "Birch Health Clinic")]
    second = await field.search_now("birch")
    assert [c.label for c in second.items] == ["Birch Health Clinic"]
    assert services.search_cache.get("clinic:birch") == second.items


@pytest.mark.asyncio
async def test_clinic_field_ignores_queries_below_address_minimum(services, provider):
    field = services.field("clinic")

    result = await field.search_now("ab")

    assert result.items == []
    assert provider.predict_calls == []


def test_ranker_prefers_keyword_then_prefix_then_substring():
    ranker = CandidateRanker(RankingPolicy(domain_keywords=["clinic"]))
    ranked = ranker.rank(
        [
            candidate("1", "West Cedar Dental"),
            candidate("2", "Cedar Dental"),
            candidate("3", "Birch Dental"),
            candidate("4", "Aspen Clinic"),
        ],
        "Cedar",
    )
    assert [c.id for c in ranked] == ["4", "2", "1", "3"]


def test_ranker_without_keywords_orders_by_label():
    ranker = CandidateRanker(RankingPolicy())
    ranked = ranker.rank([candidate("b", "beta"), candidate("a", "Alpha")], "")
    assert [c.id for c in ranked] == ["a", "b"]


def test_dedupe_keeps_first_occurrence():
    merged = dedupe_by_id([candidate("x", "First")], [candidate("x", "Second"), candidate("y", "Other")])
    assert [(c.id, c.label) for c in merged] == [("x", "First"), ("y", "Other")]
