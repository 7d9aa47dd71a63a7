from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from .models import PlaceCandidate


@dataclass
class RankingPolicy:
    domain_keywords: Sequence[str] = field(default_factory=tuple)


class CandidateRanker:
    """Orders candidates by keyword boost, then prefix, then substring, then label."""

    def __init__(self, policy: RankingPolicy) -> None:
        self.policy = policy
        self.keywords = tuple(keyword.lower() for keyword in policy.domain_keywords if keyword)

    def rank(self, candidates: Iterable[PlaceCandidate], query: str) -> List[PlaceCandidate]:
        query_lower = query.strip().lower()
        return sorted(candidates, key=lambda candidate: self.sort_key(candidate, query_lower))

    def sort_key(self, candidate: PlaceCandidate, query_lower: str) -> tuple[bool, bool, bool, str]:
        label = candidate.label.lower()
        return (
            not self._is_boosted(label),
            not (query_lower and label.startswith(query_lower)),
            not (query_lower and query_lower in label),
            label,
        )

    def _is_boosted(self, label: str) -> bool:
        return any(keyword in label for keyword in self.keywords)


def dedupe_by_id(*groups: Iterable[PlaceCandidate]) -> List[PlaceCandidate]:
    seen: dict[str, PlaceCandidate] = {}
    for group in groups:
        for candidate in group:
            seen.setdefault(candidate.id, candidate)
    return list(seen.values())
