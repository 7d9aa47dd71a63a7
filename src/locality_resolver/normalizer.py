from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

COMMON_REPLACEMENTS = {
    "\t": " ",
    " ": " ",
    "’": "'",
    "–": "-",
    "—": "-",
}

REGION_HINTS = (
    ("metro vancouver", "Metro Vancouver"),
    ("vancouver island", "Vancouver Island"),
    ("okanagan", "Okanagan Valley"),
    ("fraser valley", "Fraser Valley"),
    ("northern", "Northern BC"),
    ("kootenay", "Kootenays"),
)
DEFAULT_REGION = "British Columbia"

WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class NormalizedQuery:
    text: str
    key: str

    def __bool__(self) -> bool:
        return bool(self.text)

    def __len__(self) -> int:
        return len(self.text)


class QueryNormalizer:
    """Turns raw keystroke text into a display form and a cache key."""

    def normalize(self, text: str | None) -> NormalizedQuery:
        cleaned = self._basic_clean(text or "")
        return NormalizedQuery(text=cleaned, key=cleaned.lower())

    def _basic_clean(self, text: str) -> str:
        result = text
        for old, new in COMMON_REPLACEMENTS.items():
            result = result.replace(old, new)
        return WHITESPACE.sub(" ", result).strip()


def matches_region(description: str, region_terms: Iterable[str]) -> bool:
    # case-sensitive: "BC" only matches the abbreviation
    return any(term and term in description for term in region_terms)


def extract_region(secondary_text: str) -> str:
    lowered = secondary_text.lower()
    for hint, region in REGION_HINTS:
        if hint in lowered:
            return region
    return DEFAULT_REGION
