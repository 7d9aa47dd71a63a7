"""Shared fakes and fixtures for the locality resolver tests."""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Sequence

import pytest

from locality_resolver.config import ResolverConfig
from locality_resolver.errors import ProviderError
from locality_resolver.models import Coordinate, PlaceDetails, PlacePrediction, ReverseGeocodeResult
from locality_resolver.providers import SearchProvider
from locality_resolver.services import LocationServices


def prediction(place_id: str, main_text: str, secondary_text: str = "Vancouver, BC, Canada") -> PlacePrediction:
    return PlacePrediction(
        place_id=place_id,
        description=f"{main_text}, {secondary_text}",
        main_text=main_text,
        secondary_text=secondary_text,
    )


async def wait_until(condition, attempts: int = 200) -> None:
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class ManualClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(SearchProvider):
    """Answers from canned responses keyed by (lower-cased text, place type) or text alone."""

    def __init__(self) -> None:
        self.responses: dict[Any, Any] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.predict_calls: list[tuple[str, Optional[str]]] = []
        self.reverse_calls: list[tuple[float, float]] = []
        self.reverse_result: Any = ReverseGeocodeResult(name="Vancouver")
        self.details: dict[str, Any] = {}

    async def predict(
        self,
        text: str,
        country: Optional[str] = None,
        types: Optional[Sequence[str]] = None,
    ) -> list[PlacePrediction]:
        place_type = types[0] if types else None
        self.predict_calls.append((text, place_type))
        gate = self.gates.get(text.lower())
        if gate is not None:
            await gate.wait()
        key = text.lower()
        outcome = self.responses.get((key, place_type), self.responses.get(key, []))
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)

    async def resolve_coordinate(self, latitude: float, longitude: float) -> ReverseGeocodeResult:
        self.reverse_calls.append((latitude, longitude))
        if isinstance(self.reverse_result, Exception):
            raise self.reverse_result
        return self.reverse_result

    async def place_details(self, place_id: str) -> PlaceDetails:
        details = self.details.get(place_id)
        if details is None:
            raise ProviderError(f"no details for {place_id}")
        return details


class FakePosition:
    def __init__(self, latitude: float = 49.2827, longitude: float = -123.1207) -> None:
        self.coordinate = Coordinate(latitude=latitude, longitude=longitude)
        self.calls = 0
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def request_current_position(self) -> Coordinate:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.coordinate


class RecordingPrompt:
    def __init__(self) -> None:
        self.permission_prompts = 0
        self.errors: list[str] = []
        self.on_retry = None
        self.on_skip = None

    def show_permission_prompt(self, on_retry, on_skip) -> None:
        self.permission_prompts += 1
        self.on_retry = on_retry
        self.on_skip = on_skip

    def show_error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def config() -> ResolverConfig:
    cfg = ResolverConfig()
    cfg.search.debounce_seconds = 0.01
    cfg.detection.auto_detect_delay_seconds = 0
    return cfg


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def position() -> FakePosition:
    return FakePosition()


@pytest.fixture
def prompt() -> RecordingPrompt:
    return RecordingPrompt()


@pytest.fixture
def services(config, provider, position, clock) -> LocationServices:
    return LocationServices(config, provider, position_source=position, clock=clock)

