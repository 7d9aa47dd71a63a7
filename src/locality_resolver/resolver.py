from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, Protocol

from loguru import logger

from .cache import InFlightRegistry, KeyedCache
from .errors import OtherDeviceError, PermissionDeniedError, ResolutionError
from .models import Coordinate, DetectionState, ReverseGeocodeResult
from .providers import SearchProvider

CURRENT_LOCATION_KEY = "current-location"
UNKNOWN_LOCATION = "Unknown location"
COULD_NOT_DETERMINE = "Could not determine location"
ACCESS_DENIED = "Location access denied. Please enable location in browser settings."

ADDRESS_PRIORITY = ("city", "town", "village", "locality", "state_district", "county", "state")


class PositionSource(Protocol):
    async def request_current_position(self) -> Coordinate:
        """Raises PermissionDeniedError or OtherDeviceError."""
        ...


class LocationPrompt(Protocol):
    def show_permission_prompt(self, on_retry: Callable[[], Awaitable[Optional[str]]], on_skip: Callable[[], None]) -> None:
        ...

    def show_error(self, message: str) -> None:
        ...


def extract_city_name(result: Optional[ReverseGeocodeResult]) -> str:
    if result is None:
        return UNKNOWN_LOCATION
    if result.name:
        return result.name
    if result.address is not None:
        for field_name in ADDRESS_PRIORITY:
            value = getattr(result.address, field_name)
            if value:
                return value
    if result.display_name:
        first = result.display_name.split(",")[0].strip()
        if first:
            return first
    return UNKNOWN_LOCATION


class GeolocationResolver:
    """Process-wide coordinate to city resolution.

    Callers that arrive while a detection is running attach to it, so the
    device is asked for its position at most once per attempt. Only successes
    are cached.
    """

    def __init__(
        self,
        provider: SearchProvider,
        cache: KeyedCache[str],
        inflight: InFlightRegistry,
        position_source: PositionSource | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.inflight = inflight
        self.position_source = position_source
        self.state = DetectionState.IDLE

    @property
    def detection_in_progress(self) -> bool:
        return self.inflight.in_flight(CURRENT_LOCATION_KEY)

    def cached_city(self) -> Optional[str]:
        return self.cache.get(CURRENT_LOCATION_KEY)

    async def resolve_current_city(self) -> str:
        cached = self.cache.get(CURRENT_LOCATION_KEY)
        if cached is not None:
            return cached
        return await self.inflight.run(CURRENT_LOCATION_KEY, self._detect)

    async def _detect(self) -> str:
        self.state = DetectionState.DETECTING
        try:
            if self.position_source is None:
                raise OtherDeviceError("geolocation not supported")
            position = await self.position_source.request_current_position()
            result = await self.provider.resolve_coordinate(position.latitude, position.longitude)
        except PermissionDeniedError:
            self.state = DetectionState.PERMISSION_DENIED
            raise
        except (ResolutionError, OtherDeviceError):
            self.state = DetectionState.FAILED
            raise
        except Exception as exc:
            self.state = DetectionState.FAILED
            logger.exception("unexpected failure while detecting the current location")
            raise ResolutionError(f"location detection failed: {exc}") from exc
        city = extract_city_name(result)
        self.state = DetectionState.RESOLVED
        self.cache.set(CURRENT_LOCATION_KEY, city)
        logger.info("resolved current location to {city}", city=city)
        return city


class LocationDetector:
    """Detection state for one mounted form.

    IDLE -> DETECTING -> RESOLVED | PERMISSION_DENIED | FAILED. The failure states
    go back to DETECTING only through ``retry`` or another user-initiated ``detect``.
    """

    def __init__(
        self,
        resolver: GeolocationResolver,
        prompt: LocationPrompt | None = None,
        auto_detect_delay: float = 1.0,
    ) -> None:
        self.resolver = resolver
        self.prompt = prompt
        self.auto_detect_delay = auto_detect_delay
        self.state = DetectionState.IDLE
        self.city = ""
        self.error = ""
        self.mounted = True
        self.listeners: List[Callable[[str], None]] = []
        self._auto_attempted = False

    def on_resolved(self, listener: Callable[[str], None]) -> None:
        """Register a collaborator (e.g. a durable store) interested in the detected city."""
        self.listeners.append(listener)

    async def auto_detect(self) -> Optional[str]:
        """Run at most once per mount; adopts a cached city without touching the device."""
        if self._auto_attempted:
            return None
        self._auto_attempted = True
        cached = self.resolver.cached_city()
        if cached is not None:
            self._resolved(cached)
            return cached
        if not self.resolver.detection_in_progress and self.auto_detect_delay > 0:
            await asyncio.sleep(self.auto_detect_delay)
            if not self.mounted:
                return None
        return await self._run(after_prompt=False)

    async def detect(self) -> Optional[str]:
        return await self._run(after_prompt=False)

    async def retry(self) -> Optional[str]:
        return await self._run(after_prompt=True)

    def skip(self) -> None:
        logger.debug("location detection skipped, manual entry")
        self.error = ""

    def unmount(self) -> None:
        self.mounted = False

    async def _run(self, after_prompt: bool) -> Optional[str]:
        self.state = DetectionState.DETECTING
        self.error = ""
        try:
            city = await self.resolver.resolve_current_city()
        except PermissionDeniedError:
            if not self.mounted:
                return None
            self.state = DetectionState.PERMISSION_DENIED
            if after_prompt:
                self._fail(ACCESS_DENIED)
            elif self.prompt is not None:
                self.prompt.show_permission_prompt(self.retry, self.skip)
            return None
        except (ResolutionError, OtherDeviceError) as exc:
            logger.warning("failed to determine city from coordinates: {error}", error=exc)
            if not self.mounted:
                return None
            self.state = DetectionState.FAILED
            self._fail(COULD_NOT_DETERMINE)
            return None
        if not self.mounted:
            return city
        self._resolved(city)
        return city

    def _resolved(self, city: str) -> None:
        self.state = DetectionState.RESOLVED
        self.city = city
        for listener in self.listeners:
            listener(city)

    def _fail(self, message: str) -> None:
        self.error = message
        if self.prompt is not None:
            self.prompt.show_error(message)
