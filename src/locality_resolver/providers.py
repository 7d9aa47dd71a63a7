from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

import httpx
from loguru import logger
from pydantic import ValidationError as PayloadError

from .config import ProviderConfig
from .errors import ProviderError, ResolutionError
from .models import AddressFields, PlaceDetails, PlacePrediction, ReverseGeocodeResult

SUCCESS_STATUSES = {"OK", "ZERO_RESULTS"}
DETAIL_FIELDS = ("address_components", "formatted_address")


class SearchProvider(ABC):
    """Network-backed predictive search and reverse geocoding.

    One request per call. Implementations never cache or deduplicate; that is
    left to the callers.
    """

    @abstractmethod
    async def predict(
        self,
        text: str,
        country: Optional[str] = None,
        types: Optional[Sequence[str]] = None,
    ) -> List[PlacePrediction]:
        ...

    @abstractmethod
    async def resolve_coordinate(self, latitude: float, longitude: float) -> ReverseGeocodeResult:
        ...

    @abstractmethod
    async def place_details(self, place_id: str) -> PlaceDetails:
        ...

    async def aclose(self) -> None:
        return None


class HttpSearchProvider(SearchProvider):
    """Google Places autocomplete/details plus Nominatim reverse geocoding over httpx."""

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds),
            headers={"User-Agent": config.user_agent},
        )

    async def __aenter__(self) -> "HttpSearchProvider":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def predict(
        self,
        text: str,
        country: Optional[str] = None,
        types: Optional[Sequence[str]] = None,
    ) -> List[PlacePrediction]:
        params: dict[str, Any] = {"input": text, "key": self.config.api_key}
        if country:
            params["components"] = f"country:{country}"
        if types:
            params["types"] = "|".join(types)
        payload = await self._get_json(self.config.autocomplete_url, params, ProviderError)
        status = str(payload.get("status") or "")
        if status not in SUCCESS_STATUSES:
            raise ProviderError(f"autocomplete returned status {status or 'missing'}: {payload.get('error_message', '')}")
        predictions: List[PlacePrediction] = []
        for row in payload.get("predictions") or []:
            if not isinstance(row, dict) or not row.get("place_id"):
                continue
            formatting = row.get("structured_formatting") or {}
            predictions.append(
                PlacePrediction(
                    place_id=str(row["place_id"]),
                    description=str(row.get("description") or ""),
                    main_text=str(formatting.get("main_text") or ""),
                    secondary_text=str(formatting.get("secondary_text") or ""),
                )
            )
        logger.debug("autocomplete {text!r} -> {count} predictions", text=text, count=len(predictions))
        return predictions

    async def resolve_coordinate(self, latitude: float, longitude: float) -> ReverseGeocodeResult:
        params = {
            "format": "json",
            "lat": latitude,
            "lon": longitude,
            "addressdetails": 1,
            "zoom": self.config.reverse_zoom,
        }
        payload = await self._get_json(self.config.reverse_url, params, ResolutionError)
        if payload.get("error"):
            raise ResolutionError(f"reverse geocoding failed: {payload['error']}")
        try:
            result = ReverseGeocodeResult(
                name=payload.get("name") or None,
                display_name=payload.get("display_name") or None,
                address=AddressFields.model_validate(payload.get("address") or {}),
            )
        except PayloadError as exc:
            raise ResolutionError("reverse geocoding returned a malformed address") from exc
        if not has_usable_field(result):
            raise ResolutionError(f"no usable address fields for ({latitude}, {longitude})")
        return result

    async def place_details(self, place_id: str) -> PlaceDetails:
        params = {"place_id": place_id, "fields": ",".join(DETAIL_FIELDS), "key": self.config.api_key}
        payload = await self._get_json(self.config.details_url, params, ProviderError)
        if payload.get("status") != "OK" or not isinstance(payload.get("result"), dict):
            raise ProviderError(f"place details returned status {payload.get('status')}")
        try:
            return PlaceDetails(**payload["result"])
        except PayloadError as exc:
            raise ProviderError("place details payload is malformed") from exc

    async def _get_json(self, url: str, params: dict[str, Any], error_cls: type[Exception]) -> dict[str, Any]:
        try:
            response = await self.client.get(url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise error_cls(f"request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise error_cls(f"invalid JSON from {url}") from exc
        if not isinstance(payload, dict):
            raise error_cls(f"unexpected payload type from {url}: {type(payload).__name__}")
        return payload


def has_usable_field(result: ReverseGeocodeResult) -> bool:
    if result.name or result.display_name:
        return True
    if result.address is None:
        return False
    return any(result.address.model_dump().values())
