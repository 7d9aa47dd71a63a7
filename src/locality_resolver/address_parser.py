from __future__ import annotations

from typing import Iterable

from .models import AddressComponent, ParsedAddress, PlaceDetails

PLACEHOLDER_LABELS = frozenset({"Please type your city", "No cities found"})


class AddressParser:
    """Splits a provider place-details payload into form fields."""

    def parse(self, details: PlaceDetails) -> ParsedAddress:
        parsed = self.parse_components(details.address_components)
        if not parsed.street and details.formatted_address:
            parsed.street = details.formatted_address
        return parsed

    def parse_components(self, components: Iterable[AddressComponent]) -> ParsedAddress:
        result = ParsedAddress()
        street_number = ""
        route = ""
        for component in components:
            types = component.types
            if "street_number" in types:
                street_number = component.long_name
            elif "route" in types:
                route = component.long_name
            elif "locality" in types:
                result.city = component.long_name
            elif "administrative_area_level_1" in types:
                result.province = component.short_name or component.long_name
            elif "postal_code" in types:
                result.postal_code = component.long_name
        result.street = " ".join(part for part in (street_number, route) if part)
        return result


def is_placeholder(label: str) -> bool:
    return label in PLACEHOLDER_LABELS
