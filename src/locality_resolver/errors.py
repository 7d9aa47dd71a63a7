from __future__ import annotations


class LocalityError(Exception):
    ...


class ProviderError(LocalityError):
    """Predictive search failed: transport error or a non-success provider status."""


class ResolutionError(LocalityError):
    """Reverse geocoding failed or returned no usable address field."""


class DeviceLocationError(LocalityError):
    ...


class PermissionDeniedError(DeviceLocationError):
    ...


class OtherDeviceError(DeviceLocationError):
    ...


class DatasetError(LocalityError):
    ...


class ValidationError(LocalityError):
    ...
