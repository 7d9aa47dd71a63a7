from __future__ import annotations

from pathlib import Path

from loguru import logger

from .config import ResolverConfig, load_config
from .dataset import LocalityDataset
from .errors import DatasetError, ValidationError


def validate_dataset(config: ResolverConfig) -> LocalityDataset:
    if config.dataset.file is None:
        dataset = LocalityDataset.bundled()
        logger.info("using bundled localities ({count} entries)", count=len(dataset))
        return dataset
    if not config.dataset.file.exists():
        raise ValidationError(f"locality table not found: {config.dataset.file}")
    try:
        dataset = LocalityDataset.from_table(config.dataset.file, sheet_name=config.dataset.sheet)
    except DatasetError as exc:
        raise ValidationError(str(exc)) from exc
    if not len(dataset):
        raise ValidationError(f"locality table {config.dataset.file} has no usable rows")
    return dataset


def validate_provider(config: ResolverConfig) -> None:
    if not config.provider.api_key:
        logger.warning("provider.api_key is empty; searches will fall back to the bundled localities")
    if config.provider.timeout_seconds <= 0:
        raise ValidationError("provider.timeout_seconds must be positive")


def validate_search(config: ResolverConfig) -> None:
    if config.search.debounce_seconds < 0:
        raise ValidationError("search.debounce_seconds must not be negative")
    if config.search.filter_to_region and not any(term.strip() for term in config.search.region_terms):
        raise ValidationError("search.filter_to_region is enabled but search.region_terms is empty")
    if config.cache.search_ttl_seconds > config.cache.location_ttl_seconds:
        logger.warning(
            "search results outlive the detected location ({search}s > {location}s)",
            search=config.cache.search_ttl_seconds,
            location=config.cache.location_ttl_seconds,
        )


def run_validation(config_path: Path) -> ResolverConfig:
    cfg = load_config(config_path)
    validate_dataset(cfg)
    validate_provider(cfg)
    validate_search(cfg)
    logger.info("configuration check passed")
    return cfg
