from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from .config import ResolverConfig, load_config
from .errors import ValidationError
from .models import Coordinate
from .providers import HttpSearchProvider
from .services import LocationServices
from .validator import run_validation


class FixedPosition:
    """Position source that reports coordinates given on the command line."""

    def __init__(self, latitude: float, longitude: float) -> None:
        self.coordinate = Coordinate(latitude=latitude, longitude=longitude)

    async def request_current_position(self) -> Coordinate:
        return self.coordinate


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="locality-resolver",
        description="Place autocomplete and current-city detection for clinic onboarding forms",
    )
    parser.add_argument("config", type=Path, help="path to the YAML configuration file")
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="run one autocomplete query")
    search.add_argument("text", help="query text")
    search.add_argument("--mode", choices=["city", "address", "clinic"], default="city")

    locate = commands.add_parser("locate", help="resolve coordinates to a city name")
    locate.add_argument("--lat", type=float, required=True)
    locate.add_argument("--lon", type=float, required=True)

    commands.add_parser("validate", help="check the configuration and locality table")
    return parser


def configure_logging(config: ResolverConfig) -> None:
    logger.remove()
    logger.add(sys.stderr, level=config.runtime.log_level.upper())


async def run_search(config: ResolverConfig, text: str, mode: str) -> dict:
    async with HttpSearchProvider(config.provider) as provider:
        services = LocationServices(config, provider)
        result = await services.field(mode).search_now(text)
    payload = result.model_dump(mode="json") if result is not None else {}
    return payload


async def run_locate(config: ResolverConfig, latitude: float, longitude: float) -> dict:
    async with HttpSearchProvider(config.provider) as provider:
        services = LocationServices(config, provider, position_source=FixedPosition(latitude, longitude))
        detector = services.detector()
        city = await detector.detect()
    return {"city": city, "state": detector.state.value, "error": detector.error or None}


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "validate":
        try:
            run_validation(args.config)
        except ValidationError as exc:
            logger.error(str(exc))
            raise SystemExit(1)
        return

    config = load_config(args.config)
    configure_logging(config)
    if args.command == "search":
        output = asyncio.run(run_search(config, args.text, args.mode))
    else:
        output = asyncio.run(run_locate(config, args.lat, args.lon))
    print(json.dumps(output, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
