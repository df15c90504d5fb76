"""Command-line entry point for inspecting bookings and part catalogs."""

from __future__ import annotations

import argparse
import json
import locale
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import structlog

from .catalog import CatalogConfig, view
from .config import Settings
from .normalizer import normalize, normalize_catalog_parts
from .pricing import price_booking
from .summary import format_booking_summary, format_catalog_view


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structlog + stdlib logging."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stderr,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


LOGGER = structlog.get_logger(__name__)


def configure_collation() -> None:
    """Use the user's collation locale for catalog sorting."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        LOGGER.warning("cli.collation_unavailable", error=str(exc))


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Price bookings and browse part catalogs.")
    commands = parser.add_subparsers(dest="command", required=True)

    price = commands.add_parser("price", help="Print the priced summary of a booking JSON file.")
    price.add_argument("path", type=Path)

    catalog = commands.add_parser("catalog", help="Filter, sort and group a part catalog JSON file.")
    catalog.add_argument("path", type=Path)
    catalog.add_argument("--search", default="")
    catalog.add_argument("--tier", default="all")
    catalog.add_argument("--category", default="all")
    catalog.add_argument("--group", default="all")
    catalog.add_argument("--stock", choices=["all", "in-stock", "out-of-stock"], default="all")
    catalog.add_argument("--sort", choices=["name", "sku", "price", "tier", "category", "stock"])
    catalog.add_argument("--desc", action="store_true", help="Sort descending.")
    catalog.add_argument("--grouped", action="store_true", help="Group parts by category.")
    catalog.add_argument("--visibility", choices=["active", "deleted", "all"], default="active")
    return parser.parse_args(argv)


def read_json(path: Path) -> Any:
    """Load a JSON document, unwrapping the API's ``responseObject`` envelope."""
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict) and "responseObject" in data:
        return data["responseObject"]
    return data


def cli(argv: Optional[list[str]] = None) -> int:
    """Console script entrypoint."""
    args = parse_args(argv)
    settings = Settings()
    configure_logging(getattr(logging, settings.log_level.upper(), logging.INFO))
    configure_collation()

    try:
        data = read_json(args.path)
    except (OSError, ValueError) as exc:
        LOGGER.error("cli.input_unreadable", path=str(args.path), error=str(exc))
        print(f"Error: cannot read {args.path}: {exc}", file=sys.stderr)
        return 1

    if args.command == "price":
        if isinstance(data, list):
            data = data[0] if data else {}
        booking = price_booking(normalize(data), settings=settings)
        print(format_booking_summary(booking, settings=settings))
        return 0

    config = CatalogConfig(
        search=args.search,
        tier=args.tier,
        category=args.category,
        group=args.group,
        stock=args.stock,
        sort_key=args.sort,
        sort_direction="desc" if args.desc else "asc",
        grouped=args.grouped,
        visibility=args.visibility,
    )
    print(format_catalog_view(view(normalize_catalog_parts(data), config)))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(cli())
