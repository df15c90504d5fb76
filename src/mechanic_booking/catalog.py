"""Search, filter, sort and grouping views over catalog data.

All functions here derive new sequences; the catalog lists handed in are
never reordered or modified.
"""

from __future__ import annotations

import locale
import unicodedata
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel

from .models import Booking, CatalogPart, Job
from .pricing import MINUTES_PER_HOUR, to_decimal

StockFilter = Literal["all", "in-stock", "out-of-stock"]
SortKey = Literal["name", "sku", "price", "tier", "category", "stock"]
JobSortKey = Literal["name", "duration", "category"]
SortDirection = Literal["asc", "desc"]
Visibility = Literal["active", "deleted", "all"]

UNCATEGORISED = "Uncategorised"
DISABLED_FILTER_VALUES = {"", "all"}


class CatalogConfig(BaseModel):
    """Filter, sort and grouping options for a part catalog view."""

    search: str = ""
    tier: str = "all"
    category: str = "all"
    group: str = "all"
    stock: StockFilter = "all"
    sort_key: Optional[SortKey] = None
    sort_direction: SortDirection = "asc"
    grouped: bool = False
    visibility: Visibility = "active"


@dataclass(frozen=True)
class CatalogEntry:
    """A catalog part plus whether the booking being edited already holds it."""

    part: CatalogPart
    already_added: bool = False


@dataclass(frozen=True)
class CatalogGroup:
    entries: List[CatalogEntry]
    category_image: str = ""


CatalogView = Union[List[CatalogEntry], Dict[str, CatalogGroup]]


@dataclass(frozen=True)
class JobSelectionSummary:
    total_minutes: int
    total_price: Decimal


def fold_accents(value: str) -> str:
    """Strip combining marks so accented letters sort beside their base letter."""
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char))


def text_sort_key(value: str) -> tuple[str, str]:
    """Locale-aware ordering: accent- and case-insensitive first, exact text as tie-break."""
    value = value or ""
    return locale.strxfrm(fold_accents(value).casefold()), locale.strxfrm(value)


PART_SORT_KEYS: Dict[str, Callable[[CatalogPart], Any]] = {
    "name": lambda part: text_sort_key(part.title),
    "sku": lambda part: text_sort_key(part.sku),
    "price": lambda part: part.price_for_consumer,
    "tier": lambda part: text_sort_key(part.tier),
    "category": lambda part: text_sort_key(part.category),
    "stock": lambda part: text_sort_key(part.stock_summary),
}

JOB_SORT_KEYS: Dict[str, Callable[[Job], Any]] = {
    "name": lambda job: text_sort_key(job.name),
    "duration": lambda job: job.duration,
    "category": lambda job: text_sort_key(job.category),
}


def view(
    parts: Iterable[CatalogPart],
    config: Optional[CatalogConfig] = None,
    *,
    booking: Optional[Booking] = None,
) -> CatalogView:
    """Derive the visible catalog: a flat list, or groups keyed by category."""
    config = config or CatalogConfig()
    selected = set(booking.part_ids()) if booking is not None else set()

    matching = [part for part in parts if _matches(part, config)]
    ordered = _sort(matching, PART_SORT_KEYS, config.sort_key, config.sort_direction)
    entries = [CatalogEntry(part=part, already_added=part.id in selected) for part in ordered]

    if not config.grouped:
        return entries

    buckets: Dict[str, List[CatalogEntry]] = {}
    for entry in entries:
        label = entry.part.category.strip() or UNCATEGORISED
        buckets.setdefault(label, []).append(entry)

    return {
        label: CatalogGroup(
            entries=buckets[label],
            category_image=next((entry.part.image for entry in buckets[label] if entry.part.image), ""),
        )
        for label in sorted(buckets, key=text_sort_key)
    }


def _matches(part: CatalogPart, config: CatalogConfig) -> bool:
    if config.visibility == "active" and part.is_deleted:
        return False
    if config.visibility == "deleted" and not part.is_deleted:
        return False

    if _enabled(config.tier) and part.tier.lower() != config.tier.strip().lower():
        return False
    if _enabled(config.category) and part.category.lower() != config.category.strip().lower():
        return False
    if _enabled(config.group):
        wanted = config.group.strip().lower()
        if not any(group.lower() == wanted for group in part.groups):
            return False

    if config.stock != "all":
        if part.in_stock != (config.stock == "in-stock"):
            return False

    needle = config.search.strip().lower()
    if needle:
        haystack = [part.title, part.sku, part.category, *part.groups]
        if not any(needle in value.lower() for value in haystack):
            return False
    return True


def _enabled(value: str) -> bool:
    return value.strip().lower() not in DISABLED_FILTER_VALUES


def _sort(
    items: Sequence[Any],
    keys: Dict[str, Callable[[Any], Any]],
    sort_key: Optional[str],
    direction: str,
) -> List[Any]:
    if not sort_key or sort_key not in keys:
        return list(items)
    return sorted(items, key=keys[sort_key], reverse=direction == "desc")


def view_jobs(
    jobs: Iterable[Job],
    search: str = "",
    sort_key: Optional[JobSortKey] = None,
    direction: SortDirection = "asc",
) -> List[Job]:
    """Filter the job catalog by name/description and sort it."""
    needle = search.strip().lower()
    matching = [
        job for job in jobs if not needle or needle in job.name.lower() or needle in job.description.lower()
    ]
    return _sort(matching, JOB_SORT_KEYS, sort_key, direction)


def summarize_jobs(jobs: Iterable[Job]) -> JobSelectionSummary:
    """Combined duration and price of a job selection at each job's own hourly rate."""
    total_minutes = 0
    total_price = Decimal(0)
    for job in jobs:
        total_minutes += job.duration
        total_price += to_decimal(job.price_per_hour) * Decimal(job.duration) / MINUTES_PER_HOUR
    return JobSelectionSummary(total_minutes=total_minutes, total_price=total_price)


def filter_bookings(bookings: Iterable[Booking], status: str = "all", search: str = "") -> List[Booking]:
    """Booking list filter: exact status unless ``all``, then a free-text match."""
    needle = search.strip().lower()
    matching = []
    for booking in bookings:
        if status != "all" and booking.status != status:
            continue
        if needle:
            haystack = [
                booking.vehicle.plate,
                booking.vehicle.make,
                booking.vehicle.model,
                booking.location.postal_code,
                booking.mechanic.name if booking.mechanic else "",
            ]
            if not any(needle in value.lower() for value in haystack):
                continue
        matching.append(booking)
    return matching


__all__ = [
    "CatalogConfig",
    "CatalogEntry",
    "CatalogGroup",
    "JobSelectionSummary",
    "filter_bookings",
    "summarize_jobs",
    "view",
    "view_jobs",
]
