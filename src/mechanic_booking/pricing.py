"""Line and aggregate pricing for canonical bookings."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from .config import Settings, get_settings
from .models import Booking, Job, JobPrice, Part
from .utils import to_float

CENTS = Decimal("0.01")
MINUTES_PER_HOUR = Decimal(60)
CURRENCY_SYMBOL = "£"


def to_decimal(value: Any) -> Decimal:
    """Exact decimal for a stored amount; unparseable values count as zero."""
    return Decimal(repr(to_float(value)))


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(value: Any) -> str:
    """Two fractional digits, rounded half up."""
    amount = value if isinstance(value, Decimal) else to_decimal(value)
    return f"{round_money(amount):.2f}"


def format_currency(value: Any) -> str:
    return f"{CURRENCY_SYMBOL}{format_money(value)}"


@dataclass(frozen=True)
class PriceBreakdown:
    """Full-precision subtotals and VAT-inclusive totals for one booking."""

    service_subtotal: Decimal
    parts_subtotal: Decimal
    service_total: Decimal
    parts_total: Decimal
    grand_total: Decimal

    @property
    def rounded_total(self) -> Decimal:
        return round_money(self.grand_total)

    def display(self) -> dict[str, str]:
        return {
            "service_subtotal": format_money(self.service_subtotal),
            "parts_subtotal": format_money(self.parts_subtotal),
            "service_total": format_money(self.service_total),
            "parts_total": format_money(self.parts_total),
            "grand_total": format_money(self.grand_total),
        }


def job_line_price(booking: Booking, job: Job) -> Decimal:
    """Hourly rate times the contracted duration; zero when the job has no price entry."""
    entry = booking.job_prices.get(job.id)
    if entry is None:
        return Decimal(0)
    return to_decimal(entry.unit_price) * Decimal(entry.duration_minutes) / MINUTES_PER_HOUR


def part_line_price(booking: Booking, part: Part) -> Decimal:
    """Stored price entry if present, otherwise the part's consumer price."""
    entry = booking.part_prices.get(part.id)
    if entry is not None:
        return to_decimal(entry.unit_price)
    return to_decimal(part.price_for_consumer)


def compute_prices(booking: Booking, *, settings: Optional[Settings] = None) -> PriceBreakdown:
    settings = settings or get_settings()
    multiplier = Decimal(1) + Decimal(repr(settings.vat_rate))

    service_subtotal = sum((job_line_price(booking, job) for job in booking.jobs), Decimal(0))
    parts_subtotal = sum(
        (to_decimal(entry.unit_price) for entry in booking.part_prices.values()),
        Decimal(0),
    )
    service_total = service_subtotal * multiplier
    parts_total = parts_subtotal * multiplier
    return PriceBreakdown(
        service_subtotal=service_subtotal,
        parts_subtotal=parts_subtotal,
        service_total=service_total,
        parts_total=parts_total,
        grand_total=service_total + parts_total,
    )


def price_booking(booking: Booking, *, settings: Optional[Settings] = None) -> Booking:
    """Return ``booking`` with ``total_price`` recomputed from its collections."""
    breakdown = compute_prices(booking, settings=settings)
    return booking.model_copy(update={"total_price": float(breakdown.rounded_total)})


def quote_job(job: Job, hourly_rate: Optional[float] = None, *, settings: Optional[Settings] = None) -> JobPrice:
    """Price entry for a job about to be added to a booking."""
    settings = settings or get_settings()
    if hourly_rate is None:
        hourly_rate = job.price_per_hour if job.price_per_hour else settings.default_hourly_rate
    return JobPrice(
        unit_price=to_float(hourly_rate),
        duration_minutes=job.duration or settings.default_job_duration_minutes,
    )
