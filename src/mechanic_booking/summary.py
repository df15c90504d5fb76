"""Plain-text rendering of bookings and catalog views."""

from __future__ import annotations

from typing import List, Optional

from .catalog import CatalogEntry, CatalogView
from .config import Settings
from .models import Booking
from .pricing import compute_prices, format_currency, job_line_price, part_line_price
from .utils import format_date, format_duration, normalise_whitespace


def format_booking_summary(booking: Booking, *, settings: Optional[Settings] = None) -> str:
    """Build a human-friendly summary of a booking and its VAT-inclusive costs."""
    breakdown = compute_prices(booking, settings=settings)
    vehicle = booking.vehicle
    heading = " ".join(part for part in (vehicle.make, vehicle.model) if part) or "Vehicle"
    if vehicle.plate:
        heading = f"{heading} ({vehicle.plate})"

    lines: List[str] = [
        f"Booking {booking.id or 'unsaved'}: {heading}",
        f"Status: {booking.status}",
    ]
    if booking.mechanic:
        lines.append(f"Mechanic: {_fallback(booking.mechanic.name, booking.mechanic.id)}")
    else:
        lines.append("Mechanic: unassigned")
    if booking.location.postal_code:
        lines.append(f"Postcode: {booking.location.postal_code}")
    if booking.created_at and format_date(booking.created_at):
        lines.append(f"Created: {format_date(booking.created_at)}")
    lines.append("")

    if booking.jobs:
        lines.append("Jobs:")
        for job in booking.jobs:
            entry = booking.job_prices.get(job.id)
            minutes = entry.duration_minutes if entry else job.duration
            price = format_currency(job_line_price(booking, job))
            lines.append(f"- {_fallback(job.name, job.id)}: {price} ({format_duration(minutes)})")
    else:
        lines.append("No jobs selected.")

    if booking.part_items:
        lines.append("Parts:")
        for part in booking.part_items:
            tier = f" [{part.tier}]" if part.tier else ""
            lines.append(f"- {_fallback(part.title, part.id)}{tier}: {format_currency(part_line_price(booking, part))}")
    else:
        lines.append("No parts selected.")

    if booking.schedules:
        lines.append("Schedule:")
        for slot in booking.schedules:
            dates = ", ".join(slot.dates) or "no dates"
            done = " (completed)" if slot.completed else ""
            notes = f" - {slot.notes}" if slot.notes else ""
            lines.append(f"- {_fallback(slot.time_interval, 'any time')} on {dates}{done}{notes}")

    lines.append("")
    lines.append(f"Service cost (incl. VAT): {format_currency(breakdown.service_total)}")
    lines.append(f"Parts cost (incl. VAT): {format_currency(breakdown.parts_total)}")
    lines.append(f"Total (incl. VAT): {format_currency(breakdown.grand_total)}")
    return "\n".join(lines)


def format_catalog_view(catalog: CatalogView) -> str:
    """One line per part; grouped views get a heading per category."""
    if isinstance(catalog, dict):
        if not catalog:
            return "No parts found."
        lines: List[str] = []
        for label, group in catalog.items():
            lines.append(f"{label} ({len(group.entries)})")
            lines.extend(f"  {format_catalog_entry(entry)}" for entry in group.entries)
        return "\n".join(lines)
    if not catalog:
        return "No parts found."
    return "\n".join(format_catalog_entry(entry) for entry in catalog)


def format_catalog_entry(entry: CatalogEntry) -> str:
    part = entry.part
    pieces = [_fallback(part.title, part.id)]
    if part.sku:
        pieces.append(part.sku)
    if part.tier:
        pieces.append(part.tier)
    pieces.append(format_currency(part.price_for_consumer))
    if part.stock_summary:
        pieces.append(normalise_whitespace(part.stock_summary))
    if entry.already_added:
        pieces.append("added")
    return " | ".join(pieces)


def _fallback(value: Optional[str], default: str) -> str:
    candidate = normalise_whitespace(value or "")
    return candidate if candidate else default
