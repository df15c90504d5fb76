"""Conversion of raw booking records into the canonical ``Booking`` shape.

The booking API has returned two historical layouts for price collections:
an ordered list of ``{id, price, duration}`` records and a mapping keyed by
id. Older records also use ``car``/``jobsPrices``/``partItemsPrices`` where
newer ones use ``vehicleRef``/``jobPrices``/``partPrices``. Everything is
folded into one shape here so nothing downstream branches on layout.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from .config import Settings, get_settings
from .models import (
    BOOKING_STATUSES,
    Booking,
    CatalogPart,
    Job,
    JobPrice,
    Location,
    MechanicRef,
    Part,
    PartPrice,
    TimeSlot,
    Vehicle,
)
from .utils import first_non_empty, new_temporary_id, now_iso, split_dates, to_float, to_int, to_text

LOGGER = structlog.get_logger(__name__)


def normalize(raw: Any) -> Booking:
    """Return the canonical form of ``raw``. Never raises."""
    if isinstance(raw, Booking):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, Mapping):
        LOGGER.debug("normalize.degraded", field="booking", received=type(raw).__name__)
        raw = {}

    booking_id = to_text(raw.get("id"))
    jobs = _jobs(_pick(raw, "jobs"))
    part_items = _parts(_pick(raw, "partItems", "part_items"))

    try:
        return Booking(
            id=booking_id,
            vehicle=_vehicle(_pick(raw, "vehicleRef", "car", "vehicle")),
            jobs=jobs,
            job_prices=_job_prices(_pick(raw, "jobPrices", "jobsPrices", "job_prices"), jobs),
            part_items=part_items,
            part_prices=_part_prices(_pick(raw, "partPrices", "partItemsPrices", "part_prices"), part_items),
            schedules=_schedules(_pick(raw, "schedules")),
            location=_location(raw.get("location")),
            mechanic=_mechanic(raw.get("mechanic"), raw.get("mechanicId")),
            status=_status(raw.get("status")),
            total_price=to_float(_pick(raw, "totalPrice", "total_price")),
            created_at=to_text(_pick(raw, "createdAt", "created_at")),
        )
    except ValidationError as exc:  # pragma: no cover - inputs are coerced above
        LOGGER.warning("normalize.failed", booking_id=booking_id, error=str(exc))
        return Booking(id=booking_id)


def to_wire(booking: Booking) -> Dict[str, Any]:
    """Serialize a canonical booking into the API's camelCase layout."""
    return {
        "id": booking.id,
        "car": booking.vehicle.model_dump(by_alias=True),
        "jobs": [job.model_dump(by_alias=True, exclude_none=True) for job in booking.jobs],
        "jobsPrices": [
            {"id": job_id, "price": entry.unit_price, "duration": entry.duration_minutes}
            for job_id, entry in booking.job_prices.items()
        ],
        "partItems": [part.model_dump(by_alias=True, exclude_none=True) for part in booking.part_items],
        "partItemsPrices": {
            part_id: {"price": entry.unit_price} for part_id, entry in booking.part_prices.items()
        },
        "schedules": [slot.model_dump(by_alias=True, exclude_none=True) for slot in booking.schedules],
        "location": booking.location.model_dump(by_alias=True),
        "mechanic": booking.mechanic.model_dump() if booking.mechanic else None,
        "status": booking.status,
        "totalPrice": booking.total_price,
        "createdAt": booking.created_at,
    }


def new_draft(vehicle_id: str, *, settings: Optional[Settings] = None) -> Booking:
    """Synthesize a pending booking for a known vehicle before the server has seen it."""
    settings = settings or get_settings()
    return Booking(
        id=new_temporary_id(settings.temp_id_prefix),
        vehicle=Vehicle(id=vehicle_id),
        status="pending",
        total_price=0.0,
        created_at=now_iso(),
    )


def is_temporary_id(booking_id: str, *, settings: Optional[Settings] = None) -> bool:
    settings = settings or get_settings()
    return not booking_id or booking_id.startswith(settings.temp_id_prefix)


def adopt_server_identity(draft: Booking, confirmed: Any, *, settings: Optional[Settings] = None) -> Booking:
    """Replace a draft with the server-confirmed record once creation succeeds."""
    booking = normalize(confirmed)
    if is_temporary_id(booking.id, settings=settings):
        LOGGER.warning("normalize.server_id_missing", draft_id=draft.id, received_id=booking.id)
    else:
        LOGGER.info("normalize.draft_confirmed", draft_id=draft.id, booking_id=booking.id)
    return booking


def _pick(raw: Mapping, *keys: str) -> Any:
    """First present value among alternative spellings of one field."""
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _as_list(value: Any, field: str) -> List[Any]:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return list(value)
    if value is not None:
        LOGGER.debug("normalize.degraded", field=field, received=type(value).__name__)
    return []


def _vehicle(value: Any) -> Vehicle:
    if not isinstance(value, Mapping):
        return Vehicle()
    bookings = []
    for entry in _as_list(value.get("bookings"), "vehicle.bookings"):
        entry_id = to_text(entry.get("id")) if isinstance(entry, Mapping) else to_text(entry)
        if entry_id:
            bookings.append(entry_id)
    return Vehicle(
        id=to_text(value.get("id")),
        make=to_text(value.get("make")),
        model=to_text(value.get("model")),
        plate=to_text(_pick(value, "carNumber", "plate")),
        vin=to_text(value.get("vin")),
        bookings=bookings,
    )


def _jobs(value: Any) -> List[Job]:
    jobs = []
    for entry in _as_list(value, "jobs"):
        if not isinstance(entry, Mapping):
            continue
        rate = _pick(entry, "pricePerHour", "price_per_hour")
        jobs.append(
            Job(
                id=to_text(entry.get("id")),
                name=to_text(entry.get("name")),
                duration=to_int(entry.get("duration")),
                description=to_text(entry.get("description")),
                category=to_text(entry.get("category")),
                price_per_hour=to_float(rate) if rate is not None else None,
            )
        )
    return jobs


def _price_entries(value: Any, field: str) -> Dict[str, Any]:
    """Key raw price entries by id whichever layout they arrive in."""
    if isinstance(value, Mapping):
        return {to_text(key): entry for key, entry in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        keyed = {}
        for entry in value:
            if isinstance(entry, Mapping) and to_text(entry.get("id")):
                keyed[to_text(entry.get("id"))] = entry
        return keyed
    if value is not None:
        LOGGER.debug("normalize.degraded", field=field, received=type(value).__name__)
    return {}


def _unit_price(entry: Any) -> float:
    if isinstance(entry, Mapping):
        return to_float(_pick(entry, "price", "unitPrice", "unit_price"))
    return to_float(entry)


def _job_prices(value: Any, jobs: List[Job]) -> Dict[str, JobPrice]:
    durations = {job.id: job.duration for job in jobs}
    prices = {}
    for job_id, entry in _price_entries(value, "jobPrices").items():
        if job_id not in durations:
            LOGGER.debug("normalize.orphan_price", field="jobPrices", job_id=job_id)
            continue
        duration = 0
        if isinstance(entry, Mapping):
            duration = to_int(_pick(entry, "duration", "durationMinutes", "duration_minutes"))
        prices[job_id] = JobPrice(
            unit_price=_unit_price(entry),
            duration_minutes=duration or durations[job_id],
        )
    return prices


def _part_fields(entry: Mapping) -> Dict[str, Any]:
    acquisition = entry.get("price")
    return {
        "id": to_text(entry.get("id")),
        "title": to_text(_pick(entry, "title", "name")),
        "sku": to_text(_pick(entry, "sku", "itemCode")),
        "tier": to_text(entry.get("tier")),
        "stock_summary": to_text(_pick(entry, "stockSummary", "stock_summary")),
        "stock_quantity": to_int(_pick(entry, "stockQuantity", "stock_quantity")),
        "price_for_consumer": to_float(_pick(entry, "priceForConsumer", "price_for_consumer")),
        "price": to_float(acquisition) if acquisition is not None else None,
        "category": to_text(entry.get("category")),
    }


def _parts(value: Any) -> List[Part]:
    return [Part(**_part_fields(entry)) for entry in _as_list(value, "partItems") if isinstance(entry, Mapping)]


def normalize_catalog_parts(raw: Any) -> List[CatalogPart]:
    """Canonical catalog parts from an API payload; entries that are not records are dropped."""
    parts = []
    for entry in _as_list(raw, "catalog"):
        if not isinstance(entry, Mapping):
            continue
        groups = [to_text(group) for group in _as_list(_pick(entry, "groups", "top"), "catalog.groups")]
        parts.append(
            CatalogPart(
                **_part_fields(entry),
                groups=[group for group in groups if group],
                image=to_text(_pick(entry, "image", "categoryImage")),
                is_deleted=bool(_pick(entry, "isDeleted", "is_deleted")),
            )
        )
    return parts


def _part_prices(value: Any, parts: List[Part]) -> Dict[str, PartPrice]:
    known = {part.id for part in parts}
    prices = {}
    for part_id, entry in _price_entries(value, "partPrices").items():
        if part_id not in known:
            LOGGER.debug("normalize.orphan_price", field="partPrices", part_id=part_id)
            continue
        prices[part_id] = PartPrice(unit_price=_unit_price(entry))
    return prices


def _schedules(value: Any) -> List[TimeSlot]:
    slots = []
    for entry in _as_list(value, "schedules"):
        if not isinstance(entry, Mapping):
            continue
        dates = entry.get("dates")
        if isinstance(dates, str):
            date_list = split_dates(dates)
        else:
            date_list = [to_text(item) for item in _as_list(dates, "schedules.dates") if to_text(item)]
        notes = entry.get("notes")
        completed = entry.get("completed")
        slots.append(
            TimeSlot(
                id=to_text(entry.get("id")),
                time_interval=to_text(_pick(entry, "timeInterval", "time_interval")),
                dates=date_list,
                notes=to_text(notes) if notes is not None else None,
                completed=bool(completed) if completed is not None else None,
            )
        )
    return slots


def _location(value: Any) -> Location:
    if isinstance(value, Mapping):
        return Location(postal_code=to_text(_pick(value, "postalCode", "postal_code")))
    return Location()


def _mechanic(value: Any, mechanic_id: Any) -> Optional[MechanicRef]:
    if isinstance(value, Mapping) and to_text(value.get("id")):
        full_name = " ".join(
            part for part in (to_text(value.get("firstName")), to_text(value.get("lastName"))) if part
        )
        return MechanicRef(
            id=to_text(value.get("id")),
            name=first_non_empty([to_text(value.get("name")), full_name]) or "",
            contact=first_non_empty(
                [to_text(value.get("contact")), to_text(value.get("phone")), to_text(value.get("email"))]
            )
            or "",
        )
    if to_text(mechanic_id):
        return MechanicRef(id=to_text(mechanic_id))
    return None


def _status(value: Any) -> str:
    status = to_text(value).strip().lower()
    if status in BOOKING_STATUSES:
        return status
    if status:
        LOGGER.debug("normalize.degraded", field="status", received=status)
    return "pending"
