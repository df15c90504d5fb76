"""Edits applied to a canonical booking.

Every operation takes a booking plus an edit and returns a ``MutationResult``.
The input booking is never modified. A successful result carries a new,
re-priced booking whose ``job_prices`` keys are a subset of its job ids and
whose ``part_prices`` keys are a subset of its part ids. A rejected edit
carries the input booking untouched plus a ``MutationSignal`` naming why.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional, Sequence, Union

import structlog

from .config import Settings, get_settings
from .models import BOOKING_STATUSES, ActingUser, Booking, Job, JobPrice, Location, MechanicRef, Part, PartPrice, TimeSlot
from .pricing import price_booking
from .utils import is_valid_postcode, new_temporary_id, split_dates, to_text

LOGGER = structlog.get_logger(__name__)

DEFAULT_TIME_INTERVAL = "09:00-17:00"
JOB_TEXT_FIELDS = frozenset({"name", "description", "category"})
SCHEDULE_TEXT_FIELDS = frozenset({"time_interval", "notes"})
SCHEDULE_FLAG_FIELDS = frozenset({"completed"})


class MutationSignal(str, Enum):
    DUPLICATE = "duplicate"
    OUT_OF_STOCK = "out_of_stock"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


@dataclass(frozen=True)
class MutationResult:
    booking: Booking
    signal: Optional[MutationSignal] = None

    @property
    def ok(self) -> bool:
        return self.signal is None


@dataclass(frozen=True)
class TextEdit:
    """Replace a free-text field."""

    field: str
    value: str


@dataclass(frozen=True)
class DurationEdit:
    """Replace a job duration, in minutes."""

    minutes: Union[int, str]


@dataclass(frozen=True)
class PriceEdit:
    """Replace the agreed hourly rate of a job."""

    amount: Union[float, str]


@dataclass(frozen=True)
class DateListEdit:
    """Replace a slot's dates from a comma-delimited string or a sequence."""

    value: Union[str, Sequence[str]]


@dataclass(frozen=True)
class FlagEdit:
    field: str
    value: bool


FieldEdit = Union[TextEdit, DurationEdit, PriceEdit, DateListEdit, FlagEdit]


def add_job(booking: Booking, job: Job, price: JobPrice, *, settings: Optional[Settings] = None) -> MutationResult:
    if job.id in booking.job_ids():
        return _reject("add_job", booking, MutationSignal.DUPLICATE, job_id=job.id)
    updated = booking.model_copy(
        update={
            "jobs": [*booking.jobs, job],
            "job_prices": {**booking.job_prices, job.id: price},
        }
    )
    return _accept("add_job", updated, settings)


def remove_job(booking: Booking, index: int, *, settings: Optional[Settings] = None) -> MutationResult:
    if not _in_range(index, booking.jobs):
        return _reject("remove_job", booking, MutationSignal.NOT_FOUND, index=index)
    removed = booking.jobs[index]
    jobs = booking.jobs[:index] + booking.jobs[index + 1 :]
    job_prices = dict(booking.job_prices)
    if removed.id not in {job.id for job in jobs}:
        job_prices.pop(removed.id, None)
    return _accept("remove_job", booking.model_copy(update={"jobs": jobs, "job_prices": job_prices}), settings)


def edit_job_field(
    booking: Booking,
    index: int,
    edit: FieldEdit,
    *,
    actor: Optional[ActingUser] = None,
    settings: Optional[Settings] = None,
) -> MutationResult:
    """Edit one job field; a duration edit also updates the billed duration."""
    if not _in_range(index, booking.jobs):
        return _reject("edit_job_field", booking, MutationSignal.NOT_FOUND, index=index)
    job = booking.jobs[index]
    job_prices = dict(booking.job_prices)

    if isinstance(edit, TextEdit) and edit.field in JOB_TEXT_FIELDS:
        job = job.model_copy(update={edit.field: to_text(edit.value)})
    elif isinstance(edit, DurationEdit):
        minutes = _parse_non_negative(edit.minutes, integer=True)
        if minutes is None:
            return _reject("edit_job_field", booking, MutationSignal.INVALID, field="duration")
        job = job.model_copy(update={"duration": int(minutes)})
        if job.id in job_prices:
            job_prices[job.id] = job_prices[job.id].model_copy(update={"duration_minutes": int(minutes)})
    elif isinstance(edit, PriceEdit):
        if not _is_admin(actor):
            return _reject("edit_job_field", booking, MutationSignal.FORBIDDEN, field="price")
        amount = _parse_non_negative(edit.amount)
        if amount is None:
            return _reject("edit_job_field", booking, MutationSignal.INVALID, field="price")
        current = job_prices.get(job.id) or JobPrice(duration_minutes=job.duration)
        job_prices[job.id] = current.model_copy(update={"unit_price": amount})
    else:
        return _reject("edit_job_field", booking, MutationSignal.INVALID, edit=type(edit).__name__)

    jobs = list(booking.jobs)
    jobs[index] = job
    return _accept("edit_job_field", booking.model_copy(update={"jobs": jobs, "job_prices": job_prices}), settings)


def add_part(
    booking: Booking,
    part: Part,
    *,
    actor: Optional[ActingUser] = None,
    settings: Optional[Settings] = None,
) -> MutationResult:
    """Add a part priced at its consumer price. Stock only blocks non-admin callers."""
    if part.id in booking.part_ids():
        return _reject("add_part", booking, MutationSignal.DUPLICATE, part_id=part.id)
    if not part.in_stock and not _is_admin(actor):
        return _reject("add_part", booking, MutationSignal.OUT_OF_STOCK, part_id=part.id)
    selected = Part(**part.model_dump(include=set(Part.model_fields)))
    updated = booking.model_copy(
        update={
            "part_items": [*booking.part_items, selected],
            "part_prices": {**booking.part_prices, part.id: PartPrice(unit_price=part.price_for_consumer)},
        }
    )
    return _accept("add_part", updated, settings)


def remove_part(booking: Booking, part_id: str, *, settings: Optional[Settings] = None) -> MutationResult:
    if part_id not in booking.part_ids():
        return _reject("remove_part", booking, MutationSignal.NOT_FOUND, part_id=part_id)
    part_items = [part for part in booking.part_items if part.id != part_id]
    part_prices = {key: value for key, value in booking.part_prices.items() if key != part_id}
    return _accept(
        "remove_part",
        booking.model_copy(update={"part_items": part_items, "part_prices": part_prices}),
        settings,
    )


def add_schedule(
    booking: Booking,
    slot: Optional[TimeSlot] = None,
    *,
    settings: Optional[Settings] = None,
) -> MutationResult:
    if slot is None:
        settings = settings or get_settings()
        slot = TimeSlot(
            id=new_temporary_id(settings.temp_id_prefix),
            time_interval=DEFAULT_TIME_INTERVAL,
            dates=[date.today().isoformat()],
        )
    return _accept("add_schedule", booking.model_copy(update={"schedules": [*booking.schedules, slot]}), settings)


def remove_schedule(booking: Booking, index: int, *, settings: Optional[Settings] = None) -> MutationResult:
    if not _in_range(index, booking.schedules):
        return _reject("remove_schedule", booking, MutationSignal.NOT_FOUND, index=index)
    schedules = booking.schedules[:index] + booking.schedules[index + 1 :]
    return _accept("remove_schedule", booking.model_copy(update={"schedules": schedules}), settings)


def edit_schedule_field(
    booking: Booking,
    index: int,
    edit: FieldEdit,
    *,
    settings: Optional[Settings] = None,
) -> MutationResult:
    if not _in_range(index, booking.schedules):
        return _reject("edit_schedule_field", booking, MutationSignal.NOT_FOUND, index=index)
    slot = booking.schedules[index]

    if isinstance(edit, TextEdit) and edit.field in SCHEDULE_TEXT_FIELDS:
        slot = slot.model_copy(update={edit.field: to_text(edit.value)})
    elif isinstance(edit, DateListEdit):
        if isinstance(edit.value, str):
            dates = split_dates(edit.value)
        else:
            dates = [to_text(item).strip() for item in edit.value if to_text(item).strip()]
        slot = slot.model_copy(update={"dates": dates})
    elif isinstance(edit, FlagEdit) and edit.field in SCHEDULE_FLAG_FIELDS:
        slot = slot.model_copy(update={edit.field: bool(edit.value)})
    else:
        return _reject("edit_schedule_field", booking, MutationSignal.INVALID, edit=type(edit).__name__)

    schedules = list(booking.schedules)
    schedules[index] = slot
    return _accept("edit_schedule_field", booking.model_copy(update={"schedules": schedules}), settings)


def set_mechanic(
    booking: Booking,
    mechanic: Optional[MechanicRef],
    *,
    actor: Optional[ActingUser],
    settings: Optional[Settings] = None,
) -> MutationResult:
    """Assign or clear the mechanic directly. Administrative actors only."""
    if not _is_admin(actor):
        return _reject("set_mechanic", booking, MutationSignal.FORBIDDEN, actor_id=getattr(actor, "id", None))
    return _accept("set_mechanic", booking.model_copy(update={"mechanic": mechanic}), settings)


def set_postal_code(booking: Booking, code: str, *, settings: Optional[Settings] = None) -> MutationResult:
    cleaned = to_text(code).strip().upper()
    if cleaned and not is_valid_postcode(cleaned):
        return _reject("set_postal_code", booking, MutationSignal.INVALID, postal_code=cleaned)
    return _accept("set_postal_code", booking.model_copy(update={"location": Location(postal_code=cleaned)}), settings)


def set_status(
    booking: Booking,
    status: str,
    *,
    actor: Optional[ActingUser],
    settings: Optional[Settings] = None,
) -> MutationResult:
    if not _is_admin(actor):
        return _reject("set_status", booking, MutationSignal.FORBIDDEN, status=status)
    if status not in BOOKING_STATUSES:
        return _reject("set_status", booking, MutationSignal.INVALID, status=status)
    return _accept("set_status", booking.model_copy(update={"status": status}), settings)


def _accept(operation: str, booking: Booking, settings: Optional[Settings]) -> MutationResult:
    priced = price_booking(booking, settings=settings)
    LOGGER.debug("mutation.applied", operation=operation, booking_id=priced.id, total=priced.total_price)
    return MutationResult(booking=priced)


def _reject(operation: str, booking: Booking, signal: MutationSignal, **context: Any) -> MutationResult:
    LOGGER.info("mutation.rejected", operation=operation, booking_id=booking.id, signal=signal.value, **context)
    return MutationResult(booking=booking, signal=signal)


def _in_range(index: int, items: Sequence[Any]) -> bool:
    return isinstance(index, int) and 0 <= index < len(items)


def _is_admin(actor: Optional[ActingUser]) -> bool:
    return actor is not None and actor.is_admin


def _parse_non_negative(value: Any, *, integer: bool = False) -> Optional[float]:
    """Strictly parse a user-entered number; ``None`` when it is not a usable value."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    if integer and not number.is_integer():
        return None
    return number
