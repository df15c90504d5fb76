"""Interfaces of the external services the engine talks to."""

from __future__ import annotations

from typing import Any, List, Literal, Mapping, Optional, Protocol, Union, runtime_checkable

from .models import Booking

AssignmentAction = Literal["assign", "unassign"]
RawBooking = Union[Mapping[str, Any], Booking]


@runtime_checkable
class BookingSource(Protocol):
    """Fetches and persists bookings. Results may use either historical layout."""

    async def fetch_booking(self, booking_id: str) -> RawBooking: ...

    async def save_booking(self, booking_id: str, booking: Booking) -> RawBooking: ...

    async def create_booking(self, request: Mapping[str, Any]) -> RawBooking: ...

    async def delete_booking(self, booking_id: str) -> None: ...


@runtime_checkable
class CatalogSource(Protocol):
    async def fetch_catalog_parts(self, vehicle_id: Optional[str] = None) -> List[Mapping[str, Any]]: ...


@runtime_checkable
class AssignmentGateway(Protocol):
    """Durable mechanic assignment. The returned booking is authoritative."""

    async def set_assignment(self, booking_id: str, action: AssignmentAction) -> RawBooking: ...
