"""In-memory working set of bookings backed by a booking source."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import structlog

from .collaborators import BookingSource, CatalogSource
from .config import Settings, get_settings
from .models import Booking, CatalogPart
from .normalizer import adopt_server_identity, is_temporary_id, new_draft, normalize, normalize_catalog_parts, to_wire
from .operations import MutationResult

LOGGER = structlog.get_logger(__name__)

Operation = Callable[..., MutationResult]


class DraftNotConfirmedError(RuntimeError):
    """Raised when a created draft comes back without a server-issued id."""

    def __init__(self, draft_id: str, received_id: str):
        super().__init__(f"Server did not assign an id to draft {draft_id} (received {received_id!r})")
        self.draft_id = draft_id
        self.received_id = received_id


class BookingWorkspace:
    """Owns the bookings a view is working on.

    Edits go through the pure operations in ``mechanic_booking.operations``;
    the workspace only stores their results and talks to the source. One
    editor per booking is assumed; edits are not isolated from each other.
    """

    def __init__(self, source: BookingSource, *, settings: Optional[Settings] = None):
        self._source = source
        self._settings = settings or get_settings()
        self._bookings: Dict[str, Booking] = {}

    def __contains__(self, booking_id: str) -> bool:
        return booking_id in self._bookings

    def __len__(self) -> int:
        return len(self._bookings)

    def get(self, booking_id: str) -> Booking:
        return self._bookings[booking_id]

    def all(self) -> List[Booking]:
        return list(self._bookings.values())

    def put(self, raw: Any) -> Booking:
        booking = normalize(raw)
        self._bookings[booking.id] = booking
        return booking

    def draft(self, vehicle_id: str) -> Booking:
        booking = new_draft(vehicle_id, settings=self._settings)
        self._bookings[booking.id] = booking
        LOGGER.info("workspace.draft.created", booking_id=booking.id, vehicle_id=vehicle_id)
        return booking

    async def load(self, booking_id: str) -> Booking:
        raw = await self._source.fetch_booking(booking_id)
        booking = self.put(raw)
        LOGGER.info("workspace.loaded", booking_id=booking.id)
        return booking

    def apply(self, booking_id: str, operation: Operation, *args: Any, **kwargs: Any) -> MutationResult:
        """Run an operation against a held booking and keep the result if it succeeded."""
        result = operation(self._bookings[booking_id], *args, **kwargs)
        if result.ok:
            self._bookings[booking_id] = result.booking
        return result

    async def save(self, booking_id: str) -> Booking:
        """Persist a held booking; drafts are created and re-keyed under the server id."""
        booking = self._bookings[booking_id]
        if is_temporary_id(booking.id, settings=self._settings):
            request = to_wire(booking)
            request.pop("id", None)
            raw = await self._source.create_booking(request)
            confirmed = adopt_server_identity(booking, raw, settings=self._settings)
            if is_temporary_id(confirmed.id, settings=self._settings):
                raise DraftNotConfirmedError(booking_id, confirmed.id)
            del self._bookings[booking_id]
        else:
            raw = await self._source.save_booking(booking.id, booking)
            confirmed = normalize(raw)
            if not confirmed.id:
                confirmed = confirmed.model_copy(update={"id": booking.id})
            if confirmed.id != booking_id:
                del self._bookings[booking_id]
        self._bookings[confirmed.id] = confirmed
        LOGGER.info("workspace.saved", booking_id=confirmed.id, previous_id=booking_id)
        return confirmed

    async def delete(self, booking_id: str) -> None:
        """Drop a booking once the source has confirmed deletion."""
        if not is_temporary_id(booking_id, settings=self._settings):
            await self._source.delete_booking(booking_id)
        self._bookings.pop(booking_id, None)
        LOGGER.info("workspace.deleted", booking_id=booking_id)


async def load_catalog(source: CatalogSource, vehicle_id: Optional[str] = None) -> List[CatalogPart]:
    raw = await source.fetch_catalog_parts(vehicle_id)
    parts = normalize_catalog_parts(raw)
    LOGGER.info("catalog.loaded", vehicle_id=vehicle_id, count=len(parts))
    return parts
