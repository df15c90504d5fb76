"""httpx client for the booking REST API.

Implements the ``BookingSource``, ``CatalogSource`` and ``AssignmentGateway``
collaborators. Idempotent reads are retried on transport errors; writes are
attempted once and any failure is raised to the caller.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, List, Literal, Optional

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .collaborators import AssignmentAction
from .config import Settings, get_settings
from .models import Booking
from .normalizer import to_wire

LOGGER = structlog.get_logger(__name__)

BookingScope = Literal["own", "mechanic", "admin"]

BOOKING_LIST_PATHS = {
    "own": "/api/bookings",
    "mechanic": "/api/bookings/all",
    "admin": "/api/bookings/admin",
}


class BookingApiError(RuntimeError):
    """Raised when the booking API rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BookingApiClient:
    """Async client for the booking service."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff_seconds: float = 1.0,
    ):
        self._settings = settings or get_settings()
        self._backoff = backoff_seconds
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._settings.api_token is not None:
            headers["Authorization"] = f"Bearer {self._settings.api_token.get_secret_value()}"
        self._client = httpx.AsyncClient(
            base_url=self._settings.api_base_url,
            timeout=self._settings.timeout_seconds,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "BookingApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_booking(self, booking_id: str) -> Any:
        body = await self._read(f"/api/bookings/{booking_id}")
        return self._single(body)

    async def fetch_bookings(self, scope: BookingScope = "own") -> List[Any]:
        body = await self._read(BOOKING_LIST_PATHS[scope])
        return self._many(body)

    async def save_booking(self, booking_id: str, booking: Booking) -> Any:
        body = await self._send("PUT", f"/api/bookings/{booking_id}", json=to_wire(booking))
        return self._single(body)

    async def create_booking(self, request: Mapping[str, Any]) -> Any:
        body = await self._send("POST", "/api/bookings", json=dict(request))
        return self._single(body)

    async def delete_booking(self, booking_id: str) -> None:
        await self._send("DELETE", f"/api/bookings/{booking_id}")

    async def fetch_catalog_parts(self, vehicle_id: Optional[str] = None) -> List[Any]:
        path = f"/api/parts/car/{vehicle_id}/gold-in-stock" if vehicle_id else "/api/parts"
        body = await self._read(path)
        return self._many(body)

    async def set_assignment(self, booking_id: str, action: AssignmentAction) -> Any:
        body = await self._send(
            "POST",
            f"/api/bookings/{booking_id}/mechanic",
            json={"assign": action == "assign"},
        )
        return self._single(body)

    async def _read(self, path: str) -> Any:
        """GET with retry on transport failures."""
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            wait=wait_exponential(multiplier=self._backoff, min=0, max=8),
            stop=stop_after_attempt(self._settings.retry_attempts),
            reraise=True,
        ):
            with attempt:
                return await self._send("GET", path, wrap_transport_errors=False)
        raise BookingApiError(f"GET {path} failed")  # safety net

    async def _send(self, method: str, path: str, *, wrap_transport_errors: bool = True, **kwargs: Any) -> Any:
        LOGGER.info("api.request.start", method=method, path=path)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            LOGGER.error("api.request.unreachable", method=method, path=path, error=str(exc))
            if not wrap_transport_errors:
                raise
            raise BookingApiError(f"{method} {path} failed: {exc}") from exc

        if not response.is_success:
            message = self._error_message(response)
            LOGGER.error(
                "api.request.failed",
                method=method,
                path=path,
                status_code=response.status_code,
                message=message,
            )
            raise BookingApiError(message, status_code=response.status_code)

        LOGGER.info("api.request.success", method=method, path=path, status_code=response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BookingApiError(f"{method} {path} returned invalid JSON", response.status_code) from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, Mapping) and body.get("message"):
            return str(body["message"])
        return f"Request failed with {response.status_code}"

    @staticmethod
    def _payload(body: Any) -> Any:
        if isinstance(body, Mapping) and "responseObject" in body:
            return body["responseObject"]
        return body

    def _single(self, body: Any) -> Any:
        payload = self._payload(body)
        if isinstance(payload, list):
            if not payload:
                raise BookingApiError("Empty booking payload in response")
            return payload[0]
        if payload is None:
            raise BookingApiError("Missing booking payload in response")
        return payload

    def _many(self, body: Any) -> List[Any]:
        payload = self._payload(body)
        if isinstance(payload, list):
            return payload
        return [payload] if payload else []
