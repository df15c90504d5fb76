"""Pydantic models for the canonical booking shape."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field

BookingStatus = Literal["pending", "assigned", "completed", "paid", "cancelled"]
BOOKING_STATUSES: tuple[str, ...] = get_args(BookingStatus)

IN_STOCK_MARKER = "in stock"


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Vehicle(_Model):
    """Vehicle a booking is made against."""

    id: str = ""
    make: str = ""
    model: str = ""
    plate: str = Field(default="", alias="carNumber")
    vin: str = ""
    bookings: List[str] = Field(default_factory=list)


class Job(_Model):
    """Billable service task."""

    id: str
    name: str = ""
    duration: int = 0
    description: str = ""
    category: str = ""
    price_per_hour: Optional[float] = Field(default=None, alias="pricePerHour")


class JobPrice(_Model):
    """Agreed hourly rate and contracted duration for one job."""

    unit_price: float = Field(default=0.0, alias="price")
    duration_minutes: int = Field(default=0, alias="duration")


class Part(_Model):
    """Spare part selected onto a booking."""

    id: str
    title: str = ""
    sku: str = ""
    tier: str = ""
    stock_summary: str = Field(default="", alias="stockSummary")
    stock_quantity: int = Field(default=0, alias="stockQuantity")
    price_for_consumer: float = Field(default=0.0, alias="priceForConsumer")
    price: Optional[float] = None
    category: str = ""

    @property
    def in_stock(self) -> bool:
        """Availability derived from the free-text stock summary; no summary means not offered."""
        return IN_STOCK_MARKER in self.stock_summary.lower()


class CatalogPart(Part):
    """Catalog-wide reference part."""

    groups: List[str] = Field(default_factory=list)
    image: str = ""
    is_deleted: bool = Field(default=False, alias="isDeleted")


class PartPrice(_Model):
    unit_price: float = Field(default=0.0, alias="price")


class TimeSlot(_Model):
    """Requested visit window."""

    id: str = ""
    time_interval: str = Field(default="", alias="timeInterval")
    dates: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    completed: Optional[bool] = None


class Location(_Model):
    postal_code: str = Field(default="", alias="postalCode")


class MechanicRef(_Model):
    """Mechanic assigned to a booking."""

    id: str
    name: str = ""
    contact: str = ""


class ActingUser(_Model):
    """Identity performing an operation."""

    id: str
    name: str = ""
    contact: str = ""
    is_admin: bool = Field(default=False, alias="isAdmin")

    def as_mechanic(self) -> MechanicRef:
        return MechanicRef(id=self.id, name=self.name, contact=self.contact)


class Booking(_Model):
    """Canonical booking record."""

    id: str
    vehicle: Vehicle = Field(default_factory=Vehicle, alias="vehicleRef")
    jobs: List[Job] = Field(default_factory=list)
    job_prices: Dict[str, JobPrice] = Field(default_factory=dict, alias="jobPrices")
    part_items: List[Part] = Field(default_factory=list, alias="partItems")
    part_prices: Dict[str, PartPrice] = Field(default_factory=dict, alias="partPrices")
    schedules: List[TimeSlot] = Field(default_factory=list)
    location: Location = Field(default_factory=Location)
    mechanic: Optional[MechanicRef] = None
    status: BookingStatus = "pending"
    total_price: float = Field(default=0.0, alias="totalPrice")
    created_at: str = Field(default="", alias="createdAt")

    def job_ids(self) -> List[str]:
        return [job.id for job in self.jobs]

    def part_ids(self) -> List[str]:
        return [part.id for part in self.part_items]
