"""Mechanic assignment state machine with optimistic local transitions."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from .collaborators import AssignmentAction, AssignmentGateway
from .models import ActingUser, Booking
from .normalizer import normalize

LOGGER = structlog.get_logger(__name__)


class AssignmentState(str, Enum):
    UNASSIGNED = "unassigned"
    ASSIGNED_TO_SELF = "assigned_to_self"
    ASSIGNED_TO_OTHER = "assigned_to_other"


class Transition(str, Enum):
    TAKE = "take"
    RELEASE = "release"
    FORCE_RELEASE = "force_release"


class AssignmentOutcome(str, Enum):
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    FAILED = "failed"


TRANSITIONS: Dict[Tuple[AssignmentState, Transition], AssignmentState] = {
    (AssignmentState.UNASSIGNED, Transition.TAKE): AssignmentState.ASSIGNED_TO_SELF,
    (AssignmentState.ASSIGNED_TO_SELF, Transition.RELEASE): AssignmentState.UNASSIGNED,
    (AssignmentState.ASSIGNED_TO_OTHER, Transition.FORCE_RELEASE): AssignmentState.UNASSIGNED,
}

ACTIONS: Dict[Transition, AssignmentAction] = {
    Transition.TAKE: "assign",
    Transition.RELEASE: "unassign",
    Transition.FORCE_RELEASE: "unassign",
}


@dataclass(frozen=True)
class AssignmentResult:
    """What happened to a requested transition, and the booking as it now stands."""

    booking: Booking
    outcome: AssignmentOutcome
    state: AssignmentState
    reason: str = ""
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.outcome is AssignmentOutcome.CONFIRMED


def assignment_state(booking: Booking, actor: ActingUser) -> AssignmentState:
    if booking.mechanic is None:
        return AssignmentState.UNASSIGNED
    if booking.mechanic.id == actor.id:
        return AssignmentState.ASSIGNED_TO_SELF
    return AssignmentState.ASSIGNED_TO_OTHER


def partition_for_mechanic(
    bookings: Iterable[Booking], actor: ActingUser
) -> Tuple[List[Booking], List[Booking], List[Booking]]:
    """Split bookings into (mine, available, taken) from the actor's point of view."""
    buckets: Dict[AssignmentState, List[Booking]] = {state: [] for state in AssignmentState}
    for booking in bookings:
        buckets[assignment_state(booking, actor)].append(booking)
    return (
        buckets[AssignmentState.ASSIGNED_TO_SELF],
        buckets[AssignmentState.UNASSIGNED],
        buckets[AssignmentState.ASSIGNED_TO_OTHER],
    )


class AssignmentMachine:
    """Drives assign/unassign for one booking on behalf of one acting user.

    A transition is applied locally first so callers can render it straight
    away, then committed through the gateway. The gateway's booking replaces
    the local guess on success; any failure, including cancellation of the
    awaiting task, restores the booking held before the transition.
    """

    def __init__(self, booking: Booking, actor: ActingUser, gateway: AssignmentGateway):
        self._booking = booking
        self._actor = actor
        self._gateway = gateway
        self._pending: Optional[Transition] = None

    @property
    def booking(self) -> Booking:
        return self._booking

    @property
    def state(self) -> AssignmentState:
        return assignment_state(self._booking, self._actor)

    @property
    def pending(self) -> Optional[Transition]:
        return self._pending

    async def take(self) -> AssignmentResult:
        return await self.apply(Transition.TAKE)

    async def release(self) -> AssignmentResult:
        return await self.apply(Transition.RELEASE)

    async def force_release(self) -> AssignmentResult:
        return await self.apply(Transition.FORCE_RELEASE)

    async def apply(self, transition: Transition) -> AssignmentResult:
        if self._pending is not None:
            return self._rejected(transition, "transition already in flight")
        if (self.state, transition) not in TRANSITIONS:
            return self._rejected(transition, f"no {transition.value} transition from {self.state.value}")
        if transition is Transition.FORCE_RELEASE and not self._actor.is_admin:
            return self._rejected(transition, "forbidden")

        previous = self._booking
        self._pending = transition
        self._booking = self._optimistic(previous, transition)
        committed = False
        LOGGER.info(
            "assignment.commit.start",
            booking_id=previous.id,
            transition=transition.value,
            actor_id=self._actor.id,
        )
        try:
            confirmed = await self._gateway.set_assignment(previous.id, ACTIONS[transition])
            self._booking = normalize(confirmed)
            committed = True
        except asyncio.CancelledError:
            LOGGER.warning("assignment.commit.cancelled", booking_id=previous.id, transition=transition.value)
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.error(
                "assignment.commit.failed",
                booking_id=previous.id,
                transition=transition.value,
                error=str(exc),
            )
            return AssignmentResult(
                booking=previous,
                outcome=AssignmentOutcome.FAILED,
                state=assignment_state(previous, self._actor),
                reason=str(exc),
                error=exc,
            )
        finally:
            if not committed:
                self._booking = previous
            self._pending = None

        LOGGER.info("assignment.commit.confirmed", booking_id=self._booking.id, state=self.state.value)
        return AssignmentResult(booking=self._booking, outcome=AssignmentOutcome.CONFIRMED, state=self.state)

    def _optimistic(self, booking: Booking, transition: Transition) -> Booking:
        if transition is Transition.TAKE:
            status = "assigned" if booking.status == "pending" else booking.status
            return booking.model_copy(update={"mechanic": self._actor.as_mechanic(), "status": status})
        status = "pending" if booking.status == "assigned" else booking.status
        return booking.model_copy(update={"mechanic": None, "status": status})

    def _rejected(self, transition: Transition, reason: str) -> AssignmentResult:
        LOGGER.info(
            "assignment.rejected",
            booking_id=self._booking.id,
            transition=transition.value,
            state=self.state.value,
            reason=reason,
        )
        return AssignmentResult(
            booking=self._booking,
            outcome=AssignmentOutcome.REJECTED,
            state=self.state,
            reason=reason,
        )
