"""
Tests for the mechanic assignment state machine.
"""

import asyncio

import pytest

from mechanic_booking.assignment import (
    AssignmentMachine,
    AssignmentOutcome,
    AssignmentState,
    Transition,
    assignment_state,
    partition_for_mechanic,
)
from mechanic_booking.collaborators import AssignmentGateway
from mechanic_booking.normalizer import normalize, to_wire


class RecordingGateway:
    """Gateway that echoes the requested assignment back as the server record."""

    def __init__(self, booking, actor=None, error=None):
        self.booking = booking
        self.actor = actor
        self.error = error
        self.calls = []
        self.release = None

    async def set_assignment(self, booking_id, action):
        self.calls.append((booking_id, action))
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        record = to_wire(self.booking)
        if action == "assign":
            record["mechanic"] = {"id": self.actor.id, "firstName": "Server", "lastName": "Name"}
            record["status"] = "assigned"
        else:
            record["mechanic"] = None
            record["status"] = "pending"
        return record


def test_gateway_satisfies_protocol(booking, mechanic):
    assert isinstance(RecordingGateway(booking, mechanic), AssignmentGateway)


class TestStates:
    def test_unassigned(self, booking, mechanic):
        assert assignment_state(booking, mechanic) is AssignmentState.UNASSIGNED

    def test_self_and_other(self, booking, mechanic, other_mechanic):
        taken = booking.model_copy(update={"mechanic": mechanic.as_mechanic()})

        assert assignment_state(taken, mechanic) is AssignmentState.ASSIGNED_TO_SELF
        assert assignment_state(taken, other_mechanic) is AssignmentState.ASSIGNED_TO_OTHER

    def test_partition(self, booking, mechanic, other_mechanic):
        mine = booking.model_copy(update={"id": "mine", "mechanic": mechanic.as_mechanic()})
        theirs = booking.model_copy(update={"id": "theirs", "mechanic": other_mechanic.as_mechanic()})

        assert partition_for_mechanic([booking, mine, theirs], mechanic) == ([mine], [booking], [theirs])


@pytest.mark.asyncio
class TestTransitions:
    async def test_take(self, booking, mechanic):
        gateway = RecordingGateway(booking, mechanic)
        machine = AssignmentMachine(booking, mechanic, gateway)

        result = await machine.take()

        assert result.ok
        assert result.state is AssignmentState.ASSIGNED_TO_SELF
        assert result.booking.mechanic.name == "Server Name"
        assert result.booking.status == "assigned"
        assert machine.booking == result.booking
        assert gateway.calls == [("bk-100", "assign")]

    async def test_take_then_release(self, booking, mechanic):
        machine = AssignmentMachine(booking, mechanic, RecordingGateway(booking, mechanic))

        await machine.take()
        result = await machine.release()

        assert result.outcome is AssignmentOutcome.CONFIRMED
        assert machine.state is AssignmentState.UNASSIGNED
        assert machine.booking.status == "pending"

    async def test_take_twice_rejected(self, booking, mechanic):
        gateway = RecordingGateway(booking, mechanic)
        machine = AssignmentMachine(booking, mechanic, gateway)

        await machine.take()
        result = await machine.take()

        assert result.outcome is AssignmentOutcome.REJECTED
        assert len(gateway.calls) == 1

    async def test_release_when_unassigned_rejected(self, booking, mechanic):
        result = await AssignmentMachine(booking, mechanic, RecordingGateway(booking)).release()

        assert result.outcome is AssignmentOutcome.REJECTED
        assert result.booking is booking

    async def test_cannot_take_from_other(self, booking, mechanic, other_mechanic):
        taken = booking.model_copy(update={"mechanic": other_mechanic.as_mechanic()})
        gateway = RecordingGateway(taken, mechanic)

        result = await AssignmentMachine(taken, mechanic, gateway).take()

        assert result.outcome is AssignmentOutcome.REJECTED
        assert gateway.calls == []

    async def test_force_release_requires_admin(self, booking, mechanic, other_mechanic):
        taken = booking.model_copy(update={"mechanic": other_mechanic.as_mechanic()})

        result = await AssignmentMachine(taken, mechanic, RecordingGateway(taken)).force_release()

        assert result.outcome is AssignmentOutcome.REJECTED
        assert result.reason == "forbidden"

    async def test_admin_force_release(self, booking, admin, other_mechanic):
        taken = booking.model_copy(update={"mechanic": other_mechanic.as_mechanic(), "status": "assigned"})
        gateway = RecordingGateway(taken)

        result = await AssignmentMachine(taken, admin, gateway).force_release()

        assert result.ok
        assert result.booking.mechanic is None
        assert gateway.calls == [("bk-100", "unassign")]


@pytest.mark.asyncio
class TestCommitFailure:
    async def test_failure_rolls_back(self, booking, mechanic):
        error = RuntimeError("server said no")
        machine = AssignmentMachine(booking, mechanic, RecordingGateway(booking, mechanic, error=error))

        result = await machine.take()

        assert result.outcome is AssignmentOutcome.FAILED
        assert result.error is error
        assert result.booking is booking
        assert machine.booking is booking
        assert machine.state is AssignmentState.UNASSIGNED
        assert machine.pending is None

    async def test_optimistic_state_while_pending(self, booking, mechanic):
        gateway = RecordingGateway(booking, mechanic)
        gateway.release = asyncio.Event()
        machine = AssignmentMachine(booking, mechanic, gateway)

        task = asyncio.create_task(machine.take())
        await asyncio.sleep(0)

        assert machine.pending is Transition.TAKE
        assert machine.state is AssignmentState.ASSIGNED_TO_SELF
        assert machine.booking.status == "assigned"
        second = await machine.take()
        assert second.reason == "transition already in flight"

        gateway.release.set()
        result = await task

        assert result.ok
        assert machine.pending is None

    async def test_cancellation_rolls_back(self, booking, mechanic):
        gateway = RecordingGateway(booking, mechanic)
        gateway.release = asyncio.Event()
        machine = AssignmentMachine(booking, mechanic, gateway)

        task = asyncio.create_task(machine.take())
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert machine.booking is booking
        assert machine.pending is None

    async def test_machine_usable_after_failure(self, booking, mechanic):
        gateway = RecordingGateway(booking, mechanic, error=RuntimeError("timeout"))
        machine = AssignmentMachine(booking, mechanic, gateway)

        await machine.take()
        gateway.error = None
        result = await machine.take()

        assert result.ok
        assert normalize(result.booking).mechanic.id == "mech-1"
