"""
Tests for the in-memory booking workspace.
"""

from unittest.mock import AsyncMock

import pytest

from mechanic_booking.api import BookingApiError
from mechanic_booking.operations import MutationSignal, add_part, remove_job
from mechanic_booking.workspace import BookingWorkspace, DraftNotConfirmedError, load_catalog


@pytest.fixture
def source(legacy_raw):
    source = AsyncMock()
    source.fetch_booking.return_value = legacy_raw
    source.create_booking.return_value = {"id": "bk-200", "car": {"id": "car-9"}, "status": "pending"}
    source.save_booking.side_effect = lambda booking_id, booking: booking.model_dump(by_alias=True)
    source.delete_booking.return_value = None
    return source


@pytest.mark.asyncio
class TestWorkspace:
    async def test_load_normalizes(self, source, settings):
        workspace = BookingWorkspace(source, settings=settings)

        booking = await workspace.load("bk-100")

        assert booking.vehicle.plate == "AB12 CDE"
        assert "bk-100" in workspace
        assert len(workspace) == 1
        source.fetch_booking.assert_awaited_once_with("bk-100")

    async def test_apply_keeps_successful_results(self, source, settings, out_of_stock_part, mechanic):
        workspace = BookingWorkspace(source, settings=settings)
        await workspace.load("bk-100")

        rejected = workspace.apply("bk-100", add_part, out_of_stock_part, actor=mechanic, settings=settings)
        accepted = workspace.apply("bk-100", remove_job, 0, settings=settings)

        assert rejected.signal is MutationSignal.OUT_OF_STOCK
        assert accepted.ok
        assert workspace.get("bk-100").job_ids() == ["job-2"]

    async def test_save_draft_rekeys(self, source, settings):
        workspace = BookingWorkspace(source, settings=settings)
        draft = workspace.draft("car-9")

        confirmed = await workspace.save(draft.id)

        assert confirmed.id == "bk-200"
        assert draft.id not in workspace
        assert workspace.get("bk-200") == confirmed
        request = source.create_booking.await_args.args[0]
        assert "id" not in request
        assert request["car"]["id"] == "car-9"

    async def test_draft_without_server_id_is_kept(self, source, settings):
        source.create_booking.return_value = {"status": "pending"}
        workspace = BookingWorkspace(source, settings=settings)
        draft = workspace.draft("car-9")

        with pytest.raises(DraftNotConfirmedError) as excinfo:
            await workspace.save(draft.id)

        assert excinfo.value.draft_id == draft.id
        assert draft.id in workspace
        assert "" not in workspace
        assert workspace.get(draft.id) == draft

    async def test_save_response_without_id_keeps_key(self, source, settings):
        source.save_booking.side_effect = None
        source.save_booking.return_value = {"status": "paid"}
        workspace = BookingWorkspace(source, settings=settings)
        await workspace.load("bk-100")

        saved = await workspace.save("bk-100")

        assert saved.id == "bk-100"
        assert list(workspace.all()) == [saved]

    async def test_save_existing(self, source, settings):
        workspace = BookingWorkspace(source, settings=settings)
        await workspace.load("bk-100")
        workspace.apply("bk-100", remove_job, 1, settings=settings)

        saved = await workspace.save("bk-100")

        assert saved.job_ids() == ["job-1"]
        source.save_booking.assert_awaited_once()
        source.create_booking.assert_not_awaited()

    async def test_delete(self, source, settings):
        workspace = BookingWorkspace(source, settings=settings)
        await workspace.load("bk-100")

        await workspace.delete("bk-100")

        assert "bk-100" not in workspace
        source.delete_booking.assert_awaited_once_with("bk-100")

    async def test_delete_draft_is_local(self, source, settings):
        workspace = BookingWorkspace(source, settings=settings)
        draft = workspace.draft("car-9")

        await workspace.delete(draft.id)

        assert len(workspace) == 0
        source.delete_booking.assert_not_awaited()

    async def test_failed_delete_keeps_booking(self, source, settings):
        source.delete_booking.side_effect = BookingApiError("Forbidden", status_code=403)
        workspace = BookingWorkspace(source, settings=settings)
        await workspace.load("bk-100")

        with pytest.raises(BookingApiError):
            await workspace.delete("bk-100")

        assert "bk-100" in workspace


@pytest.mark.asyncio
async def test_load_catalog():
    source = AsyncMock()
    source.fetch_catalog_parts.return_value = [{"id": "c-1", "title": "Brake Pad", "top": ["Service"]}, None]

    parts = await load_catalog(source, "car-1")

    assert [part.id for part in parts] == ["c-1"]
    assert parts[0].groups == ["Service"]
    source.fetch_catalog_parts.assert_awaited_once_with("car-1")
