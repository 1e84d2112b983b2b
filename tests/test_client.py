"""Initial load and the UI-facing AcademyClient operations."""

from __future__ import annotations

import asyncio

import pytest

import utils
from client import AcademyClient, MessageBoard, load_all_data
from models import Donation, GalleryItem, Member, Payment


@pytest.fixture
def client(api, state, settings, notices) -> AcademyClient:
    return AcademyClient(api, state, settings, notices)


@pytest.fixture
def seeded(app, settings):
    return utils.insert_sample_data(settings.academy_name)


class TestLoadAllData:
    @pytest.mark.asyncio
    async def test_loads_every_collection(self, api, state, notices, seeded):
        assert await load_all_data(api, state, notices) is True

        assert len(state.members) == seeded["members"]
        assert len(state.gallery) == seeded["gallery"]
        assert len(state.hero_slides) == 5
        assert all(record.member is not None for record in state.weekly_fees)
        assert len(state.weekly_fees) == 3
        assert state.dashboard_stats.total_members == 5
        assert state.dashboard_stats.weekly_fees_collected == 3000.0
        assert state.unsynced() == []
        assert notices[-1] == ("Data loaded successfully", "success")

    @pytest.mark.asyncio
    async def test_unreachable_server(self, api, state, notices, transport):
        transport.down = True
        assert await load_all_data(api, state, notices) is False
        assert ("Cannot connect to server. Check that the API server is running.", "error") in notices
        assert state.members == []

    @pytest.mark.asyncio
    async def test_reload_keeps_local_changes(self, api, state, notices, seeded):
        assert await load_all_data(api, state, notices) is True
        offline = state.add("donations", Donation(donor_name="Offline", amount=5.0, date="2024-06-01"))
        edited = state.donations[0]
        edited.amount = 1.0
        edited.needs_sync = True
        student = state.add_member(Member(name="Offline Kid"))
        record = state.fee_record_for(student)
        synced_record = next(r for r in state.weekly_fees if r.is_persisted)
        new_payment = state.add_payment(synced_record, Payment(date="2024-06-02", amount=20.0))

        assert await load_all_data(api, state, notices) is True

        assert offline in state.donations
        assert [d for d in state.donations if d.remote_id == edited.remote_id] == [edited]
        assert edited.amount == 1.0
        assert len(state.donations) == seeded["donations"] + 1
        assert student in state.members
        assert state.fee_record_for(student) is record
        assert [r for r in state.weekly_fees if r.remote_id == synced_record.remote_id] == [synced_record]
        assert new_payment in synced_record.payments
        assert len(state.weekly_fees) == 4
        assert all(e in state.unsynced() for e in (offline, student, record))
        assert state.pending() == [edited]


class TestAcademyClient:
    @pytest.mark.asyncio
    async def test_save_student_then_record_payment(self, client, api, state):
        member = Member()
        assert await client.save("members", member, {"name": "Ana"}) is True

        record = state.fee_record_for(member)
        assert record is not None
        payment = Payment()
        assert await client.save_payment(record, payment, {"date": "2024-04-01", "amount": 75.0, "status": "paid"})

        remote = await api.weekly_fees.get_member_fees(member.remote_id)
        assert [p.amount for p in remote.payments] == [75.0]
        assert state.dashboard_stats.weekly_fees_collected == 75.0

        assert await client.delete_payment(record, payment) is True
        assert record.payments == []
        assert (await api.weekly_fees.get_member_fees(member.remote_id)).payments == []

    @pytest.mark.asyncio
    async def test_rename_keeps_fee_record_name(self, client, state):
        member = Member()
        await client.save("members", member, {"name": "Ana"})
        await client.save("members", member, {"name": "Anna"})
        assert state.fee_record_for(member).member_name == "Anna"

    @pytest.mark.asyncio
    async def test_offline_save_is_kept_for_later(self, client, state, transport):
        transport.down = True
        donation = Donation()
        assert await client.save("donations", donation, {"donor_name": "Club", "amount": 9.0, "date": "2024-01-01", "purpose": "x"}) is False
        assert donation in state.donations
        assert donation.needs_sync is True

        transport.down = False
        report = await client.sync_now()
        assert report.ok
        assert donation.remote_id is not None
        assert donation.needs_sync is False

    @pytest.mark.asyncio
    async def test_delete_member_removes_fee_record(self, client, api, state):
        member = Member()
        await client.save("members", member, {"name": "Ben"})
        assert await client.delete("members", member) is True
        assert state.members == []
        assert state.weekly_fees == []
        assert await api.members.list_all() == []

    @pytest.mark.asyncio
    async def test_gallery_selection_flow(self, client, state):
        items = []
        for title in ("Pool", "Track", "Gym"):
            item = GalleryItem()
            await client.save("gallery", item, {"title": title, "image_url": f"https://img/{title}.jpg"})
            items.append(item)
        for item in items:
            assert await client.toggle_top_n(item) is True

        assert await client.reorder_top_n([items[2], items[0], items[1]]) is True
        assert [s.title for s in state.hero_slides] == ["Gym", "Pool", "Track"]

        assert await client.delete("gallery", items[2]) is True
        assert [(i.title, i.top_n_order) for i in state.gallery] == [("Pool", 1), ("Track", 2)]
        assert [s.title for s in state.hero_slides] == ["Pool", "Track"]

    @pytest.mark.asyncio
    async def test_sync_now_while_a_pass_is_running(self, client, monkeypatch):
        finished = await client.sync_now()
        assert finished is not None and finished.ok

        gate = asyncio.Event()
        real_sync_all = client.synchronizer.sync_all

        async def held_sync_all():
            await gate.wait()
            return await real_sync_all()

        monkeypatch.setattr(client.synchronizer, "sync_all", held_sync_all)
        running = asyncio.ensure_future(client.sync_now())
        await asyncio.sleep(0)
        assert client.scheduler.in_flight

        assert await client.sync_now() is None

        gate.set()
        report = await running
        assert report is not finished
        assert report.ok

    @pytest.mark.asyncio
    async def test_periodic_start_and_stop(self, client):
        assert await client.stop_periodic() is False
        await client.start_periodic(5)
        assert client.scheduler.running
        assert await client.stop_periodic() is True


def test_message_board_drains_in_order():
    board = MessageBoard()
    board.push("one")
    board.push("two", "error")
    assert board.drain() == [("info", "one"), ("error", "two")]
    assert board.drain() == []
