"""Entity reconciliation and bulk sync passes, run against the in-process API."""

from __future__ import annotations

import asyncio

import pytest

import db
from models import Activity, Donation, Experience, GalleryItem, Member, Payment
from sync import SyncOutcome


class TestEntityReconciler:
    @pytest.mark.asyncio
    async def test_create_writes_back_remote_id(self, api, state, reconciler):
        member = state.add_member(Member(name="Ana", role="Coach"))
        assert member.remote_id is None

        assert await reconciler.sync_member(member) is True

        assert member.remote_id is not None
        assert member.needs_sync is False
        remote = await api.members.list_all()
        assert [m.remote_id for m in remote] == [member.remote_id]

    @pytest.mark.asyncio
    async def test_update_is_addressed_by_remote_id(self, api, state, reconciler):
        member = state.add_member(Member(name="Ana", role="Coach"))
        await reconciler.sync_member(member)
        remote_id = member.remote_id

        member.phone = "555-0100"
        assert await reconciler.sync_member(member) is True

        remote = await api.members.list_all()
        assert len(remote) == 1
        assert remote[0].remote_id == remote_id
        assert remote[0].phone == "555-0100"
        assert member.remote_id == remote_id

    @pytest.mark.asyncio
    async def test_repeated_sync_is_idempotent(self, api, state, reconciler):
        donation = state.add("donations", Donation(donor_name="Club", amount=100.0, date="2024-01-01", purpose="Kit"))
        for _ in range(3):
            assert await reconciler.sync_donation(donation) is True
        assert len(await api.donations.list_all()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_syncs_create_once(self, api, state, reconciler):
        donation = state.add("donations", Donation(donor_name="Club", amount=100.0, date="2024-01-01", purpose="Kit"))
        results = await asyncio.gather(
            reconciler.sync_donation(donation),
            reconciler.sync_donation(donation),
        )
        assert results == [True, True]
        assert len(await api.donations.list_all()) == 1

    @pytest.mark.asyncio
    async def test_failure_flags_entity_and_never_raises(self, transport, state, reconciler, sleeper, notices):
        activity = state.add("activities", Activity(title="Camp", date="2024-06-01"))
        transport.down = True

        assert await reconciler.sync_activity(activity) is False

        assert activity.needs_sync is True
        assert activity.remote_id is None
        assert sleeper.delays == [1.0, 2.0]
        assert len(notices) == 1

        transport.down = False
        assert await reconciler.sync_activity(activity) is True
        assert activity.needs_sync is False
        assert activity.remote_id is not None

    @pytest.mark.asyncio
    async def test_delete_uses_remote_id(self, api, state, reconciler, transport):
        donation = state.add("donations", Donation(donor_name="Club", amount=5.0, date="2024-01-01", purpose="Kit"))
        await reconciler.sync_donation(donation)
        state.remove("donations", donation)

        assert await reconciler.sync_donation(donation, is_delete=True) is True

        assert transport.calls[-1] == ("DELETE", f"/donations/{donation.remote_id}")
        assert await api.donations.list_all() == []

    @pytest.mark.asyncio
    async def test_delete_of_unsynced_entity_uses_local_id(self, state, reconciler, transport):
        activity = state.add("activities", Activity(title="Never synced"))
        state.remove("activities", activity)

        assert await reconciler.sync_activity(activity, is_delete=True) is True
        assert transport.calls == [("DELETE", f"/activities/{activity.local_id}")]

    @pytest.mark.asyncio
    async def test_student_payments_round_trip(self, api, state, reconciler):
        member = state.add_member(Member(name="Ben"))
        record = state.fee_record_for(member)
        assert record is not None

        await reconciler.sync_member(member)
        payment = state.add_payment(record, Payment(date="2024-03-04", amount=500.0, status="paid"))
        assert await reconciler.sync_payment(record, payment) is True
        assert payment.remote_id is not None

        payment.amount = 450.0
        assert await reconciler.sync_payment(record, payment) is True
        remote = await api.weekly_fees.get_member_fees(member.remote_id)
        assert [(p.remote_id, p.amount) for p in remote.payments] == [(payment.remote_id, 450.0)]

        assert await reconciler.sync_payment(record, payment, is_delete=True) is True
        remote = await api.weekly_fees.get_member_fees(member.remote_id)
        assert remote.payments == []

    @pytest.mark.asyncio
    async def test_payment_for_unsynced_member_fails_softly(self, state, reconciler, transport):
        member = Member(name="Cara")
        state.add_member(member)
        record = state.fee_record_for(member)
        payment = state.add_payment(record, Payment(date="2024-03-04", amount=10.0))

        assert await reconciler.sync_payment(record, payment) is False
        assert payment.needs_sync is True
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_toggle_top_n_refreshes_flags_and_hero_slides(self, state, reconciler):
        first = state.add("gallery", GalleryItem(title="Pool", image_url="https://img/pool.jpg"))
        second = state.add("gallery", GalleryItem(title="Track", image_url="https://img/track.jpg"))
        await reconciler.sync_gallery_item(first)
        await reconciler.sync_gallery_item(second)

        assert await reconciler.sync_toggle_top_n(second) is True
        assert await reconciler.sync_toggle_top_n(first) is True

        assert (second.is_top_n, second.top_n_order) == (True, 1)
        assert (first.is_top_n, first.top_n_order) == (True, 2)
        assert [s.title for s in state.hero_slides] == ["Track", "Pool"]

        first.top_n_order, second.top_n_order = 1, 2
        assert await reconciler.sync_top_n_order([first, second]) is True
        assert [s.title for s in state.hero_slides] == ["Pool", "Track"]

        state.remove("gallery", first)
        assert await reconciler.sync_gallery_item(first, is_delete=True) is True
        assert (second.is_top_n, second.top_n_order) == (True, 1)
        assert [s.title for s in state.hero_slides] == ["Track"]


class TestBulkSynchronizer:
    @pytest.mark.asyncio
    async def test_unreachable_server_aborts_before_any_work(self, state, synchronizer, transport, notices):
        state.add("activities", Activity(title="Camp"))
        transport.down = True

        report = await synchronizer.sync_all()

        assert report.outcome is SyncOutcome.ABORTED
        assert report.attempted == 0
        assert transport.calls == [("GET", "/health-check")]
        assert "Cannot connect to server. Changes will only be saved locally." in notices.messages()

    @pytest.mark.asyncio
    async def test_disconnected_database_aborts(self, state, synchronizer, transport, monkeypatch):
        state.add("activities", Activity(title="Camp"))
        monkeypatch.setattr(db, "ping", lambda: False)

        report = await synchronizer.sync_all()

        assert report.outcome is SyncOutcome.ABORTED
        assert report.reason == "database disconnected"
        assert transport.calls == [("GET", "/health-check")]

    @pytest.mark.asyncio
    async def test_pass_pushes_everything(self, api, state, synchronizer):
        member = state.add_member(Member(name="Dana"))
        record = state.fee_record_for(member)
        state.add_payment(record, Payment(date="2024-02-01", amount=300.0, status="pending"))
        state.add("donations", Donation(donor_name="Club", amount=20.0, date="2024-01-01", purpose="Balls"))

        report = await synchronizer.sync_all()

        assert report.ok
        assert report.failed == 0
        assert report.attempted == 3
        assert state.unsynced() == []
        assert record.remote_id is not None
        remote = await api.weekly_fees.get_member_fees(member.remote_id)
        assert [p.amount for p in remote.payments] == [300.0]
        assert len(await api.donations.list_all()) == 1

    @pytest.mark.asyncio
    async def test_second_pass_creates_nothing_new(self, api, state, synchronizer):
        state.add_member(Member(name="Eve", role="Coach"))
        state.add("experiences", Experience(title="Cup win"))
        await synchronizer.sync_all()
        await synchronizer.sync_all()
        assert len(await api.members.list_all()) == 1
        assert len(await api.experiences.list_all()) == 1

    def test_failed_gallery_items_are_planned_first(self, state, synchronizer):
        state.add("activities", Activity(title="Camp"))
        ok_item = state.add("gallery", GalleryItem(title="Fine"))
        retry_item = state.add("gallery", GalleryItem(title="Retry", needs_sync=True))

        plan = synchronizer.plan()

        assert plan[0] == ("gallery", retry_item)
        assert [entity for _, entity in plan].count(retry_item) == 1
        assert ("gallery", ok_item) in plan

    @pytest.mark.asyncio
    async def test_failed_gallery_item_is_dispatched_first(self, state, synchronizer, transport):
        state.add("activities", Activity(title="Camp"))
        for i in range(4):
            state.add("gallery", GalleryItem(title=f"Fine {i}", image_url=f"https://img/{i}.jpg"))
        state.add("gallery", GalleryItem(title="Retry", image_url="https://img/r.jpg", needs_sync=True))

        report = await synchronizer.sync_all()

        assert report.attempted == 6
        assert transport.calls[0] == ("GET", "/health-check")
        assert transport.calls[1] == ("POST", "/gallery")
        assert transport.bodies[1]["title"] == "Retry"
        gallery_titles = [
            body["title"] for call, body in zip(transport.calls, transport.bodies) if call == ("POST", "/gallery")
        ]
        assert gallery_titles[0] == "Retry"
        assert sorted(gallery_titles[1:]) == [f"Fine {i}" for i in range(4)]

    @pytest.mark.asyncio
    async def test_resolving_failed_items_notifies(self, state, synchronizer, notices):
        state.add("donations", Donation(donor_name="Club", amount=1.0, date="2024-01-01", purpose="x", needs_sync=True))

        report = await synchronizer.sync_all()

        assert report.resolved == 1
        assert "Synchronized 1 previously failed item(s) with the server" in notices.messages()

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_the_pass(self, api, state, synchronizer):
        # No such row on the server, so the update comes back 404
        stale = state.add("activities", Activity(title="Gone", remote_id="0" * 24))
        fresh = state.add("activities", Activity(title="New"))

        report = await synchronizer.sync_all()

        assert report.ok
        assert report.failed == 1
        assert stale.needs_sync is True
        assert fresh.remote_id is not None
