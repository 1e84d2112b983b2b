"""
sync.py
Entity reconciliation (local cache -> remote store) and the bulk sync pass.

Every reconcile call returns a bool and never raises: one bad entity must
not abort a pass. Failures leave needs_sync set so the next pass retries.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Optional

from api import ApiClients
from errors import AcademyError, ServerError
from models import AppState, Entity, GalleryItem, Payment, WeeklyFeeRecord
from transport import Notifier, log_notifier

logger = logging.getLogger(__name__)


def _label(collection: str, entity: Entity) -> str:
    identity = entity.identity
    return f"{collection}[{identity.value if identity else '?'}]"


class EntityReconciler:
    def __init__(self, api: ApiClients, state: AppState) -> None:
        self.api = api
        self.state = state
        self._locks: weakref.WeakKeyDictionary[Entity, asyncio.Lock] = weakref.WeakKeyDictionary()

    def _lock_for(self, entity: Entity) -> asyncio.Lock:
        # Serializes work on one entity so a second create cannot race the first
        lock = self._locks.get(entity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[entity] = lock
        return lock

    async def sync_entity(self, collection: str, entity: Entity, is_delete: bool = False) -> bool:
        label = _label(collection, entity)
        async with self._lock_for(entity):
            try:
                client = self.api.for_collection(collection)
                if is_delete:
                    identity = entity.identity
                    if identity is None:
                        logger.error("Refusing to delete %s: no identity to address it by", collection)
                        return False
                    await client.delete(str(identity.value))
                elif entity.remote_id is not None:
                    await client.update(entity)
                else:
                    result = await client.create(entity)
                    remote_id = result.get("_id") if isinstance(result, dict) else None
                    if not remote_id:
                        raise ServerError("API Error: create returned no identifier")
                    entity.assign_remote_id(str(remote_id))
            except Exception:
                logger.exception("Failed to sync %s", label)
                entity.needs_sync = True
                return False
        entity.needs_sync = False
        logger.debug("Synced %s%s", label, " (deleted)" if is_delete else "")
        return True

    async def sync_hero_slide(self, slide, is_delete: bool = False) -> bool:
        return await self.sync_entity("hero_slides", slide, is_delete)

    async def sync_activity(self, activity, is_delete: bool = False) -> bool:
        return await self.sync_entity("activities", activity, is_delete)

    async def sync_member(self, member, is_delete: bool = False) -> bool:
        return await self.sync_entity("members", member, is_delete)

    async def sync_donation(self, donation, is_delete: bool = False) -> bool:
        return await self.sync_entity("donations", donation, is_delete)

    async def sync_expense(self, expense, is_delete: bool = False) -> bool:
        return await self.sync_entity("expenses", expense, is_delete)

    async def sync_experience(self, experience, is_delete: bool = False) -> bool:
        return await self.sync_entity("experiences", experience, is_delete)

    async def sync_gallery_item(self, item: GalleryItem, is_delete: bool = False) -> bool:
        ok = await self.sync_entity("gallery", item, is_delete)
        if ok and is_delete:
            # The server renumbered the top-N set and rebuilt the hero slides
            await self._refresh_top_n()
        return ok

    # ---------- Weekly fees ----------

    async def _push_payment(self, member_id: str, payment: Payment) -> None:
        fees = self.api.weekly_fees
        if payment.remote_id is None:
            remote = await fees.add_payment(member_id, payment)
            if not remote.payments or remote.payments[-1].remote_id is None:
                raise ServerError("API Error: add payment returned no identifier")
            payment.assign_remote_id(remote.payments[-1].remote_id)
        else:
            await fees.update_payment(member_id, payment.remote_id, payment)
        payment.needs_sync = False

    async def _await_owner(self, record: WeeklyFeeRecord) -> None:
        # An in-flight create of the owning member holds its lock until the id is back
        if record.member is not None and record.member.remote_id is None:
            async with self._lock_for(record.member):
                pass

    async def sync_weekly_fee(self, record: WeeklyFeeRecord) -> bool:
        label = _label("weekly_fees", record)
        await self._await_owner(record)
        async with self._lock_for(record):
            try:
                member_id = record.member_id
                if member_id is None:
                    raise ValueError("owning member has not been persisted yet")
                if record.remote_id is None:
                    remote = await self.api.weekly_fees.get_member_fees(member_id)
                    if remote.remote_id is None:
                        raise ServerError("API Error: weekly fee record returned no identifier")
                    record.assign_remote_id(remote.remote_id)
                for payment in list(record.payments):
                    try:
                        await self._push_payment(member_id, payment)
                    except Exception:
                        payment.needs_sync = True
                        raise
            except Exception:
                logger.exception("Failed to sync %s", label)
                record.needs_sync = True
                return False
        record.needs_sync = False
        return True

    async def sync_payment(self, record: WeeklyFeeRecord, payment: Payment, is_delete: bool = False) -> bool:
        await self._await_owner(record)
        async with self._lock_for(record):
            try:
                member_id = record.member_id
                if member_id is None:
                    raise ValueError("owning member has not been persisted yet")
                if is_delete:
                    if payment.remote_id is not None:
                        await self.api.weekly_fees.delete_payment(member_id, payment.remote_id)
                else:
                    await self._push_payment(member_id, payment)
            except Exception:
                logger.exception("Failed to sync payment %s of %s", payment.local_id, _label("weekly_fees", record))
                payment.needs_sync = True
                record.needs_sync = True
                return False
        return True

    # ---------- Gallery top-N ----------

    async def _refresh_top_n(self) -> None:
        """Pull the server's top-N ordering and the regenerated hero slides."""
        try:
            top = await self.api.gallery.fetch_top_n()
            slides = await self.api.hero_slides.list_all()
        except AcademyError:
            logger.warning("Could not refresh top-N ordering after gallery change", exc_info=True)
            return
        orders = {item.remote_id: item.top_n_order for item in top}
        for item in self.state.gallery:
            if item.remote_id in orders:
                item.is_top_n, item.top_n_order = True, orders[item.remote_id]
            else:
                item.is_top_n, item.top_n_order = False, 0
        self.state.replace_collection("hero_slides", slides)

    async def sync_toggle_top_n(self, item: GalleryItem) -> bool:
        async with self._lock_for(item):
            try:
                if item.remote_id is None:
                    raise ValueError("gallery item has not been persisted yet")
                result = await self.api.gallery.toggle_top_n_membership(item.remote_id)
                updated = GalleryItem.from_payload(result)
                item.is_top_n, item.top_n_order = updated.is_top_n, updated.top_n_order
            except Exception:
                logger.exception("Failed to sync top-N status of %s", _label("gallery", item))
                item.needs_sync = True
                return False
        await self._refresh_top_n()
        return True

    async def sync_top_n_order(self, items: list[GalleryItem]) -> bool:
        try:
            missing = [item.local_id for item in items if item.remote_id is None]
            if missing:
                raise ValueError(f"gallery items not persisted yet: {missing}")
            await self.api.gallery.reorder(items)
        except Exception:
            logger.exception("Failed to sync top-N order")
            for item in items:
                item.needs_sync = True
            return False
        await self._refresh_top_n()
        return True


class SyncOutcome(str, Enum):
    SUCCESS = "success"
    ABORTED = "aborted"


@dataclass(frozen=True)
class SyncReport:
    outcome: SyncOutcome
    attempted: int = 0
    failed: int = 0
    resolved: int = 0
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is SyncOutcome.SUCCESS


class BulkSynchronizer:
    def __init__(
        self,
        api: ApiClients,
        reconciler: EntityReconciler,
        state: AppState,
        notify: Optional[Notifier] = None,
    ) -> None:
        self.api = api
        self.reconciler = reconciler
        self.state = state
        self.notify = notify if notify is not None else log_notifier
        self.last_report: SyncReport | None = None

    async def check_connectivity(self) -> tuple[bool, str]:
        try:
            status = await self.api.health_check()
        except AcademyError as exc:
            return False, str(exc)
        if not isinstance(status, dict) or status.get("database") != "connected":
            return False, "database disconnected"
        return True, "ok"

    def plan(self) -> list[tuple[str, Entity]]:
        """Reconciliation work for one pass; previously failed gallery items go first."""
        retry_first = [("gallery", item) for item in self.state.gallery if item.needs_sync]
        rest = [
            (name, entity)
            for name, entity in self.state.entities()
            if not (name == "gallery" and entity.needs_sync)
        ]
        return retry_first + rest

    def _reconcile(self, name: str, entity: Entity) -> Awaitable[bool]:
        if isinstance(entity, WeeklyFeeRecord):
            return self.reconciler.sync_weekly_fee(entity)
        return self.reconciler.sync_entity(name, entity)

    async def sync_all(self) -> SyncReport:
        pending_before = len(self.state.pending())

        reachable, reason = await self.check_connectivity()
        if not reachable:
            logger.error("Sync pass aborted: %s", reason)
            self.notify("Cannot connect to server. Changes will only be saved locally.", "error")
            self.last_report = SyncReport(SyncOutcome.ABORTED, reason=reason)
            return self.last_report

        work = self.plan()
        results = await asyncio.gather(
            *(self._reconcile(name, entity) for name, entity in work),
            return_exceptions=True,
        )
        failed = sum(1 for result in results if result is not True)

        pending_after = len(self.state.pending())
        resolved = max(0, pending_before - pending_after)
        if pending_after < pending_before:
            self.notify(f"Synchronized {resolved} previously failed item(s) with the server", "success")
        logger.info("Sync pass finished: %d attempted, %d failed, %d pending", len(work), failed, pending_after)

        self.last_report = SyncReport(SyncOutcome.SUCCESS, attempted=len(work), failed=failed, resolved=resolved)
        return self.last_report
