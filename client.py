"""
client.py
Client-side wiring: message sink, initial data load, dashboard stats,
and the background event loop the UI hands its sync work to.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Any, Callable, Coroutine

from api import ApiClients, build_clients
from config import Settings
from errors import AcademyError, NetworkError, NotFoundError
from models import (
    COLLECTION_ORDER,
    STUDENT_ROLE,
    AppState,
    DashboardStats,
    Entity,
    GalleryItem,
    Member,
    Payment,
    WeeklyFeeRecord,
)
from scheduler import PeriodicSync, start_after_initial_sync
from sync import BulkSynchronizer, EntityReconciler, SyncReport
from transport import Notifier, Transport

logger = logging.getLogger(__name__)


class MessageBoard:
    """User-visible notification sink (thread safe). The UI drains it on each rerun."""

    def __init__(self, maxlen: int = 50) -> None:
        self._messages: deque[tuple[str, str]] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def push(self, message: str, level: str = "info") -> None:
        logger.log(logging.ERROR if level == "error" else logging.INFO, "[%s] %s", level, message)
        with self._lock:
            self._messages.append((level, message))

    def drain(self) -> list[tuple[str, str]]:
        with self._lock:
            items = list(self._messages)
            self._messages.clear()
        return items


def update_dashboard_stats(state: AppState) -> DashboardStats:
    total_donations = sum(d.amount for d in state.donations)
    total_expenses = sum(e.amount for e in state.expenses)
    totals = {"paid": 0.0, "pending": 0.0, "overdue": 0.0}
    for record in state.weekly_fees:
        for payment in record.payments:
            if payment.status in totals:
                totals[payment.status] += payment.amount

    state.dashboard_stats = DashboardStats(
        total_members=len(state.members),
        total_activities=len(state.activities),
        total_donations=total_donations,
        total_expenses=total_expenses,
        net_balance=total_donations - total_expenses,
        weekly_fees_collected=totals["paid"],
        pending_fees=totals["pending"],
        overdue_fees=totals["overdue"],
        total_experiences=len(state.experiences),
    )
    return state.dashboard_stats


async def load_all_data(api: ApiClients, state: AppState, notify: Notifier) -> bool:
    notify("Loading data from server...", "info")

    try:
        await api.health_check()
    except NotFoundError:
        # Server is up but predates the health-check endpoint
        logger.info("Health check endpoint missing, continuing with data load")
    except AcademyError as exc:
        logger.error("Server connection error: %s", exc)
        notify("Cannot connect to server. Check that the API server is running.", "error")
        return False

    try:
        results = await asyncio.gather(*(getattr(api, name).list_all() for name in COLLECTION_ORDER))
    except NotFoundError:
        notify("API endpoint not found. Please make sure the server is running.", "error")
        return False
    except NetworkError:
        notify("Network error. Please check your internet connection or server status.", "error")
        return False
    except AcademyError as exc:
        logger.error("Failed to load data: %s", exc)
        notify("Failed to load data from server.", "error")
        return False

    for name, entities in zip(COLLECTION_ORDER, results):
        state.reload_collection(name, entities)
    state.link_fee_records()
    update_dashboard_stats(state)
    notify("Data loaded successfully", "success")
    return True


class AcademyClient:
    """Everything the UI does to the data, as coroutines on one event loop."""

    def __init__(self, api: ApiClients, state: AppState, settings: Settings, notify: Notifier) -> None:
        self.api = api
        self.state = state
        self.settings = settings
        self.notify = notify
        self.reconciler = EntityReconciler(api, state)
        self.synchronizer = BulkSynchronizer(api, self.reconciler, state, notify=notify)
        self.scheduler = PeriodicSync(self.synchronizer)
        self._background: set[asyncio.Task] = set()

    async def load(self) -> bool:
        return await load_all_data(self.api, self.state, self.notify)

    async def bootstrap(self) -> bool:
        """Initial load, then one delayed sync pass that arms the periodic timer."""
        loaded = await self.load()
        if loaded:
            task = asyncio.get_running_loop().create_task(
                start_after_initial_sync(
                    self.scheduler,
                    initial_delay=self.settings.initial_sync_delay,
                    interval_minutes=self.settings.sync_interval_minutes,
                    retry_interval_minutes=self.settings.retry_interval_minutes,
                )
            )
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        return loaded

    async def save(self, collection: str, entity: Entity, changes: dict[str, Any] | None = None) -> bool:
        """Apply changes locally (adding the entity if new), then reconcile it."""
        for key, value in (changes or {}).items():
            setattr(entity, key, value)
        if entity.local_id is None:
            if isinstance(entity, Member):
                self.state.add_member(entity)
            else:
                self.state.add(collection, entity)
        if isinstance(entity, Member):
            self._sync_fee_record_owner(entity)
        ok = await self.reconciler.sync_entity(collection, entity)
        update_dashboard_stats(self.state)
        return ok

    def _sync_fee_record_owner(self, member: Member) -> None:
        record = self.state.fee_record_for(member)
        if record is None and member.role == STUDENT_ROLE:
            self.state.add("weekly_fees", WeeklyFeeRecord(member=member, member_name=member.name))
        elif record is not None:
            record.member, record.member_name = member, member.name

    async def delete(self, collection: str, entity: Entity) -> bool:
        if isinstance(entity, Member):
            self.state.remove_member(entity)
        else:
            self.state.remove(collection, entity)
        update_dashboard_stats(self.state)
        if isinstance(entity, GalleryItem):
            return await self.reconciler.sync_gallery_item(entity, is_delete=True)
        return await self.reconciler.sync_entity(collection, entity, is_delete=True)

    async def save_payment(self, record: WeeklyFeeRecord, payment: Payment, changes: dict[str, Any] | None = None) -> bool:
        for key, value in (changes or {}).items():
            setattr(payment, key, value)
        if payment.local_id is None:
            self.state.add_payment(record, payment)
        ok = await self.reconciler.sync_payment(record, payment)
        update_dashboard_stats(self.state)
        return ok

    async def delete_payment(self, record: WeeklyFeeRecord, payment: Payment) -> bool:
        record.payments = [p for p in record.payments if p is not payment]
        update_dashboard_stats(self.state)
        return await self.reconciler.sync_payment(record, payment, is_delete=True)

    async def toggle_top_n(self, item: GalleryItem) -> bool:
        return await self.reconciler.sync_toggle_top_n(item)

    async def reorder_top_n(self, ordered: list[GalleryItem]) -> bool:
        for position, item in enumerate(ordered, start=1):
            item.top_n_order = position
        return await self.reconciler.sync_top_n_order(ordered)

    async def sync_now(self) -> SyncReport | None:
        """Run one pass now; None when a pass is already running."""
        report = await self.scheduler.fire()
        update_dashboard_stats(self.state)
        return report

    async def start_periodic(self, interval_minutes: float) -> None:
        self.scheduler.start(interval_minutes)

    async def stop_periodic(self) -> bool:
        return self.scheduler.stop()

    async def close(self) -> None:
        self.scheduler.stop()
        await self.api.transport.close()


class SyncRuntime:
    """
    Owns a private event loop on a daemon thread. The Streamlit script thread
    submits coroutines with call(); all AppState mutation happens on the loop.
    """

    def __init__(self, settings: Settings, notify: Notifier | None = None) -> None:
        self.settings = settings
        self.messages = MessageBoard()
        notify = notify if notify is not None else self.messages.push
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, name="academy-sync", daemon=True)
        self._thread.start()

        transport = Transport(
            settings.api_base_url,
            timeout=settings.request_timeout,
            max_attempts=settings.max_attempts,
            backoff_base=settings.backoff_base,
            notify=notify,
        )
        self.client = AcademyClient(build_clients(transport), AppState(), settings, notify)
        self.loaded = False

    @property
    def state(self) -> AppState:
        return self.client.state

    def run(self, coro: Coroutine, timeout: float | None = None):
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def call(self, method: Callable[..., Coroutine], *args, **kwargs):
        return self.run(method(*args, **kwargs))

    def boot(self) -> bool:
        self.loaded = self.run(self.client.bootstrap())
        return self.loaded

    def shutdown(self) -> None:
        try:
            self.run(self.client.close(), timeout=5)
        finally:
            self.loop.call_soon_threadsafe(self.loop.stop)
            self._thread.join(timeout=5)
