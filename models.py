"""
models.py
Client-side domain objects: entities, tagged identity, the owned AppState cache.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, fields
from typing import Any, Iterator, Union

STUDENT_ROLE = "Student"
MEMBER_ROLES = ("Student", "Coach", "Admin", "Volunteer")
PAYMENT_STATUSES = ("pending", "paid", "overdue")

# Bookkeeping fields that never travel as entity data
BASE_FIELDS = ("local_id", "remote_id", "needs_sync")


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _coerce(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, float):
        return float(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, str):
        return str(value)
    return value


@dataclass(frozen=True)
class LocalId:
    value: int


@dataclass(frozen=True)
class RemoteId:
    value: str


Identity = Union[LocalId, RemoteId]


@dataclass(eq=False)
class Entity:
    """
    Base for every cached record. Equality is object identity: the same
    instance is shared between the cache and any in-flight sync task.
    """

    local_id: int | None = None
    remote_id: str | None = None
    needs_sync: bool = False

    @property
    def identity(self) -> Identity | None:
        if self.remote_id is not None:
            return RemoteId(self.remote_id)
        if self.local_id is not None:
            return LocalId(self.local_id)
        return None

    @property
    def is_persisted(self) -> bool:
        return self.remote_id is not None

    def assign_remote_id(self, remote_id: str) -> None:
        if self.remote_id is not None and self.remote_id != remote_id:
            raise ValueError(f"remote id already assigned ({self.remote_id}), refusing {remote_id}")
        self.remote_id = remote_id

    @classmethod
    def data_fields(cls) -> list:
        return [f for f in fields(cls) if f.name not in BASE_FIELDS]

    def to_payload(self) -> dict[str, Any]:
        payload = {to_camel(f.name): getattr(self, f.name) for f in self.data_fields()}
        if self.remote_id is not None:
            payload["_id"] = self.remote_id
        return payload

    @classmethod
    def from_payload(cls, data: dict[str, Any], local_id: int | None = None):
        values = {f.name: _coerce(data.get(to_camel(f.name)), f.default) for f in cls.data_fields()}
        remote_id = data.get("_id")
        return cls(local_id=local_id, remote_id=str(remote_id) if remote_id else None, **values)


@dataclass(eq=False)
class HeroSlide(Entity):
    title: str = ""
    subtitle: str = ""
    description: str = ""
    background_image: str = ""
    cta_text: str = ""
    cta_link: str = ""
    redirect_url: str = ""
    open_new_tab: bool = False


@dataclass(eq=False)
class Activity(Entity):
    title: str = ""
    date: str = ""
    time: str = ""
    description: str = ""
    image: str = ""
    status: str = "upcoming"
    type: str = ""
    priority: str = ""
    redirect_url: str = ""
    open_new_tab: bool = False


@dataclass(eq=False)
class Member(Entity):
    name: str = ""
    contact: str = ""
    phone: str = ""
    join_date: str = ""
    role: str = STUDENT_ROLE
    image: str = ""


@dataclass(eq=False)
class Donation(Entity):
    donor_name: str = ""
    amount: float = 0.0
    date: str = ""
    purpose: str = ""


@dataclass(eq=False)
class Expense(Entity):
    description: str = ""
    amount: float = 0.0
    date: str = ""
    category: str = ""
    vendor: str = ""
    payment_method: str = ""


@dataclass(eq=False)
class Experience(Entity):
    title: str = ""
    date: str = ""
    description: str = ""
    image: str = ""


@dataclass(eq=False)
class GalleryItem(Entity):
    title: str = ""
    description: str = ""
    image_url: str = ""
    is_top_n: bool = False
    top_n_order: int = 0


@dataclass(eq=False)
class Payment(Entity):
    date: str = ""
    amount: float = 0.0
    status: str = "pending"


@dataclass(eq=False)
class WeeklyFeeRecord(Entity):
    member: Member | None = None
    member_remote_id: str | None = None
    member_name: str = ""
    payments: list[Payment] = field(default_factory=list)

    @property
    def member_id(self) -> str | None:
        """Remote id of the owning member, once it is known."""
        if self.member is not None and self.member.remote_id is not None:
            return self.member.remote_id
        return self.member_remote_id

    @classmethod
    def from_payload(cls, data: dict[str, Any], local_id: int | None = None):
        remote_id = data.get("_id")
        return cls(
            local_id=local_id,
            remote_id=str(remote_id) if remote_id else None,
            member_remote_id=str(data["memberId"]) if data.get("memberId") else None,
            member_name=str(data.get("memberName") or ""),
            payments=[Payment.from_payload(p) for p in data.get("payments") or []],
        )


@dataclass
class DashboardStats:
    total_members: int = 0
    total_activities: int = 0
    total_donations: float = 0.0
    total_expenses: float = 0.0
    net_balance: float = 0.0
    weekly_fees_collected: float = 0.0
    pending_fees: float = 0.0
    overdue_fees: float = 0.0
    total_experiences: int = 0


# Collections reconciled through the plain upsert endpoints
ENTITY_TYPES: dict[str, type[Entity]] = {
    "hero_slides": HeroSlide,
    "activities": Activity,
    "members": Member,
    "donations": Donation,
    "expenses": Expense,
    "experiences": Experience,
    "gallery": GalleryItem,
}

# Order of a full sync pass
COLLECTION_ORDER = (
    "hero_slides",
    "activities",
    "members",
    "weekly_fees",
    "donations",
    "expenses",
    "experiences",
    "gallery",
)


@dataclass
class AppState:
    """
    The client's working copy of every collection. Created once per
    application run and handed to whatever needs to read or mutate it.
    """

    hero_slides: list[HeroSlide] = field(default_factory=list)
    activities: list[Activity] = field(default_factory=list)
    members: list[Member] = field(default_factory=list)
    donations: list[Donation] = field(default_factory=list)
    expenses: list[Expense] = field(default_factory=list)
    experiences: list[Experience] = field(default_factory=list)
    weekly_fees: list[WeeklyFeeRecord] = field(default_factory=list)
    gallery: list[GalleryItem] = field(default_factory=list)
    dashboard_stats: DashboardStats = field(default_factory=DashboardStats)
    _ids: Iterator[int] = field(default_factory=lambda: itertools.count(1), repr=False)

    def new_local_id(self) -> int:
        return next(self._ids)

    def collection(self, name: str) -> list:
        if name not in COLLECTION_ORDER:
            raise KeyError(f"Unknown collection: {name}")
        return getattr(self, name)

    def add(self, name: str, entity: Entity) -> Entity:
        if entity.local_id is None:
            entity.local_id = self.new_local_id()
        self.collection(name).append(entity)
        return entity

    def remove(self, name: str, entity: Entity) -> bool:
        items = self.collection(name)
        for i, existing in enumerate(items):
            if existing is entity:
                del items[i]
                return True
        return False

    def find(self, name: str, local_id: int) -> Entity | None:
        return next((e for e in self.collection(name) if e.local_id == local_id), None)

    def find_remote(self, name: str, remote_id: str) -> Entity | None:
        return next((e for e in self.collection(name) if e.remote_id == remote_id), None)

    def replace_collection(self, name: str, entities: list[Entity]) -> None:
        for entity in entities:
            if entity.local_id is None:
                entity.local_id = self.new_local_id()
            if isinstance(entity, WeeklyFeeRecord):
                for payment in entity.payments:
                    if payment.local_id is None:
                        payment.local_id = self.new_local_id()
        setattr(self, name, list(entities))

    @staticmethod
    def has_local_changes(entity: Entity) -> bool:
        """Created offline, or edited and not yet accepted by the server."""
        if not entity.is_persisted or entity.needs_sync:
            return True
        if isinstance(entity, WeeklyFeeRecord):
            return any(not p.is_persisted or p.needs_sync for p in entity.payments)
        return False

    def reload_collection(self, name: str, loaded: list[Entity]) -> None:
        """
        Take the server's copy of a collection but keep local changes that
        have not reached it yet, so they stay retryable. A kept entity wins
        over the loaded one with the same remote id.
        """
        kept = [e for e in self.collection(name) if self.has_local_changes(e)]
        kept_ids = {e.remote_id for e in kept if e.remote_id is not None}
        fresh = [e for e in loaded if e.remote_id not in kept_ids]
        self.replace_collection(name, fresh + kept)

    # ---------- Members + weekly fees ----------

    def add_member(self, member: Member) -> Member:
        self.add("members", member)
        if member.role == STUDENT_ROLE and self.fee_record_for(member) is None:
            self.add("weekly_fees", WeeklyFeeRecord(member=member, member_name=member.name))
        return member

    def remove_member(self, member: Member) -> bool:
        record = self.fee_record_for(member)
        if record is not None:
            self.remove("weekly_fees", record)
        return self.remove("members", member)

    def fee_record_for(self, member: Member) -> WeeklyFeeRecord | None:
        for record in self.weekly_fees:
            if record.member is member:
                return record
            if member.remote_id is not None and record.member_id == member.remote_id:
                return record
        return None

    def link_fee_records(self) -> None:
        """Attach records loaded from the server to the cached Member objects."""
        for record in self.weekly_fees:
            if any(m is record.member for m in self.members):
                continue
            owner_id = record.member_id
            if owner_id:
                record.member = self.find_remote("members", owner_id) or record.member

    def add_payment(self, record: WeeklyFeeRecord, payment: Payment) -> Payment:
        if payment.local_id is None:
            payment.local_id = self.new_local_id()
        record.payments.append(payment)
        return payment

    # ---------- Sync bookkeeping ----------

    def entities(self) -> Iterator[tuple[str, Entity]]:
        for name in COLLECTION_ORDER:
            for entity in self.collection(name):
                yield name, entity

    def pending(self) -> list[Entity]:
        """Entities whose last sync failed."""
        return [entity for _, entity in self.entities() if entity.needs_sync]

    def unsynced(self) -> list[Entity]:
        """Entities created locally and never persisted remotely."""
        return [entity for _, entity in self.entities() if not entity.is_persisted]
