"""
api.py
Resource clients: one per collection, mapping logical operations onto the transport.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from models import (
    Activity,
    Donation,
    Entity,
    Expense,
    Experience,
    GalleryItem,
    HeroSlide,
    Member,
    Payment,
    WeeklyFeeRecord,
)
from transport import Transport

HEALTH_CHECK_ENDPOINT = "/health-check"


class ResourceClient:
    def __init__(self, transport: Transport, path: str, entity_type: type[Entity]) -> None:
        self.transport = transport
        self.path = path
        self.entity_type = entity_type

    async def list_all(self) -> list[Entity]:
        rows = await self.transport.execute(self.path)
        return [self.entity_type.from_payload(row) for row in rows or []]

    async def create(self, entity: Entity) -> dict[str, Any]:
        payload = entity.to_payload()
        payload.pop("_id", None)
        return await self.transport.execute(self.path, "POST", payload)

    async def update(self, entity: Entity) -> dict[str, Any]:
        # Same upsert endpoint as create; the _id field selects the update branch
        if entity.remote_id is None:
            raise ValueError(f"{self.entity_type.__name__} has no remote id to update")
        return await self.transport.execute(self.path, "POST", entity.to_payload())

    async def delete(self, remote_id: str) -> Any:
        return await self.transport.execute(f"{self.path}/{remote_id}", "DELETE")


class GalleryClient(ResourceClient):
    async def fetch_top_n(self) -> list[GalleryItem]:
        rows = await self.transport.execute(f"{self.path}/top5")
        return [GalleryItem.from_payload(row) for row in rows or []]

    async def toggle_top_n_membership(self, remote_id: str) -> dict[str, Any]:
        return await self.transport.execute(f"{self.path}/toggle-top5/{remote_id}", "PUT")

    async def reorder(self, items: list[GalleryItem]) -> Any:
        body = {"items": [{"_id": item.remote_id, "topNOrder": item.top_n_order} for item in items]}
        return await self.transport.execute(f"{self.path}/update-order", "PUT", body)


class WeeklyFeeClient:
    def __init__(self, transport: Transport, path: str = "/weekly-fees") -> None:
        self.transport = transport
        self.path = path

    async def list_all(self) -> list[WeeklyFeeRecord]:
        rows = await self.transport.execute(self.path)
        return [WeeklyFeeRecord.from_payload(row) for row in rows or []]

    async def get_member_fees(self, member_remote_id: str) -> WeeklyFeeRecord:
        row = await self.transport.execute(f"{self.path}/{member_remote_id}")
        return WeeklyFeeRecord.from_payload(row)

    async def add_payment(self, member_remote_id: str, payment: Payment) -> WeeklyFeeRecord:
        body = {"date": payment.date, "amount": payment.amount, "status": payment.status}
        row = await self.transport.execute(f"{self.path}/{member_remote_id}", "POST", body)
        return WeeklyFeeRecord.from_payload(row)

    async def update_payment(self, member_remote_id: str, payment_id: str, payment: Payment) -> WeeklyFeeRecord:
        body = {"date": payment.date, "amount": payment.amount, "status": payment.status}
        row = await self.transport.execute(f"{self.path}/{member_remote_id}/{payment_id}", "PUT", body)
        return WeeklyFeeRecord.from_payload(row)

    async def delete_payment(self, member_remote_id: str, payment_id: str) -> WeeklyFeeRecord:
        row = await self.transport.execute(f"{self.path}/{member_remote_id}/{payment_id}", "DELETE")
        return WeeklyFeeRecord.from_payload(row)


@dataclass
class ApiClients:
    transport: Transport
    hero_slides: ResourceClient
    activities: ResourceClient
    members: ResourceClient
    donations: ResourceClient
    expenses: ResourceClient
    experiences: ResourceClient
    gallery: GalleryClient
    weekly_fees: WeeklyFeeClient

    def for_collection(self, name: str) -> ResourceClient:
        client = getattr(self, name, None)
        if not isinstance(client, ResourceClient):
            raise KeyError(f"No resource client for collection: {name}")
        return client

    async def health_check(self) -> dict[str, Any]:
        return await self.transport.probe(HEALTH_CHECK_ENDPOINT)


def build_clients(transport: Transport) -> ApiClients:
    return ApiClients(
        transport=transport,
        hero_slides=ResourceClient(transport, "/hero-slides", HeroSlide),
        activities=ResourceClient(transport, "/activities", Activity),
        members=ResourceClient(transport, "/members", Member),
        donations=ResourceClient(transport, "/donations", Donation),
        expenses=ResourceClient(transport, "/expenses", Expense),
        experiences=ResourceClient(transport, "/experiences", Experience),
        gallery=GalleryClient(transport, "/gallery", GalleryItem),
        weekly_fees=WeeklyFeeClient(transport),
    )
