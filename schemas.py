"""
schemas.py
Request/response models for the REST API (camelCase on the wire, `_id` for ids).
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PaymentStatus = Literal["pending", "paid", "overdue"]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Document(ApiModel):
    id: Optional[str] = Field(default=None, alias="_id")


class HeroSlideSchema(Document):
    title: str
    subtitle: str = ""
    description: str = ""
    background_image: str = ""
    cta_text: str = ""
    cta_link: str = ""
    redirect_url: str = ""
    open_new_tab: bool = False


class ActivitySchema(Document):
    title: str
    date: str = ""
    time: str = ""
    description: str = ""
    image: str = ""
    status: str = "upcoming"
    type: str = ""
    priority: str = ""
    redirect_url: str = ""
    open_new_tab: bool = False


class MemberSchema(Document):
    name: str = Field(min_length=1)
    contact: str = ""
    phone: str = ""
    join_date: str = ""
    role: str = "Student"
    image: str = ""


class DonationSchema(Document):
    donor_name: str
    amount: float = Field(ge=0)
    date: str
    purpose: str


class ExpenseSchema(Document):
    description: str
    amount: float = Field(ge=0)
    date: str = ""
    category: str = ""
    vendor: str = ""
    payment_method: str = ""


class ExperienceSchema(Document):
    title: str
    date: str = ""
    description: str = ""
    image: str = ""


class GalleryItemSchema(Document):
    title: str
    description: str = ""
    image_url: str
    is_top_n: bool = False
    top_n_order: int = 0


class PaymentIn(ApiModel):
    date: str
    amount: float = Field(ge=0)
    status: Optional[PaymentStatus] = None


class PaymentOut(Document):
    date: str
    amount: float
    status: PaymentStatus


class WeeklyFeeRecordSchema(Document):
    member_id: str
    member_name: str
    payments: list[PaymentOut] = Field(default_factory=list)


class OrderItem(ApiModel):
    id: str = Field(alias="_id")
    top_n_order: int = Field(ge=1)


class ReorderRequest(ApiModel):
    items: list[OrderItem]


class Message(ApiModel):
    msg: str


class HealthStatus(ApiModel):
    server: str = "running"
    database: Literal["connected", "disconnected"]
    db_state: int
