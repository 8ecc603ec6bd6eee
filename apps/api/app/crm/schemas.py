from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")

CloseDateStatus = Literal["overdue", "soon", "normal"]


class PaginatedResponse(BaseModel, Generic[T]):
    data: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


class AccountRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    industry: str | None
    account_type: str | None
    billing_city: str | None
    billing_state: str | None
    billing_country: str | None
    number_of_employees: int | None
    annual_revenue: Decimal | None
    last_activity_date: date | None


class OpportunityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    name: str
    stage_name: str
    amount: Decimal | None
    close_date: date | None
    probability: int | None
    is_closed: bool
    is_won: bool
    assigned_se_user_id: str | None
    close_date_status: CloseDateStatus = "normal"


class ContactRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    first_name: str | None
    last_name: str
    email: str | None
    phone: str | None
    title: str | None
    department: str | None


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    opportunity_id: str | None
    activity_type: str | None
    subject: str | None
    description: str | None
    activity_date: date | None


class CallParticipant(BaseModel):
    name: str | None = None
    email: str | None = None
    # Gong tags participants "internal" or "external"; anything else counts as external.
    role: str | None = None


class CallRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str | None
    opportunity_id: str | None
    title: str | None
    started: datetime
    duration: int | None
    media: str | None
    url: str | None
    participants: list[CallParticipant] = Field(default_factory=list)
    internal_participant_count: int = 0
    external_participant_count: int = 0


class OpportunityWithCallsRead(OpportunityRead):
    calls: list[CallRead] = Field(default_factory=list)


class OpportunitiesWithCallsRead(BaseModel):
    opportunities: list[OpportunityWithCallsRead]
    unlinked_calls: list[CallRead]
