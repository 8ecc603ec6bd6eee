from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone

from opentelemetry import trace
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.crm.fanout import ReadFanout
from app.crm.linkage import OrphanPolicy, link_calls
from app.crm.models import CRMCall, CRMOpportunity
from app.crm.pagination import PageRequest, build_paginated_response
from app.crm.repositories import (
    AccountRepository,
    ActivityRepository,
    CallRepository,
    ContactRepository,
    OpportunityRepository,
)
from app.crm.schemas import (
    AccountRead,
    ActivityRead,
    CallParticipant,
    CallRead,
    CloseDateStatus,
    ContactRead,
    OpportunitiesWithCallsRead,
    OpportunityRead,
    PaginatedResponse,
)
from app.platform.security.context import AuthContext
from app.platform.security.scoping import parse_role, resolve_se_filter


logger = logging.getLogger("app.crm.accounts")
tracer = trace.get_tracer("app.crm.accounts")

CLOSE_DATE_SOON_DAYS = 7


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ActorUser:
    user_id: str
    role: str
    correlation_id: str | None = None


def _to_auth_context(actor_user: ActorUser) -> AuthContext:
    return AuthContext(
        user_id=actor_user.user_id,
        role=actor_user.role,
        correlation_id=actor_user.correlation_id,
    )


def close_date_status(opportunity: CRMOpportunity, today: date) -> CloseDateStatus:
    if opportunity.is_closed or opportunity.close_date is None:
        return "normal"
    days_left = (opportunity.close_date - today).days
    if days_left < 0:
        return "overdue"
    if days_left <= CLOSE_DATE_SOON_DAYS:
        return "soon"
    return "normal"


class AccountService:
    def __init__(self, today: Callable[[], date] | None = None) -> None:
        self.accounts = AccountRepository()
        self.opportunities = OpportunityRepository()
        self.contacts = ContactRepository()
        self.activities = ActivityRepository()
        self.calls = CallRepository()
        self._today = today or (lambda: utcnow().date())

    def list_accounts(
        self,
        session: Session,
        actor_user: ActorUser,
        *,
        search: str | None,
        assigned_se_user_id: str | None,
        page_request: PageRequest,
        fanout: ReadFanout,
    ) -> PaginatedResponse[AccountRead]:
        se_filter = resolve_se_filter(_to_auth_context(actor_user), assigned_se_user_id)
        conditions = self.accounts.build_filters(search=(search or "").strip() or None, se_user_id=se_filter)

        with tracer.start_as_current_span("crm.accounts.list") as span:
            span.set_attribute("crm.role", actor_user.role)
            span.set_attribute("crm.scoped", se_filter is not None)
            rows, total = fanout.gather(
                session,
                lambda read_session: [
                    AccountRead.model_validate(row)
                    for row in self.accounts.list_page(read_session, conditions, page_request)
                ],
                lambda read_session: self.accounts.count(read_session, conditions),
            )

        return build_paginated_response(rows, total, page_request)

    def get_account(self, session: Session, actor_user: ActorUser, account_id: str) -> AccountRead:
        parse_role(actor_user.role)
        with tracer.start_as_current_span("crm.accounts.get"):
            return AccountRead.model_validate(self.accounts.get(session, account_id))

    def get_account_opportunities(self, session: Session, actor_user: ActorUser, account_id: str) -> list[OpportunityRead]:
        parse_role(actor_user.role)
        with tracer.start_as_current_span("crm.accounts.opportunities"):
            return self._read_opportunities(session, account_id)

    def get_account_opportunities_with_calls(
        self,
        session: Session,
        actor_user: ActorUser,
        account_id: str,
        *,
        fanout: ReadFanout,
        orphan_policy: OrphanPolicy | None = None,
    ) -> OpportunitiesWithCallsRead:
        parse_role(actor_user.role)
        policy = orphan_policy or get_settings().orphaned_call_policy
        with tracer.start_as_current_span("crm.accounts.opportunities_with_calls") as span:
            span.set_attribute("crm.orphan_policy", policy)
            opportunities, calls = fanout.gather(
                session,
                lambda read_session: self._read_opportunities(read_session, account_id),
                lambda read_session: [
                    self._to_call_read(call) for call in self.calls.list_for_account(read_session, account_id)
                ],
            )
            span.set_attribute("crm.opportunity_count", len(opportunities))
            span.set_attribute("crm.call_count", len(calls))

        return link_calls(opportunities, calls, orphan_policy=policy, account_id=account_id)

    def get_account_contacts(self, session: Session, actor_user: ActorUser, account_id: str) -> list[ContactRead]:
        parse_role(actor_user.role)
        with tracer.start_as_current_span("crm.accounts.contacts"):
            return [ContactRead.model_validate(row) for row in self.contacts.list_for_account(session, account_id)]

    def get_account_activities(self, session: Session, actor_user: ActorUser, account_id: str) -> list[ActivityRead]:
        parse_role(actor_user.role)
        with tracer.start_as_current_span("crm.accounts.activities"):
            return [
                ActivityRead.model_validate(row) for row in self.activities.list_for_account(session, account_id)
            ]

    def _read_opportunities(self, session: Session, account_id: str) -> list[OpportunityRead]:
        today = self._today()
        return [self._to_opportunity_read(row, today) for row in self.opportunities.list_for_account(session, account_id)]

    def _to_opportunity_read(self, opportunity: CRMOpportunity, today: date) -> OpportunityRead:
        read = OpportunityRead.model_validate(opportunity)
        return read.model_copy(update={"close_date_status": close_date_status(opportunity, today)})

    def _to_call_read(self, call: CRMCall) -> CallRead:
        participants = [CallParticipant.model_validate(item) for item in call.participants or []]
        internal_count = sum(1 for participant in participants if participant.role == "internal")
        return CallRead.model_validate(
            {
                "id": call.id,
                "account_id": call.account_id,
                "opportunity_id": call.opportunity_id,
                "title": call.title,
                "started": call.started,
                "duration": call.duration,
                "media": call.media,
                "url": call.url,
                "participants": participants,
                "internal_participant_count": internal_count,
                "external_participant_count": len(participants) - internal_count,
            }
        )
