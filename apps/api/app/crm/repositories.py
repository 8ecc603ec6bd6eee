from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.crm.models import CRMAccount, CRMActivity, CRMCall, CRMContact, CRMOpportunity
from app.crm.pagination import PageRequest


ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]
    entity_kind = ""

    def get(self, session: Session, entity_id: str) -> ModelT:
        row = session.get(self.model, entity_id)
        if row is None:
            raise NotFoundError(self.entity_kind, entity_id)
        return row


class AccountRepository(BaseRepository[CRMAccount]):
    model = CRMAccount
    entity_kind = "Account"

    def build_filters(self, *, search: str | None, se_user_id: str | None) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = []
        if search:
            conditions.append(CRMAccount.name.icontains(search, autoescape=True))
        if se_user_id:
            # Semi-join on the distinct set of account ids the SE works on, so
            # accounts with several assigned opportunities are not repeated.
            se_account_ids = (
                select(CRMOpportunity.account_id)
                .where(CRMOpportunity.assigned_se_user_id == se_user_id)
                .distinct()
            )
            conditions.append(CRMAccount.id.in_(se_account_ids))
        return conditions

    def list_page(
        self,
        session: Session,
        conditions: list[ColumnElement[bool]],
        page_request: PageRequest,
    ) -> list[CRMAccount]:
        stmt: Select[tuple[CRMAccount]] = select(CRMAccount).where(*conditions)
        stmt = stmt.order_by(CRMAccount.name.asc(), CRMAccount.id.asc())
        stmt = stmt.offset(page_request.offset).limit(page_request.page_size)
        return list(session.scalars(stmt).all())

    def count(self, session: Session, conditions: list[ColumnElement[bool]]) -> int:
        stmt: Select[Any] = select(func.count()).select_from(CRMAccount).where(*conditions)
        return int(session.scalar(stmt) or 0)


class OpportunityRepository(BaseRepository[CRMOpportunity]):
    model = CRMOpportunity
    entity_kind = "Opportunity"

    def list_for_account(self, session: Session, account_id: str) -> list[CRMOpportunity]:
        stmt = (
            select(CRMOpportunity)
            .where(CRMOpportunity.account_id == account_id)
            .order_by(CRMOpportunity.close_date.desc().nulls_last(), CRMOpportunity.id.desc())
        )
        return list(session.scalars(stmt).all())


class ContactRepository(BaseRepository[CRMContact]):
    model = CRMContact
    entity_kind = "Contact"

    def list_for_account(self, session: Session, account_id: str) -> list[CRMContact]:
        stmt = (
            select(CRMContact)
            .where(CRMContact.account_id == account_id)
            .order_by(CRMContact.last_name.asc(), CRMContact.first_name.asc(), CRMContact.id.asc())
        )
        return list(session.scalars(stmt).all())


class ActivityRepository(BaseRepository[CRMActivity]):
    model = CRMActivity
    entity_kind = "Activity"

    def list_for_account(self, session: Session, account_id: str) -> list[CRMActivity]:
        stmt = (
            select(CRMActivity)
            .where(CRMActivity.account_id == account_id)
            .order_by(CRMActivity.activity_date.desc().nulls_last(), CRMActivity.id.desc())
        )
        return list(session.scalars(stmt).all())


class CallRepository(BaseRepository[CRMCall]):
    model = CRMCall
    entity_kind = "Call"

    def list_for_account(self, session: Session, account_id: str) -> list[CRMCall]:
        stmt = (
            select(CRMCall)
            .where(CRMCall.account_id == account_id)
            .order_by(CRMCall.started.desc(), CRMCall.id.desc())
        )
        return list(session.scalars(stmt).all())
