from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.context import get_correlation_id
from app.core.auth import AuthUser
from app.core.config import get_settings
from app.core.database import SessionLocal, get_db
from app.core.errors import NotFoundError
from app.core.rbac import require_authenticated
from app.crm.fanout import ReadFanout
from app.crm.pagination import parse_pagination
from app.crm.schemas import (
    AccountRead,
    ActivityRead,
    ContactRead,
    OpportunitiesWithCallsRead,
    OpportunityRead,
    PaginatedResponse,
)
from app.crm.service import AccountService, ActorUser
from app.platform.security.errors import InvalidRoleError

router = APIRouter(prefix="/api/accounts", tags=["crm.accounts"])
service = AccountService()
logger = logging.getLogger("app.crm.api")


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def handle_read_error(request: Request, exc: Exception, *, code: str) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        return error_response(
            request,
            status_code=status.HTTP_404_NOT_FOUND,
            code=code,
            message=str(exc),
            details={"entity": exc.entity_kind, "id": exc.entity_id},
        )
    if isinstance(exc, InvalidRoleError):
        logger.error("crm.invalid_role", extra={"role": exc.role, "error": str(exc)})
        return error_response(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="crm_invalid_role",
            message=str(exc),
            details={"role": exc.role},
        )
    if isinstance(exc, HTTPException):
        return error_response(
            request,
            status_code=exc.status_code,
            code=code,
            message=str(exc.detail),
            details=exc.detail,
        )
    raise exc


def get_current_user(request: Request, auth_user: AuthUser = Depends(require_authenticated)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    return ActorUser(
        user_id=auth_user.sub,
        role=auth_user.role or "",
        correlation_id=correlation_id,
    )


def get_read_fanout() -> ReadFanout:
    settings = get_settings()
    if not settings.read_fanout_enabled:
        return ReadFanout()
    return ReadFanout(SessionLocal, max_workers=settings.read_fanout_max_workers)


@router.get("", response_model=PaginatedResponse[AccountRead])
def list_accounts(
    request: Request,
    search: str | None = Query(default=None),
    assigned_se_user_id: str | None = Query(default=None),
    page: str | None = Query(default=None),
    page_size: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
    fanout: ReadFanout = Depends(get_read_fanout),
) -> PaginatedResponse[AccountRead] | JSONResponse:
    settings = get_settings()
    page_request = parse_pagination(
        page,
        page_size,
        default_page_size=settings.default_page_size,
        max_page_size=settings.max_page_size,
    )
    try:
        return service.list_accounts(
            db,
            user,
            search=search,
            assigned_se_user_id=assigned_se_user_id,
            page_request=page_request,
            fanout=fanout,
        )
    except (NotFoundError, InvalidRoleError, HTTPException) as exc:
        return handle_read_error(request, exc, code="crm_account_list_failed")


@router.get("/{account_id}", response_model=AccountRead)
def get_account(
    request: Request,
    account_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> AccountRead | JSONResponse:
    try:
        return service.get_account(db, user, account_id)
    except (NotFoundError, InvalidRoleError, HTTPException) as exc:
        return handle_read_error(request, exc, code="crm_account_get_failed")


@router.get("/{account_id}/opportunities", response_model=list[OpportunityRead])
def list_account_opportunities(
    request: Request,
    account_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[OpportunityRead] | JSONResponse:
    try:
        return service.get_account_opportunities(db, user, account_id)
    except (NotFoundError, InvalidRoleError, HTTPException) as exc:
        return handle_read_error(request, exc, code="crm_opportunity_list_failed")


@router.get("/{account_id}/opportunities-with-calls", response_model=OpportunitiesWithCallsRead)
def list_account_opportunities_with_calls(
    request: Request,
    account_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
    fanout: ReadFanout = Depends(get_read_fanout),
) -> OpportunitiesWithCallsRead | JSONResponse:
    try:
        return service.get_account_opportunities_with_calls(db, user, account_id, fanout=fanout)
    except (NotFoundError, InvalidRoleError, HTTPException) as exc:
        return handle_read_error(request, exc, code="crm_opportunity_calls_list_failed")


@router.get("/{account_id}/contacts", response_model=list[ContactRead])
def list_account_contacts(
    request: Request,
    account_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ContactRead] | JSONResponse:
    try:
        return service.get_account_contacts(db, user, account_id)
    except (NotFoundError, InvalidRoleError, HTTPException) as exc:
        return handle_read_error(request, exc, code="crm_contact_list_failed")


@router.get("/{account_id}/activities", response_model=list[ActivityRead])
def list_account_activities(
    request: Request,
    account_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ActivityRead] | JSONResponse:
    try:
        return service.get_account_activities(db, user, account_id)
    except (NotFoundError, InvalidRoleError, HTTPException) as exc:
        return handle_read_error(request, exc, code="crm_activity_list_failed")
