import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.api.deps import client_ip, get_email_service, get_service_caller
from app.core.trust import Caller
from app.db.database import get_db
from app.models.profile import Role
from app.schemas.admin import ActionResult, AdminProfileList, DeleteUserRequest, SendResetRequest
from app.services.account_service import AccountService
from app.services.email_service import EmailService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/send-reset", response_model=ActionResult)
def send_password_reset(
    data: SendResetRequest,
    request: Request,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    caller: Caller = Depends(get_service_caller),
):
    """Email a password recovery link to a user."""
    AccountService(db, email_service).force_password_reset(
        caller, data.email, ip_address=client_ip(request)
    )
    return ActionResult()


@router.post("/delete-user", response_model=ActionResult)
def delete_user(
    data: DeleteUserRequest,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_service_caller),
):
    """Remove a user's identity. Their profile goes with it."""
    AccountService(db).delete_user(
        caller, data.user_id, ip_address=client_ip(request)
    )
    return ActionResult()


@router.get("/users", response_model=AdminProfileList)
def list_users(
    role: Role | None = None,
    search: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_service_caller),
):
    """List user profiles with optional role filter and search."""
    profiles, total = AccountService(db).list_profiles(
        caller, role=role, search=search, skip=skip, limit=limit
    )
    return AdminProfileList(users=profiles, total=total)
