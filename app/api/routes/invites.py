import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.api.deps import client_ip, get_email_service, get_service_caller, get_session_caller
from app.core.trust import Caller
from app.db.database import get_db
from app.schemas.invitation import (
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    InvitationCreate,
    InvitationIssued,
    InvitationResponse,
)
from app.services.email_service import EmailService
from app.services.invitation_service import (
    InvitationAcceptor,
    InvitationIssuer,
    list_invitations,
    revoke_invitation,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invite", tags=["Invitations"])


@router.post("", response_model=InvitationIssued)
def create_invitation(
    data: InvitationCreate,
    request: Request,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    caller: Caller = Depends(get_service_caller),
):
    """Invite an email address to a role. Admin only.

    A 502 response means the invitation exists but its email was not
    delivered; the body carries ``invitation_id`` for a resend.
    """
    invitation = InvitationIssuer(db, email_service).issue(
        caller,
        email=data.email,
        role=data.role,
        invited_by_email=data.invited_by_email,
        ip_address=client_ip(request),
    )
    return InvitationIssued(invitation=invitation)


@router.post("/accept", response_model=AcceptInvitationResponse)
def accept_invitation(
    data: AcceptInvitationRequest,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_session_caller),
):
    """Redeem an invitation for the signed-in account."""
    role = InvitationAcceptor(db).accept(
        caller,
        email=data.email,
        token=data.token,
        user_id=data.user_id,
        ip_address=client_ip(request),
    )
    return AcceptInvitationResponse(role=role)


@router.get("", response_model=list[InvitationResponse])
def list_outstanding_invitations(
    include_expired: bool = False,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_service_caller),
):
    """List invitations that have not been redeemed yet."""
    return list_invitations(db, caller, include_expired=include_expired)


@router.post("/{invitation_id}/resend", response_model=InvitationIssued)
def resend_invitation(
    invitation_id: int,
    request: Request,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    caller: Caller = Depends(get_service_caller),
):
    """Issue a fresh token for an invitation and email it again."""
    invitation = InvitationIssuer(db, email_service).resend(
        caller, invitation_id, ip_address=client_ip(request)
    )
    return InvitationIssued(invitation=invitation)


@router.delete("/{invitation_id}")
def delete_invitation(
    invitation_id: int,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_service_caller),
):
    """Revoke an outstanding invitation."""
    revoke_invitation(db, caller, invitation_id, ip_address=client_ip(request))
    return {"success": True}
