from app.schemas.user import UserCreate, ProfileResponse, Token, UpdatePasswordRequest
from app.schemas.invitation import (
    InvitationCreate, InvitationResponse, InvitationIssued,
    AcceptInvitationRequest, AcceptInvitationResponse,
)
from app.schemas.admin import SendResetRequest, DeleteUserRequest, AdminProfileList, ActionResult
from app.schemas.contact import ContactCreate

__all__ = [
    "UserCreate", "ProfileResponse", "Token", "UpdatePasswordRequest",
    "InvitationCreate", "InvitationResponse", "InvitationIssued",
    "AcceptInvitationRequest", "AcceptInvitationResponse",
    "SendResetRequest", "DeleteUserRequest", "AdminProfileList", "ActionResult",
    "ContactCreate",
]
