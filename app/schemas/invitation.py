from pydantic import BaseModel, EmailStr
from datetime import datetime

from app.models.profile import Role


class InvitationCreate(BaseModel):
    email: EmailStr
    role: Role
    invited_by_email: str | None = None  # display only


class InvitationResponse(BaseModel):
    id: int
    email: str
    role: Role
    token: str
    invited_by: str | None = None
    invited_by_email: str | None = None
    expires_at: datetime
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class InvitationIssued(BaseModel):
    success: bool = True
    invitation: InvitationResponse


class AcceptInvitationRequest(BaseModel):
    email: str
    token: str
    user_id: str | None = None  # must match the signed-in user when present


class AcceptInvitationResponse(BaseModel):
    success: bool = True
    role: Role
