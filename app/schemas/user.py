from pydantic import BaseModel, EmailStr, field_validator
from datetime import datetime

from app.models.profile import Role, ProfileStatus

# Roles a visitor may pick on the public sign-up page. Everything else is
# granted through an invitation or by an administrator.
SELF_REGISTRATION_ROLES = {Role.STUDENT, Role.TUTOR, Role.INSTITUTE}


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: str
    role: Role = Role.STUDENT

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: Role) -> Role:
        if v not in SELF_REGISTRATION_ROLES:
            raise ValueError(f"The '{v.value}' role cannot be self-registered")
        return v


class ProfileResponse(BaseModel):
    id: str
    email: str | None = None
    full_name: str
    role: Role
    status: ProfileStatus
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UpdatePasswordRequest(BaseModel):
    token: str
    new_password: str
