from pydantic import BaseModel, EmailStr

from app.schemas.user import ProfileResponse


class SendResetRequest(BaseModel):
    email: EmailStr


class DeleteUserRequest(BaseModel):
    user_id: str


class AdminProfileList(BaseModel):
    users: list[ProfileResponse]
    total: int


class ActionResult(BaseModel):
    success: bool = True
