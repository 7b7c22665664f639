from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.database import Base
from app.models.profile import Role


class Invitation(Base):
    """A pending offer of ``role`` to ``email``; deleted when redeemed."""

    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    role = Column(Enum(Role), nullable=False)
    token = Column(String(255), unique=True, nullable=False, index=True)
    invited_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    invited_by_email = Column(String(255), nullable=True)  # display only
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    inviter = relationship("User", foreign_keys=[invited_by])

    __table_args__ = (
        Index("ix_invitations_email_token", "email", "token"),
    )
