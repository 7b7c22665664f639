import enum

from sqlalchemy import Column, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.database import Base


class Role(str, enum.Enum):
    STUDENT = "student"
    TUTOR = "tutor"
    EDITOR = "editor"
    INSTITUTE = "institute"
    ADMIN = "admin"


class ProfileStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"  # awaiting manual verification


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    full_name = Column(String(255), nullable=False, default="")
    role = Column(Enum(Role), nullable=False, default=Role.STUDENT)
    status = Column(Enum(ProfileStatus), nullable=False, default=ProfileStatus.ACTIVE)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="profile")

    @property
    def email(self) -> str | None:
        return self.user.email if self.user else None
