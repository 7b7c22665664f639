from app.models.user import User
from app.models.profile import Profile, Role, ProfileStatus
from app.models.invitation import Invitation
from app.models.contact_message import ContactMessage
from app.models.audit_log import AuditLog, AuditAction

__all__ = [
    "User",
    "Profile",
    "Role",
    "ProfileStatus",
    "Invitation",
    "ContactMessage",
    "AuditLog",
    "AuditAction",
]
