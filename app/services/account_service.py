"""Privileged account operations used by the admin console."""

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.exceptions import AccountProtectedError, NotificationError, UserNotFoundError, ValidationError
from app.core.trust import Caller, TrustTier
from app.core.utils import escape_like, normalize_email
from app.models.audit_log import AuditAction
from app.models.profile import Profile, Role
from app.models.user import User
from app.services.audit_service import log_action
from app.services.credential_service import CredentialService
from app.services.email_service import EmailService, render_template

logger = logging.getLogger(__name__)


class AccountService:
    """Privileged account operations. Only the password reset needs a sender."""

    def __init__(self, db: Session, email_service: EmailService | None = None):
        self.db = db
        self.email_service = email_service
        self.credentials = CredentialService(db)

    def force_password_reset(self, caller: Caller, email: str, ip_address: str | None = None) -> None:
        """Generate a recovery link for ``email`` and mail it.

        The link stays valid even if the email fails; nothing is undone.
        """
        caller.require(TrustTier.SERVICE)
        if self.email_service is None:
            raise NotificationError("No notification sender is available for password resets")
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")

        reset_link = self.credentials.generate_recovery_link(caller, email)
        user = self.credentials.get_user_by_email(email)
        log_action(
            self.db,
            user_id=caller.user_id,
            action=AuditAction.PASSWORD_RESET_FORCED,
            resource_type="user",
            resource_id=user.id if user else None,
            details={"email": email},
            ip_address=ip_address,
        )
        self.db.commit()

        html_content = render_template(
            "password_reset.html",
            reset_link=reset_link,
            expiry_hours=str(settings.recovery_token_expire_hours),
        )
        if not self.email_service.send(to_email=email, subject="Reset Your Password", html_content=html_content):
            raise NotificationError("Recovery link was generated but the email could not be delivered")
        logger.info(f"Password reset link sent to {email} by {caller.user_id or 'service'}")

    def delete_user(self, caller: Caller, user_id: str, ip_address: str | None = None) -> None:
        """Delete an identity, refusing self-deletion and removal of the last admin."""
        caller.require(TrustTier.SERVICE)
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValidationError("user_id is required")
        if caller.user_id and user_id == caller.user_id:
            raise AccountProtectedError("You cannot delete your own account")

        user = (
            self.db.query(User)
            .options(joinedload(User.profile))
            .filter(User.id == user_id)
            .first()
        )
        if not user:
            raise UserNotFoundError(user_id)

        if user.profile and user.profile.role == Role.ADMIN:
            admin_count = self.db.query(Profile).filter(Profile.role == Role.ADMIN).count()
            if admin_count <= 1:
                raise AccountProtectedError("Cannot delete the last remaining administrator")

        deleted_email = user.email
        self.credentials.delete_identity(caller, user_id)
        log_action(
            self.db,
            user_id=caller.user_id,
            action=AuditAction.USER_DELETED,
            resource_type="user",
            resource_id=user_id,
            details={"email": deleted_email},
            ip_address=ip_address,
        )
        self.db.commit()
        logger.info(f"User {user_id} ({deleted_email}) deleted by {caller.user_id or 'service'}")

    def list_profiles(
        self,
        caller: Caller,
        role: Role | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Profile], int]:
        caller.require(TrustTier.SERVICE)
        query = self.db.query(Profile).join(User, User.id == Profile.id)
        if role:
            query = query.filter(Profile.role == role)
        if search:
            search_term = f"%{escape_like(search)}%"
            query = query.filter(
                or_(
                    Profile.full_name.ilike(search_term, escape="\\"),
                    User.email.ilike(search_term, escape="\\"),
                )
            )
        total = query.count()
        profiles = (
            query.options(joinedload(Profile.user))
            .order_by(Profile.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return profiles, total
