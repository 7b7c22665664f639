"""Invitation workflow: issue a single-use role offer, then redeem it.

Issuing persists the invitation first and emails it second; an email
failure leaves the row in place and is reported separately so the admin
can resend. Redeeming grants the role and deletes the row in one
transaction, with a conditional delete deciding the winner when two
redemptions of the same link race.
"""

import logging
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    AccountProtectedError,
    GrantError,
    InvalidInvitation,
    InvitationNotFoundError,
    NotificationError,
    PersistenceError,
    UnauthorizedError,
    ValidationError,
)
from app.core.security import generate_invite_token
from app.core.trust import Caller, TrustTier
from app.core.utils import normalize_email
from app.models.audit_log import AuditAction
from app.models.invitation import Invitation
from app.models.profile import Profile, ProfileStatus, Role
from app.services.audit_service import log_action
from app.services.email_service import EmailService, render_template

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(dt: datetime) -> datetime:
    # SQLite returns naive datetimes, PostgreSQL returns aware
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=None)


def is_expired(invitation: Invitation, now: datetime | None = None) -> bool:
    now = now or _utcnow()
    return _naive_utc(invitation.expires_at) <= _naive_utc(now)


def build_invite_link(invitation: Invitation) -> str:
    query = urlencode({
        "token": invitation.token,
        "role": invitation.role.value,
        "email": invitation.email,
    })
    return f"{settings.site_url.rstrip('/')}/signup?{query}"


class InvitationIssuer:
    """Creates invitations and emails their redemption link. Admin only."""

    def __init__(self, db: Session, email_service: EmailService):
        self.db = db
        self.email_service = email_service

    def issue(
        self,
        caller: Caller,
        email: str,
        role: Role | str,
        invited_by_email: str | None = None,
        ip_address: str | None = None,
    ) -> Invitation:
        """Persist a new invitation and send it.

        Raises:
            UnauthorizedError: caller lacks service-level trust.
            ValidationError: email or role is missing or malformed.
            PersistenceError: the store rejected the insert.
            NotificationError: the row exists but the email was not sent.
        """
        caller.require(TrustTier.SERVICE)

        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValidationError(f"Invalid email address: {e}")
        try:
            role = Role(role)
        except ValueError:
            raise ValidationError(f"Invalid role: {role}")

        invitation = Invitation(
            email=email,
            role=role,
            token=generate_invite_token(),
            invited_by=caller.user_id,
            invited_by_email=invited_by_email or caller.email,
            expires_at=_utcnow() + timedelta(days=settings.invite_expiry_days),
        )
        try:
            self.db.add(invitation)
            self.db.flush()
            log_action(
                self.db,
                user_id=caller.user_id,
                action=AuditAction.INVITE_ISSUED,
                resource_type="invitation",
                resource_id=invitation.id,
                details={"email": email, "role": role.value},
                ip_address=ip_address,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to persist invitation for {email}: {e}")
            raise PersistenceError("Failed to create invitation")
        self.db.refresh(invitation)

        logger.info(f"Invitation {invitation.id} created: {role.value} for {email} by {caller.user_id or 'service'}")
        self._notify(invitation)
        return invitation

    def resend(self, caller: Caller, invitation_id: int, ip_address: str | None = None) -> Invitation:
        """Rotate the token, restart the expiry window and email the new link."""
        caller.require(TrustTier.SERVICE)

        invitation = self.db.query(Invitation).filter(Invitation.id == invitation_id).first()
        if not invitation:
            raise InvitationNotFoundError(invitation_id)

        invitation.token = generate_invite_token()
        invitation.expires_at = _utcnow() + timedelta(days=settings.invite_expiry_days)
        try:
            log_action(
                self.db,
                user_id=caller.user_id,
                action=AuditAction.INVITE_RESENT,
                resource_type="invitation",
                resource_id=invitation.id,
                ip_address=ip_address,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to refresh invitation {invitation_id}: {e}")
            raise PersistenceError("Failed to refresh invitation")
        self.db.refresh(invitation)

        logger.info(f"Invitation {invitation.id} refreshed for {invitation.email}")
        self._notify(invitation)
        return invitation

    def _notify(self, invitation: Invitation) -> None:
        html_content = render_template(
            "invitation.html",
            inviter_name=invitation.invited_by_email or "Admin",
            role_label=invitation.role.value.upper(),
            invite_link=build_invite_link(invitation),
            token=invitation.token,
            expiry_days=str(settings.invite_expiry_days),
        )
        sent = self.email_service.send(
            to_email=invitation.email,
            subject="You have been invited to join NextPrepBD",
            html_content=html_content,
        )
        if not sent:
            logger.warning(f"Invitation {invitation.id} saved but email to {invitation.email} failed")
            raise NotificationError(
                "Invitation was created but the email could not be delivered. "
                "Resend it or share the link manually.",
                invitation_id=invitation.id,
            )


class InvitationAcceptor:
    """Redeems an invitation for the signed-in user."""

    def __init__(self, db: Session):
        self.db = db

    def accept(
        self,
        caller: Caller,
        email: str,
        token: str,
        user_id: str | None = None,
        ip_address: str | None = None,
    ) -> Role:
        """Grant the invited role to the caller's profile and consume the invitation.

        ``user_id`` is accepted for clients that send it, but the grant always
        targets the authenticated session; a mismatch is rejected.

        Raises:
            UnauthorizedError: no session, or ``user_id`` is someone else.
            InvalidInvitation: no unexpired invitation matches, or a
                concurrent redemption consumed it first.
            GrantError: the profile is missing or could not be updated;
                the invitation is left in place.
            AccountProtectedError: the caller is the last admin and the
                invitation would demote them; the invitation is left in place.
        """
        caller.require(TrustTier.SESSION)
        session_user_id = caller.require_identity()
        if user_id and user_id != session_user_id:
            raise UnauthorizedError("Invitations can only be accepted for the signed-in account")

        email = normalize_email(email)
        token = (token or "").strip()
        if not email or not token:
            raise InvalidInvitation()

        invitation = (
            self.db.query(Invitation)
            .filter(Invitation.email == email, Invitation.token == token)
            .order_by(Invitation.id)
            .with_for_update()
            .first()
        )
        if not invitation:
            logger.warning(f"No invitation matches {email} with the presented token")
            raise InvalidInvitation()
        if is_expired(invitation):
            logger.info(f"Invitation {invitation.id} for {email} has expired")
            self.db.rollback()
            raise InvalidInvitation()

        invitation_id = invitation.id
        role = invitation.role

        profile = self.db.query(Profile).filter(Profile.id == session_user_id).first()
        if not profile:
            self.db.rollback()
            raise GrantError("Failed to assign role: no profile exists for this account")
        if profile.role == Role.ADMIN and role != Role.ADMIN:
            admin_count = self.db.query(Profile).filter(Profile.role == Role.ADMIN).count()
            if admin_count <= 1:
                self.db.rollback()
                raise AccountProtectedError("The last remaining administrator cannot give up the admin role")

        try:
            profile.role = role
            profile.status = ProfileStatus.ACTIVE
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Profile update failed for {session_user_id}: {e}")
            raise GrantError("Failed to assign role")

        try:
            deleted = (
                self.db.query(Invitation)
                .filter(Invitation.id == invitation_id)
                .delete(synchronize_session=False)
            )
            if deleted != 1:
                self.db.rollback()
                logger.warning(f"Invitation {invitation_id} was consumed by a concurrent redemption")
                raise InvalidInvitation()

            log_action(
                self.db,
                user_id=session_user_id,
                action=AuditAction.INVITE_ACCEPTED,
                resource_type="invitation",
                resource_id=invitation_id,
                details={"email": email, "role": role.value},
                ip_address=ip_address,
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to redeem invitation {invitation_id}: {e}")
            raise GrantError("Failed to assign role")

        logger.info(f"Invitation {invitation_id} redeemed: {session_user_id} is now {role.value}")
        return role


def list_invitations(db: Session, caller: Caller, include_expired: bool = False) -> list[Invitation]:
    caller.require(TrustTier.SERVICE)
    query = db.query(Invitation)
    if not include_expired:
        query = query.filter(Invitation.expires_at > _utcnow())
    return query.order_by(Invitation.created_at.desc(), Invitation.id.desc()).all()


def revoke_invitation(db: Session, caller: Caller, invitation_id: int, ip_address: str | None = None) -> None:
    caller.require(TrustTier.SERVICE)
    invitation = db.query(Invitation).filter(Invitation.id == invitation_id).first()
    if not invitation:
        raise InvitationNotFoundError(invitation_id)
    try:
        db.delete(invitation)
        log_action(
            db,
            user_id=caller.user_id,
            action=AuditAction.INVITE_REVOKED,
            resource_type="invitation",
            resource_id=invitation_id,
            details={"email": invitation.email},
            ip_address=ip_address,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to revoke invitation: {e}")
    logger.info(f"Invitation {invitation_id} revoked by {caller.user_id or 'service'}")


def purge_expired_invitations(db: Session, now: datetime | None = None) -> int:
    """Delete every invitation past its expiry. Returns the number removed."""
    cutoff = now or _utcnow()
    deleted = (
        db.query(Invitation)
        .filter(Invitation.expires_at <= cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
