"""Credential store operations: identities, sessions, recovery links, passwords."""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import LinkGenerationError, PersistenceError, UserNotFoundError, ValidationError
from app.core.security import (
    create_access_token,
    create_recovery_token,
    decode_access_token,
    decode_recovery_token,
    get_password_hash,
    recovery_token_is_current,
    validate_password_strength,
    verify_password,
)
from app.core.trust import Caller, TrustTier
from app.core.utils import normalize_email
from app.models.profile import Profile, ProfileStatus, Role
from app.models.user import User

logger = logging.getLogger(__name__)

# Self-registered staff-like accounts wait for manual verification
_PENDING_ON_SIGNUP = {Role.TUTOR, Role.INSTITUTE}


class CredentialService:
    def __init__(self, db: Session):
        self.db = db

    def get_user_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def register(self, email: str, password: str, full_name: str, role: Role = Role.STUDENT) -> User:
        """Create an identity and its profile. Does not commit audit entries for the caller."""
        pw_error = validate_password_strength(password)
        if pw_error:
            raise ValidationError(pw_error)

        email = normalize_email(email)
        if self.get_user_by_email(email):
            raise ValidationError("Email already registered")

        user = User(email=email, hashed_password=get_password_hash(password))
        user.profile = Profile(
            full_name=full_name.strip(),
            role=role,
            status=ProfileStatus.PENDING if role in _PENDING_ON_SIGNUP else ProfileStatus.ACTIVE,
        )
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Email already registered")
        logger.info(f"Registered user {user.id} ({email}) as {role.value}")
        return user

    def authenticate(self, email: str, password: str) -> User | None:
        user = self.get_user_by_email(email)
        if not user or not user.is_active or not verify_password(password, user.hashed_password):
            return None
        return user

    def issue_session(self, user: User) -> str:
        return create_access_token(data={"sub": user.id})

    def get_session_user(self, token: str) -> User | None:
        """Resolve a bearer token to an active identity."""
        user_id = decode_access_token(token)
        if not user_id:
            return None
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None or not user.is_active:
            return None
        return user

    def generate_recovery_link(self, caller: Caller, email: str) -> str:
        """Build a password recovery link for ``email``. Service trust only."""
        caller.require(TrustTier.SERVICE)
        user = self.get_user_by_email(email)
        if not user:
            raise LinkGenerationError(f"No account exists for {normalize_email(email)}")
        try:
            token = create_recovery_token(user.email, user.hashed_password)
        except Exception as e:
            logger.error(f"Failed to sign recovery token for {user.email}: {e}")
            raise LinkGenerationError("Could not generate a recovery link")
        return f"{settings.site_url.rstrip('/')}/update-password?token={token}"

    def update_password(self, token: str, new_password: str) -> User:
        claims = decode_recovery_token(token)
        if not claims:
            raise ValidationError("Invalid or expired reset token")
        user = self.get_user_by_email(claims["sub"])
        # a used link no longer matches the (changed) password hash
        if not user or not recovery_token_is_current(claims, user.hashed_password):
            raise ValidationError("Invalid or expired reset token")

        pw_error = validate_password_strength(new_password)
        if pw_error:
            raise ValidationError(pw_error)

        user.hashed_password = get_password_hash(new_password)
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to update password: {e}")
        return user

    def delete_identity(self, caller: Caller, user_id: str) -> None:
        """Remove an identity; its profile goes with it. Service trust only."""
        caller.require(TrustTier.SERVICE)
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFoundError(user_id)
        try:
            self.db.delete(user)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to delete user: {e}")
