import secrets

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import UnauthorizedError
from app.core.trust import Caller, TrustTier
from app.db.database import get_db
from app.models.profile import Role
from app.models.user import User
from app.services.credential_service import CredentialService
from app.services.email_service import EmailService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_email_service() -> EmailService:
    """Notification sender for the current request."""
    return EmailService(settings)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    if not token:
        raise _credentials_exception()
    user = CredentialService(db).get_session_user(token)
    if user is None:
        raise _credentials_exception()
    request.state.user_id = user.id
    return user


def get_session_caller(current_user: User = Depends(get_current_user)) -> Caller:
    """Caller bound to the signed-in user's own session."""
    return Caller(tier=TrustTier.SESSION, user_id=current_user.id, email=current_user.email)


def _service_key_matches(presented: str | None) -> bool:
    if not presented or not settings.service_role_key:
        return False
    return secrets.compare_digest(presented, settings.service_role_key)


def get_service_caller(
    request: Request,
    x_service_key: str | None = Header(default=None),
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Caller:
    """Caller with service-level trust.

    Granted to backend callers presenting the service key, or to a signed-in
    user whose profile role is admin.
    """
    if _service_key_matches(x_service_key):
        return Caller(tier=TrustTier.SERVICE)

    user = get_current_user(request, token, db)
    if user.profile is None or user.profile.role != Role.ADMIN:
        raise UnauthorizedError("Administrator privileges required")
    return Caller(tier=TrustTier.SERVICE, user_id=user.id, email=user.email)


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
