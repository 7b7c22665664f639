import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.api.deps import client_ip, get_current_user, get_email_service
from app.core.config import settings
from app.core.rate_limit import limiter
from app.db.database import get_db
from app.models.audit_log import AuditAction
from app.models.user import User
from app.schemas.user import ProfileResponse, Token, UpdatePasswordRequest, UserCreate
from app.services.audit_service import log_action
from app.services.credential_service import CredentialService
from app.services.email_service import EmailService, render_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=ProfileResponse)
@limiter.limit("3/minute")
def register(
    user_data: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    user = CredentialService(db).register(
        email=user_data.email,
        password=user_data.password,
        full_name=user_data.full_name,
        role=user_data.role,
    )
    log_action(db, user_id=user.id, action=AuditAction.REGISTER, resource_type="user",
               resource_id=user.id, details={"role": user_data.role.value, "email": user.email},
               ip_address=client_ip(request))
    db.commit()
    db.refresh(user)

    # Welcome email is a courtesy; sign-up succeeds regardless
    html_content = render_template("welcome.html", name=user.profile.full_name or "there",
                                   site_url=settings.site_url)
    if not email_service.send(to_email=user.email, subject="Welcome to NextPrepBD!",
                              html_content=html_content):
        logger.warning(f"Welcome email to {user.email} was not sent")

    return user.profile


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    credentials = CredentialService(db)
    user = credentials.authenticate(form_data.username, form_data.password)
    if not user:
        log_action(db, user_id=None, action=AuditAction.LOGIN_FAILED, resource_type="user",
                   details={"email": form_data.username}, ip_address=client_ip(request))
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Token(access_token=credentials.issue_session(user))


@router.get("/me", response_model=ProfileResponse)
def read_current_session(current_user: User = Depends(get_current_user)):
    if current_user.profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return current_user.profile


@router.post("/update-password")
@limiter.limit("5/minute")
def update_password(body: UpdatePasswordRequest, request: Request, db: Session = Depends(get_db)):
    """Set a new password using the token from a recovery link."""
    user = CredentialService(db).update_password(body.token, body.new_password)
    log_action(db, user_id=user.id, action=AuditAction.PASSWORD_UPDATED, resource_type="user",
               resource_id=user.id, ip_address=client_ip(request))
    db.commit()
    return {"message": "Password updated successfully. You can now sign in."}
