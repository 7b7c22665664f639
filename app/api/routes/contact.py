import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_email_service
from app.core.config import settings
from app.core.exceptions import PersistenceError
from app.core.rate_limit import limiter
from app.db.database import get_db
from app.models.contact_message import ContactMessage
from app.schemas.contact import ContactCreate
from app.services.email_service import EmailService, render_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact", tags=["Contact"])


@router.post("")
@limiter.limit("5/minute")
def submit_contact_message(
    data: ContactCreate,
    request: Request,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Store a contact form message, then forward it to support.

    The stored message is the outcome that matters; a failed or skipped
    forward is logged only.
    """
    msg = ContactMessage(
        name=data.name,
        email=data.email,
        subject=data.subject,
        message=data.message,
    )
    try:
        db.add(msg)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store contact message from {data.email}: {e}")
        raise PersistenceError("Failed to save your message")

    if email_service.configured:
        html_content = render_template(
            "contact_notification.html",
            name=data.name,
            email=data.email,
            subject=data.subject,
            message=data.message,
        )
        if not email_service.send(
            to_email=settings.support_email,
            subject=f"New Message: {data.subject}",
            html_content=html_content,
            reply_to=data.email,
        ):
            logger.warning(f"Contact message {msg.id} saved but not forwarded to support")
    else:
        logger.warning("No email provider configured. Contact message saved but not forwarded.")

    return {"success": True}
