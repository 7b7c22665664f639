"""Application exceptions for the accounts and invitations service.

Every operation surfaces the first failure it meets as one of these. The
HTTP layer renders them as ``{"detail": ..., "error": ...}`` with the
class's status code.
"""

from typing import Any


class NextPrepError(Exception):
    """Base exception for all service errors."""

    status_code: int = 500
    kind: str = "error"

    def __init__(self, message: str, **extra: Any):
        """Initialize the exception.

        Args:
            message: Human-readable description returned to the caller.
            **extra: Additional JSON-serialisable fields for the response body.
        """
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "error": self.kind, **self.extra}


class ValidationError(NextPrepError):
    """Raised when a required field is missing or malformed."""

    status_code = 400
    kind = "validation_error"


class PersistenceError(NextPrepError):
    """Raised when the store rejects a read or write."""

    status_code = 500
    kind = "persistence_error"


class UserNotFoundError(PersistenceError):
    """Raised when a target identity does not exist."""

    status_code = 404
    kind = "user_not_found"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User '{user_id}' not found", user_id=user_id)


class InvitationNotFoundError(PersistenceError):
    """Raised when an invitation id does not exist."""

    status_code = 404
    kind = "invitation_not_found"

    def __init__(self, invitation_id: int):
        self.invitation_id = invitation_id
        super().__init__(f"Invitation {invitation_id} not found", invitation_id=invitation_id)


class NotificationError(NextPrepError):
    """Raised when an email could not be dispatched."""

    status_code = 502
    kind = "notification_error"


class InvalidInvitation(NextPrepError):
    """Raised when no redeemable invitation matches the presented pair."""

    status_code = 400
    kind = "invalid_invitation"

    def __init__(self, message: str = "Invalid or expired invitation"):
        super().__init__(message)


class GrantError(NextPrepError):
    """Raised when the role on the accepting user's profile could not be set."""

    status_code = 500
    kind = "grant_error"


class UnauthorizedError(NextPrepError):
    """Raised when the caller lacks the trust tier an operation requires."""

    status_code = 403
    kind = "unauthorized"


class LinkGenerationError(NextPrepError):
    """Raised when a password recovery link cannot be generated."""

    status_code = 400
    kind = "link_generation_error"


class AccountProtectedError(NextPrepError):
    """Raised when deleting an account would break an account-safety rule."""

    status_code = 409
    kind = "account_protected"
