import hashlib
import hmac
import re
import secrets
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from app.core.config import settings

# Minimum 8 chars, at least one uppercase, one lowercase, one digit, one special char
_PASSWORD_MIN_LENGTH = 8
_PASSWORD_PATTERN = re.compile(
    r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[!@#$%^&*()_+\-=\[\]{};\':\"\\|,.<>\/?`~]).+$'
)

# 32 bytes -> 43 URL-safe characters, 256 bits of entropy
INVITE_TOKEN_BYTES = 32


def validate_password_strength(password: str) -> str | None:
    """Return an error message if the password is too weak, or None if OK."""
    if len(password) < _PASSWORD_MIN_LENGTH:
        return f"Password must be at least {_PASSWORD_MIN_LENGTH} characters"
    if not _PASSWORD_PATTERN.match(password):
        return "Password must include uppercase, lowercase, digit, and special character"
    return None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        hashed_password.encode("utf-8")
    )


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt()
    ).decode("utf-8")


def generate_invite_token() -> str:
    """Opaque, URL-safe, single-use invitation token."""
    return secrets.token_urlsafe(INVITE_TOKEN_BYTES)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode.update({"exp": expire, "type": "access", "jti": str(uuid.uuid4())})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> str | None:
    """Decode a session JWT. Returns the user id or None."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    return payload.get("sub")


def credential_fingerprint(hashed_password: str | None) -> str:
    """Keyed digest of the stored password hash; changes whenever the password does."""
    return hmac.new(
        settings.secret_key.encode("utf-8"),
        (hashed_password or "").encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()[:32]


def create_recovery_token(email: str, hashed_password: str | None) -> str:
    """Create a JWT that authorises one password update for ``email``.

    The token carries a fingerprint of the current password hash, so it
    stops working as soon as the password is changed.
    """
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.recovery_token_expire_hours)
    to_encode = {
        "sub": email,
        "exp": expire,
        "type": "recovery",
        "pwf": credential_fingerprint(hashed_password),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_recovery_token(token: str) -> dict | None:
    """Decode a recovery JWT. Returns its claims or None."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("type") != "recovery" or not payload.get("sub"):
        return None
    return payload


def recovery_token_is_current(claims: dict, hashed_password: str | None) -> bool:
    """True while the password the token was issued against is still in place."""
    return hmac.compare_digest(str(claims.get("pwf", "")), credential_fingerprint(hashed_password))
