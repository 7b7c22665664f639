import secrets

from pydantic_settings import BaseSettings


def _generate_dev_secret() -> str:
    """Generate a random secret for local development only."""
    return secrets.token_hex(32)


class Settings(BaseSettings):
    # App
    app_name: str = "NextPrepBD"
    environment: str = "development"  # development, production, test
    log_level: str = ""  # DEBUG, INFO, WARNING, ERROR, CRITICAL (empty = auto based on environment)
    log_to_file: bool = True  # Enable file logging

    # Database (SQLite for local dev, PostgreSQL for production)
    database_url: str = "sqlite:///./nextprep.db"

    # JWT signing key. Required via SECRET_KEY in production.
    # In development, a random key is generated per-process if not set.
    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    recovery_token_expire_hours: int = 24

    # Service-level trust: requests carrying X-Service-Key equal to this value
    # act with service privileges. Empty disables the header entirely.
    service_role_key: str = ""

    # Public site (used to build invitation and recovery links)
    site_url: str = "https://nextprepbd.com"

    # CORS (comma-separated origins, empty = site_url + localhost in development)
    allowed_origins: str = ""

    # Invitations
    invite_expiry_days: int = 7

    # Email
    sendgrid_api_key: str = ""
    from_email: str = "NextPrep Admin <admin@nextprepbd.com>"
    support_email: str = "support@nextprepbd.com"
    # SMTP (used when SendGrid is not configured)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""

    # Audit logging
    audit_log_enabled: bool = True

    # Rate limiting (disabled in the test suite)
    rate_limit_enabled: bool = True

    # Background jobs (expired invitation cleanup)
    scheduler_enabled: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

# Validate secret key
_KNOWN_WEAK_KEYS = {"your-secret-key-change-in-production", "changeme", "secret", ""}

if settings.secret_key in _KNOWN_WEAK_KEYS:
    if settings.environment == "production":
        raise RuntimeError(
            "SECRET_KEY is not set or uses a known weak default. "
            "Set a strong SECRET_KEY env var (e.g. `openssl rand -hex 32`)."
        )
    # Development: generate a random key so the app can start
    settings.secret_key = _generate_dev_secret()
