def escape_like(value: str) -> str:
    """Escape SQL LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def normalize_email(email: str) -> str:
    """Canonical stored form of an email address."""
    return (email or "").strip().lower()
