"""Credential validation run before any auth request."""
import re

from storefront.errors import (
    ERROR_EMAIL_INVALID,
    ERROR_EMAIL_REQUIRED,
    ERROR_PASSWORD_REQUIRED,
    ValidationError,
)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_SYMBOLS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
MIN_PASSWORD_LENGTH = 6


def validate_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def validate_password(password: str) -> list[str]:
    """
    Check password strength against the provider's policy.

    Returns:
        List of problems; empty when the password is acceptable.
    """
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")
    if not PASSWORD_SYMBOLS.search(password):
        errors.append("Password must contain at least one symbol")
    return errors


def require_credentials(email: str, password: str, check_strength: bool = False) -> str:
    """
    Validate email and password, returning the normalized email.

    Raises:
        ValidationError: with `field` set to "email" or "password"
    """
    email = (email or "").strip()
    if not email:
        raise ValidationError(ERROR_EMAIL_REQUIRED, field="email")
    if not validate_email(email):
        raise ValidationError(ERROR_EMAIL_INVALID, field="email")
    if not password:
        raise ValidationError(ERROR_PASSWORD_REQUIRED, field="password")
    if check_strength:
        problems = validate_password(password)
        if problems:
            raise ValidationError(problems[0], field="password", errors=problems)
    return email
