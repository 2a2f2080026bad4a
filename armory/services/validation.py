"""Input checks shared by the account flows."""

import re

from armory.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")

# bcrypt only considers the first 72 bytes
MAX_PASSWORD_BYTES = 72


def validate_email(email: str | None) -> str:
    """Return the email unchanged if well formed."""
    if not email or not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")
    return email


def validate_password(password: str | None, min_length: int) -> str:
    """Return the password unchanged if it satisfies the length policy."""
    if not password or len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters long")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    return password
