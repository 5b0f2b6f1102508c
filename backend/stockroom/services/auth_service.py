# Overview: Password hashing and credential checks.

"""
Authentication helpers.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower, digit and special character
- Session tokens managed separately (see session_service.py)
- Inactive or suspended users cannot authenticate
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from stockroom.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Raise PasswordValidationError unless the password has at least 8
    characters, an uppercase letter, a lowercase letter, a digit and one of
    !@#$%^&*(),.'":{}|<>
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """Validate strength, then bcrypt-hash. Stored as text."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(email: str, password: str) -> User | None:
    """
    Return the user for valid credentials, else None.

    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.can_sign_in:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
