# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Email/password authentication.

Accounts are self-service: anyone can sign up with an email address and a
password. Passwords are hashed with bcrypt; session tokens are managed
separately (see session_service.py).
"""

import bcrypt
from ..extensions import db
from ..models import User
from ..validation import is_valid_email
from posdesk.time_utils import utcnow

MIN_PASSWORD_LENGTH = 6


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class SignUpError(ValueError):
    """Raised when an account cannot be created (bad or taken email)."""


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    bcrypt.checkpw() is timing-safe.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def sign_up(email: str, password: str) -> User:
    """
    Create new account.

    Raises:
        SignUpError: If the email is malformed or already registered
        PasswordValidationError: If password doesn't meet requirements
    """
    email = normalize_email(email)
    if not is_valid_email(email):
        raise SignUpError("A valid email address is required")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise SignUpError("An account with this email already exists")

    # Hash password with bcrypt (validates strength automatically)
    user = User(email=email, password_hash=hash_password(password))

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
