# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every admin action must be attributable. Uses bcrypt for password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, 12 by default)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Deactivated users cannot authenticate
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES
from ..validation import ConflictError, NotFoundError, ValidationError
from serialdesk.time_utils import utcnow
from . import email_service
from .activity_service import append_activity

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USER_MUTABLE_FIELDS = {"name", "phone", "role", "is_active"}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if len(password) > 128:
        raise PasswordValidationError("Password must be at most 128 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


def normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email address is required")
    return email


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    role: str = "user",
    phone: str | None = None,
    is_active: bool = True,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: bad name/email/role
        PasswordValidationError: password doesn't meet requirements
        ConflictError: email already registered
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    email = normalize_email(email)
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("Email already registered")

    # Hash password with bcrypt (validates strength automatically)
    password_hash = hash_password(password)

    user = User(
        name=name,
        email=email,
        phone=(phone or "").strip() or None,
        password_hash=password_hash,
        role=role,
        is_active=is_active,
    )

    db.session.add(user)
    db.session.commit()
    return user


SELF_REGISTER_ROLES = ("user", "retailer")


def register_account(*, name: str, email: str, password: str, role: str = "user", phone: str | None = None) -> User:
    """
    Public sign-up. Retailer accounts start inactive until an admin activates them.
    """
    if role not in SELF_REGISTER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(SELF_REGISTER_ROLES)}")
    user = create_user(
        name=name,
        email=email,
        password=password,
        role=role,
        phone=phone,
        is_active=role != "retailer",
    )

    email_service.send_email(
        user.email,
        "Welcome to the Partner Network" if role == "retailer" else "Welcome",
        f"Dear {user.name}, thank you for registering."
        + (" Your retailer account will be activated after review." if role == "retailer" else ""),
        email_type="welcome",
        related_entity_type="user",
        related_entity_id=user.id,
    )
    email_service.send_email(
        current_app.config.get("ADMIN_EMAIL"),
        "New Retailer Registration - Approval Required" if role == "retailer" else "New User Registration",
        f"New {role} registered: {user.name} ({user.email})",
        email_type="user_registration",
        related_entity_type="user",
        related_entity_id=user.id,
    )
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(
        User.email == email,
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def list_users(*, role: str | None = None) -> list[User]:
    q = db.session.query(User)
    if role:
        q = q.filter(User.role == role)
    return q.order_by(User.id.asc()).all()


def update_user(*, user_id: int, patch: dict, actor_user_id: int | None = None) -> User:
    """
    Admin edit of an account (activate/deactivate, role change).

    Deactivation takes effect on the next request: validate_session
    revokes sessions of inactive users.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    for k in patch:
        if k not in USER_MUTABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {k}")
    if "role" in patch and patch["role"] not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    if actor_user_id == user.id and (patch.get("is_active") is False or patch.get("role", user.role) != user.role):
        raise ConflictError("Admins cannot deactivate or demote themselves")

    for k, v in patch.items():
        setattr(user, k, v)

    append_activity(
        action="user.updated",
        entity_type="user",
        entity_id=user.id,
        actor_user_id=actor_user_id,
        note=f"Updated fields: {', '.join(sorted(patch.keys()))}",
    )
    db.session.commit()
    return user
