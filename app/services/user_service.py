"""
User accounts: creation and password authentication.
"""

from __future__ import annotations

import logging

from app.core.exceptions import AuthError, ConflictError, ValidationError
from app.models import db
from app.models.auth import USER_ROLES, User
from app.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)


def create_user(email: str, password: str | None = None, *, full_name: str | None = None,
                role: str = "client") -> User:
    """Create and commit a user.

    Raises:
        ValidationError: blank email or unknown role.
        ConflictError:   email already registered.
    """
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", details={"email": email})
    if role not in USER_ROLES:
        raise ValidationError(f"Unknown role '{role}'", details={"role": role})
    if User.query.filter_by(email=email).first() is not None:
        raise ConflictError(resource="User", field="email", value=email)

    user = User(
        email=email,
        full_name=full_name,
        role=role,
        password_hash=hash_password(password) if password else None,
    )
    db.session.add(user)
    db.session.commit()
    logger.info("User created", extra={"user_id": user.id})
    return user


def authenticate(email: str, password: str) -> User:
    """Return the active user matching the credentials.

    Raises:
        AuthError: unknown email, wrong password or inactive account.
    """
    user = User.query.filter_by(email=(email or "").strip().lower()).first()
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt")
        raise AuthError("Invalid email or password")
    return user


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)
