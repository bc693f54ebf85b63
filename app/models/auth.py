"""
Studio Client Portal
Auth domain model.

Models:
    - User: a studio admin or a client who owns projects.
"""

from datetime import datetime, timezone

from app.models import db

USER_ROLES = frozenset({"client", "admin"})


class User(db.Model):
    """
    Portal account.

    Clients see and act on their own projects only; admins act on every
    project and receive team-side notifications (approvals, change requests).
    """

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    full_name = db.Column(db.String(150), nullable=True)
    password_hash = db.Column(db.String(255), nullable=True)
    role = db.Column(
        db.String(20),
        nullable=False,
        default="client",
        comment="client | admin",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"
