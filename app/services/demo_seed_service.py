"""
Demo data for local development (``flask seed-demo``).

Creates a studio admin, one client and two projects: a branding project
part-way through its phases and a web project waiting on payment.
Running it twice is a no-op.
"""

from __future__ import annotations

import logging
import os

from app.models.auth import User
from app.services import phase_service, project_service, user_service

logger = logging.getLogger(__name__)

DEMO_ADMIN_EMAIL = "studio@demo.local"
DEMO_CLIENT_EMAIL = "client@demo.local"


def _finish(project_id: str, phase: dict, admin_id: int, client_id: int) -> None:
    if phase["requires_approval"]:
        phase_service.advance(project_id, phase["key"], "awaiting_approval", admin_id)
        phase_service.approve(project_id, phase["key"], client_id, approver_role="client")
    else:
        phase_service.advance(project_id, phase["key"], "completed", admin_id)


def seed_demo_data() -> dict:
    """Seed demo rows; returns a summary of what was created."""
    if User.query.filter_by(email=DEMO_ADMIN_EMAIL).first() is not None:
        logger.info("Demo data already present; nothing to seed")
        return {"created": False}

    password = os.getenv("DEMO_PASSWORD", "demo-password")
    admin = user_service.create_user(DEMO_ADMIN_EMAIL, password, full_name="Studio Admin", role="admin")
    client = user_service.create_user(DEMO_CLIENT_EMAIL, password, full_name="Demo Client")

    branding = project_service.create_project(
        "Harbor Coffee rebrand", client.id, ["GD"],
        description="Logo, palette and packaging refresh", actor_id=admin.id,
    )
    for phase in branding["phases"][:2]:
        _finish(branding["id"], phase, admin.id, client.id)

    web = project_service.create_project(
        "Harbor Coffee storefront", client.id, ["WEB"],
        description="Online ordering site", actor_id=admin.id,
    )
    for phase in web["phases"]:
        if phase["key"] == "PAY":
            break
        _finish(web["id"], phase, admin.id, client.id)

    summary = {
        "created": True,
        "admin": admin.email,
        "client": client.email,
        "projects": [branding["id"], web["id"]],
    }
    logger.info("Demo data seeded: %s", summary)
    return summary
