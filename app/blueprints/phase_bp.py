"""
Phase tracker blueprint.

Endpoints:
    GET    /api/v1/projects/<id>/phases
    PATCH  /api/v1/projects/<id>/advance                       { key, status, override? }
    POST   /api/v1/projects/<id>/phases/<key>/approve          { notes? }
    POST   /api/v1/projects/<id>/phases/<key>/request-changes  { feedback }
    GET    /api/v1/projects/<id>/activity

Layer contract:
    - Blueprint: parse + validate input shape, call service, return JSON.
    - NO db.session calls here; all writes owned by phase_service.
    - Business-rule failures surface as app.core.exceptions and are mapped
      to JSON by the app-wide handlers.
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_actor, login_required
from app.models.project import PHASE_STATUSES
from app.services import phase_service
from app.utils.errors import E, api_error
from app.utils.helpers import require_fields

logger = logging.getLogger(__name__)

phase_bp = Blueprint("phase", __name__, url_prefix="/api/v1")


@phase_bp.route("/projects/<project_id>/phases", methods=["GET"])
@login_required
def list_phases(project_id: str):
    """Ordered phase list (default sequence when none are provisioned)."""
    actor_id, role = current_actor()
    phases = phase_service.get_phases(project_id, actor_id=actor_id, actor_role=role)
    return jsonify({"project_id": project_id, "phases": phases}), 200


@phase_bp.route("/projects/<project_id>/advance", methods=["PATCH"])
@login_required
def advance_phase(project_id: str):
    """Set one phase's status.

    Returns 200 with the phase, 400 on malformed input, 404 unknown
    project/phase, 409 invalid transition, 422 order or approval rule.
    """
    data = request.get_json(silent=True)
    err = require_fields(data, "key", "status")
    if err:
        return err

    status = str(data["status"]).strip()
    if status not in PHASE_STATUSES:
        return api_error(
            E.VALIDATION_INVALID,
            f"Invalid status '{status}'",
            details={"valid_statuses": list(PHASE_STATUSES)},
        )
    override = data.get("override", False)
    if not isinstance(override, bool):
        return api_error(E.VALIDATION_INVALID, "override must be a boolean")

    actor_id, role = current_actor()
    phase = phase_service.advance(
        project_id,
        str(data["key"]).strip(),
        status,
        actor_id,
        actor_role=role,
        override=override,
    )
    return jsonify(phase), 200


@phase_bp.route("/projects/<project_id>/phases/<phase_key>/approve", methods=["POST"])
@login_required
def approve_phase(project_id: str, phase_key: str):
    data = request.get_json(silent=True) or {}
    notes = data.get("notes")
    if notes is not None and not isinstance(notes, str):
        return api_error(E.VALIDATION_INVALID, "notes must be a string")

    actor_id, role = current_actor()
    phase = phase_service.approve(project_id, phase_key, actor_id, notes, approver_role=role)
    return jsonify(phase), 200


@phase_bp.route("/projects/<project_id>/phases/<phase_key>/request-changes", methods=["POST"])
@login_required
def request_phase_changes(project_id: str, phase_key: str):
    data = request.get_json(silent=True)
    err = require_fields(data, "feedback")
    if err:
        return err
    if not isinstance(data["feedback"], str):
        return api_error(E.VALIDATION_INVALID, "feedback must be a string")

    actor_id, role = current_actor()
    phase = phase_service.request_changes(
        project_id, phase_key, actor_id, data["feedback"], actor_role=role,
    )
    return jsonify(phase), 200


@phase_bp.route("/projects/<project_id>/activity", methods=["GET"])
@login_required
def project_activity(project_id: str):
    """Activity timeline, oldest first."""
    actor_id, role = current_actor()
    items = phase_service.get_history(project_id, actor_id=actor_id, actor_role=role)
    return jsonify({"project_id": project_id, "items": items, "total": len(items)}), 200
