"""
Project intake blueprint.

Endpoints:
    POST  /api/v1/projects                 { name, client_id, service_types?, description? }
    GET   /api/v1/projects                 ?status=
    GET   /api/v1/projects/<id>
    POST  /api/v1/projects/<id>/archive
    GET   /api/v1/service-types
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_actor, login_required, role_required
from app.services import project_service
from app.services.phase_catalog import get_catalog
from app.utils.errors import E, api_error
from app.utils.helpers import require_fields

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")


@project_bp.route("/projects", methods=["POST"])
@role_required("admin")
def create_project():
    """Create a project and provision its phases. Returns 201."""
    data = request.get_json(silent=True)
    err = require_fields(data, "name", "client_id")
    if err:
        return err

    try:
        client_id = int(data["client_id"])
    except (TypeError, ValueError):
        return api_error(E.VALIDATION_INVALID, "client_id must be an integer")

    service_types = data.get("service_types") or []
    if not isinstance(service_types, list) or not all(isinstance(s, str) for s in service_types):
        return api_error(E.VALIDATION_INVALID, "service_types must be a list of strings")

    actor_id, _role = current_actor()
    project = project_service.create_project(
        data["name"],
        client_id,
        service_types,
        description=data.get("description") or "",
        actor_id=actor_id,
    )
    return jsonify(project), 201


@project_bp.route("/projects", methods=["GET"])
@login_required
def list_projects():
    actor_id, role = current_actor()
    client_id = None if role == "admin" else actor_id
    items = project_service.list_projects(client_id=client_id, status=request.args.get("status"))
    return jsonify({"items": items, "total": len(items)}), 200


@project_bp.route("/projects/<project_id>", methods=["GET"])
@login_required
def get_project(project_id: str):
    actor_id, role = current_actor()
    return jsonify(project_service.get_project(project_id, actor_id=actor_id, actor_role=role)), 200


@project_bp.route("/projects/<project_id>/archive", methods=["POST"])
@role_required("admin")
def archive_project(project_id: str):
    actor_id, role = current_actor()
    return jsonify(project_service.archive_project(project_id, actor_id=actor_id, actor_role=role)), 200


@project_bp.route("/service-types", methods=["GET"])
def list_service_types():
    """Service types and the phases each one brings into a project."""
    catalog = get_catalog()
    return jsonify({
        "service_types": catalog.list_service_types(),
        "phases": [p.to_dict() for p in catalog.phases],
        "default_phase_keys": list(catalog.default_keys),
    }), 200
