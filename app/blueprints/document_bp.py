"""
Document generator blueprint.

Endpoints:
    POST  /api/v1/documents/render     { template, data?, project_id?, doc_type?, format? }
          format "pdf" (default) → application/pdf attachment
          format "html"          → text/html preview
    GET   /api/v1/documents/templates
"""

import logging

from flask import Blueprint, Response, jsonify, request

from app.auth import current_actor, login_required
from app.services import document_service
from app.utils.errors import E, api_error
from app.utils.helpers import require_fields

logger = logging.getLogger(__name__)

document_bp = Blueprint("document", __name__, url_prefix="/api/v1/documents")


@document_bp.route("/render", methods=["POST"])
@login_required
def render_document():
    data = request.get_json(silent=True)
    err = require_fields(data, "template")
    if err:
        return err

    template = data["template"]
    context = data.get("data") or {}
    if not isinstance(template, str):
        return api_error(E.VALIDATION_INVALID, "template must be a string")
    if not isinstance(context, dict):
        return api_error(E.VALIDATION_INVALID, "data must be an object")

    for field in ("project_id", "doc_type"):
        if data.get(field) is not None and not isinstance(data[field], str):
            return api_error(E.VALIDATION_INVALID, f"{field} must be a string")

    output = str(data.get("format") or "pdf").lower()
    if output not in ("pdf", "html"):
        return api_error(E.VALIDATION_INVALID, "format must be 'pdf' or 'html'")

    if output == "html":
        html = document_service.render_html(template, context)
        return Response(html, status=200, mimetype="text/html")

    actor_id, role = current_actor()
    pdf = document_service.render_document(
        template,
        context,
        project_id=data.get("project_id"),
        doc_type=data.get("doc_type"),
        user_id=actor_id,
        actor_role=role,
    )
    filename = f"{template.removesuffix('.html')}.pdf"
    return Response(
        pdf,
        status=200,
        mimetype="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@document_bp.route("/templates", methods=["GET"])
@login_required
def list_templates():
    return jsonify({"templates": document_service.list_templates()}), 200
