"""
Auth blueprint.

Endpoints:
    POST  /api/v1/auth/login   { email, password } → access token
    GET   /api/v1/auth/me      current identity
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_actor, login_required
from app.services import user_service
from app.services.jwt_service import token_response
from app.utils.errors import E, api_error
from app.utils.helpers import require_fields

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True)
    err = require_fields(data, "email", "password")
    if err:
        return err
    user = user_service.authenticate(str(data["email"]), str(data["password"]))
    logger.info("Login succeeded", extra={"user_id": user.id})
    return jsonify(token_response(user)), 200


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    user_id, role = current_actor()
    if user_id is None:
        # Auth disabled: anonymous admin
        return jsonify({"user": None, "role": role, "auth_enabled": False}), 200
    user = user_service.get_user(user_id)
    if user is None or not user.is_active:
        return api_error(E.UNAUTHORIZED, "User no longer exists")
    return jsonify({"user": user.to_dict(), "role": user.role, "auth_enabled": True}), 200
