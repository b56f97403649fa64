"""
User administration Blueprint (global ADMIN only).

  GET /api/v1/users                 — every registered user
  PUT /api/v1/users/<uid>/role      — change a user's global role
  GET /api/v1/users/statistics      — head counts
"""

from flask import Blueprint, jsonify

from testhub.blueprints import json_body
from testhub.middleware.jwt_auth import current_principal
from testhub.services import user_service

user_bp = Blueprint("user_bp", __name__, url_prefix="/api/v1/users")


@user_bp.route("", methods=["GET"])
def list_users():
    actor = current_principal()
    return jsonify([u.to_dict() for u in user_service.list_users(actor)])


@user_bp.route("/<int:user_id>/role", methods=["PUT"])
def update_user_role(user_id):
    actor = current_principal()
    user = user_service.update_user_role(actor, user_id, json_body().get("role"))
    return jsonify(user.to_dict())


@user_bp.route("/statistics", methods=["GET"])
def user_statistics():
    actor = current_principal()
    return jsonify(user_service.user_statistics(actor))
