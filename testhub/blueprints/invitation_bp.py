"""
Invitation Blueprint.

  POST /api/v1/companies/<cid>/invitations        — invite a registered user (ADMIN)
  GET  /api/v1/companies/<cid>/invitations        — invitations I sent for the company
  GET  /api/v1/invitations                        — every invitation addressed to me
  GET  /api/v1/invitations/pending                — my open invitations
  POST /api/v1/invitations/<token>/accept         — join the company
  POST /api/v1/invitations/<token>/reject         — decline
"""

from flask import Blueprint, jsonify

from testhub.blueprints import json_body
from testhub.middleware.jwt_auth import current_principal
from testhub.services import invitation_service

invitation_bp = Blueprint("invitation_bp", __name__, url_prefix="/api/v1")


@invitation_bp.route("/companies/<int:company_id>/invitations", methods=["POST"])
def send_invitation(company_id):
    """
    Body: { "email": "...", "role": "MEMBER|ADMIN|OWNER", "message": "..." }
    """
    user = current_principal()
    data = json_body()
    invitation = invitation_service.send_invitation(
        company_id, data.get("email"), data.get("role"), data.get("message"), user,
    )
    return jsonify(invitation.to_dict()), 201


@invitation_bp.route("/companies/<int:company_id>/invitations", methods=["GET"])
def list_company_invitations(company_id):
    user = current_principal()
    invitations = invitation_service.list_company_invitations(company_id, user)
    return jsonify([i.to_dict() for i in invitations])


@invitation_bp.route("/invitations", methods=["GET"])
def list_my_invitations():
    user = current_principal()
    return jsonify([i.to_dict() for i in invitation_service.list_user_invitations(user)])


@invitation_bp.route("/invitations/pending", methods=["GET"])
def list_pending_invitations():
    user = current_principal()
    return jsonify([i.to_dict() for i in invitation_service.list_pending_invitations(user)])


@invitation_bp.route("/invitations/<token>/accept", methods=["POST"])
def accept_invitation(token):
    user = current_principal()
    membership = invitation_service.accept_invitation(token, user)
    return jsonify({"status": "ACCEPTED", "membership": membership.to_dict()})


@invitation_bp.route("/invitations/<token>/reject", methods=["POST"])
def reject_invitation(token):
    user = current_principal()
    invitation = invitation_service.reject_invitation(token, user)
    return jsonify(invitation.to_dict())
