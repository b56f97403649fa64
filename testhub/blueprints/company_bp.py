"""
Company Blueprint — companies and their members.

  POST   /api/v1/companies                          — create (caller becomes OWNER)
  GET    /api/v1/companies                          — my companies with my role
  GET    /api/v1/companies/owned                    — companies I own
  GET    /api/v1/companies/<cid>                    — detail
  PUT    /api/v1/companies/<cid>                    — rename (ADMIN)
  DELETE /api/v1/companies/<cid>                    — cascade soft delete (ADMIN)
  GET    /api/v1/companies/<cid>/members            — member list
  GET    /api/v1/companies/<cid>/my-role            — caller's role
  PUT    /api/v1/companies/<cid>/members/<uid>      — change role (ADMIN; OWNER for owners)
  DELETE /api/v1/companies/<cid>/members/<uid>      — remove member (ADMIN)
  POST   /api/v1/companies/<cid>/leave              — leave company
"""

from flask import Blueprint, jsonify

from testhub.blueprints import deleted_response, json_body
from testhub.middleware.jwt_auth import current_principal
from testhub.models.company import ROLE_DISPLAY
from testhub.services import company_service

company_bp = Blueprint("company_bp", __name__, url_prefix="/api/v1/companies")


@company_bp.route("", methods=["POST"])
def create_company():
    user = current_principal()
    company = company_service.create_company(json_body(), user)
    return jsonify(company.to_dict(role="OWNER")), 201


@company_bp.route("", methods=["GET"])
def list_companies():
    user = current_principal()
    return jsonify([
        company.to_dict(role=role)
        for company, role in company_service.list_my_companies(user)
    ])


@company_bp.route("/owned", methods=["GET"])
def list_owned_companies():
    user = current_principal()
    return jsonify([
        company.to_dict(role="OWNER")
        for company in company_service.list_owned_companies(user)
    ])


@company_bp.route("/<int:company_id>", methods=["GET"])
def get_company(company_id):
    user = current_principal()
    company, role = company_service.get_company(company_id, user)
    return jsonify(company.to_dict(role=role))


@company_bp.route("/<int:company_id>", methods=["PUT"])
def update_company(company_id):
    user = current_principal()
    company = company_service.update_company(company_id, json_body(), user)
    return jsonify(company.to_dict())


@company_bp.route("/<int:company_id>", methods=["DELETE"])
def delete_company(company_id):
    user = current_principal()
    counts = company_service.delete_company(company_id, user)
    return jsonify(deleted_response(company_id, counts))


@company_bp.route("/<int:company_id>/members", methods=["GET"])
def list_members(company_id):
    user = current_principal()
    return jsonify([m.to_dict() for m in company_service.list_members(company_id, user)])


@company_bp.route("/<int:company_id>/my-role", methods=["GET"])
def my_role(company_id):
    user = current_principal()
    role = company_service.my_role(company_id, user)
    return jsonify({"company_id": company_id, "role": role, "display_name": ROLE_DISPLAY[role]})


@company_bp.route("/<int:company_id>/members/<int:user_id>", methods=["PUT"])
def update_member_role(company_id, user_id):
    user = current_principal()
    member = company_service.update_member_role(company_id, user_id, json_body(), user)
    return jsonify(member.to_dict())


@company_bp.route("/<int:company_id>/members/<int:user_id>", methods=["DELETE"])
def remove_member(company_id, user_id):
    user = current_principal()
    company_service.remove_member(company_id, user_id, user)
    return jsonify({"removed": True, "user_id": user_id})


@company_bp.route("/<int:company_id>/leave", methods=["POST"])
def leave_company(company_id):
    user = current_principal()
    company_service.leave_company(company_id, user)
    return jsonify({"left": True, "company_id": company_id})
