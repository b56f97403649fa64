"""
Hierarchy Blueprint — projects, platforms and versions of a company.

Every URL carries the full id path; a path that does not match the stored
parent chain answers 404 exactly like a missing row.

  /api/v1/companies/<cid>/projects[/<pid>]            GET POST | GET PUT DELETE
  /api/v1/companies/<cid>/projects/<pid>/restore      POST
  .../projects/<pid>/platforms[/<plid>]               GET POST | GET PUT DELETE
  .../platforms/<plid>/versions[/<vid>]               GET POST | GET PUT DELETE
"""

from flask import Blueprint, jsonify

from testhub.blueprints import deleted_response, json_body
from testhub.middleware.jwt_auth import current_principal
from testhub.services import project_service

hierarchy_bp = Blueprint("hierarchy_bp", __name__, url_prefix="/api/v1/companies/<int:company_id>")


# ═══════════════════════════════════════════════════════════════
# PROJECTS
# ═══════════════════════════════════════════════════════════════
@hierarchy_bp.route("/projects", methods=["GET"])
def list_projects(company_id):
    user = current_principal()
    projects = project_service.list_projects((company_id,), user)
    return jsonify([p.to_dict() for p in projects])


@hierarchy_bp.route("/projects", methods=["POST"])
def create_project(company_id):
    user = current_principal()
    project = project_service.create_project((company_id,), json_body(), user)
    return jsonify(project.to_dict()), 201


@hierarchy_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(company_id, project_id):
    user = current_principal()
    return jsonify(project_service.get_project((company_id,), project_id, user).to_dict())


@hierarchy_bp.route("/projects/<int:project_id>", methods=["PUT"])
def update_project(company_id, project_id):
    user = current_principal()
    project = project_service.update_project((company_id,), project_id, json_body(), user)
    return jsonify(project.to_dict())


@hierarchy_bp.route("/projects/<int:project_id>", methods=["DELETE"])
def delete_project(company_id, project_id):
    user = current_principal()
    counts = project_service.delete_project((company_id,), project_id, user)
    return jsonify(deleted_response(project_id, counts))


@hierarchy_bp.route("/projects/<int:project_id>/restore", methods=["POST"])
def restore_project(company_id, project_id):
    user = current_principal()
    project = project_service.restore_project((company_id,), project_id, user)
    return jsonify(project.to_dict())


# ═══════════════════════════════════════════════════════════════
# PLATFORMS
# ═══════════════════════════════════════════════════════════════
@hierarchy_bp.route("/projects/<int:project_id>/platforms", methods=["GET"])
def list_platforms(company_id, project_id):
    user = current_principal()
    platforms = project_service.list_platforms((company_id, project_id), user)
    return jsonify([p.to_dict() for p in platforms])


@hierarchy_bp.route("/projects/<int:project_id>/platforms", methods=["POST"])
def create_platform(company_id, project_id):
    user = current_principal()
    platform = project_service.create_platform((company_id, project_id), json_body(), user)
    return jsonify(platform.to_dict()), 201


@hierarchy_bp.route("/projects/<int:project_id>/platforms/<int:platform_id>", methods=["GET"])
def get_platform(company_id, project_id, platform_id):
    user = current_principal()
    platform = project_service.get_platform((company_id, project_id), platform_id, user)
    return jsonify(platform.to_dict())


@hierarchy_bp.route("/projects/<int:project_id>/platforms/<int:platform_id>", methods=["PUT"])
def update_platform(company_id, project_id, platform_id):
    user = current_principal()
    platform = project_service.update_platform(
        (company_id, project_id), platform_id, json_body(), user,
    )
    return jsonify(platform.to_dict())


@hierarchy_bp.route("/projects/<int:project_id>/platforms/<int:platform_id>", methods=["DELETE"])
def delete_platform(company_id, project_id, platform_id):
    user = current_principal()
    counts = project_service.delete_platform((company_id, project_id), platform_id, user)
    return jsonify(deleted_response(platform_id, counts))


# ═══════════════════════════════════════════════════════════════
# VERSIONS
# ═══════════════════════════════════════════════════════════════
_VERSIONS = "/projects/<int:project_id>/platforms/<int:platform_id>/versions"


@hierarchy_bp.route(_VERSIONS, methods=["GET"])
def list_versions(company_id, project_id, platform_id):
    user = current_principal()
    versions = project_service.list_versions((company_id, project_id, platform_id), user)
    return jsonify([v.to_dict() for v in versions])


@hierarchy_bp.route(_VERSIONS, methods=["POST"])
def create_version(company_id, project_id, platform_id):
    user = current_principal()
    version = project_service.create_version(
        (company_id, project_id, platform_id), json_body(), user,
    )
    return jsonify(version.to_dict()), 201


@hierarchy_bp.route(f"{_VERSIONS}/<int:version_id>", methods=["GET"])
def get_version(company_id, project_id, platform_id, version_id):
    user = current_principal()
    version = project_service.get_version((company_id, project_id, platform_id), version_id, user)
    return jsonify(version.to_dict())


@hierarchy_bp.route(f"{_VERSIONS}/<int:version_id>", methods=["PUT"])
def update_version(company_id, project_id, platform_id, version_id):
    user = current_principal()
    version = project_service.update_version(
        (company_id, project_id, platform_id), version_id, json_body(), user,
    )
    return jsonify(version.to_dict())


@hierarchy_bp.route(f"{_VERSIONS}/<int:version_id>", methods=["DELETE"])
def delete_version(company_id, project_id, platform_id, version_id):
    user = current_principal()
    counts = project_service.delete_version((company_id, project_id, platform_id), version_id, user)
    return jsonify(deleted_response(version_id, counts))
