"""Project, platform and version CRUD scoped by the full company path."""

from __future__ import annotations

import logging

from testhub.core.exceptions import ConflictError, NotFoundError
from testhub.models import db
from testhub.models.company import Company
from testhub.models.hierarchy import PLATFORM_TYPES, Platform, Project, Version
from testhub.services.authorization import authorize_operation
from testhub.services.cascade import restore
from testhub.services.hierarchy_ops import (
    delete_node,
    ensure_unique,
    list_children,
    load_node,
    load_parent,
    persist,
)
from testhub.utils.helpers import choice, commit_unit, optional_text, require_text

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Project  (path = (company_id,))
# ═══════════════════════════════════════════════════════════════
def list_projects(path, user) -> list[Project]:
    company = load_node(Company, (), path[0], user, "project.read")
    return list_children(Project, company, order_by=(Project.name.asc(), Project.id.asc()))


def create_project(path, data: dict, user) -> Project:
    company = load_parent(Company, path, user, "project.create")
    project = Project(
        name=require_text(data, "name", max_length=100),
        description=optional_text(data, "description"),
        company_id=company.id,
    )
    persist(project, company)
    logger.info("Project %s created in company %s by user %s", project.id, company.id, user.id)
    return project


def get_project(path, project_id: int, user) -> Project:
    return load_node(Project, path, project_id, user, "project.read")


def update_project(path, project_id: int, data: dict, user) -> Project:
    project = load_node(Project, path, project_id, user, "project.update")
    if "name" in data:
        project.name = require_text(data, "name", max_length=100)
    if "description" in data:
        project.description = optional_text(data, "description")
    return persist(project, project)


def delete_project(path, project_id: int, user) -> dict[str, int]:
    project = load_node(Project, path, project_id, user, "project.delete")
    return delete_node(project, user)


def restore_project(path, project_id: int, user) -> Project:
    """Undelete a project. Its platforms and everything below stay deleted."""
    authorize_operation(user, path[0], "project.restore", "Project")
    project = db.session.get(Project, project_id)
    if project is None or project.company_id != path[0]:
        raise NotFoundError(resource="Project", resource_id=project_id)
    if restore(project):
        commit_unit()
        logger.info("Project %s restored by user %s", project.id, user.id)
    return project


# ═══════════════════════════════════════════════════════════════
# Platform  (path = (company_id, project_id))
# ═══════════════════════════════════════════════════════════════
def list_platforms(path, user) -> list[Platform]:
    project = load_node(Project, path[:1], path[1], user, "platform.read")
    return list_children(Platform, project, order_by=(Platform.name.asc(), Platform.id.asc()))


def create_platform(path, data: dict, user) -> Platform:
    project = load_parent(Project, path, user, "platform.create")
    name = require_text(data, "name", max_length=100)
    ensure_unique(Platform, "project_id", project.id, "name", name)
    platform = Platform(
        name=name,
        description=optional_text(data, "description"),
        type=choice(data.get("type"), PLATFORM_TYPES, "type"),
        project_id=project.id,
    )
    persist(platform, project, ConflictError("Platform", "name", name))
    logger.info("Platform %s created in project %s by user %s", platform.id, project.id, user.id)
    return platform


def get_platform(path, platform_id: int, user) -> Platform:
    return load_node(Platform, path, platform_id, user, "platform.read")


def update_platform(path, platform_id: int, data: dict, user) -> Platform:
    platform = load_node(Platform, path, platform_id, user, "platform.update")
    if "name" in data:
        name = require_text(data, "name", max_length=100)
        ensure_unique(Platform, "project_id", platform.project_id, "name", name,
                      exclude_id=platform.id)
        platform.name = name
    if "description" in data:
        platform.description = optional_text(data, "description")
    if "type" in data:
        platform.type = choice(data.get("type"), PLATFORM_TYPES, "type")
    return persist(platform, platform, ConflictError("Platform", "name", platform.name))


def delete_platform(path, platform_id: int, user) -> dict[str, int]:
    platform = load_node(Platform, path, platform_id, user, "platform.delete")
    return delete_node(platform, user)


# ═══════════════════════════════════════════════════════════════
# Version  (path = (company_id, project_id, platform_id))
# ═══════════════════════════════════════════════════════════════
def list_versions(path, user) -> list[Version]:
    platform = load_node(Platform, path[:2], path[2], user, "version.read")
    return list_children(Version, platform, order_by=(Version.created_at.desc(), Version.id.desc()))


def create_version(path, data: dict, user) -> Version:
    platform = load_parent(Platform, path, user, "version.create")
    version_name = require_text(data, "version_name", max_length=50)
    ensure_unique(Version, "platform_id", platform.id, "version_name", version_name)
    version = Version(version_name=version_name, platform_id=platform.id)
    persist(version, platform, ConflictError("Version", "version_name", version_name))
    logger.info("Version %s created on platform %s by user %s", version.id, platform.id, user.id)
    return version


def get_version(path, version_id: int, user) -> Version:
    return load_node(Version, path, version_id, user, "version.read")


def update_version(path, version_id: int, data: dict, user) -> Version:
    version = load_node(Version, path, version_id, user, "version.update")
    if "version_name" in data:
        version_name = require_text(data, "version_name", max_length=50)
        ensure_unique(Version, "platform_id", version.platform_id, "version_name", version_name,
                      exclude_id=version.id)
        version.version_name = version_name
    return persist(version, version, ConflictError("Version", "version_name", version.version_name))


def delete_version(path, version_id: int, user) -> dict[str, int]:
    version = load_node(Version, path, version_id, user, "version.delete")
    return delete_node(version, user)
