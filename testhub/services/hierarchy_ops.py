"""
Shared building blocks for hierarchy CRUD.

Every level follows the same unit of work:

    authorize (company of the path) → resolve parent/leaf through the
    lineage → check sibling-name uniqueness → mutate → flush →
    re-check that the lineage is still live → commit once

The per-kind services (``project_service``, ``testing_service``) only add
field parsing and serialization on top of these helpers.

Usage:
    parent = load_parent(Version, path, user, "test_suite.create")
    ensure_unique(TestSuite, "version_id", parent.id, "name", name)
    suite = TestSuite(name=name, version_id=parent.id)
    persist(suite, parent, ConflictError("TestSuite", "name", name))
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from testhub.core.exceptions import ConflictError
from testhub.models import db
from testhub.models.soft_delete import active
from testhub.services.authorization import authorize_operation
from testhub.services.cascade import soft_delete
from testhub.services.lineage import assert_lineage_live, resolve, resolve_path, segment_for
from testhub.utils.helpers import commit_unit, flush_unit

logger = logging.getLogger(__name__)


def _company_of(path) -> int:
    path = tuple(path)
    if not path:
        raise ValueError("Hierarchy path must start with a company id")
    return path[0]


def load_parent(parent_model, path, user, operation: str):
    """Authorize ``operation`` and lock the parent addressed by ``path``.

    ``path`` is the full id path of the parent itself (company first).
    Companies are addressed by a one-element path.
    """
    label = segment_for(parent_model).label
    authorize_operation(user, _company_of(path), operation, label)
    return resolve_path(parent_model, path, for_update=True)


def load_node(model, path, node_id: int, user, operation: str):
    """Authorize ``operation`` and load the node ``node_id`` under ``path``.

    A company is its own root: ``load_node(Company, (), company_id, ...)``.
    """
    label = segment_for(model).label
    company_id = _company_of(path) if path else node_id
    authorize_operation(user, company_id, operation, label)
    return resolve(model, path, node_id)


def list_children(child_model, parent, *, order_by=None):
    """Live children of ``parent`` for ``child_model``."""
    segment = segment_for(child_model)
    parent_fk = getattr(child_model, segment.parent_fk)
    stmt = select(child_model).where(parent_fk == parent.id, active(child_model))
    stmt = stmt.order_by(*(order_by if order_by is not None else (child_model.id.asc(),)))
    return db.session.execute(stmt).scalars().all()


def ensure_unique(model, parent_fk: str, parent_id: int, field: str, value, *,
                  exclude_id: int | None = None) -> None:
    """Raise ConflictError if a live sibling already uses ``value`` for ``field``."""
    stmt = select(model.id).where(
        getattr(model, parent_fk) == parent_id,
        getattr(model, field) == value,
        active(model),
    )
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    if db.session.execute(stmt.limit(1)).first() is not None:
        raise ConflictError(model.__name__, field, value)


def persist(entity, anchor, conflict: Exception | None = None):
    """Flush ``entity``, confirm ``anchor``'s lineage is still live and commit.

    ``anchor`` is the parent for creates and the entity itself for updates.
    """
    db.session.add(entity)
    flush_unit(conflict)
    assert_lineage_live(anchor)
    commit_unit(conflict)
    return entity


def delete_node(node, user) -> dict[str, int]:
    """Cascade soft-delete ``node`` and commit."""
    counts = soft_delete(node)
    commit_unit()
    logger.info(
        "%s id=%s deleted by user %s", segment_for(type(node)).label, node.id, user.id,
    )
    return counts
