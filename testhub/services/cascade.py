"""
Cascade Deletion Engine.

``soft_delete(node)`` stamps the node and every live descendant with the same
``deleted_at`` inside the caller's unit of work. The caller commits once, so
either the whole subtree is deleted or (on any failure and rollback) nothing
is. Descendants that were already deleted keep their original timestamp.

``restore(node)`` only clears the node itself. Its descendants stay deleted
and have to be restored one by one.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update

from testhub.core.exceptions import NotFoundError
from testhub.models import db
from testhub.models.soft_delete import clear_deleted, mark_deleted, utcnow
from testhub.services.lineage import ancestors_of, descendant_segments, segment_for

logger = logging.getLogger(__name__)


def soft_delete(node, *, now=None) -> dict[str, int]:
    """Soft-delete ``node`` and its whole subtree, level by level.

    Does not commit.

    Returns:
        ``{kind: rows_stamped}`` for every level that changed.
    """
    now = now or utcnow()
    segment = segment_for(type(node))
    counts: dict[str, int] = {}

    if mark_deleted(node, now):
        node.updated_at = now
        counts[segment.kind] = 1
    db.session.flush()

    parent_ids = [node.id]
    for child in descendant_segments(type(node)):
        model = child.model
        parent_fk = getattr(model, child.parent_fk)
        # Walk through already-deleted children too: their subtrees may hold
        # rows that are still live after a restore of the child.
        child_ids = db.session.execute(
            select(model.id).where(parent_fk.in_(parent_ids))
        ).scalars().all()
        if not child_ids:
            break
        result = db.session.execute(
            update(model)
            .where(model.id.in_(child_ids), model.deleted_at.is_(None))
            .values(deleted_at=now, updated_at=now)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            counts[child.kind] = result.rowcount
        parent_ids = child_ids

    logger.info("Cascade soft delete %s id=%s: %s", segment.kind, node.id, counts or "no-op")
    return counts


def restore(node) -> bool:
    """Clear ``deleted_at`` on ``node`` only. Does not commit.

    Raises:
        NotFoundError: An ancestor is deleted (nothing live to restore into).
    """
    segment = segment_for(type(node))
    for ancestor in ancestors_of(node):
        if ancestor.deleted_at is not None:
            raise NotFoundError(resource=segment.label, resource_id=node.id)
    changed = clear_deleted(node)
    if changed:
        node.updated_at = utcnow()
        logger.info("Restored %s id=%s (descendants stay deleted)", segment.kind, node.id)
    return changed
