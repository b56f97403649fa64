"""
Hierarchy path validation — the tenant-isolation boundary.

Every read/update/delete in the hub receives the full id path of the target
(company, project, platform, … down to the immediate parent) along with the
target id. Loading the row by PK alone would succeed even when the URL names
another tenant's company, so each lookup walks the stored parent chain
leaf → root and compares it with the claimed path.

Lineage table:
  Levels differ only in model, parent relationship and FK column.
  ``LINEAGE`` lists them root first and ``validate_lineage`` walks it for
  every depth.

Failure semantics:
  A missing row, a soft-deleted leaf, a soft-deleted ancestor and a parent id
  that does not match the claimed path all raise the same ``NotFoundError``
  for the requested kind. A 403 would confirm the row exists somewhere.

Usage:
    step = resolve(TestStep, (cid, pid, plid, vid, sid, fid, scid), step_id)
    validate_lineage(scenario, (cid, pid, plid, vid, sid, fid))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select

from testhub.core.exceptions import NotFoundError
from testhub.models import db
from testhub.models.company import Company
from testhub.models.hierarchy import (
    Platform,
    Project,
    TestFeature,
    TestScenario,
    TestStep,
    TestSuite,
    Version,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathSegment:
    """One level of the hierarchy."""

    kind: str
    model: type
    label: str
    parent_attr: str | None = None
    parent_fk: str | None = None


# Root first. Position in this tuple == length of the claimed path.
LINEAGE: tuple[PathSegment, ...] = (
    PathSegment("company", Company, "Company"),
    PathSegment("project", Project, "Project", "company", "company_id"),
    PathSegment("platform", Platform, "Platform", "project", "project_id"),
    PathSegment("version", Version, "Version", "platform", "platform_id"),
    PathSegment("test_suite", TestSuite, "Test suite", "version", "version_id"),
    PathSegment("test_feature", TestFeature, "Test feature", "test_suite", "test_suite_id"),
    PathSegment("test_scenario", TestScenario, "Test scenario", "test_feature", "test_feature_id"),
    PathSegment("test_step", TestStep, "Test step", "test_scenario", "test_scenario_id"),
)

_DEPTH = {segment.model: index for index, segment in enumerate(LINEAGE)}


def depth_of(model) -> int:
    """Number of ancestors above ``model`` (company = 0, test step = 7)."""
    try:
        return _DEPTH[model]
    except KeyError:
        raise ValueError(f"{getattr(model, '__name__', model)!r} is not a hierarchy kind") from None


def segment_for(model) -> PathSegment:
    return LINEAGE[depth_of(model)]


def descendant_segments(model) -> tuple[PathSegment, ...]:
    """Every level strictly below ``model``, nearest first."""
    return LINEAGE[depth_of(model) + 1:]


def _not_found(segment: PathSegment, leaf_id) -> NotFoundError:
    return NotFoundError(resource=segment.label, resource_id=leaf_id)


def validate_lineage(leaf, claimed_path) -> object:
    """Confirm ``leaf`` sits under ``claimed_path`` and nothing on the way is deleted.

    Args:
        leaf: A loaded hierarchy entity.
        claimed_path: Ancestor ids, company first, ending with the leaf's
            immediate parent. Its length must equal ``depth_of(type(leaf))``.

    Returns:
        ``leaf`` unchanged.

    Raises:
        NotFoundError: Deleted leaf/ancestor or any id mismatch.
        ValueError: ``claimed_path`` has the wrong length (caller bug).
    """
    depth = depth_of(type(leaf))
    claimed_path = tuple(claimed_path)
    leaf_segment = LINEAGE[depth]
    if len(claimed_path) != depth:
        raise ValueError(
            f"{leaf_segment.label} path needs {depth} ancestor ids, got {len(claimed_path)}"
        )

    if leaf.deleted_at is not None:
        raise _not_found(leaf_segment, leaf.id)

    node = leaf
    for level in range(depth, 0, -1):
        segment = LINEAGE[level]
        expected_parent_id = claimed_path[level - 1]
        if getattr(node, segment.parent_fk) != expected_parent_id:
            logger.debug(
                "Lineage mismatch: %s id=%s claims %s=%s, stored %s",
                leaf_segment.kind, leaf.id, segment.parent_fk, expected_parent_id,
                getattr(node, segment.parent_fk),
            )
            raise _not_found(leaf_segment, leaf.id)
        parent = getattr(node, segment.parent_attr)
        if parent is None or parent.deleted_at is not None:
            raise _not_found(leaf_segment, leaf.id)
        node = parent
    return leaf


def resolve(model, claimed_path, leaf_id: int, *, for_update: bool = False):
    """Load ``model`` by id and validate it against ``claimed_path``.

    ``for_update`` takes a row lock where the dialect supports it (parents of
    a row about to be created, invitations about to transition).
    """
    segment = segment_for(model)
    stmt = select(model).where(model.id == leaf_id)
    if for_update:
        stmt = stmt.with_for_update()
    leaf = db.session.execute(stmt).scalar_one_or_none()
    if leaf is None:
        raise _not_found(segment, leaf_id)
    return validate_lineage(leaf, claimed_path)


def resolve_path(model, ids, *, for_update: bool = False):
    """Same as ``resolve`` with the leaf id as the last element of ``ids``."""
    ids = tuple(ids)
    if not ids:
        raise ValueError("resolve_path needs at least the leaf id")
    return resolve(model, ids[:-1], ids[-1], for_update=for_update)


def ancestors_of(node) -> list:
    """Stored ancestors of ``node``, company first (``node`` excluded)."""
    chain = []
    current = node
    for level in range(depth_of(type(node)), 0, -1):
        current = getattr(current, LINEAGE[level].parent_attr)
        if current is None:
            break
        chain.append(current)
    chain.reverse()
    return chain


def path_of(node) -> tuple[int, ...]:
    """Stored ancestor id path of ``node`` (the path ``validate_lineage`` accepts)."""
    return tuple(ancestor.id for ancestor in ancestors_of(node))


def company_id_of(node) -> int:
    if isinstance(node, Company):
        return node.id
    return path_of(node)[0]


def assert_lineage_live(node) -> None:
    """Re-read ``deleted_at`` of ``node`` and its ancestors from the store.

    Called right before committing a write beneath ``node``: a concurrent
    cascade that committed after our initial validation would otherwise leave
    a live child under a deleted parent. Bypasses the identity map.

    Raises:
        NotFoundError: Any row in the chain is now deleted or gone.
    """
    segment = segment_for(type(node))
    for entity in [*ancestors_of(node), node]:
        model = type(entity)
        row = db.session.execute(
            select(model.id, model.deleted_at).where(model.id == entity.id)
        ).one_or_none()
        if row is None or row.deleted_at is not None:
            logger.warning(
                "Lineage of %s id=%s died before commit (%s id=%s)",
                segment.kind, node.id, model.__name__, entity.id,
            )
            raise _not_found(segment, node.id)
