"""
Cascade Deletion Engine tests.

Covers:
    - deleting a node stamps it and every descendant with one timestamp
    - siblings and ancestors stay untouched
    - repeat deletes are no-ops; earlier timestamps are preserved
    - a rolled-back cascade leaves everything live
    - restore clears only the node and needs a live parent chain
"""

from datetime import timedelta

import pytest

from testhub.core.exceptions import NotFoundError
from testhub.models import db
from testhub.models.hierarchy import TestStep
from testhub.models.soft_delete import as_utc, utcnow
from testhub.services.cascade import restore, soft_delete


@pytest.fixture()
def chain(alice, make_company, make_chain):
    return make_chain(make_company(alice), author=alice)


def _below(chain, kind):
    order = ["company", "project", "platform", "version", "suite", "feature", "scenario", "step"]
    return [getattr(chain, name) for name in order[order.index(kind):]]


class TestSoftDelete:
    def test_project_delete_reaches_every_level(self, chain):
        now = utcnow()
        counts = soft_delete(chain.project, now=now)
        db.session.commit()

        assert counts == {
            "project": 1, "platform": 1, "version": 1, "test_suite": 1,
            "test_feature": 1, "test_scenario": 1, "test_step": 1,
        }
        for entity in _below(chain, "project"):
            db.session.refresh(entity)
            assert entity.audit.is_deleted
            assert as_utc(entity.deleted_at) == now
        db.session.refresh(chain.company)
        assert chain.company.deleted_at is None

    def test_sibling_subtree_untouched(self, chain, make_chain):
        sibling = make_chain(chain.company, label="2")
        soft_delete(chain.platform)
        db.session.commit()
        for entity in _below(sibling, "project"):
            db.session.refresh(entity)
            assert entity.deleted_at is None

    def test_repeat_delete_is_noop(self, chain):
        soft_delete(chain.version)
        db.session.commit()
        assert soft_delete(chain.version) == {}

    def test_earlier_deletion_timestamp_preserved(self, chain):
        earlier = utcnow() - timedelta(days=3)
        chain.step.deleted_at = earlier
        db.session.commit()

        soft_delete(chain.suite)
        db.session.commit()
        db.session.refresh(chain.step)
        db.session.refresh(chain.scenario)
        assert as_utc(chain.step.deleted_at) == earlier
        assert as_utc(chain.scenario.deleted_at) > earlier

    def test_rollback_leaves_everything_live(self, chain):
        soft_delete(chain.project)
        db.session.rollback()
        for entity in _below(chain, "project"):
            db.session.refresh(entity)
            assert entity.deleted_at is None

    def test_descendant_query_empty_after_delete(self, chain):
        soft_delete(chain.feature)
        db.session.commit()
        live_steps = TestStep.query.filter(
            TestStep.test_scenario_id == chain.scenario.id,
            TestStep.deleted_at.is_(None),
        ).all()
        assert live_steps == []


class TestRestore:
    def test_restore_only_clears_the_node(self, chain):
        soft_delete(chain.project)
        db.session.commit()

        assert restore(chain.project) is True
        db.session.commit()
        db.session.refresh(chain.project)
        db.session.refresh(chain.platform)
        assert chain.project.deleted_at is None
        assert chain.platform.deleted_at is not None

    def test_restore_live_node_is_noop(self, chain):
        assert restore(chain.project) is False

    def test_restore_under_deleted_ancestor(self, chain):
        soft_delete(chain.project)
        db.session.commit()
        with pytest.raises(NotFoundError):
            restore(chain.platform)

    def test_delete_after_partial_restore_reaches_inner_levels(self, chain):
        soft_delete(chain.project)
        db.session.commit()
        restore(chain.project)
        restore(chain.platform)
        db.session.commit()

        counts = soft_delete(chain.project)
        db.session.commit()
        assert counts == {"project": 1, "platform": 1}
