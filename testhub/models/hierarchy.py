"""
Test Management Hub
Resource hierarchy models.

    Company → Project → Platform → Version → TestSuite → TestFeature
            → TestScenario → TestStep

Every level points at exactly one parent and embeds the audit stamp
(``created_at`` / ``updated_at`` / ``deleted_at``). Rows are never removed;
deletion is a cascaded soft delete (see ``testhub.services.cascade``).

Sibling names are unique only among non-deleted rows. The service layer
checks first and returns 409; the partial unique indexes below are the
store-level backstop.
"""

from sqlalchemy import text

from testhub.models import db
from testhub.models.soft_delete import audit_columns, audit_property


# ── Constants ────────────────────────────────────────────────────────────────

PLATFORM_TYPES = ("ANDROID", "IOS", "WEB", "SERVICE")

SCENARIO_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")

SCENARIO_STATUSES = (
    "DRAFT", "READY", "IN_PROGRESS", "PASSED", "FAILED", "BLOCKED", "SKIPPED", "ON_HOLD",
)

STEP_STATUSES = ("NOT_EXECUTED", "PASSED", "FAILED", "BLOCKED", "SKIPPED")

_LIVE = text("deleted_at IS NULL")


def _live_unique(name, *cols):
    """Unique index over ``cols`` restricted to non-deleted rows."""
    return db.Index(name, *cols, unique=True, postgresql_where=_LIVE, sqlite_where=_LIVE)


def _person(user):
    return user.full_name if user else None


# ═══════════════════════════════════════════════════════════════
# PROJECT
# ═══════════════════════════════════════════════════════════════
class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, default="")
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True,
    )
    created_at, updated_at, deleted_at = audit_columns()
    audit = audit_property()

    company = db.relationship("Company", back_populates="projects")
    platforms = db.relationship("Platform", back_populates="project", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "company_id": self.company_id,
            **self.audit.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════
# PLATFORM
# ═══════════════════════════════════════════════════════════════
class Platform(db.Model):
    __tablename__ = "platforms"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, default="")
    type = db.Column(db.String(20), nullable=False)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True,
    )
    created_at, updated_at, deleted_at = audit_columns()
    audit = audit_property()

    __table_args__ = (
        _live_unique("uq_platform_project_name", "project_id", "name"),
    )

    project = db.relationship("Project", back_populates="platforms")
    versions = db.relationship("Version", back_populates="platform", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "project_id": self.project_id,
            **self.audit.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════
# VERSION
# ═══════════════════════════════════════════════════════════════
class Version(db.Model):
    __tablename__ = "versions"

    id = db.Column(db.Integer, primary_key=True)
    version_name = db.Column(db.String(50), nullable=False)
    platform_id = db.Column(
        db.Integer, db.ForeignKey("platforms.id"), nullable=False, index=True,
    )
    created_at, updated_at, deleted_at = audit_columns()
    audit = audit_property()

    __table_args__ = (
        _live_unique("uq_version_platform_name", "platform_id", "version_name"),
    )

    platform = db.relationship("Platform", back_populates="versions")
    test_suites = db.relationship("TestSuite", back_populates="version", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "version_name": self.version_name,
            "platform_id": self.platform_id,
            **self.audit.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════
# TEST SUITE
# ═══════════════════════════════════════════════════════════════
class TestSuite(db.Model):
    __tablename__ = "test_suites"
    __test__ = False  # not a pytest class

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    version_id = db.Column(
        db.Integer, db.ForeignKey("versions.id"), nullable=False, index=True,
    )
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at, updated_at, deleted_at = audit_columns()
    audit = audit_property()

    __table_args__ = (
        _live_unique("uq_test_suite_version_name", "version_id", "name"),
    )

    version = db.relationship("Version", back_populates="test_suites")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    test_features = db.relationship("TestFeature", back_populates="test_suite", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version_id": self.version_id,
            "created_by_id": self.created_by_id,
            "created_by_name": _person(self.created_by),
            **self.audit.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════
# TEST FEATURE
# ═══════════════════════════════════════════════════════════════
class TestFeature(db.Model):
    __tablename__ = "test_features"
    __test__ = False  # not a pytest class

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    test_suite_id = db.Column(
        db.Integer, db.ForeignKey("test_suites.id"), nullable=False, index=True,
    )
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at, updated_at, deleted_at = audit_columns()
    audit = audit_property()

    __table_args__ = (
        _live_unique("uq_test_feature_suite_name", "test_suite_id", "name"),
    )

    test_suite = db.relationship("TestSuite", back_populates="test_features")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    test_scenarios = db.relationship("TestScenario", back_populates="test_feature", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "test_suite_id": self.test_suite_id,
            "created_by_id": self.created_by_id,
            "created_by_name": _person(self.created_by),
            **self.audit.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════
# TEST SCENARIO
# ═══════════════════════════════════════════════════════════════
class TestScenario(db.Model):
    __tablename__ = "test_scenarios"
    __test__ = False  # not a pytest class

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    preconditions = db.Column(db.Text, default="")
    expected_result = db.Column(db.Text, default="")
    priority = db.Column(db.String(20), nullable=False, default="MEDIUM")
    status = db.Column(db.String(20), nullable=False, default="DRAFT")
    estimated_duration_minutes = db.Column(db.Integer, nullable=True)
    test_feature_id = db.Column(
        db.Integer, db.ForeignKey("test_features.id"), nullable=False, index=True,
    )
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    assigned_to_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at, updated_at, deleted_at = audit_columns()
    audit = audit_property()

    __table_args__ = (
        _live_unique("uq_test_scenario_feature_name", "test_feature_id", "name"),
    )

    test_feature = db.relationship("TestFeature", back_populates="test_scenarios")
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    test_steps = db.relationship("TestStep", back_populates="test_scenario", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "preconditions": self.preconditions,
            "expected_result": self.expected_result,
            "priority": self.priority,
            "status": self.status,
            "estimated_duration_minutes": self.estimated_duration_minutes,
            "test_feature_id": self.test_feature_id,
            "created_by_id": self.created_by_id,
            "created_by_name": _person(self.created_by),
            "assigned_to_id": self.assigned_to_id,
            "assigned_to_name": _person(self.assigned_to),
            **self.audit.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════
# TEST STEP
# ═══════════════════════════════════════════════════════════════
class TestStep(db.Model):
    __tablename__ = "test_steps"
    __test__ = False  # not a pytest class

    id = db.Column(db.Integer, primary_key=True)
    step_order = db.Column(db.Integer, nullable=False)
    action = db.Column(db.Text, nullable=False)
    expected_result = db.Column(db.Text, default="")
    actual_result = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="NOT_EXECUTED")
    test_scenario_id = db.Column(
        db.Integer, db.ForeignKey("test_scenarios.id"), nullable=False, index=True,
    )
    executed_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    executed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at, updated_at, deleted_at = audit_columns()
    audit = audit_property()

    __table_args__ = (
        _live_unique("uq_test_step_scenario_order", "test_scenario_id", "step_order"),
    )

    test_scenario = db.relationship("TestScenario", back_populates="test_steps")
    executed_by = db.relationship("User", foreign_keys=[executed_by_id])

    def to_dict(self):
        return {
            "id": self.id,
            "step_order": self.step_order,
            "action": self.action,
            "expected_result": self.expected_result,
            "actual_result": self.actual_result,
            "notes": self.notes,
            "status": self.status,
            "test_scenario_id": self.test_scenario_id,
            "executed_by_id": self.executed_by_id,
            "executed_by_name": _person(self.executed_by),
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            **self.audit.to_dict(),
        }
