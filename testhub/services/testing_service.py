"""
Test Management Hub
Test suite / feature / scenario / step service.

Paths are full id tuples from the company down:

    suites     (company_id, project_id, platform_id, version_id)
    features   ... + test_suite_id
    scenarios  ... + test_feature_id
    steps      ... + test_scenario_id

Features, scenarios and steps can be created by any member, and any member
may record a step's execution result. Everything else that changes the tree
(update, delete, assignment, scenario status, step reordering) needs ADMIN.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select

from testhub.core.exceptions import ConflictError, ValidationError
from testhub.models import db
from testhub.models.hierarchy import (
    SCENARIO_PRIORITIES,
    SCENARIO_STATUSES,
    STEP_STATUSES,
    TestFeature,
    TestScenario,
    TestStep,
    TestSuite,
    Version,
)
from testhub.models.soft_delete import active, utcnow
from testhub.services.authorization import is_member
from testhub.services.hierarchy_ops import (
    delete_node,
    ensure_unique,
    list_children,
    load_node,
    load_parent,
    persist,
)
from testhub.utils.helpers import (
    choice,
    flush_unit,
    optional_text,
    positive_int,
    require_text,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# Test suites
# ═══════════════════════════════════════════════════════════════
def list_test_suites(path, user) -> list[TestSuite]:
    version = load_node(Version, path[:-1], path[-1], user, "test_suite.read")
    return list_children(TestSuite, version, order_by=(TestSuite.name.asc(), TestSuite.id.asc()))


def create_test_suite(path, data: dict, user) -> TestSuite:
    version = load_parent(Version, path, user, "test_suite.create")
    name = require_text(data, "name", max_length=200)
    ensure_unique(TestSuite, "version_id", version.id, "name", name)
    suite = TestSuite(
        name=name,
        description=optional_text(data, "description"),
        version_id=version.id,
        created_by_id=user.id,
    )
    persist(suite, version, ConflictError("TestSuite", "name", name))
    logger.info("Test suite %s created in version %s by user %s", suite.id, version.id, user.id)
    return suite


def get_test_suite(path, suite_id: int, user) -> TestSuite:
    return load_node(TestSuite, path, suite_id, user, "test_suite.read")


def update_test_suite(path, suite_id: int, data: dict, user) -> TestSuite:
    suite = load_node(TestSuite, path, suite_id, user, "test_suite.update")
    if "name" in data:
        name = require_text(data, "name", max_length=200)
        ensure_unique(TestSuite, "version_id", suite.version_id, "name", name, exclude_id=suite.id)
        suite.name = name
    if "description" in data:
        suite.description = optional_text(data, "description")
    return persist(suite, suite, ConflictError("TestSuite", "name", suite.name))


def delete_test_suite(path, suite_id: int, user) -> dict[str, int]:
    suite = load_node(TestSuite, path, suite_id, user, "test_suite.delete")
    return delete_node(suite, user)


# ═══════════════════════════════════════════════════════════════
# Test features
# ═══════════════════════════════════════════════════════════════
def list_test_features(path, user) -> list[TestFeature]:
    suite = load_node(TestSuite, path[:-1], path[-1], user, "test_feature.read")
    return list_children(TestFeature, suite, order_by=(TestFeature.name.asc(), TestFeature.id.asc()))


def create_test_feature(path, data: dict, user) -> TestFeature:
    suite = load_parent(TestSuite, path, user, "test_feature.create")
    name = require_text(data, "name", max_length=200)
    ensure_unique(TestFeature, "test_suite_id", suite.id, "name", name)
    feature = TestFeature(
        name=name,
        description=optional_text(data, "description"),
        test_suite_id=suite.id,
        created_by_id=user.id,
    )
    persist(feature, suite, ConflictError("TestFeature", "name", name))
    return feature


def get_test_feature(path, feature_id: int, user) -> TestFeature:
    return load_node(TestFeature, path, feature_id, user, "test_feature.read")


def update_test_feature(path, feature_id: int, data: dict, user) -> TestFeature:
    feature = load_node(TestFeature, path, feature_id, user, "test_feature.update")
    if "name" in data:
        name = require_text(data, "name", max_length=200)
        ensure_unique(TestFeature, "test_suite_id", feature.test_suite_id, "name", name,
                      exclude_id=feature.id)
        feature.name = name
    if "description" in data:
        feature.description = optional_text(data, "description")
    return persist(feature, feature, ConflictError("TestFeature", "name", feature.name))


def delete_test_feature(path, feature_id: int, user) -> dict[str, int]:
    feature = load_node(TestFeature, path, feature_id, user, "test_feature.delete")
    return delete_node(feature, user)


# ═══════════════════════════════════════════════════════════════
# Test scenarios
# ═══════════════════════════════════════════════════════════════
def _apply_scenario_fields(scenario: TestScenario, data: dict) -> None:
    for field in ("description", "preconditions", "expected_result"):
        if field in data:
            setattr(scenario, field, optional_text(data, field))
    if "priority" in data:
        scenario.priority = choice(data.get("priority"), SCENARIO_PRIORITIES, "priority",
                                   default="MEDIUM")
    if "estimated_duration_minutes" in data:
        scenario.estimated_duration_minutes = positive_int(
            data.get("estimated_duration_minutes"), "estimated_duration_minutes", required=False,
        )


def _assignee(data: dict, field: str, company_id: int) -> int | None:
    """Optional assignee id from ``data[field]``; must be a member of the company."""
    assignee_id = positive_int(data.get(field), field, required=False)
    if assignee_id is not None and not is_member(assignee_id, company_id):
        raise ValidationError(
            "Assignee must be a member of the company", details={field: "not a member"},
        )
    return assignee_id


def list_test_scenarios(path, user) -> list[TestScenario]:
    feature = load_node(TestFeature, path[:-1], path[-1], user, "test_scenario.read")
    return list_children(
        TestScenario, feature, order_by=(TestScenario.name.asc(), TestScenario.id.asc()),
    )


def create_test_scenario(path, data: dict, user) -> TestScenario:
    feature = load_parent(TestFeature, path, user, "test_scenario.create")
    name = require_text(data, "name", max_length=200)
    ensure_unique(TestScenario, "test_feature_id", feature.id, "name", name)
    scenario = TestScenario(
        name=name,
        priority="MEDIUM",
        status=choice(data.get("status"), SCENARIO_STATUSES, "status", default="DRAFT"),
        assigned_to_id=_assignee(data, "assigned_to_id", path[0]),
        test_feature_id=feature.id,
        created_by_id=user.id,
    )
    _apply_scenario_fields(scenario, data)
    persist(scenario, feature, ConflictError("TestScenario", "name", name))
    return scenario


def get_test_scenario(path, scenario_id: int, user) -> TestScenario:
    return load_node(TestScenario, path, scenario_id, user, "test_scenario.read")


def update_test_scenario(path, scenario_id: int, data: dict, user) -> TestScenario:
    scenario = load_node(TestScenario, path, scenario_id, user, "test_scenario.update")
    if "name" in data:
        name = require_text(data, "name", max_length=200)
        ensure_unique(TestScenario, "test_feature_id", scenario.test_feature_id, "name", name,
                      exclude_id=scenario.id)
        scenario.name = name
    _apply_scenario_fields(scenario, data)
    return persist(scenario, scenario, ConflictError("TestScenario", "name", scenario.name))


def delete_test_scenario(path, scenario_id: int, user) -> dict[str, int]:
    scenario = load_node(TestScenario, path, scenario_id, user, "test_scenario.delete")
    return delete_node(scenario, user)


def assign_test_scenario(path, scenario_id: int, data: dict, user) -> TestScenario:
    """Assign the scenario to a company member, or unassign with ``user_id: null``."""
    scenario = load_node(TestScenario, path, scenario_id, user, "test_scenario.assign")
    assignee_id = _assignee(data, "user_id", path[0])
    scenario.assigned_to_id = assignee_id
    persist(scenario, scenario)
    logger.info("Test scenario %s assigned to user %s by user %s", scenario.id, assignee_id, user.id)
    return scenario


def update_test_scenario_status(path, scenario_id: int, data: dict, user) -> TestScenario:
    scenario = load_node(TestScenario, path, scenario_id, user, "test_scenario.update_status")
    scenario.status = choice(data.get("status"), SCENARIO_STATUSES, "status")
    return persist(scenario, scenario)


# ═══════════════════════════════════════════════════════════════
# Test steps
# ═══════════════════════════════════════════════════════════════
def _next_order(scenario: TestScenario) -> int:
    current = db.session.execute(
        select(func.max(TestStep.step_order)).where(
            TestStep.test_scenario_id == scenario.id, active(TestStep),
        )
    ).scalar_one_or_none()
    return (current or 0) + 1


def list_test_steps(path, user) -> list[TestStep]:
    scenario = load_node(TestScenario, path[:-1], path[-1], user, "test_step.read")
    return list_children(TestStep, scenario, order_by=(TestStep.step_order.asc(),))


def next_step_order(path, user) -> int:
    """Order a new step appended to the scenario would get."""
    scenario = load_node(TestScenario, path[:-1], path[-1], user, "test_step.read")
    return _next_order(scenario)


def create_test_step(path, data: dict, user) -> TestStep:
    scenario = load_parent(TestScenario, path, user, "test_step.create")
    step_order = positive_int(data.get("step_order"), "step_order", required=False)
    if step_order is None:
        step_order = _next_order(scenario)
    else:
        ensure_unique(TestStep, "test_scenario_id", scenario.id, "step_order", step_order)
    step = TestStep(
        step_order=step_order,
        action=require_text(data, "action"),
        expected_result=optional_text(data, "expected_result"),
        notes=optional_text(data, "notes", default=None),
        status="NOT_EXECUTED",
        test_scenario_id=scenario.id,
    )
    persist(step, scenario, ConflictError("TestStep", "step_order", step_order))
    return step


def get_test_step(path, step_id: int, user) -> TestStep:
    return load_node(TestStep, path, step_id, user, "test_step.read")


def update_test_step(path, step_id: int, data: dict, user) -> TestStep:
    step = load_node(TestStep, path, step_id, user, "test_step.update")
    if "step_order" in data:
        step_order = positive_int(data.get("step_order"), "step_order")
        ensure_unique(TestStep, "test_scenario_id", step.test_scenario_id, "step_order",
                      step_order, exclude_id=step.id)
        step.step_order = step_order
    if "action" in data:
        step.action = require_text(data, "action")
    for field in ("expected_result", "notes"):
        if field in data:
            setattr(step, field, optional_text(data, field, default=None))
    return persist(step, step, ConflictError("TestStep", "step_order", step.step_order))


def delete_test_step(path, step_id: int, user) -> dict[str, int]:
    step = load_node(TestStep, path, step_id, user, "test_step.delete")
    return delete_node(step, user)


def record_step_execution(path, step_id: int, data: dict, user, *, now=None) -> TestStep:
    """Store the outcome of running a step and stamp who ran it and when."""
    step = load_node(TestStep, path, step_id, user, "test_step.execute")
    if "actual_result" in data:
        step.actual_result = optional_text(data, "actual_result", default=None)
    if "notes" in data:
        step.notes = optional_text(data, "notes", default=None)
    if data.get("status") not in (None, ""):
        step.status = choice(data.get("status"), STEP_STATUSES, "status")
    step.executed_by_id = user.id
    step.executed_at = now or utcnow()
    persist(step, step)
    logger.info("Test step %s executed by user %s: %s", step.id, user.id, step.status)
    return step


def reorder_test_steps(path, data: dict, user) -> list[TestStep]:
    """
    Renumber the scenario's live steps 1..n in the order of ``step_ids``.

    ``step_ids`` must list every live step of the scenario exactly once.
    Orders are first moved to negative placeholders so the per-scenario
    unique index never sees two rows with the same order mid-update.
    """
    scenario = load_parent(TestScenario, path, user, "test_step.reorder")
    step_ids = data.get("step_ids")
    if not isinstance(step_ids, list) or not step_ids:
        raise ValidationError("step_ids must be a non-empty list", details={"step_ids": "required"})
    ordered_ids = [positive_int(value, "step_ids") for value in step_ids]

    steps = {step.id: step for step in list_children(TestStep, scenario)}
    if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(steps):
        raise ValidationError(
            "step_ids must list every step of the scenario exactly once",
            details={"step_ids": "mismatch"},
        )

    for position, step_id in enumerate(ordered_ids, start=1):
        steps[step_id].step_order = -position
    flush_unit(ConflictError("TestStep", "step_order"))
    for position, step_id in enumerate(ordered_ids, start=1):
        steps[step_id].step_order = position
    persist(scenario, scenario, ConflictError("TestStep", "step_order"))
    logger.info("Reordered %d step(s) of scenario %s", len(ordered_ids), scenario.id)
    return [steps[step_id] for step_id in ordered_ids]
