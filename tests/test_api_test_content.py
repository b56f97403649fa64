"""
Test content API tests: suites, features, scenarios, steps.

Covers:
    - suite names are unique per version among live rows
    - members create features/scenarios/steps; updates need ADMIN
    - scenario assignment (member-only assignees) and status, on create and after
    - step auto-ordering, next-order, reorder and execution results
    - path checks at the deepest level
"""

import pytest

from testhub.models import db
from testhub.models.hierarchy import TestStep


@pytest.fixture()
def acme(alice, bob, carol, make_company):
    """alice OWNER, bob ADMIN, carol MEMBER."""
    return make_company(alice, members=[(bob, "ADMIN"), (carol, "MEMBER")])


@pytest.fixture()
def chain(acme, alice, make_chain):
    return make_chain(acme, author=alice)


def _version_url(chain):
    cid, pid, plid, vid = chain.ids[:4]
    return f"/api/v1/companies/{cid}/projects/{pid}/platforms/{plid}/versions/{vid}"


def _suite_url(chain):
    return f"{_version_url(chain)}/test-suites/{chain.suite.id}"


def _scenario_url(chain):
    return (f"{_suite_url(chain)}/features/{chain.feature.id}"
            f"/scenarios/{chain.scenario.id}")


def _steps_url(chain):
    return f"{_scenario_url(chain)}/steps"


class TestSuites:
    def test_create_suite(self, client, chain, bob, auth_headers):
        res = client.post(f"{_version_url(chain)}/test-suites",
                          json={"name": "Smoke", "description": "Fast checks"},
                          headers=auth_headers(bob))
        assert res.status_code == 201
        body = res.get_json()
        assert body["version_id"] == chain.version.id
        assert body["created_by_id"] == bob.id

    def test_duplicate_suite_name_conflicts(self, client, chain, bob, auth_headers):
        url = f"{_version_url(chain)}/test-suites"
        assert client.post(url, json={"name": "Smoke"}, headers=auth_headers(bob)).status_code == 201
        res = client.post(url, json={"name": "Smoke"}, headers=auth_headers(bob))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_name_reusable_after_delete(self, client, chain, bob, auth_headers):
        url = f"{_version_url(chain)}/test-suites"
        first = client.post(url, json={"name": "Smoke"}, headers=auth_headers(bob)).get_json()
        assert client.delete(f"{url}/{first['id']}", headers=auth_headers(bob)).status_code == 200
        assert client.post(url, json={"name": "Smoke"}, headers=auth_headers(bob)).status_code == 201

    def test_same_name_in_other_version(self, client, chain, bob, make_chain, auth_headers):
        sibling = make_chain(chain.company, label="2")
        for target in (chain, sibling):
            res = client.post(f"{_version_url(target)}/test-suites", json={"name": "Smoke"},
                              headers=auth_headers(bob))
            assert res.status_code == 201

    def test_member_cannot_create_suite(self, client, chain, carol, auth_headers):
        res = client.post(f"{_version_url(chain)}/test-suites", json={"name": "Smoke"},
                          headers=auth_headers(carol))
        assert res.status_code == 403

    def test_suite_under_wrong_version(self, client, chain, alice, make_chain, auth_headers):
        sibling = make_chain(chain.company, label="2")
        res = client.get(f"{_version_url(sibling)}/test-suites/{chain.suite.id}",
                         headers=auth_headers(alice))
        assert res.status_code == 404
        assert res.get_json()["error"] == "Test suite not found"


class TestFeaturesAndScenarios:
    def test_member_creates_feature_and_scenario(self, client, chain, carol, auth_headers):
        res = client.post(f"{_suite_url(chain)}/features", json={"name": "Login"},
                          headers=auth_headers(carol))
        assert res.status_code == 201
        feature_id = res.get_json()["id"]

        res = client.post(f"{_suite_url(chain)}/features/{feature_id}/scenarios",
                          json={"name": "Valid credentials", "priority": "high",
                                "estimated_duration_minutes": 5},
                          headers=auth_headers(carol))
        assert res.status_code == 201
        body = res.get_json()
        assert body["priority"] == "HIGH"
        assert body["status"] == "DRAFT"
        assert body["created_by_id"] == carol.id

    def test_member_cannot_update_feature(self, client, chain, carol, auth_headers):
        res = client.put(f"{_suite_url(chain)}/features/{chain.feature.id}",
                         json={"name": "Renamed"}, headers=auth_headers(carol))
        assert res.status_code == 403

    def test_admin_updates_scenario(self, client, chain, bob, auth_headers):
        res = client.put(_scenario_url(chain), json={"preconditions": "Logged out"},
                         headers=auth_headers(bob))
        assert res.status_code == 200
        assert res.get_json()["preconditions"] == "Logged out"

    def test_invalid_priority(self, client, chain, bob, auth_headers):
        res = client.put(_scenario_url(chain), json={"priority": "URGENT"},
                         headers=auth_headers(bob))
        assert res.status_code == 422

    def test_member_creates_assigned_scenario_with_status(self, client, chain, bob, carol,
                                                          auth_headers):
        url = f"{_suite_url(chain)}/features/{chain.feature.id}/scenarios"
        res = client.post(url, json={"name": "Locked account", "assigned_to_id": bob.id,
                                     "status": "ready"},
                          headers=auth_headers(carol))
        assert res.status_code == 201
        body = res.get_json()
        assert body["assigned_to_id"] == bob.id
        assert body["status"] == "READY"

    def test_create_with_non_member_assignee_rejected(self, client, chain, carol, make_user,
                                                      auth_headers):
        eve = make_user("eve@globex.com")
        url = f"{_suite_url(chain)}/features/{chain.feature.id}/scenarios"
        res = client.post(url, json={"name": "Locked account", "assigned_to_id": eve.id},
                          headers=auth_headers(carol))
        assert res.status_code == 422
        assert res.get_json()["details"] == {"assigned_to_id": "not a member"}
        names = [s["name"] for s in client.get(url, headers=auth_headers(carol)).get_json()]
        assert "Locked account" not in names

    def test_create_with_unknown_status_rejected(self, client, chain, carol, auth_headers):
        url = f"{_suite_url(chain)}/features/{chain.feature.id}/scenarios"
        res = client.post(url, json={"name": "Locked account", "status": "DONE-ISH"},
                          headers=auth_headers(carol))
        assert res.status_code == 422


class TestAssignmentAndStatus:
    def test_assign_member(self, client, chain, bob, carol, auth_headers):
        res = client.put(f"{_scenario_url(chain)}/assign", json={"user_id": carol.id},
                         headers=auth_headers(bob))
        assert res.status_code == 200
        assert res.get_json()["assigned_to_id"] == carol.id

    def test_assign_non_member_rejected(self, client, chain, bob, make_user, auth_headers):
        eve = make_user("eve@globex.com")
        res = client.put(f"{_scenario_url(chain)}/assign", json={"user_id": eve.id},
                         headers=auth_headers(bob))
        assert res.status_code == 422
        assert res.get_json()["details"] == {"user_id": "not a member"}

    def test_unassign(self, client, chain, bob, carol, auth_headers):
        url = f"{_scenario_url(chain)}/assign"
        client.put(url, json={"user_id": carol.id}, headers=auth_headers(bob))
        res = client.put(url, json={"user_id": None}, headers=auth_headers(bob))
        assert res.get_json()["assigned_to_id"] is None

    def test_member_cannot_assign(self, client, chain, carol, auth_headers):
        res = client.put(f"{_scenario_url(chain)}/assign", json={"user_id": carol.id},
                         headers=auth_headers(carol))
        assert res.status_code == 403

    def test_status_needs_admin(self, client, chain, bob, carol, auth_headers):
        url = f"{_scenario_url(chain)}/status"
        assert client.put(url, json={"status": "READY"},
                          headers=auth_headers(carol)).status_code == 403
        res = client.put(url, json={"status": "ready"}, headers=auth_headers(bob))
        assert res.status_code == 200
        assert res.get_json()["status"] == "READY"

    def test_unknown_status(self, client, chain, bob, auth_headers):
        res = client.put(f"{_scenario_url(chain)}/status", json={"status": "DONE-ISH"},
                         headers=auth_headers(bob))
        assert res.status_code == 422


class TestSteps:
    def test_steps_auto_order(self, client, chain, carol, auth_headers):
        url = _steps_url(chain)
        res = client.post(url, json={"action": "Type the password"}, headers=auth_headers(carol))
        assert res.status_code == 201
        assert res.get_json()["step_order"] == 2
        assert res.get_json()["status"] == "NOT_EXECUTED"

        nxt = client.get(f"{url}/next-order", headers=auth_headers(carol)).get_json()
        assert nxt == {"next_step_order": 3}

    def test_explicit_duplicate_order_conflicts(self, client, chain, carol, auth_headers):
        res = client.post(_steps_url(chain), json={"action": "Again", "step_order": 1},
                          headers=auth_headers(carol))
        assert res.status_code == 409

    def test_action_required(self, client, chain, carol, auth_headers):
        res = client.post(_steps_url(chain), json={"expected_result": "?"},
                          headers=auth_headers(carol))
        assert res.status_code == 422

    def test_list_in_order(self, client, chain, carol, auth_headers):
        url = _steps_url(chain)
        client.post(url, json={"action": "Third", "step_order": 3}, headers=auth_headers(carol))
        client.post(url, json={"action": "Second", "step_order": 2}, headers=auth_headers(carol))
        steps = client.get(url, headers=auth_headers(carol)).get_json()
        assert [s["step_order"] for s in steps] == [1, 2, 3]

    def test_reorder(self, client, chain, bob, auth_headers):
        url = _steps_url(chain)
        second = client.post(url, json={"action": "Submit"}, headers=auth_headers(bob)).get_json()
        third = client.post(url, json={"action": "Check banner"}, headers=auth_headers(bob)).get_json()

        order = [third["id"], chain.step.id, second["id"]]
        res = client.put(f"{url}/reorder", json={"step_ids": order}, headers=auth_headers(bob))
        assert res.status_code == 200
        assert [(s["id"], s["step_order"]) for s in res.get_json()] == [
            (third["id"], 1), (chain.step.id, 2), (second["id"], 3),
        ]
        listed = client.get(url, headers=auth_headers(bob)).get_json()
        assert [s["id"] for s in listed] == order

    def test_reorder_must_name_every_step(self, client, chain, bob, auth_headers):
        url = _steps_url(chain)
        client.post(url, json={"action": "Submit"}, headers=auth_headers(bob))
        res = client.put(f"{url}/reorder", json={"step_ids": [chain.step.id]},
                         headers=auth_headers(bob))
        assert res.status_code == 422
        db.session.expire_all()
        assert db.session.get(TestStep, chain.step.id).step_order == 1

    def test_member_cannot_reorder(self, client, chain, carol, auth_headers):
        res = client.put(f"{_steps_url(chain)}/reorder", json={"step_ids": [chain.step.id]},
                         headers=auth_headers(carol))
        assert res.status_code == 403

    def test_record_execution(self, client, chain, carol, auth_headers):
        res = client.put(f"{_steps_url(chain)}/{chain.step.id}/execution",
                         json={"status": "failed", "actual_result": "500 error",
                               "notes": "Seen on staging"},
                         headers=auth_headers(carol))
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "FAILED"
        assert body["actual_result"] == "500 error"
        assert body["executed_by_id"] == carol.id
        assert body["executed_at"] is not None

    def test_member_cannot_edit_step(self, client, chain, carol, auth_headers):
        res = client.put(f"{_steps_url(chain)}/{chain.step.id}", json={"action": "Changed"},
                         headers=auth_headers(carol))
        assert res.status_code == 403

    def test_deleted_step_order_reused(self, client, chain, bob, auth_headers):
        url = _steps_url(chain)
        assert client.delete(f"{url}/{chain.step.id}", headers=auth_headers(bob)).status_code == 200
        res = client.post(url, json={"action": "Fresh start"}, headers=auth_headers(bob))
        assert res.status_code == 201
        assert res.get_json()["step_order"] == 1

    def test_step_under_wrong_scenario(self, client, chain, alice, make_chain, auth_headers):
        sibling = make_chain(chain.company, label="2")
        res = client.get(f"{_steps_url(sibling)}/{chain.step.id}", headers=auth_headers(alice))
        assert res.status_code == 404
        assert res.get_json()["error"] == "Test step not found"

    def test_steps_gone_after_suite_delete(self, client, chain, bob, auth_headers):
        assert client.delete(_suite_url(chain), headers=auth_headers(bob)).status_code == 200
        res = client.get(_steps_url(chain), headers=auth_headers(bob))
        assert res.status_code == 404
