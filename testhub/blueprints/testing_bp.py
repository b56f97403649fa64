"""
Testing Blueprint — test suites, features, scenarios and steps.

All routes hang under one version:

  /api/v1/companies/<cid>/projects/<pid>/platforms/<plid>/versions/<vid>

  /test-suites[/<sid>]                                 GET POST | GET PUT DELETE
  /test-suites/<sid>/features[/<fid>]                  GET POST | GET PUT DELETE
  .../features/<fid>/scenarios[/<scid>]                GET POST | GET PUT DELETE
  .../scenarios/<scid>/assign                          PUT  {"user_id": int | null}
  .../scenarios/<scid>/status                          PUT  {"status": "..."}
  .../scenarios/<scid>/steps[/<stid>]                  GET POST | GET PUT DELETE
  .../steps/<stid>/execution                           PUT  {"actual_result", "notes", "status"}
  .../steps/reorder                                    PUT  {"step_ids": [...]}
  .../steps/next-order                                 GET
"""

from flask import Blueprint, jsonify

from testhub.blueprints import deleted_response, json_body
from testhub.middleware.jwt_auth import current_principal
from testhub.services import testing_service

testing_bp = Blueprint(
    "testing_bp", __name__,
    url_prefix=(
        "/api/v1/companies/<int:company_id>/projects/<int:project_id>"
        "/platforms/<int:platform_id>/versions/<int:version_id>"
    ),
)

_SUITE = "/test-suites/<int:suite_id>"
_FEATURE = f"{_SUITE}/features/<int:feature_id>"
_SCENARIO = f"{_FEATURE}/scenarios/<int:scenario_id>"


# ═══════════════════════════════════════════════════════════════
# TEST SUITES
# ═══════════════════════════════════════════════════════════════
@testing_bp.route("/test-suites", methods=["GET"])
def list_test_suites(company_id, project_id, platform_id, version_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id)
    return jsonify([s.to_dict() for s in testing_service.list_test_suites(path, user)])


@testing_bp.route("/test-suites", methods=["POST"])
def create_test_suite(company_id, project_id, platform_id, version_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id)
    suite = testing_service.create_test_suite(path, json_body(), user)
    return jsonify(suite.to_dict()), 201


@testing_bp.route(_SUITE, methods=["GET"])
def get_test_suite(company_id, project_id, platform_id, version_id, suite_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id)
    return jsonify(testing_service.get_test_suite(path, suite_id, user).to_dict())


@testing_bp.route(_SUITE, methods=["PUT"])
def update_test_suite(company_id, project_id, platform_id, version_id, suite_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id)
    suite = testing_service.update_test_suite(path, suite_id, json_body(), user)
    return jsonify(suite.to_dict())


@testing_bp.route(_SUITE, methods=["DELETE"])
def delete_test_suite(company_id, project_id, platform_id, version_id, suite_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id)
    counts = testing_service.delete_test_suite(path, suite_id, user)
    return jsonify(deleted_response(suite_id, counts))


# ═══════════════════════════════════════════════════════════════
# TEST FEATURES
# ═══════════════════════════════════════════════════════════════
@testing_bp.route(f"{_SUITE}/features", methods=["GET"])
def list_test_features(company_id, project_id, platform_id, version_id, suite_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id)
    return jsonify([f.to_dict() for f in testing_service.list_test_features(path, user)])


@testing_bp.route(f"{_SUITE}/features", methods=["POST"])
def create_test_feature(company_id, project_id, platform_id, version_id, suite_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id)
    feature = testing_service.create_test_feature(path, json_body(), user)
    return jsonify(feature.to_dict()), 201


@testing_bp.route(_FEATURE, methods=["GET"])
def get_test_feature(company_id, project_id, platform_id, version_id, suite_id, feature_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id)
    return jsonify(testing_service.get_test_feature(path, feature_id, user).to_dict())


@testing_bp.route(_FEATURE, methods=["PUT"])
def update_test_feature(company_id, project_id, platform_id, version_id, suite_id, feature_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id)
    feature = testing_service.update_test_feature(path, feature_id, json_body(), user)
    return jsonify(feature.to_dict())


@testing_bp.route(_FEATURE, methods=["DELETE"])
def delete_test_feature(company_id, project_id, platform_id, version_id, suite_id, feature_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id)
    counts = testing_service.delete_test_feature(path, feature_id, user)
    return jsonify(deleted_response(feature_id, counts))


# ═══════════════════════════════════════════════════════════════
# TEST SCENARIOS
# ═══════════════════════════════════════════════════════════════
@testing_bp.route(f"{_FEATURE}/scenarios", methods=["GET"])
def list_test_scenarios(company_id, project_id, platform_id, version_id, suite_id, feature_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id)
    return jsonify([s.to_dict() for s in testing_service.list_test_scenarios(path, user)])


@testing_bp.route(f"{_FEATURE}/scenarios", methods=["POST"])
def create_test_scenario(company_id, project_id, platform_id, version_id, suite_id, feature_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id)
    scenario = testing_service.create_test_scenario(path, json_body(), user)
    return jsonify(scenario.to_dict()), 201


@testing_bp.route(_SCENARIO, methods=["GET"])
def get_test_scenario(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                      scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id)
    return jsonify(testing_service.get_test_scenario(path, scenario_id, user).to_dict())


@testing_bp.route(_SCENARIO, methods=["PUT"])
def update_test_scenario(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                         scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id)
    scenario = testing_service.update_test_scenario(path, scenario_id, json_body(), user)
    return jsonify(scenario.to_dict())


@testing_bp.route(_SCENARIO, methods=["DELETE"])
def delete_test_scenario(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                         scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id)
    counts = testing_service.delete_test_scenario(path, scenario_id, user)
    return jsonify(deleted_response(scenario_id, counts))


@testing_bp.route(f"{_SCENARIO}/assign", methods=["PUT"])
def assign_test_scenario(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                         scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id)
    scenario = testing_service.assign_test_scenario(path, scenario_id, json_body(), user)
    return jsonify(scenario.to_dict())


@testing_bp.route(f"{_SCENARIO}/status", methods=["PUT"])
def update_test_scenario_status(company_id, project_id, platform_id, version_id, suite_id,
                                feature_id, scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id)
    scenario = testing_service.update_test_scenario_status(path, scenario_id, json_body(), user)
    return jsonify(scenario.to_dict())


# ═══════════════════════════════════════════════════════════════
# TEST STEPS
# ═══════════════════════════════════════════════════════════════
@testing_bp.route(f"{_SCENARIO}/steps", methods=["GET"])
def list_test_steps(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                    scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id, scenario_id)
    return jsonify([s.to_dict() for s in testing_service.list_test_steps(path, user)])


@testing_bp.route(f"{_SCENARIO}/steps", methods=["POST"])
def create_test_step(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                     scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id, scenario_id)
    step = testing_service.create_test_step(path, json_body(), user)
    return jsonify(step.to_dict()), 201


@testing_bp.route(f"{_SCENARIO}/steps/next-order", methods=["GET"])
def next_step_order(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                    scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id, scenario_id)
    return jsonify({"next_step_order": testing_service.next_step_order(path, user)})


@testing_bp.route(f"{_SCENARIO}/steps/reorder", methods=["PUT"])
def reorder_test_steps(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                       scenario_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id, scenario_id)
    steps = testing_service.reorder_test_steps(path, json_body(), user)
    return jsonify([s.to_dict() for s in steps])


@testing_bp.route(f"{_SCENARIO}/steps/<int:step_id>", methods=["GET"])
def get_test_step(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                  scenario_id, step_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id, scenario_id)
    return jsonify(testing_service.get_test_step(path, step_id, user).to_dict())


@testing_bp.route(f"{_SCENARIO}/steps/<int:step_id>", methods=["PUT"])
def update_test_step(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                     scenario_id, step_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id, scenario_id)
    step = testing_service.update_test_step(path, step_id, json_body(), user)
    return jsonify(step.to_dict())


@testing_bp.route(f"{_SCENARIO}/steps/<int:step_id>", methods=["DELETE"])
def delete_test_step(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                     scenario_id, step_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id, scenario_id)
    counts = testing_service.delete_test_step(path, step_id, user)
    return jsonify(deleted_response(step_id, counts))


@testing_bp.route(f"{_SCENARIO}/steps/<int:step_id>/execution", methods=["PUT"])
def record_step_execution(company_id, project_id, platform_id, version_id, suite_id, feature_id,
                          scenario_id, step_id):
    user = current_principal()
    path = (company_id, project_id, platform_id, version_id, suite_id, feature_id, scenario_id)
    step = testing_service.record_step_execution(path, step_id, json_body(), user)
    return jsonify(step.to_dict())
