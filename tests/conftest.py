"""
Shared pytest fixtures for the Test Management Hub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / alice / bob / carol: committed users
    - make_company: company with its OWNER (and optional extra members)
    - make_chain: full Project → … → TestStep chain under a company
    - auth_headers: Bearer header factory for API tests

Seed data is committed: every API request runs in its own app context and
session, so flushed-but-uncommitted rows would not be visible to it.
"""

from types import SimpleNamespace

import pytest

from testhub import create_app
from testhub.models import db as _db
from testhub.models.auth import User
from testhub.models.company import Company, CompanyMember
from testhub.models.hierarchy import (
    Platform,
    Project,
    TestFeature,
    TestScenario,
    TestStep,
    TestSuite,
    Version,
)
from testhub.services.jwt_service import generate_access_token
from testhub.utils.crypto import hash_password

DEFAULT_PASSWORD = "Passw0rd!"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Identity ─────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    def _make(email, *, role="USER", first_name="Test", last_name="User",
              password=DEFAULT_PASSWORD):
        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
        )
        _db.session.add(user)
        _db.session.commit()
        return user
    return _make


@pytest.fixture()
def alice(make_user):
    return make_user("alice@acme.com", first_name="Alice", last_name="Archer")


@pytest.fixture()
def bob(make_user):
    return make_user("bob@acme.com", first_name="Bob", last_name="Baker")


@pytest.fixture()
def carol(make_user):
    return make_user("carol@acme.com", first_name="Carol", last_name="Cole")


@pytest.fixture()
def auth_headers():
    """``auth_headers(user)`` → {"Authorization": "Bearer <access token>"}."""
    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id, user.email)}"}
    return _headers


# ── Companies & hierarchy ────────────────────────────────────────────────


@pytest.fixture()
def make_company():
    """``make_company(owner, name, members=[(user, role), ...])``."""
    def _make(owner, name="Acme", members=()):
        company = Company(name=name, owner_id=owner.id)
        _db.session.add(company)
        _db.session.flush()
        _db.session.add(CompanyMember(user_id=owner.id, company_id=company.id, role="OWNER"))
        for user, role in members:
            _db.session.add(CompanyMember(user_id=user.id, company_id=company.id, role=role))
        _db.session.commit()
        return company
    return _make


@pytest.fixture()
def make_chain():
    """Build one live entity per level under ``company`` and commit.

    Returns a namespace with every entity plus ``ids``: the id tuple from
    company down to the step.
    """
    def _make(company, *, author=None, label="1"):
        author_id = author.id if author else None
        project = Project(name=f"P{label}", company_id=company.id)
        _db.session.add(project)
        _db.session.flush()
        platform = Platform(name=f"Web {label}", type="WEB", project_id=project.id)
        _db.session.add(platform)
        _db.session.flush()
        version = Version(version_name=f"{label}.0", platform_id=platform.id)
        _db.session.add(version)
        _db.session.flush()
        suite = TestSuite(name=f"Suite {label}", version_id=version.id, created_by_id=author_id)
        _db.session.add(suite)
        _db.session.flush()
        feature = TestFeature(name=f"Feature {label}", test_suite_id=suite.id,
                              created_by_id=author_id)
        _db.session.add(feature)
        _db.session.flush()
        scenario = TestScenario(name=f"Scenario {label}", test_feature_id=feature.id,
                                created_by_id=author_id)
        _db.session.add(scenario)
        _db.session.flush()
        step = TestStep(step_order=1, action="Open the login page", test_scenario_id=scenario.id)
        _db.session.add(step)
        _db.session.commit()
        return SimpleNamespace(
            company=company, project=project, platform=platform, version=version,
            suite=suite, feature=feature, scenario=scenario, step=step,
            ids=(company.id, project.id, platform.id, version.id,
                 suite.id, feature.id, scenario.id, step.id),
        )
    return _make
