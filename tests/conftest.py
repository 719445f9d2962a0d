"""
Shared pytest fixtures for the Feature Catalogue test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - catalogue: a small seeded catalogue (ACM with one group, FEE with two features)
"""

import pytest

from feature_catalogue import create_app
from feature_catalogue.models import db as _db
from feature_catalogue.models.catalogue import ComponentAnchor, FeatureEntry, compose_unique_id


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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


# ── Builders ─────────────────────────────────────────────────────────────


def _make_component(code, name=None):
    """Insert a component anchor and commit."""
    _db.session.add(ComponentAnchor(code, name or f"{code} component").to_entry())
    _db.session.commit()


def _make_feature(component, group, feature_id, *, name=None, group_name="Group",
                 component_name=None, **fields):
    """Insert a real feature row and commit; returns its unique_id."""
    uid = fields.pop("unique_id", compose_unique_id(component, group, feature_id))
    _db.session.add(FeatureEntry(
        unique_id=uid,
        component_code=component,
        component_name=component_name or f"{component} component",
        feature_group_code=group,
        feature_group_name=group_name,
        feature_id=feature_id,
        feature_name=name or f"Feature {uid}",
        description=fields.pop("description", f"Description of {uid}"),
        as_a=fields.pop("as_a", "Citizen"),
        i_want=fields.pop("i_want", ""),
        expected_outcomes=fields.pop("expected_outcomes", ""),
        service_type=fields.pop("service_type", "Cross-cutting"),
    ))
    _db.session.commit()
    return uid


@pytest.fixture()
def catalogue():
    """ACM (anchor + group 010 "Access" with 001) and FEE (group 010 "Fees" with 001, 002)."""
    _make_component("ACM", "Access Management")
    _make_feature("ACM", "010", "001", name="Login", group_name="Access", component_name="Access Management")
    _make_feature("FEE", "010", "001", name="Pay fee", group_name="Fees", component_name="Fees")
    _make_feature("FEE", "010", "002", name="Refund fee", group_name="Fees", component_name="Fees",
                 as_a="Citizen, Caseworker", i_want="to get a refund", expected_outcomes="money back")
    return {"components": ["ACM", "FEE"]}
