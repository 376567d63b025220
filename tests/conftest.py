"""
Shared pytest fixtures for the Repair Workflow Service test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - org / other_org: two organisations for isolation tests
    - health_check: health check with red / amber / green findings
    - labour_code / mot_code / supplier / reasons: reference data
    - auth_headers: factory for Bearer headers
"""

from decimal import Decimal

import pytest

from app import create_app
from app.models import db as _db
from app.models.catalog import LabourCode, OutcomeReason, Supplier
from app.models.health_check import CheckResult, HealthCheck
from app.models.organization import Organization
from app.services.jwt_service import generate_access_token


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


# ── Auth ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def auth_headers():
    """Factory: ``auth_headers(org_id, role="service_advisor", user_id=7)``."""

    def _make(org_id, role="service_advisor", user_id=7):
        token = generate_access_token(user_id=user_id, org_id=org_id, role=role)
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def headers(org, auth_headers):
    """Service advisor of ``org``."""
    return auth_headers(org.id)


# ── Reference data ───────────────────────────────────────────────────────


def _org(name, slug, vat_rate=None):
    org = Organization(name=name, slug=slug, vat_rate=vat_rate)
    _db.session.add(org)
    _db.session.flush()
    return org


@pytest.fixture()
def org():
    org = _org("Acme Motors", "acme-motors")
    _db.session.commit()
    return org


@pytest.fixture()
def other_org():
    org = _org("Rival Garage", "rival-garage")
    _db.session.commit()
    return org


def make_health_check(org_id, findings=None):
    """Create and commit a health check with ``(name, rag)`` findings."""
    if findings is None:
        findings = [
            ("Front brake pads", "red"),
            ("Rear tyres", "amber"),
            ("Wiper blades", "green"),
            ("Front brake discs", "red"),
        ]
    hc = HealthCheck(organization_id=org_id, vehicle_reg="AB12 CDE")
    _db.session.add(hc)
    _db.session.flush()
    for name, rag in findings:
        _db.session.add(CheckResult(health_check_id=hc.id, name=name, rag_status=rag))
    _db.session.commit()
    return hc


@pytest.fixture()
def health_check(org):
    return make_health_check(org.id)


@pytest.fixture()
def health_check_factory():
    """Factory: ``health_check_factory(org_id, [(name, rag), ...])``."""
    return make_health_check


@pytest.fixture()
def findings(health_check):
    """Check results of ``health_check`` in insertion order."""
    return health_check.check_results.order_by(CheckResult.id).all()


@pytest.fixture()
def labour_code(org):
    code = LabourCode(
        organization_id=org.id, code="LAB", description="General labour",
        hourly_rate=Decimal("85.00"), is_vat_exempt=False,
    )
    _db.session.add(code)
    _db.session.commit()
    return code


@pytest.fixture()
def mot_code(org):
    code = LabourCode(
        organization_id=org.id, code="MOT", description="MOT test",
        hourly_rate=Decimal("54.85"), is_vat_exempt=True,
    )
    _db.session.add(code)
    _db.session.commit()
    return code


@pytest.fixture()
def supplier(org):
    s = Supplier(organization_id=org.id, name="Parts Direct")
    _db.session.add(s)
    _db.session.commit()
    return s


@pytest.fixture()
def reasons(org):
    """Declined / deleted reasons keyed by a short name."""
    rows = {
        "too_expensive": OutcomeReason(organization_id=org.id, reason_type="declined",
                                       reason="Too expensive"),
        "declined_other": OutcomeReason(organization_id=org.id, reason_type="declined",
                                        reason="Other", is_system=True),
        "duplicate": OutcomeReason(organization_id=org.id, reason_type="deleted",
                                   reason="Duplicate entry"),
        "deleted_other": OutcomeReason(organization_id=org.id, reason_type="deleted",
                                       reason="Other", is_system=True),
    }
    _db.session.add_all(rows.values())
    _db.session.commit()
    return rows


# ── API helpers ──────────────────────────────────────────────────────────


@pytest.fixture()
def create_item(client, health_check, headers):
    """Factory: POST a repair item on ``health_check`` and return its JSON."""

    def _create(name="Brake pads", check_result_ids=None, **extra):
        body = {"name": name, "checkResultIds": check_result_ids or [], **extra}
        rv = client.post(
            f"/api/v1/health-checks/{health_check.id}/repair-items",
            json=body, headers=headers,
        )
        assert rv.status_code == 201, rv.get_json()
        return rv.get_json()

    return _create
