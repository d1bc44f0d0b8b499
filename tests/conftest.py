"""
Test configuration for ClaimFlow.

Ensures the project root is on sys.path so tests can import `claimflow.*`
modules, and builds a fresh seeded in-memory database per test.
"""
import os
import sys
from datetime import date

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from sqlalchemy import select  # noqa: E402

from claimflow.core.constants import ClaimType  # noqa: E402
from claimflow.database.seed import DEMO_POLICY_NUMBER, DEMO_PRODUCT_CODE, demo_coverages, seed_database  # noqa: E402
from claimflow.database.session import Database, set_database  # noqa: E402
from claimflow.database.tables import Customer, Policy, User  # noqa: E402
from claimflow.models.claim import ClaimSubmission  # noqa: E402
from claimflow.services.approval_service import ApprovalService  # noqa: E402
from claimflow.services.claim_service import ClaimService  # noqa: E402


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    with db.session_scope() as session:
        seed_database(session)
    set_database(db)
    yield db
    set_database(None)
    db.drop_all()
    db.engine.dispose()


@pytest.fixture
def users(database):
    """user_code -> user id for the seeded directory."""
    with database.session_scope() as session:
        return {u.user_code: u.id for u in session.scalars(select(User))}


@pytest.fixture
def claim_service(database):
    return ClaimService(database)


@pytest.fixture
def approval_service(database):
    return ApprovalService(database)


@pytest.fixture
def make_policy(database):
    """Create a policy with the demo coverage set; keyword overrides go onto the policy row."""
    def _make(policy_number, customer_overrides=None, **overrides):
        with database.session_scope() as session:
            customer = Customer(name=f"Customer {policy_number}", **(customer_overrides or {}))
            session.add(customer)
            session.flush()
            fields = dict(
                policy_number=policy_number,
                customer_id=customer.id,
                product_code=DEMO_PRODUCT_CODE,
                coverage_start_date=date(2020, 1, 1),
                coverage_end_date=date(2040, 12, 31),
            )
            fields.update(overrides)
            policy = Policy(**fields)
            policy.coverages = demo_coverages()
            session.add(policy)
            session.flush()
            return policy.id
    return _make


@pytest.fixture
def submission():
    """Build a hospitalization submission against the demo policy."""
    def _build(**overrides):
        fields = dict(
            policy_number=DEMO_POLICY_NUMBER,
            claim_type=ClaimType.HOSPITALIZATION,
            claim_date=date(2025, 3, 10),
            treatment_start_date=date(2025, 3, 3),
            treatment_end_date=date(2025, 3, 5),
            hospital_name="Seoul General Hospital",
            diagnosis_code="K35.8",
            hospitalization_days=0,
            insured_expense=1_000_000,
        )
        fields.update(overrides)
        return ClaimSubmission(**fields)
    return _build


@pytest.fixture
def pending_claim(claim_service, submission):
    """A 4,000,000 claim left in PENDING_REVIEW by adjudication."""
    result = claim_service.submit(submission(insured_expense=4_000_000))
    assert result.status == "PENDING_REVIEW"
    return result.claim_id


@pytest.fixture
def client(database):
    from fastapi.testclient import TestClient

    from claimflow.core.dependencies import get_db
    from claimflow.main import app

    app.dependency_overrides[get_db] = lambda: database
    yield TestClient(app)
    app.dependency_overrides.clear()
