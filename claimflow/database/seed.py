# claimflow/database/seed.py
"""Reference and demo data for a fresh database."""

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from claimflow.core.constants import (
    CalculationKind, CoverageCode, CustomerRiskGrade, PolicyStatus, PremiumStatus, UserStatus,
)
from claimflow.core.logging import get_logger
from claimflow.database.tables import (
    ApprovalLineTemplate, Customer, DiagnosisCode, Policy, PolicyCoverage, PolicyTerm,
    Role, ScoringModel, SurgeryCode, User,
)

logger = get_logger(__name__)

DEMO_PRODUCT_CODE = "HEALTH_STD"
DEMO_POLICY_NUMBER = "POL-2024-0001"

ROLES = [
    # (code, name, level, permissions)
    ("CLAIM_STAFF", "Claims Staff", 1, ["claims:read", "claims:submit", "approvals:start"]),
    ("TEAM_LEAD", "Team Lead", 2, ["claims:read", "approvals:start", "approvals:process"]),
    ("DEPT_HEAD", "Department Head", 3, ["claims:read", "approvals:start", "approvals:process"]),
]

USERS = [
    # (code, name, department, role, status)
    ("U001", "Alex Park", "Claims", "CLAIM_STAFF", UserStatus.ACTIVE),
    ("U002", "Jordan Lee", "Claims", "TEAM_LEAD", UserStatus.ACTIVE),
    ("U003", "Sam Choi", "Claims", "TEAM_LEAD", UserStatus.ACTIVE),
    ("U004", "Morgan Kang", "Claims Operations", "DEPT_HEAD", UserStatus.ACTIVE),
    ("U005", "Riley Han", "Claims", "TEAM_LEAD", UserStatus.INACTIVE),
]

TEAM_LEAD_STEP = {"step": 1, "role_code": "TEAM_LEAD", "name": "Team lead review"}
DEPT_HEAD_STEP = {"step": 2, "role_code": "DEPT_HEAD", "name": "Department head approval"}

TEMPLATES = [
    {
        "template_code": "FRAUD_REVIEW",
        "template_name": "Suspected fraud review",
        "fraud_score_threshold": 40,
        "approval_steps": [TEAM_LEAD_STEP, DEPT_HEAD_STEP],
        "priority": 10,
    },
    {
        "template_code": "HIGH_AMOUNT",
        "template_name": "High amount two-step approval",
        "min_amount": 3_000_001,
        "approval_steps": [TEAM_LEAD_STEP, DEPT_HEAD_STEP],
        "priority": 20,
    },
    {
        "template_code": "OUTPATIENT_AUTO",
        "template_name": "Small outpatient claims",
        "claim_type": "OUTPATIENT",
        "max_amount": 300_000,
        "approval_steps": [],
        "priority": 30,
        "is_auto_approve": True,
    },
    {
        "template_code": "STANDARD",
        "template_name": "Standard team lead approval",
        "approval_steps": [TEAM_LEAD_STEP],
        "priority": 100,
    },
]

DIAGNOSES = [
    # (code, name, fraud risk base, standard treatment days)
    ("K35.8", "Acute appendicitis", 0.1, 5),
    ("J18.9", "Pneumonia, unspecified", 0.1, 7),
    ("K80.2", "Gallstones without cholecystitis", 0.15, 4),
    ("S72.0", "Fracture of neck of femur", 0.2, 14),
    ("M54.5", "Low back pain", 0.5, 3),
    ("M51.1", "Lumbar disc disorder with radiculopathy", 0.45, 7),
    ("S13.4", "Sprain of cervical spine", 0.4, 3),
]

SURGERIES = [
    # (code, name, classification tier)
    ("S0401", "Appendectomy", 2),
    ("S0512", "Laparoscopic cholecystectomy", 3),
    ("S0733", "Hip replacement", 4),
]

TERMS = [
    {
        "term_code": "HOSP_INS",
        "article_number": "Article 3",
        "clause_number": "(1)",
        "title": "Hospitalization medical expenses (insured)",
        "content": "The company pays insured hospitalization expenses after the deductible, "
                   "up to the annual limit stated in the schedule.",
        "calculation_formula": "(claimed - deductible) x payout rate",
        "applies_to": ["HOSP_INS"],
    },
    {
        "term_code": "HOSP_UNINS",
        "article_number": "Article 3",
        "clause_number": "(2)",
        "title": "Hospitalization medical expenses (uninsured)",
        "content": "Uninsured hospitalization expenses are paid at the payout rate after the "
                   "greater of the fixed deductible and the deductible rate.",
        "applies_to": ["HOSP_UNINS"],
    },
    {
        "term_code": "HOSP_DAILY",
        "article_number": "Article 5",
        "title": "Daily hospitalization allowance",
        "content": "A fixed daily amount is paid for each day of hospitalization up to the "
                   "maximum number of days per policy year.",
        "summary": "Daily amount x payable days, capped by remaining days.",
        "applies_to": ["HOSP_DAILY"],
    },
    {
        "term_code": "SURGERY",
        "article_number": "Article 7",
        "title": "Surgery benefit",
        "content": "A lump sum determined by the surgery classification tier is paid once "
                   "per qualifying operation.",
        "applies_to": ["SURGERY"],
    },
    {
        "term_code": "OUTPATIENT",
        "article_number": "Article 4",
        "title": "Outpatient medical expenses",
        "content": "Outpatient expenses are paid per visit after the deductible, up to the "
                   "per-occurrence limit.",
        "applies_to": ["OUT_INS", "OUT_UNINS"],
    },
]

SCORING_MODELS = [
    # (code, name, deductible variation, confidence base, default, sort order)
    ("BASELINE", "Baseline", 0.0, 85, True, 1),
    ("CONSERVATIVE", "Conservative", 0.1, 80, False, 2),
    ("LENIENT", "Lenient", -0.1, 75, False, 3),
]


def demo_coverages():
    return [
        PolicyCoverage(coverage_code=CoverageCode.HOSP_INSURED, coverage_name="Hospitalization (insured)",
                       calculation_kind=CalculationKind.REAL_LOSS.value, insured_amount=50_000_000,
                       deductible_amount=100_000, deductible_rate=0, payout_rate=100,
                       annual_limit=50_000_000),
        PolicyCoverage(coverage_code=CoverageCode.HOSP_UNINSURED, coverage_name="Hospitalization (uninsured)",
                       calculation_kind=CalculationKind.REAL_LOSS.value, insured_amount=50_000_000,
                       deductible_amount=200_000, deductible_rate=20, payout_rate=100,
                       annual_limit=50_000_000),
        PolicyCoverage(coverage_code=CoverageCode.HOSP_DAILY, coverage_name="Daily hospitalization allowance",
                       calculation_kind=CalculationKind.DAILY.value, insured_amount=30_000, max_days=180),
        PolicyCoverage(coverage_code=f"{CoverageCode.SURGERY_PREFIX}2", coverage_name="Surgery benefit tier 2",
                       calculation_kind=CalculationKind.LUMP_SUM.value, insured_amount=1_000_000,
                       surgery_classification=2),
        PolicyCoverage(coverage_code=f"{CoverageCode.SURGERY_PREFIX}3", coverage_name="Surgery benefit tier 3",
                       calculation_kind=CalculationKind.LUMP_SUM.value, insured_amount=2_000_000,
                       surgery_classification=3),
        PolicyCoverage(coverage_code=CoverageCode.OUTPATIENT_INSURED, coverage_name="Outpatient (insured)",
                       calculation_kind=CalculationKind.REAL_LOSS.value, insured_amount=250_000,
                       deductible_amount=10_000, deductible_rate=0, payout_rate=100,
                       per_occurrence_limit=250_000),
        PolicyCoverage(coverage_code=CoverageCode.OUTPATIENT_UNINSURED, coverage_name="Outpatient (uninsured)",
                       calculation_kind=CalculationKind.REAL_LOSS.value, insured_amount=200_000,
                       deductible_amount=30_000, deductible_rate=20, payout_rate=100,
                       per_occurrence_limit=200_000),
    ]


def seed_reference_data(session: Session):
    """Roles, users, templates, diagnoses, surgeries, terms and scoring models."""
    roles = {}
    for code, name, level, permissions in ROLES:
        role = Role(role_code=code, role_name=name, level=level, permissions=permissions)
        session.add(role)
        roles[code] = role
    session.flush()

    for code, name, department, role_code, status in USERS:
        session.add(User(user_code=code, name=name, department=department,
                         role_id=roles[role_code].id, status=status.value))

    for template in TEMPLATES:
        session.add(ApprovalLineTemplate(**template))

    for code, name, risk, days in DIAGNOSES:
        session.add(DiagnosisCode(code=code, name=name, fraud_risk_base=risk, standard_treatment_days=days))

    for code, name, tier in SURGERIES:
        session.add(SurgeryCode(code=code, name=name, classification=tier))

    for term in TERMS:
        session.add(PolicyTerm(product_code=DEMO_PRODUCT_CODE, **term))

    for code, name, variation, confidence, is_default, order in SCORING_MODELS:
        session.add(ScoringModel(model_code=code, model_name=name, deductible_variation=variation,
                                 confidence_base=confidence, is_default=is_default, sort_order=order))
    session.flush()


def seed_demo_policy(session: Session) -> Policy:
    customer = Customer(name="Demo Customer", birth_date=date(1985, 4, 12), phone="010-0000-0000",
                        risk_grade=CustomerRiskGrade.NORMAL.value, risk_score=10)
    session.add(customer)
    session.flush()

    policy = Policy(
        policy_number=DEMO_POLICY_NUMBER,
        customer_id=customer.id,
        product_code=DEMO_PRODUCT_CODE,
        product_name="Standard Health Plan",
        status=PolicyStatus.ACTIVE.value,
        premium_status=PremiumStatus.PAID.value,
        contract_date=date(2020, 1, 1),
        coverage_start_date=date(2020, 1, 1),
        coverage_end_date=date(2040, 12, 31),
    )
    policy.coverages = demo_coverages()
    session.add(policy)
    session.flush()
    return policy


def seed_database(session: Session, include_demo_policy: bool = True) -> bool:
    """Populate an empty database; returns False when data already exists."""
    if session.scalars(select(Role).limit(1)).first() is not None:
        logger.info("Seed data already present, skipping")
        return False

    seed_reference_data(session)
    if include_demo_policy:
        seed_demo_policy(session)
    logger.info("Seed data loaded", roles=len(ROLES), users=len(USERS), templates=len(TEMPLATES))
    return True
