from datetime import date

import pytest
from sqlalchemy import func, select

from claimflow.adjudication.coverage import DEFAULT_VARIANTS, ScoringVariant
from claimflow.adjudication.pipeline import ClaimAdjudicator
from claimflow.core.constants import ClaimType, CoverageCode
from claimflow.core.exceptions import (
    ClaimNotFoundError, ConflictError, CoverageLimitExhaustedError, StorageError,
)
from claimflow.database.seed import DEMO_POLICY_NUMBER
from claimflow.database.tables import Claim, ClaimModelResult, Policy, PolicyCoverage


def coverage_usage(database, policy_number, coverage_code):
    with database.session_scope() as session:
        coverage = session.scalars(
            select(PolicyCoverage)
            .join(Policy, Policy.id == PolicyCoverage.policy_id)
            .where(Policy.policy_number == policy_number, PolicyCoverage.coverage_code == coverage_code)
        ).one()
        return coverage.used_annual_amount, coverage.used_days


def claim_count(database):
    with database.session_scope() as session:
        return session.scalar(select(func.count(Claim.id)))


# ===================
# Decision Table
# ===================

def test_low_risk_claim_within_limit_is_auto_approved(database, claim_service, submission):
    result = claim_service.submit(submission(insured_expense=2_000_000, diagnosis_code="M54.5"))

    assert result.status == "APPROVED"
    assert result.fraud.score == 10
    assert result.confidence_score == 90
    assert result.auto_processable is True
    assert result.total_claimed_amount == 2_000_000
    assert result.total_approved_amount == 1_900_000
    assert result.claim_number.startswith("CLM-2025-")


def test_high_amount_goes_to_review_despite_low_score(database, claim_service, submission):
    result = claim_service.submit(submission(insured_expense=4_000_000))

    assert result.status == "PENDING_REVIEW"
    assert result.fraud.score == 0
    assert result.decision == "High amount, needs review"
    assert result.total_approved_amount == 3_900_000


def test_medium_fraud_risk_goes_to_review(claim_service, submission):
    # Friday admission, Monday discharge plus a risky diagnosis
    result = claim_service.submit(submission(
        diagnosis_code="M54.5",
        treatment_start_date=date(2025, 3, 7),
        treatment_end_date=date(2025, 3, 10),
        claim_date=date(2025, 3, 11),
    ))

    assert result.status == "PENDING_REVIEW"
    assert result.ai_recommendation == "MANUAL_REVIEW"
    assert result.confidence_score == 70


def fraud_step_status(result):
    return next(s["status"] for s in result.steps if s["step_name"] == "score_fraud")


def test_fraud_step_warns_only_when_a_human_must_look(claim_service, submission):
    clean = claim_service.submit(submission(insured_expense=2_000_000, diagnosis_code="M54.5"))
    weekend = claim_service.submit(submission(
        diagnosis_code="M54.5",
        hospital_name="Incheon Hospital",
        treatment_start_date=date(2025, 3, 7),
        treatment_end_date=date(2025, 3, 10),
        claim_date=date(2025, 3, 11),
    ))
    duplicate = claim_service.submit(submission(insured_expense=2_000_000, diagnosis_code="M54.5"))

    assert fraud_step_status(clean) == "passed"
    assert (weekend.fraud.recommendation, fraud_step_status(weekend)) == ("MANUAL_REVIEW", "warning")
    assert (duplicate.fraud.recommendation, fraud_step_status(duplicate)) == ("REJECT", "warning")


def test_duplicate_submission_is_held_for_review(claim_service, submission):
    first = claim_service.submit(submission())
    second = claim_service.submit(submission())

    assert first.status == "APPROVED"
    assert second.status == "PENDING_REVIEW"
    assert "FRD008" in second.fraud.pattern_codes


def test_reduction_period_applies_default_rate(make_policy, claim_service, submission):
    make_policy("POL-REDUCED", reduction_end_date=date(2025, 12, 31))

    result = claim_service.submit(submission(policy_number="POL-REDUCED", insured_expense=1_200_000))

    line = result.coverage.items[0]
    assert line.approved_amount == 550_000
    assert line.rejected_amount == 650_000
    assert result.validation.reduction_applies is True
    assert result.validation.reduction_rate == 50
    assert result.status == "APPROVED"
    assert "reduction period 50% applied" in result.decision


def test_exemption_period_rejects_and_persists(database, make_policy, claim_service, submission):
    make_policy("POL-EXEMPT", exemption_end_date=date(2025, 6, 30))

    result = claim_service.submit(submission(policy_number="POL-EXEMPT"))

    assert result.status == "REJECTED"
    assert result.confidence_score == 100
    assert result.validation.exemption_applies is True
    assert result.fraud is None
    assert result.model_results == []
    assert result.claim_id is not None
    assert claim_service.get_claim(result.claim_id).status == "REJECTED"


def test_overdue_premium_rejects(make_policy, claim_service, submission):
    make_policy("POL-OVERDUE", premium_status="OVERDUE")

    result = claim_service.submit(submission(policy_number="POL-OVERDUE"))

    assert result.status == "REJECTED"
    assert any("overdue" in issue.lower() for issue in result.validation.issues)


def test_treatment_outside_coverage_rejects(make_policy, claim_service, submission):
    make_policy("POL-ENDED", coverage_end_date=date(2024, 12, 31))

    result = claim_service.submit(submission(policy_number="POL-ENDED"))

    assert result.status == "REJECTED"
    assert result.validation.exemption_applies is False


def test_unknown_policy_is_rejected_without_a_claim_row(database, claim_service, submission):
    result = claim_service.submit(submission(policy_number="POL-MISSING"))

    assert result.status == "REJECTED"
    assert result.validation.policy_found is False
    assert result.claim_id is None
    assert claim_count(database) == 0


# ===================
# Coverage Lines
# ===================

def test_surgery_claim_adds_lump_sum_and_daily_lines(claim_service, submission):
    result = claim_service.submit(submission(
        claim_type=ClaimType.SURGERY,
        surgery_code="S0401",
        hospitalization_days=3,
        insured_expense=800_000,
        uninsured_expense=300_000,
    ))

    kinds = [item.calculation_kind for item in result.coverage.items]
    assert kinds == ["REAL_LOSS", "REAL_LOSS", "DAILY", "LUMP_SUM"]
    lump_sum = result.coverage.items[-1]
    assert lump_sum.approved_amount == 1_000_000
    assert "Appendectomy" in lump_sum.item
    daily = result.coverage.items[2]
    assert daily.approved_amount == 90_000
    assert daily.term_reference.article == "Article 5"


def test_outpatient_claim_uses_per_occurrence_limit(claim_service, submission):
    result = claim_service.submit(submission(
        claim_type=ClaimType.OUTPATIENT,
        insured_expense=400_000,
    ))

    line = result.coverage.items[0]
    assert line.coverage_code == CoverageCode.OUTPATIENT_INSURED
    assert line.approved_amount == 250_000
    assert line.rejected_amount == 150_000


def test_line_items_cite_policy_terms(claim_service, submission):
    result = claim_service.submit(submission())

    term = result.coverage.items[0].term_reference
    assert term.article == "Article 3 (1)"
    assert term.formula == "(claimed - deductible) x payout rate"


# ===================
# Persistence
# ===================

def test_claim_row_and_snapshot_are_persisted(database, claim_service, submission):
    result = claim_service.submit(submission(insured_expense=4_000_000))

    claim = claim_service.get_claim(result.claim_id)
    assert claim.claim_number == result.claim_number
    assert claim.total_claimed_amount == 4_000_000
    assert claim.total_approved_amount == 3_900_000
    assert claim.total_rejected_amount == 100_000
    assert claim.status == "PENDING_REVIEW"
    assert claim.hold_status == "NONE"
    snapshot = claim.analysis_snapshot
    assert set(snapshot) == {"coverage_analysis", "fraud_analysis", "validation", "steps"}
    assert snapshot["coverage_analysis"]["items"][0]["approved_amount"] == 3_900_000
    assert [s["step_name"] for s in snapshot["steps"]] == [
        "validate_policy", "analyze_coverage", "score_fraud", "decide",
    ]
    assert claim_service.get_by_number(result.claim_number).id == result.claim_id


def test_one_result_row_per_scoring_variant(claim_service, submission):
    result = claim_service.submit(submission(insured_expense=1_000_000, uninsured_expense=2_000_000))

    rows = claim_service.get_model_results(result.claim_id)
    assert [r.model_code for r in rows] == ["BASELINE", "CONSERVATIVE", "LENIENT"]
    assert rows[0].is_default is True
    assert rows[0].total_approved == result.total_approved_amount
    # Uninsured deductible rate 20% is perturbed by each variant
    assert rows[1].total_approved < rows[0].total_approved < rows[2].total_approved


def test_claim_numbers_are_sequential(claim_service, submission):
    first = claim_service.submit(submission(hospital_name="A"))
    second = claim_service.submit(submission(hospital_name="B"))

    assert first.claim_number == "CLM-2025-00001"
    assert second.claim_number == "CLM-2025-00002"


def test_auto_approval_charges_usage_once(database, claim_service, submission):
    claim_service.submit(submission(insured_expense=2_000_000, hospitalization_days=4))

    used_amount, _ = coverage_usage(database, DEMO_POLICY_NUMBER, CoverageCode.HOSP_INSURED)
    _, used_days = coverage_usage(database, DEMO_POLICY_NUMBER, CoverageCode.HOSP_DAILY)
    assert used_amount == 1_900_000
    assert used_days == 4


def test_pending_claim_does_not_charge_usage(database, claim_service, submission):
    claim_service.submit(submission(insured_expense=4_000_000))

    used_amount, _ = coverage_usage(database, DEMO_POLICY_NUMBER, CoverageCode.HOSP_INSURED)
    assert used_amount == 0


def test_storage_failure_leaves_no_partial_claim(database, claim_service, submission, monkeypatch):
    from claimflow.storage.policy_store import PolicyStore

    def broken_charge(self, items):
        raise StorageError("charge_usage", "disk full")

    monkeypatch.setattr(PolicyStore, "charge_line_items", broken_charge)

    with pytest.raises(StorageError):
        claim_service.submit(submission(insured_expense=2_000_000))

    assert claim_count(database) == 0


def test_limit_taken_during_submit_is_a_conflict(database, claim_service, submission, monkeypatch):
    from claimflow.storage.policy_store import PolicyStore

    def exhausted(self, items):
        raise CoverageLimitExhaustedError(1, 1_900_000, 0, "currency units")

    monkeypatch.setattr(PolicyStore, "charge_line_items", exhausted)

    with pytest.raises(ConflictError) as exc_info:
        claim_service.submit(submission(insured_expense=2_000_000))

    assert exc_info.value.http_status == 409
    assert exc_info.value.details["requested"] == 1_900_000
    assert claim_count(database) == 0


def test_fraud_check_flag_is_persisted(database, claim_service, submission):
    clean = claim_service.submit(submission(diagnosis_code="M54.5"))
    repeat = claim_service.submit(submission(diagnosis_code="M54.5"))

    with database.session_scope() as session:
        assert session.get(Claim, clean.claim_id).fraud_check_passed is True
        assert session.get(Claim, repeat.claim_id).fraud_check_passed is False
    assert repeat.fraud.risk_level == "CRITICAL"


def test_list_claims_filters_and_paginates(claim_service, submission):
    claim_service.submit(submission(hospital_name="A"))
    claim_service.submit(submission(hospital_name="B", insured_expense=4_000_000))
    claim_service.submit(submission(
        hospital_name="C", claim_type=ClaimType.OUTPATIENT, insured_expense=90_000,
        claim_date=date(2025, 6, 1), treatment_start_date=date(2025, 5, 30), treatment_end_date=None,
    ))

    everything = claim_service.list_claims()
    pending = claim_service.list_claims(status="PENDING_REVIEW")
    outpatient = claim_service.list_claims(claim_type="OUTPATIENT")
    page = claim_service.list_claims(skip=1, limit=1)

    assert everything.total == 3
    assert pending.total == 1
    assert outpatient.total == 1
    assert page.total == 3 and len(page.claims) == 1


def test_missing_claim_raises(claim_service):
    with pytest.raises(ClaimNotFoundError):
        claim_service.get_claim(999)


# ===================
# Pipeline Without Persistence
# ===================

def test_adjudicator_runs_without_writing(database, submission):
    with database.session_scope() as session:
        result = ClaimAdjudicator(session, variants=list(DEFAULT_VARIANTS)).adjudicate(
            submission(insured_expense=2_000_000)
        )
        stored = session.scalar(select(func.count(ClaimModelResult.id)))

    assert result.status == "APPROVED"
    assert result.claim_id is None
    assert len(result.model_results) == 3
    assert stored == 0


def test_non_default_variant_list_promotes_first(database, submission):
    variants = [ScoringVariant("ONLY", "Only variant", 0.0, 80)]

    with database.session_scope() as session:
        result = ClaimAdjudicator(session, variants=variants).adjudicate(submission())

    assert result.coverage.model_code == "ONLY"
    assert result.coverage.is_default is True
