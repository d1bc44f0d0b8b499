from datetime import date

import pytest

from claimflow.core.constants import ClaimType, FraudProfile
from claimflow.core.exceptions import InvalidInputError
from claimflow.database.seed import DEMO_POLICY_NUMBER
from claimflow.fraud.scorer import FraudScorer, get_profile
from claimflow.models.claim import ClaimSubmission
from claimflow.models.fraud import FraudContext
from claimflow.services.fraud_service import FraudService


class FakeHistory:
    """Canned claim-history answers."""

    def __init__(self, recent=0, same_diagnosis=0, same_hospital=0, weekend=0, duplicate=False):
        self.recent = recent
        self.same_diagnosis = same_diagnosis
        self.same_hospital = same_hospital
        self.weekend = weekend
        self.duplicate = duplicate

    def count_claims(self, customer_id, since, until, exclude_claim_id=None,
                     diagnosis_code=None, hospital_name=None):
        if diagnosis_code is not None:
            return self.same_diagnosis
        if hospital_name is not None:
            return self.same_hospital
        return self.recent

    def count_weekend_admissions(self, customer_id, until, exclude_claim_id=None):
        return self.weekend

    def has_duplicate(self, customer_id, diagnosis_code, hospital_name, treatment_start_date,
                      exclude_claim_id=None):
        return self.duplicate


def context(**overrides):
    fields = dict(
        customer_id=1,
        claim_date=date(2025, 3, 10),
        treatment_start_date=date(2025, 3, 4),
        treatment_end_date=date(2025, 3, 5),
        hospital_name="Seoul General Hospital",
        diagnosis_code="K35.8",
        hospitalization_days=2,
        total_amount=1_000_000,
        coverage_start_date=date(2020, 1, 1),
        customer_risk_grade="NORMAL",
        customer_risk_score=0,
        diagnosis_risk_base=0.1,
        standard_treatment_days=5,
    )
    fields.update(overrides)
    return FraudContext(**fields)


# Friday 2025-03-07 to Monday 2025-03-10
WEEKEND_STAY = dict(treatment_start_date=date(2025, 3, 7), treatment_end_date=date(2025, 3, 10))


# ===================
# Intake Profile
# ===================

def test_intake_clean_claim_scores_zero():
    analysis = FraudScorer(FakeHistory()).score(context(), FraudProfile.INTAKE)

    assert analysis.score == 0
    assert analysis.risk_level == "LOW"
    assert analysis.recommendation == "AUTO_APPROVE"
    assert analysis.patterns == []


def test_intake_diagnosis_risk_is_scaled_by_twenty():
    analysis = FraudScorer(FakeHistory()).score(
        context(diagnosis_code="M54.5", diagnosis_risk_base=0.5), FraudProfile.INTAKE
    )

    assert analysis.score == 10
    assert analysis.pattern_codes == ["DIAG_RISK"]
    assert analysis.recommendation == "AUTO_APPROVE"


def test_intake_diagnosis_risk_rounds_half_up_to_whole_points():
    scorer = FraudScorer(FakeHistory())

    # 0.33 * 20 = 6.6, 0.325 * 20 = 6.5
    assert scorer.score(context(diagnosis_risk_base=0.33), FraudProfile.INTAKE).score == 7
    assert scorer.score(context(diagnosis_risk_base=0.325), FraudProfile.INTAKE).score == 7
    assert scorer.score(context(diagnosis_risk_base=0.3), FraudProfile.INTAKE).score == 0


def test_intake_weekend_admission_needs_manual_review():
    analysis = FraudScorer(FakeHistory()).score(
        context(diagnosis_code="M54.5", diagnosis_risk_base=0.5, **WEEKEND_STAY), FraudProfile.INTAKE
    )

    assert analysis.score == 30
    assert analysis.risk_level == "MEDIUM"
    assert analysis.recommendation == "MANUAL_REVIEW"


def test_intake_duplicate_claim_is_critical():
    history = FakeHistory(duplicate=True)

    analysis = FraudScorer(history).score(
        context(diagnosis_code="M54.5", diagnosis_risk_base=0.5, **WEEKEND_STAY), FraudProfile.INTAKE
    )

    assert analysis.score == 80
    assert analysis.risk_level == "CRITICAL"
    assert analysis.recommendation == "REJECT"
    assert "FRD008" in analysis.pattern_codes


def test_low_and_medium_risk_pass_the_fraud_check():
    scorer = FraudScorer(FakeHistory())
    risky = dict(diagnosis_code="M54.5", diagnosis_risk_base=0.5)

    low = scorer.score(context(), FraudProfile.INTAKE)
    medium = scorer.score(context(**risky, **WEEKEND_STAY), FraudProfile.INTAKE)
    critical = FraudScorer(FakeHistory(duplicate=True)).score(
        context(**risky, **WEEKEND_STAY), FraudProfile.INTAKE
    )

    assert (low.risk_level, low.passed) == ("LOW", True)
    assert (medium.risk_level, medium.passed) == ("MEDIUM", True)
    assert (critical.risk_level, critical.passed) == ("CRITICAL", False)


def test_intake_back_pain_repeat():
    analysis = FraudScorer(FakeHistory(same_diagnosis=3)).score(
        context(diagnosis_code="M54.5", diagnosis_risk_base=0.2), FraudProfile.INTAKE
    )

    assert analysis.score == 35
    assert analysis.pattern_codes == ["FRD002"]


# ===================
# Full Audit Profile
# ===================

def test_full_audit_frequency_rule_contributes_thirty():
    analysis = FraudScorer(FakeHistory(recent=3)).score(context(), FraudProfile.FULL_AUDIT)

    assert analysis.score == 30
    assert analysis.pattern_codes == ["FRD001"]
    assert analysis.risk_level == "MEDIUM"
    assert analysis.recommendation == "REVIEW"


def test_full_audit_high_risk_diagnosis_repeat_threshold():
    scorer = FraudScorer(FakeHistory(same_diagnosis=3))

    high_risk = scorer.score(context(diagnosis_code="M51.1", diagnosis_risk_base=0.2), FraudProfile.FULL_AUDIT)
    ordinary = scorer.score(context(diagnosis_code="K35.8"), FraudProfile.FULL_AUDIT)

    assert high_risk.score == 40
    assert ordinary.score == 0


def test_full_audit_weekend_pattern_requires_earlier_occurrence():
    first = FraudScorer(FakeHistory(weekend=0)).score(context(**WEEKEND_STAY), FraudProfile.FULL_AUDIT)
    repeat = FraudScorer(FakeHistory(weekend=1)).score(context(**WEEKEND_STAY), FraudProfile.FULL_AUDIT)

    assert first.score == 0
    assert repeat.score == 25


@pytest.mark.parametrize("amount,expected", [(4_999_999, 0), (5_000_000, 15), (10_000_000, 25)])
def test_full_audit_high_amount_tiers(amount, expected):
    analysis = FraudScorer(FakeHistory()).score(context(total_amount=amount), FraudProfile.FULL_AUDIT)

    assert analysis.score == expected


@pytest.mark.parametrize("coverage_start,expected", [
    (date(2025, 1, 1), 30),
    (date(2024, 10, 1), 20),
    (date(2024, 1, 1), 0),
])
def test_full_audit_early_claim(coverage_start, expected):
    analysis = FraudScorer(FakeHistory()).score(context(coverage_start_date=coverage_start),
                                                FraudProfile.FULL_AUDIT)

    assert analysis.score == expected


def test_full_audit_customer_and_outlier_rules():
    analysis = FraudScorer(FakeHistory()).score(
        context(customer_risk_grade="WATCH", hospitalization_days=10, standard_treatment_days=5),
        "FULL_AUDIT",
    )

    assert analysis.score == 35
    assert set(analysis.pattern_codes) == {"FRD_CUST", "FRD_DAYS"}


def test_full_audit_score_is_clamped():
    history = FakeHistory(recent=5, same_diagnosis=5, same_hospital=12, weekend=2)
    ctx = context(
        diagnosis_code="M54.5", diagnosis_risk_base=0.9, total_amount=12_000_000,
        coverage_start_date=date(2025, 2, 1), customer_risk_grade="HIGH_RISK",
        hospitalization_days=20, standard_treatment_days=3, **WEEKEND_STAY,
    )

    analysis = FraudScorer(history).score(ctx, FraudProfile.FULL_AUDIT)

    assert analysis.score == 100
    assert analysis.risk_level == "CRITICAL"
    assert analysis.recommendation == "REJECT"
    assert len(analysis.patterns) == 9


def test_score_never_decreases_as_patterns_accumulate():
    scorer_inputs = [
        (FakeHistory(), context()),
        (FakeHistory(recent=3), context()),
        (FakeHistory(recent=3), context(total_amount=6_000_000)),
        (FakeHistory(recent=3), context(total_amount=6_000_000, customer_risk_score=75)),
        (FakeHistory(recent=3, same_hospital=10),
         context(total_amount=6_000_000, customer_risk_score=75)),
    ]

    scores = [FraudScorer(h).score(c, FraudProfile.FULL_AUDIT).score for h, c in scorer_inputs]

    assert scores == sorted(scores)
    assert all(0 <= s <= 100 for s in scores)


def test_profiles_use_different_thresholds():
    assert get_profile("INTAKE").risk_level(45).value == "HIGH"
    assert get_profile("FULL_AUDIT").risk_level(45).value == "MEDIUM"


def test_negative_amount_is_rejected():
    with pytest.raises(InvalidInputError):
        FraudScorer(FakeHistory()).score(context(total_amount=-1), FraudProfile.FULL_AUDIT)


# ===================
# Against Stored History
# ===================

def test_fourth_claim_in_thirty_days_trips_frequency_rule(database, claim_service):
    claim_ids = []
    for day in (1, 8, 15, 22):
        result = claim_service.submit(ClaimSubmission(
            policy_number=DEMO_POLICY_NUMBER,
            claim_type=ClaimType.OUTPATIENT,
            claim_date=date(2025, 3, day),
            treatment_start_date=date(2025, 3, day),
            hospital_name=f"Clinic {day}",
            diagnosis_code="J18.9",
            insured_expense=50_000,
        ))
        claim_ids.append(result.claim_id)

    analysis = FraudService(database).detect(claim_ids[-1])

    assert "FRD001" in analysis.pattern_codes
    frequency = next(p for p in analysis.patterns if p.code == "FRD001")
    assert frequency.score == 30
    assert analysis.score == 30

    results = FraudService(database).list_results(claim_ids[-1])
    assert len(results) == 1
    assert results[0]["profile"] == "FULL_AUDIT"
    assert results[0]["fraud_score"] == 30
