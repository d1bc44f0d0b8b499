# claimflow/fraud/rules.py
"""
Fraud detection rules.

Every rule takes the claim's FraudContext and a ClaimHistoryReader and returns
a RuleHit. Rules never write anything.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from claimflow.core.constants import (
    BACK_PAIN_DIAGNOSIS_CODE, HIGH_RISK_DIAGNOSIS_CODES, CustomerRiskGrade,
)
from claimflow.core.exceptions import InvalidInputError
from claimflow.models.base import round_half_up
from claimflow.models.fraud import FraudContext
from claimflow.storage.claim_store import FRIDAY, MONDAY, ClaimHistoryReader

MONTH_WINDOW = timedelta(days=30)
YEAR_WINDOW = timedelta(days=365)


@dataclass
class RuleHit:
    """Result of evaluating one rule."""
    detected: bool
    score: int = 0
    pattern_code: str = ""
    name: str = ""
    details: str = ""


MISS = RuleHit(detected=False)

Rule = Callable[[FraudContext, ClaimHistoryReader], RuleHit]


def check_context(ctx: FraudContext):
    if ctx.total_amount < 0:
        raise InvalidInputError("total_amount", ctx.total_amount, "must not be negative")
    if ctx.hospitalization_days < 0:
        raise InvalidInputError("hospitalization_days", ctx.hospitalization_days, "must not be negative")
    if not 0 <= ctx.diagnosis_risk_base <= 1:
        raise InvalidInputError("diagnosis_risk_base", ctx.diagnosis_risk_base, "must be between 0 and 1")


def _is_weekend_admission(ctx: FraudContext) -> bool:
    return (
        ctx.treatment_end_date is not None
        and ctx.treatment_start_date.weekday() == FRIDAY
        and ctx.treatment_end_date.weekday() == MONDAY
    )


# ===================
# Full Audit Rules
# ===================

def frequent_claims(ctx, history) -> RuleHit:
    count = history.count_claims(
        ctx.customer_id, ctx.claim_date - MONTH_WINDOW, ctx.claim_date,
        exclude_claim_id=ctx.claim_id,
    )
    if count >= 3:
        return RuleHit(True, 30, "FRD001", "Frequent claims",
                       f"{count} other claims in the last 30 days")
    return MISS


def repeated_diagnosis(ctx, history) -> RuleHit:
    if not ctx.diagnosis_code:
        return MISS
    count = history.count_claims(
        ctx.customer_id, ctx.claim_date - YEAR_WINDOW, ctx.claim_date,
        exclude_claim_id=ctx.claim_id, diagnosis_code=ctx.diagnosis_code,
    )
    high_risk = ctx.diagnosis_code in HIGH_RISK_DIAGNOSIS_CODES
    threshold = 3 if high_risk else 5
    if count >= threshold:
        return RuleHit(True, 40 if high_risk else 25, "FRD002", "Repeated diagnosis",
                       f"{ctx.diagnosis_code} claimed {count} times in 12 months")
    return MISS


def repeated_weekend_admission(ctx, history) -> RuleHit:
    if not _is_weekend_admission(ctx):
        return MISS
    earlier = history.count_weekend_admissions(
        ctx.customer_id, ctx.claim_date, exclude_claim_id=ctx.claim_id
    )
    if earlier >= 1:
        return RuleHit(True, 25, "FRD003", "Weekend admission pattern",
                       f"Friday admission, Monday discharge; {earlier} earlier occurrence(s)")
    return MISS


def high_amount(ctx, history) -> RuleHit:
    if ctx.total_amount >= 10_000_000:
        return RuleHit(True, 25, "FRD004", "High claim amount", f"{ctx.total_amount:,} claimed")
    if ctx.total_amount >= 5_000_000:
        return RuleHit(True, 15, "FRD004", "High claim amount", f"{ctx.total_amount:,} claimed")
    return MISS


def early_claim(ctx, history) -> RuleHit:
    if ctx.coverage_start_date is None:
        return MISS
    months = (ctx.claim_date - ctx.coverage_start_date).days / 30
    if months <= 3:
        return RuleHit(True, 30, "FRD005", "Early claim",
                       f"Filed {months:.1f} months after coverage start")
    if months <= 6:
        return RuleHit(True, 20, "FRD005", "Early claim",
                       f"Filed {months:.1f} months after coverage start")
    return MISS


def hospital_concentration(ctx, history) -> RuleHit:
    if not ctx.hospital_name:
        return MISS
    count = history.count_claims(
        ctx.customer_id, ctx.claim_date - YEAR_WINDOW, ctx.claim_date,
        exclude_claim_id=ctx.claim_id, hospital_name=ctx.hospital_name,
    )
    if count >= 10:
        score = 30
    elif count >= 5:
        score = 15
    else:
        return MISS
    return RuleHit(True, score, "FRD006", "Hospital concentration",
                   f"{count} claims at {ctx.hospital_name} in 12 months")


def diagnosis_base_risk(ctx, history) -> RuleHit:
    if ctx.diagnosis_risk_base >= 0.3:
        return RuleHit(True, round_half_up(ctx.diagnosis_risk_base * 30), "FRD_DIAG",
                       "High-risk diagnosis", f"Diagnosis risk base {ctx.diagnosis_risk_base:.2f}")
    return MISS


def customer_risk(ctx, history) -> RuleHit:
    grade = ctx.customer_risk_grade
    if grade == CustomerRiskGrade.HIGH_RISK.value or ctx.customer_risk_score >= 70:
        score = 25
    elif grade == CustomerRiskGrade.WATCH.value or ctx.customer_risk_score >= 40:
        score = 15
    else:
        return MISS
    return RuleHit(True, score, "FRD_CUST", "Customer risk tier",
                   f"Grade {grade}, risk score {ctx.customer_risk_score}")


def hospitalization_outlier(ctx, history) -> RuleHit:
    standard = ctx.standard_treatment_days
    if standard and ctx.hospitalization_days >= standard * 2:
        return RuleHit(True, 20, "FRD_DAYS", "Hospitalization days outlier",
                       f"{ctx.hospitalization_days} days against a standard of {standard}")
    return MISS


# ===================
# Intake Rules
# ===================

def intake_diagnosis_risk(ctx, history) -> RuleHit:
    if ctx.diagnosis_risk_base > 0.3:
        # whole points, .5 rounds up like the payout amounts
        return RuleHit(True, round_half_up(ctx.diagnosis_risk_base * 20), "DIAG_RISK",
                       "High-risk diagnosis", f"Diagnosis risk base {ctx.diagnosis_risk_base:.2f}")
    return MISS


def intake_high_amount(ctx, history) -> RuleHit:
    if ctx.total_amount > 5_000_000:
        return RuleHit(True, 15, "FRD004", "High claim amount", f"{ctx.total_amount:,} claimed")
    return MISS


def intake_recent_claims(ctx, history) -> RuleHit:
    count = history.count_claims(
        ctx.customer_id, ctx.claim_date - MONTH_WINDOW, ctx.claim_date,
        exclude_claim_id=ctx.claim_id,
    )
    if count >= 2:
        return RuleHit(True, 25, "FRD001", "Recent claims", f"{count} claims in the last 30 days")
    return MISS


def intake_back_pain_repeat(ctx, history) -> RuleHit:
    if ctx.diagnosis_code != BACK_PAIN_DIAGNOSIS_CODE:
        return MISS
    count = history.count_claims(
        ctx.customer_id, ctx.claim_date - YEAR_WINDOW, ctx.claim_date,
        exclude_claim_id=ctx.claim_id, diagnosis_code=ctx.diagnosis_code,
    )
    if count >= 3:
        return RuleHit(True, 35, "FRD002", "Repeated back-pain claims",
                       f"{count} {BACK_PAIN_DIAGNOSIS_CODE} claims in 12 months")
    return MISS


def intake_weekend_admission(ctx, history) -> RuleHit:
    if _is_weekend_admission(ctx):
        return RuleHit(True, 20, "FRD003", "Weekend admission", "Friday admission, Monday discharge")
    return MISS


def intake_duplicate(ctx, history) -> RuleHit:
    if history.has_duplicate(ctx.customer_id, ctx.diagnosis_code, ctx.hospital_name,
                             ctx.treatment_start_date, exclude_claim_id=ctx.claim_id):
        return RuleHit(True, 50, "FRD008", "Duplicate claim",
                       "Same diagnosis, hospital and treatment start already on file")
    return MISS
