# claimflow/adjudication/validation.py
"""Policy validity checks for a claim's treatment date."""

from datetime import date

from claimflow.core.constants import PolicyStatus, PremiumStatus
from claimflow.database.tables import Policy
from claimflow.models.adjudication import PolicyValidation


def validate_policy(policy: Policy, treatment_date: date, default_reduction_rate: int) -> PolicyValidation:
    """
    Check the policy against the treatment start date.

    A reduction period is not a failure: it only sets reduction_applies and
    the effective rate. Every other finding lands in issues.
    """
    issues = []

    if policy.status != PolicyStatus.ACTIVE.value:
        issues.append(f"Policy is not active (status {policy.status})")

    if policy.premium_status == PremiumStatus.OVERDUE.value:
        issues.append("Premium payment is overdue")

    if treatment_date < policy.coverage_start_date:
        issues.append(f"Treatment date {treatment_date} is before coverage start {policy.coverage_start_date}")
    if treatment_date > policy.coverage_end_date:
        issues.append(f"Treatment date {treatment_date} is after coverage end {policy.coverage_end_date}")

    exemption = policy.exemption_end_date is not None and treatment_date <= policy.exemption_end_date
    if exemption:
        issues.append(f"Treatment falls within the exemption period (until {policy.exemption_end_date})")

    reduction = (
        not exemption
        and policy.reduction_end_date is not None
        and treatment_date <= policy.reduction_end_date
    )
    reduction_rate = (policy.reduction_rate or default_reduction_rate) if reduction else 0

    return PolicyValidation(
        policy_found=True,
        is_valid=not issues,
        issues=issues,
        exemption_applies=exemption,
        reduction_applies=reduction,
        reduction_rate=reduction_rate,
        coverage_start_date=policy.coverage_start_date,
        coverage_end_date=policy.coverage_end_date,
    )


def policy_not_found(policy_number: str) -> PolicyValidation:
    return PolicyValidation(
        policy_found=False,
        is_valid=False,
        issues=[f"Policy not found: {policy_number}"],
    )
