# claimflow/adjudication/calculator.py
"""
Payout calculation for the three coverage kinds.

Pure functions: every input comes in as an argument and every result goes out
as a PayoutLineItem. Amounts are whole currency units.
"""

from typing import Optional

from claimflow.core.constants import CalculationKind
from claimflow.core.exceptions import InvalidInputError
from claimflow.models.adjudication import PayoutLineItem, TermReference
from claimflow.models.base import round_half_up


# ===================
# Input Guards
# ===================

def _require_non_negative(field: str, value):
    if value is None:
        raise InvalidInputError(field, value, "value is required")
    if value < 0:
        raise InvalidInputError(field, value, "must not be negative")


def _require_rate(field: str, value):
    if value is None or value < 0 or value > 100:
        raise InvalidInputError(field, value, "rate must be between 0 and 100")


def _money(amount: int) -> str:
    return f"{amount:,}"


def _rate(value) -> str:
    return f"{value:g}%"


def _cite(term_reference: Optional[TermReference], calculation: str) -> Optional[TermReference]:
    if term_reference is None:
        return None
    if term_reference.formula:
        return term_reference
    return term_reference.model_copy(update={"formula": calculation})


def _apply_reduction(amount: int, reduction_rate) -> int:
    """Multiplicative reduction used by the daily and lump-sum kinds."""
    if reduction_rate <= 0:
        return amount
    return round_half_up(amount * (1 - reduction_rate / 100))


# ===================
# Real Loss
# ===================

def calculate_real_loss(
    claimed_amount: int,
    deductible_amount: int = 0,
    deductible_rate: float = 0,
    payout_rate: float = 100,
    reduction_rate: float = 0,
    limit: Optional[int] = None,
    used_amount: int = 0,
    item: str = "Real-loss reimbursement",
    coverage_code: Optional[str] = None,
    term_reference: Optional[TermReference] = None,
) -> PayoutLineItem:
    """
    Reimbursement of actual cost minus deductible, at the payout rate.

    The deductible is the larger of the flat amount and the rate-based amount.
    A reduction period takes its percentage off the approved amount, and a
    limit caps the result at whatever remains of it.
    """
    _require_non_negative("claimed_amount", claimed_amount)
    _require_non_negative("deductible_amount", deductible_amount)
    _require_rate("deductible_rate", deductible_rate)
    _require_rate("payout_rate", payout_rate)
    _require_rate("reduction_rate", reduction_rate)
    _require_non_negative("used_amount", used_amount)
    if limit is not None:
        _require_non_negative("limit", limit)

    rate_deductible = round_half_up(claimed_amount * deductible_rate / 100)
    deductible = max(deductible_amount, rate_deductible)
    payable = max(0, claimed_amount - deductible)
    approved = round_half_up(payable * payout_rate / 100)

    calculation = f"({_money(claimed_amount)} - {_money(deductible)}) x {_rate(payout_rate)}"
    reasons = []
    if deductible > 0 or payout_rate < 100:
        reasons.append("deductible and payout rate applied")

    if reduction_rate > 0:
        approved -= round_half_up(approved * reduction_rate / 100)
        calculation += f" x {_rate(100 - reduction_rate)} (reduction)"
        reasons.append(f"reduction period {_rate(reduction_rate)} applied")

    if limit is not None:
        remaining = max(0, limit - used_amount)
        if approved > remaining:
            approved = remaining
            calculation += f", capped at remaining limit {_money(remaining)}"
            reasons.append("limit exhausted")

    approved = min(approved, claimed_amount)
    calculation += f" = {_money(approved)}"
    rejected = claimed_amount - approved

    return PayoutLineItem(
        item=item,
        coverage_code=coverage_code,
        calculation_kind=CalculationKind.REAL_LOSS.value,
        claimed_amount=claimed_amount,
        approved_amount=approved,
        rejected_amount=rejected,
        calculation=calculation,
        rejection_reason="; ".join(reasons).capitalize() if rejected > 0 else None,
        term_reference=_cite(term_reference, calculation),
    )


# ===================
# Daily Allowance
# ===================

def calculate_daily_allowance(
    daily_amount: int,
    requested_days: int,
    max_days: int,
    used_days: int = 0,
    reduction_rate: float = 0,
    item: str = "Daily hospitalization allowance",
    coverage_code: Optional[str] = None,
    term_reference: Optional[TermReference] = None,
) -> PayoutLineItem:
    """Fixed amount per hospital day, up to the days left under max_days."""
    _require_non_negative("daily_amount", daily_amount)
    _require_non_negative("requested_days", requested_days)
    _require_non_negative("max_days", max_days)
    _require_non_negative("used_days", used_days)
    _require_rate("reduction_rate", reduction_rate)

    remaining_days = max(0, max_days - used_days)
    payable_days = min(requested_days, remaining_days)
    claimed = daily_amount * requested_days
    approved = _apply_reduction(daily_amount * payable_days, reduction_rate)

    calculation = f"{_money(daily_amount)} x {payable_days} days"
    if reduction_rate > 0:
        calculation += f" x {_rate(100 - reduction_rate)} (reduction)"
    calculation += f" = {_money(approved)}"

    reason = None
    if payable_days < requested_days:
        reason = f"Maximum days exceeded ({used_days}/{max_days} days used)"
    elif reduction_rate > 0 and approved < claimed:
        reason = f"Reduction period {_rate(reduction_rate)} applied"

    return PayoutLineItem(
        item=item,
        coverage_code=coverage_code,
        calculation_kind=CalculationKind.DAILY.value,
        payable_days=payable_days,
        claimed_amount=claimed,
        approved_amount=approved,
        rejected_amount=claimed - approved,
        calculation=calculation,
        rejection_reason=reason,
        term_reference=_cite(term_reference, calculation),
    )


# ===================
# Lump Sum
# ===================

def calculate_lump_sum(
    insured_amount: int,
    reduction_rate: float = 0,
    item: str = "Surgery benefit",
    coverage_code: Optional[str] = None,
    term_reference: Optional[TermReference] = None,
) -> PayoutLineItem:
    """Fixed benefit paid on occurrence, regardless of actual cost."""
    _require_non_negative("insured_amount", insured_amount)
    _require_rate("reduction_rate", reduction_rate)

    approved = _apply_reduction(insured_amount, reduction_rate)

    calculation = f"{_money(insured_amount)}"
    if reduction_rate > 0:
        calculation += f" x {_rate(100 - reduction_rate)} (reduction)"
    calculation += f" = {_money(approved)}"

    return PayoutLineItem(
        item=item,
        coverage_code=coverage_code,
        calculation_kind=CalculationKind.LUMP_SUM.value,
        claimed_amount=insured_amount,
        approved_amount=approved,
        rejected_amount=insured_amount - approved,
        calculation=calculation,
        rejection_reason=f"Reduction period {_rate(reduction_rate)} applied" if approved < insured_amount else None,
        term_reference=_cite(term_reference, calculation),
    )
