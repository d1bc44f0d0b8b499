import pytest

from claimflow.adjudication.calculator import (
    calculate_daily_allowance, calculate_lump_sum, calculate_real_loss,
)
from claimflow.core.exceptions import InvalidInputError, ValidationError
from claimflow.models.adjudication import TermReference


def test_real_loss_flat_deductible():
    line = calculate_real_loss(1_200_000, deductible_amount=100_000)

    assert line.approved_amount == 1_100_000
    assert line.rejected_amount == 100_000
    assert line.calculation_kind == "REAL_LOSS"
    assert line.calculation.endswith("= 1,100,000")


def test_real_loss_reduction_period_halves_payout():
    line = calculate_real_loss(1_200_000, deductible_amount=100_000, reduction_rate=50)

    assert line.approved_amount == 550_000
    assert line.rejected_amount == 650_000
    assert "reduction" in line.rejection_reason.lower()


def test_real_loss_uses_larger_of_flat_and_rate_deductible():
    line = calculate_real_loss(1_000_000, deductible_amount=100_000, deductible_rate=20)

    assert line.approved_amount == 800_000


def test_real_loss_capped_by_remaining_limit():
    line = calculate_real_loss(1_000_000, limit=5_000_000, used_amount=4_700_000)

    assert line.approved_amount == 300_000
    assert line.rejected_amount == 700_000
    assert "limit" in line.rejection_reason.lower()


def test_real_loss_exhausted_limit_pays_nothing():
    line = calculate_real_loss(500_000, limit=1_000_000, used_amount=1_000_000)

    assert line.approved_amount == 0
    assert line.rejected_amount == 500_000


@pytest.mark.parametrize("claimed,deductible,rate,payout,reduction", [
    (1, 0, 0, 100, 0),
    (333_333, 10_000, 15, 90, 0),
    (1_234_567, 50_000, 10, 80, 30),
    (999, 0, 33.3, 70, 50),
    (50_000, 100_000, 0, 100, 0),
])
def test_real_loss_amounts_balance(claimed, deductible, rate, payout, reduction):
    line = calculate_real_loss(claimed, deductible_amount=deductible, deductible_rate=rate,
                               payout_rate=payout, reduction_rate=reduction)

    assert line.approved_amount + line.rejected_amount == claimed
    assert 0 <= line.approved_amount <= claimed


def test_real_loss_is_repeatable():
    args = dict(claimed_amount=777_777, deductible_amount=20_000, deductible_rate=10, reduction_rate=50)

    assert calculate_real_loss(**args) == calculate_real_loss(**args)


def test_negative_claim_rejected():
    with pytest.raises(InvalidInputError) as exc:
        calculate_real_loss(-1)

    assert isinstance(exc.value, ValidationError)
    assert exc.value.details["field"] == "claimed_amount"


def test_rate_out_of_range_rejected():
    with pytest.raises(InvalidInputError):
        calculate_real_loss(100_000, payout_rate=120)


def test_daily_allowance_within_max_days():
    line = calculate_daily_allowance(30_000, requested_days=5, max_days=180)

    assert line.payable_days == 5
    assert line.approved_amount == 150_000
    assert line.rejected_amount == 0


def test_daily_allowance_stops_at_remaining_days():
    line = calculate_daily_allowance(30_000, requested_days=10, max_days=180, used_days=175)

    assert line.payable_days == 5
    assert line.approved_amount == 150_000
    assert line.rejected_amount == 150_000
    assert "Maximum days" in line.rejection_reason


def test_daily_allowance_zero_when_days_used_up():
    line = calculate_daily_allowance(30_000, requested_days=3, max_days=180, used_days=180)

    assert line.approved_amount == 0
    assert line.payable_days == 0


def test_daily_allowance_scales_linearly():
    one = calculate_daily_allowance(25_000, requested_days=1, max_days=30)
    four = calculate_daily_allowance(25_000, requested_days=4, max_days=30)

    assert four.approved_amount == 4 * one.approved_amount


def test_daily_allowance_with_reduction():
    line = calculate_daily_allowance(30_000, requested_days=3, max_days=180, reduction_rate=50)

    assert line.approved_amount == 45_000
    assert line.rejected_amount == 45_000


def test_lump_sum_pays_fixed_benefit():
    line = calculate_lump_sum(2_000_000)

    assert line.approved_amount == 2_000_000
    assert line.rejection_reason is None


def test_lump_sum_with_reduction():
    line = calculate_lump_sum(1_000_000, reduction_rate=50)

    assert line.approved_amount == 500_000
    assert line.rejected_amount == 500_000


def test_term_reference_gets_calculation_as_formula():
    term = TermReference(article="Article 3 (1)", title="Hospitalization", content="...")

    line = calculate_real_loss(1_200_000, deductible_amount=100_000, term_reference=term)

    assert line.term_reference.article == "Article 3 (1)"
    assert line.term_reference.formula == line.calculation


def test_term_reference_keeps_own_formula():
    term = TermReference(article="Article 5", title="Daily", content="...", formula="daily x days")

    line = calculate_daily_allowance(30_000, requested_days=2, max_days=10, term_reference=term)

    assert line.term_reference.formula == "daily x days"
