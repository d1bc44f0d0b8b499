# claimflow/adjudication/coverage.py
"""Coverage analysis: maps claim facts onto the policy's coverage lines."""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from claimflow.adjudication.calculator import (
    calculate_daily_allowance, calculate_lump_sum, calculate_real_loss,
)
from claimflow.core.constants import CalculationKind, ClaimType, CoverageCode, Recommendation
from claimflow.database.tables import PolicyCoverage, ScoringModel, SurgeryCode
from claimflow.models.adjudication import CoverageAnalysis, PayoutLineItem, PolicyValidation
from claimflow.models.claim import ClaimSubmission
from claimflow.storage.policy_store import TermLookup


@dataclass(frozen=True)
class ScoringVariant:
    """Named parameter set that perturbs the deductible rate."""
    model_code: str
    model_name: str
    deductible_variation: float = 0.0
    confidence_base: int = 80
    is_default: bool = False

    @classmethod
    def from_row(cls, row: ScoringModel) -> "ScoringVariant":
        return cls(
            model_code=row.model_code,
            model_name=row.model_name,
            deductible_variation=row.deductible_variation,
            confidence_base=row.confidence_base,
            is_default=row.is_default,
        )


DEFAULT_VARIANTS = [
    ScoringVariant("BASELINE", "Baseline", 0.0, 85, is_default=True),
    ScoringVariant("CONSERVATIVE", "Conservative", 0.1, 80),
    ScoringVariant("LENIENT", "Lenient", -0.1, 75),
]


def order_variants(variants: List[ScoringVariant]) -> List[ScoringVariant]:
    """Default variant first; its totals are the authoritative ones."""
    if not variants:
        return list(DEFAULT_VARIANTS)
    ordered = sorted(variants, key=lambda v: not v.is_default)
    if not ordered[0].is_default:
        first = ordered[0]
        ordered[0] = ScoringVariant(first.model_code, first.model_name, first.deductible_variation,
                                    first.confidence_base, is_default=True)
    return ordered


class CoverageAnalyzer:
    """Runs the calculator over every applicable coverage line."""

    def __init__(self, term_lookup: Optional[TermLookup] = None, default_daily_max_days: int = 180):
        self.term_lookup = term_lookup
        self.default_daily_max_days = default_daily_max_days

    def _term(self, coverage_code: str):
        if self.term_lookup is None:
            return None
        return self.term_lookup.find_for_coverage(coverage_code)

    @staticmethod
    def _deductible_rate(coverage: PolicyCoverage, variant: ScoringVariant) -> float:
        rate = (coverage.deductible_rate or 0) * (1 + variant.deductible_variation)
        return min(100.0, max(0.0, rate))

    def _real_loss(self, coverage: PolicyCoverage, claimed: int, reduction_rate: int,
                   variant: ScoringVariant, per_occurrence: bool = False) -> PayoutLineItem:
        if per_occurrence:
            limit = coverage.per_occurrence_limit or coverage.insured_amount or None
            used = 0
        else:
            limit = coverage.annual_limit
            used = coverage.used_annual_amount or 0
        line = calculate_real_loss(
            claimed_amount=claimed,
            deductible_amount=coverage.deductible_amount or 0,
            deductible_rate=self._deductible_rate(coverage, variant),
            payout_rate=coverage.payout_rate,
            reduction_rate=reduction_rate,
            limit=limit,
            used_amount=used,
            item=coverage.coverage_name,
            coverage_code=coverage.coverage_code,
            term_reference=self._term(coverage.coverage_code),
        )
        return line.model_copy(update={"coverage_id": coverage.id})

    def analyze(
        self,
        claim: ClaimSubmission,
        coverages: List[PolicyCoverage],
        validation: PolicyValidation,
        variant: ScoringVariant,
        surgery: Optional[SurgeryCode] = None,
    ) -> CoverageAnalysis:
        started = time.perf_counter()
        by_code: Dict[str, PolicyCoverage] = {c.coverage_code: c for c in coverages}
        reduction_rate = validation.reduction_rate if validation.reduction_applies else 0
        items: List[PayoutLineItem] = []
        claim_type = ClaimType(claim.claim_type)

        if claim_type in (ClaimType.HOSPITALIZATION, ClaimType.SURGERY):
            for code, amount in (
                (CoverageCode.HOSP_INSURED, claim.insured_expense),
                (CoverageCode.HOSP_UNINSURED, claim.uninsured_expense),
            ):
                if code in by_code and amount > 0:
                    items.append(self._real_loss(by_code[code], amount, reduction_rate, variant))

        daily = by_code.get(CoverageCode.HOSP_DAILY)
        if daily is not None and claim.hospitalization_days > 0:
            line = calculate_daily_allowance(
                daily_amount=daily.insured_amount,
                requested_days=claim.hospitalization_days,
                max_days=daily.max_days or self.default_daily_max_days,
                used_days=daily.used_days or 0,
                reduction_rate=reduction_rate,
                item=daily.coverage_name,
                coverage_code=daily.coverage_code,
                term_reference=self._term(daily.coverage_code),
            )
            items.append(line.model_copy(update={"coverage_id": daily.id}))

        if claim_type == ClaimType.SURGERY and surgery is not None:
            benefit = next(
                (c for c in coverages
                 if c.calculation_kind == CalculationKind.LUMP_SUM.value
                 and c.surgery_classification == surgery.classification),
                None,
            )
            if benefit is not None and benefit.insured_amount > 0:
                line = calculate_lump_sum(
                    insured_amount=benefit.insured_amount,
                    reduction_rate=reduction_rate,
                    item=f"{benefit.coverage_name} ({surgery.name})",
                    coverage_code=benefit.coverage_code,
                    term_reference=self._term(benefit.coverage_code),
                )
                items.append(line.model_copy(update={"coverage_id": benefit.id}))

        if claim_type == ClaimType.OUTPATIENT:
            for code, amount in (
                (CoverageCode.OUTPATIENT_INSURED, claim.insured_expense),
                (CoverageCode.OUTPATIENT_UNINSURED, claim.uninsured_expense),
            ):
                if code in by_code and amount > 0:
                    items.append(self._real_loss(by_code[code], amount, reduction_rate, variant,
                                                 per_occurrence=True))

        total_claimed = sum(i.claimed_amount for i in items)
        total_approved = sum(i.approved_amount for i in items)
        total_rejected = sum(i.rejected_amount for i in items)
        recommendation, confidence = self._recommend(validation, variant, total_claimed, total_approved)

        return CoverageAnalysis(
            model_code=variant.model_code,
            model_name=variant.model_name,
            is_default=variant.is_default,
            items=items,
            total_claimed=total_claimed,
            total_approved=total_approved,
            total_rejected=total_rejected,
            recommendation=recommendation.value,
            confidence=confidence,
            reasoning=self._reasoning(items, total_claimed, total_approved, validation),
            response_time_ms=int((time.perf_counter() - started) * 1000),
        )

    @staticmethod
    def _recommend(validation: PolicyValidation, variant: ScoringVariant,
                   total_claimed: int, total_approved: int):
        if validation.exemption_applies:
            return Recommendation.REJECT, 100
        ratio = total_approved / total_claimed if total_claimed > 0 else 0
        base = variant.confidence_base
        if ratio > 0.8 and not validation.reduction_applies:
            return Recommendation.AUTO_APPROVE, min(100, base + 10)
        if ratio > 0.5:
            return Recommendation.MANUAL_REVIEW, base
        return Recommendation.MANUAL_REVIEW, max(0, base - 10)

    @staticmethod
    def _reasoning(items: List[PayoutLineItem], total_claimed: int, total_approved: int,
                   validation: PolicyValidation) -> str:
        if not items:
            return "No coverage line applies to this claim."
        ratio = total_approved / total_claimed * 100 if total_claimed else 0
        text = (f"{len(items)} coverage line(s) analysed; {total_approved:,} of "
                f"{total_claimed:,} approved ({ratio:.1f}%).")
        if validation.reduction_applies:
            text += f" Reduction period {validation.reduction_rate}% applied."
        return text
