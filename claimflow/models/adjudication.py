# claimflow/models/adjudication.py
"""Value models produced by one adjudication run."""

from datetime import date
from typing import List, Optional

from pydantic import Field

from claimflow.models.base import ValueModel
from claimflow.models.fraud import FraudAnalysis


class TermReference(ValueModel):
    """Policy-term citation attached to a payout line."""
    article: str
    title: str
    content: str
    formula: Optional[str] = None


class PayoutLineItem(ValueModel):
    """One breakdown row from coverage calculation."""
    item: str
    coverage_id: Optional[int] = None
    coverage_code: Optional[str] = None
    calculation_kind: str
    payable_days: Optional[int] = None
    claimed_amount: int = Field(ge=0)
    approved_amount: int = Field(ge=0)
    rejected_amount: int = Field(ge=0)
    calculation: str
    rejection_reason: Optional[str] = None
    term_reference: Optional[TermReference] = None


class PolicyValidation(ValueModel):
    policy_found: bool = True
    is_valid: bool = True
    issues: List[str] = Field(default_factory=list)
    exemption_applies: bool = False
    reduction_applies: bool = False
    reduction_rate: int = 0
    coverage_start_date: Optional[date] = None
    coverage_end_date: Optional[date] = None


class CoverageAnalysis(ValueModel):
    """Coverage breakdown for a single scoring-model variant."""
    model_code: str
    model_name: str
    is_default: bool = False
    items: List[PayoutLineItem] = Field(default_factory=list)
    total_claimed: int = 0
    total_approved: int = 0
    total_rejected: int = 0
    recommendation: str = ""
    confidence: int = 0
    reasoning: str = ""
    response_time_ms: int = 0


class AdjudicationResult(ValueModel):
    """Outcome of running a claim through the adjudication pipeline."""
    claim_id: Optional[int] = None
    claim_number: Optional[str] = None
    policy_number: str
    status: str
    decision: str
    decision_reason: Optional[str] = None
    confidence_score: int
    ai_recommendation: str
    auto_processable: bool = False
    total_claimed_amount: int = 0
    total_approved_amount: int = 0
    total_rejected_amount: int = 0
    validation: PolicyValidation
    coverage: Optional[CoverageAnalysis] = None
    model_results: List[CoverageAnalysis] = Field(default_factory=list)
    fraud: Optional[FraudAnalysis] = None
    steps: List[dict] = Field(default_factory=list)
