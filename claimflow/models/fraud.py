# claimflow/models/fraud.py
"""Fraud scoring value models."""

from datetime import date
from typing import List, Optional

from pydantic import Field

from claimflow.models.base import ValueModel


class FraudPattern(ValueModel):
    """A detected rule hit."""
    code: str
    name: str
    score: int
    details: str = ""


class FraudAnalysis(ValueModel):
    profile: str
    score: int = Field(ge=0, le=100)
    risk_level: str
    recommendation: str
    patterns: List[FraudPattern] = Field(default_factory=list)

    @property
    def pattern_codes(self) -> List[str]:
        return [p.code for p in self.patterns]

    @property
    def passed(self) -> bool:
        """LOW and MEDIUM risk clear the fraud check."""
        return self.risk_level in ("LOW", "MEDIUM")


class FraudContext(ValueModel):
    """Claim facts the rule battery inspects."""
    claim_id: Optional[int] = None
    customer_id: int
    claim_date: date
    treatment_start_date: date
    treatment_end_date: Optional[date] = None
    hospital_name: Optional[str] = None
    diagnosis_code: Optional[str] = None
    hospitalization_days: int = 0
    total_amount: int = 0
    coverage_start_date: Optional[date] = None
    customer_risk_grade: Optional[str] = None
    customer_risk_score: int = 0
    diagnosis_risk_base: float = 0.0
    standard_treatment_days: Optional[int] = None
