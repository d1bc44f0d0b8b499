# claimflow/models/claim.py
"""Claim submission and response schemas."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from claimflow.core.constants import ClaimType


class ClaimSubmission(BaseModel):
    """Facts supplied when a claim is filed."""
    policy_number: str = Field(..., min_length=1)
    claim_type: ClaimType
    claim_date: Optional[date] = None
    treatment_start_date: date
    treatment_end_date: Optional[date] = None
    hospital_name: Optional[str] = None
    diagnosis_code: Optional[str] = None
    diagnosis_name: Optional[str] = None
    surgery_code: Optional[str] = None
    surgery_name: Optional[str] = None
    hospitalization_days: int = Field(0, ge=0)
    insured_expense: int = Field(0, ge=0)
    uninsured_expense: int = Field(0, ge=0)
    total_medical_expense: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def _fill_totals(self):
        if self.total_medical_expense is None:
            self.total_medical_expense = self.insured_expense + self.uninsured_expense
        if self.treatment_end_date and self.treatment_end_date < self.treatment_start_date:
            raise ValueError("treatment_end_date must not precede treatment_start_date")
        return self


class ClaimResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    claim_number: str
    policy_id: int
    customer_id: int
    claim_type: str
    claim_date: date
    treatment_start_date: date
    treatment_end_date: Optional[date] = None
    hospital_name: Optional[str] = None
    diagnosis_code: Optional[str] = None
    diagnosis_name: Optional[str] = None
    surgery_code: Optional[str] = None
    hospitalization_days: int
    total_medical_expense: int
    total_claimed_amount: int
    total_approved_amount: int
    total_rejected_amount: int
    status: str
    decision: Optional[str] = None
    decision_reason: Optional[str] = None
    confidence_score: Optional[int] = None
    ai_recommendation: Optional[str] = None
    fraud_score: int
    fraud_patterns: List[Any] = Field(default_factory=list)
    auto_processable: bool
    approval_status: Optional[str] = None
    current_approver_id: Optional[int] = None
    hold_status: str
    hold_reason: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime


class ClaimDetailResponse(ClaimResponse):
    analysis_snapshot: Optional[Dict[str, Any]] = None


class ClaimListResponse(BaseModel):
    total: int
    skip: int
    limit: int
    claims: List[ClaimResponse]


class ModelResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    model_code: str
    model_name: str
    is_default: bool
    recommendation: str
    confidence: int
    total_claimed: int
    total_approved: int
    total_rejected: int
    breakdown: List[Any]
    reasoning: Optional[str] = None
    response_time_ms: int
