# claimflow/models/approval.py
"""Approval workflow request and response schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from claimflow.core.constants import ApprovalAction


class CallerIdentity(BaseModel):
    """Opaque caller identity resolved by the HTTP layer."""
    user_id: int
    name: str
    role_code: str
    role_level: int
    department: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)


# ===================
# Requests
# ===================

class ApprovalStartRequest(BaseModel):
    claim_id: int
    urgent: bool = False
    notes: Optional[str] = None


class ApprovalActionRequest(BaseModel):
    action: ApprovalAction
    comments: Optional[str] = None
    adjusted_amount: Optional[int] = Field(None, ge=0)
    delegate_to: Optional[int] = None


# ===================
# Responses
# ===================

class ApprovalOutcomeResponse(BaseModel):
    success: bool = True
    claim_id: int
    claim_status: str
    approval_id: Optional[int] = None
    status: Optional[str] = None
    current_step: Optional[int] = None
    total_steps: Optional[int] = None
    auto_approved: bool = False
    completed: bool = False
    message: str = ""


class InboxItem(BaseModel):
    inbox_id: int
    approval_id: int
    claim_id: int
    claim_number: str
    claim_type: str
    total_claimed_amount: int
    fraud_score: int
    step_no: int
    total_steps: int
    step_role: Optional[str] = None
    status: str
    is_urgent: bool
    assigned_at: datetime
    completed_at: Optional[datetime] = None


class InboxResponse(BaseModel):
    total: int
    skip: int
    limit: int
    items: List[InboxItem]


class InboxSummary(BaseModel):
    user_id: int
    pending: int
    urgent: int
    processed_today: int


class HistoryRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    approval_id: int
    claim_id: int
    step_no: int
    step_name: Optional[str] = None
    approver_id: int
    approver_name: str
    approver_role: str
    approver_department: Optional[str] = None
    action: str
    decision_amount: Optional[int] = None
    comment: Optional[str] = None
    delegated_to: Optional[int] = None
    received_at: datetime
    processing_time_minutes: int
    created_at: datetime


class ApprovalInstanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    claim_id: int
    template_code: Optional[str] = None
    status: str
    current_step: int
    total_steps: int
    approval_line: List[Dict[str, Any]]
    is_urgent: bool
    notes: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class ApprovalStatusResponse(BaseModel):
    claim_id: int
    claim_status: str
    approval_status: Optional[str] = None
    hold_status: str
    approval: Optional[ApprovalInstanceResponse] = None
    history: List[HistoryRecordResponse] = Field(default_factory=list)


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    template_code: str
    template_name: str
    claim_type: Optional[str] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    fraud_score_threshold: Optional[int] = None
    approval_steps: List[Dict[str, Any]]
    priority: int
    is_auto_approve: bool
