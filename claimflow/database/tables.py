# claimflow/database/tables.py
"""SQLAlchemy tables for policies, claims and the approval workflow."""

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer, JSON,
    String, Text, text,
)
from sqlalchemy.orm import relationship

from claimflow.core.constants import (
    ApprovalStatus, ClaimStatus, CustomerRiskGrade, HoldStatus, InboxStatus,
    PolicyStatus, PremiumStatus, UserStatus,
)
from claimflow.database.session import Base
from claimflow.models.base import utc_now


# ===================
# Customers & Policies
# ===================

class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    birth_date = Column(Date, nullable=True)
    phone = Column(String(30), nullable=True)
    risk_grade = Column(String(20), default=CustomerRiskGrade.NORMAL.value, nullable=False)
    risk_score = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    policies = relationship("Policy", back_populates="customer")


class Policy(Base):
    __tablename__ = "policies"

    id = Column(Integer, primary_key=True)
    policy_number = Column(String(50), unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    product_code = Column(String(50), nullable=False)
    product_name = Column(String(200), nullable=True)
    status = Column(String(20), default=PolicyStatus.ACTIVE.value, nullable=False)
    premium_status = Column(String(20), default=PremiumStatus.PAID.value, nullable=False)
    contract_date = Column(Date, nullable=True)
    coverage_start_date = Column(Date, nullable=False)
    coverage_end_date = Column(Date, nullable=False)
    exemption_end_date = Column(Date, nullable=True)
    reduction_end_date = Column(Date, nullable=True)
    reduction_rate = Column(Integer, nullable=True)  # percent
    created_at = Column(DateTime, default=utc_now, nullable=False)

    customer = relationship("Customer", back_populates="policies")
    coverages = relationship("PolicyCoverage", back_populates="policy", order_by="PolicyCoverage.id")


class PolicyCoverage(Base):
    __tablename__ = "policy_coverages"

    id = Column(Integer, primary_key=True)
    policy_id = Column(Integer, ForeignKey("policies.id"), nullable=False, index=True)
    coverage_code = Column(String(50), nullable=False)
    coverage_name = Column(String(200), nullable=False)
    calculation_kind = Column(String(20), nullable=False)
    insured_amount = Column(Integer, default=0, nullable=False)
    deductible_amount = Column(Integer, default=0, nullable=False)
    deductible_rate = Column(Float, default=0, nullable=False)
    payout_rate = Column(Float, default=100, nullable=False)
    per_occurrence_limit = Column(Integer, nullable=True)
    annual_limit = Column(Integer, nullable=True)
    lifetime_limit = Column(Integer, nullable=True)
    used_annual_amount = Column(Integer, default=0, nullable=False)
    max_days = Column(Integer, nullable=True)
    used_days = Column(Integer, default=0, nullable=False)
    surgery_classification = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    policy = relationship("Policy", back_populates="coverages")


# ===================
# Reference Data
# ===================

class DiagnosisCode(Base):
    __tablename__ = "diagnosis_codes"

    code = Column(String(20), primary_key=True)
    name = Column(String(200), nullable=False)
    fraud_risk_base = Column(Float, default=0, nullable=False)
    standard_treatment_days = Column(Integer, nullable=True)


class SurgeryCode(Base):
    __tablename__ = "surgery_codes"

    code = Column(String(20), primary_key=True)
    name = Column(String(200), nullable=False)
    classification = Column(Integer, nullable=False)


class PolicyTerm(Base):
    __tablename__ = "policy_terms"

    id = Column(Integer, primary_key=True)
    product_code = Column(String(50), nullable=False, index=True)
    term_code = Column(String(50), nullable=False)
    article_number = Column(String(20), nullable=False)
    clause_number = Column(String(20), nullable=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(Text, nullable=True)
    calculation_formula = Column(Text, nullable=True)
    term_category = Column(String(30), default="COVERAGE", nullable=False)
    applies_to = Column(JSON, default=list, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class ScoringModel(Base):
    """Named coverage-analysis variant."""

    __tablename__ = "scoring_models"

    id = Column(Integer, primary_key=True)
    model_code = Column(String(50), unique=True, nullable=False)
    model_name = Column(String(100), nullable=False)
    deductible_variation = Column(Float, default=0, nullable=False)
    confidence_base = Column(Integer, default=80, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)


# ===================
# Claims
# ===================

class Claim(Base):
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True)
    claim_number = Column(String(30), unique=True, index=True, nullable=False)
    policy_id = Column(Integer, ForeignKey("policies.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    claim_type = Column(String(20), nullable=False)
    claim_date = Column(Date, nullable=False)

    # Treatment facts
    treatment_start_date = Column(Date, nullable=False)
    treatment_end_date = Column(Date, nullable=True)
    hospital_name = Column(String(200), nullable=True)
    diagnosis_code = Column(String(20), nullable=True, index=True)
    diagnosis_name = Column(String(200), nullable=True)
    surgery_code = Column(String(20), nullable=True)
    surgery_name = Column(String(200), nullable=True)
    hospitalization_days = Column(Integer, default=0, nullable=False)
    total_medical_expense = Column(Integer, default=0, nullable=False)
    insured_expense = Column(Integer, default=0, nullable=False)
    uninsured_expense = Column(Integer, default=0, nullable=False)

    # Adjudication outputs
    total_claimed_amount = Column(Integer, default=0, nullable=False)
    total_approved_amount = Column(Integer, default=0, nullable=False)
    total_rejected_amount = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default=ClaimStatus.PENDING_REVIEW.value, nullable=False, index=True)
    decision = Column(Text, nullable=True)
    decision_reason = Column(Text, nullable=True)
    confidence_score = Column(Integer, nullable=True)
    ai_recommendation = Column(String(30), nullable=True)
    fraud_score = Column(Integer, default=0, nullable=False)
    fraud_patterns = Column(JSON, default=list, nullable=False)
    fraud_check_passed = Column(Boolean, default=True, nullable=False)
    auto_processable = Column(Boolean, default=False, nullable=False)
    analysis_snapshot = Column(JSON, nullable=True)
    usage_charged = Column(Boolean, default=False, nullable=False)

    # Workflow pointers
    approval_status = Column(String(20), nullable=True)
    current_approver_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    hold_status = Column(String(10), default=HoldStatus.NONE.value, nullable=False)
    hold_reason = Column(Text, nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    policy = relationship("Policy")
    customer = relationship("Customer")
    model_results = relationship("ClaimModelResult", back_populates="claim",
                                 cascade="all, delete-orphan", order_by="ClaimModelResult.id")


class ClaimModelResult(Base):
    __tablename__ = "claim_model_results"

    id = Column(Integer, primary_key=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    model_code = Column(String(50), nullable=False)
    model_name = Column(String(100), nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    recommendation = Column(String(30), nullable=False)
    confidence = Column(Integer, nullable=False)
    total_claimed = Column(Integer, nullable=False)
    total_approved = Column(Integer, nullable=False)
    total_rejected = Column(Integer, nullable=False)
    breakdown = Column(JSON, default=list, nullable=False)
    reasoning = Column(Text, nullable=True)
    response_time_ms = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    claim = relationship("Claim", back_populates="model_results")


class FraudDetectionResult(Base):
    __tablename__ = "fraud_detection_results"

    id = Column(Integer, primary_key=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    profile = Column(String(20), nullable=False)
    fraud_score = Column(Integer, nullable=False)
    risk_level = Column(String(20), nullable=False)
    patterns = Column(JSON, default=list, nullable=False)
    recommended_action = Column(String(30), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)


# ===================
# Users & Roles
# ===================

class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    role_code = Column(String(30), unique=True, nullable=False)
    role_name = Column(String(100), nullable=False)
    level = Column(Integer, default=1, nullable=False)
    permissions = Column(JSON, default=list, nullable=False)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    user_code = Column(String(30), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    department = Column(String(100), nullable=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    status = Column(String(20), default=UserStatus.ACTIVE.value, nullable=False)

    role = relationship("Role", lazy="joined")


# ===================
# Approval Workflow
# ===================

class ApprovalLineTemplate(Base):
    __tablename__ = "approval_line_templates"

    id = Column(Integer, primary_key=True)
    template_code = Column(String(50), unique=True, nullable=False)
    template_name = Column(String(200), nullable=False)
    claim_type = Column(String(20), nullable=True)
    min_amount = Column(Integer, nullable=True)
    max_amount = Column(Integer, nullable=True)
    fraud_score_threshold = Column(Integer, nullable=True)
    approval_steps = Column(JSON, default=list, nullable=False)  # [{step, role_code, name}]
    priority = Column(Integer, default=100, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_auto_approve = Column(Boolean, default=False, nullable=False)


class ApprovalInstance(Base):
    __tablename__ = "claim_approvals"

    id = Column(Integer, primary_key=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("approval_line_templates.id"), nullable=True)
    template_code = Column(String(50), nullable=True)
    status = Column(String(20), default=ApprovalStatus.PENDING.value, nullable=False)
    current_step = Column(Integer, default=1, nullable=False)
    total_steps = Column(Integer, nullable=False)
    approval_line = Column(JSON, nullable=False)
    is_urgent = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)
    initiated_by = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False)
    started_at = Column(DateTime, default=utc_now, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        # At most one live workflow per claim
        Index(
            "uq_claim_approvals_active_claim",
            "claim_id",
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'IN_PROGRESS')"),
            postgresql_where=text("status IN ('PENDING', 'IN_PROGRESS')"),
        ),
    )

    claim = relationship("Claim")


class ApprovalInboxEntry(Base):
    __tablename__ = "approval_inbox"

    id = Column(Integer, primary_key=True)
    approval_id = Column(Integer, ForeignKey("claim_approvals.id"), nullable=False, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    step_no = Column(Integer, nullable=False)
    status = Column(String(20), default=InboxStatus.PENDING.value, nullable=False)
    assigned_at = Column(DateTime, default=utc_now, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    approval = relationship("ApprovalInstance")
    claim = relationship("Claim")


class ApprovalHistoryRecord(Base):
    __tablename__ = "approval_history"

    id = Column(Integer, primary_key=True)
    approval_id = Column(Integer, ForeignKey("claim_approvals.id"), nullable=False, index=True)
    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    step_no = Column(Integer, nullable=False)
    step_name = Column(String(100), nullable=True)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    approver_name = Column(String(100), nullable=False)
    approver_role = Column(String(30), nullable=False)
    approver_department = Column(String(100), nullable=True)
    action = Column(String(20), nullable=False)
    decision_amount = Column(Integer, nullable=True)
    comment = Column(Text, nullable=True)
    delegated_to = Column(Integer, nullable=True)
    received_at = Column(DateTime, nullable=False)
    processing_time_minutes = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)


# ===================
# Audit
# ===================

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    actor = Column(String(100), nullable=False)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(50), nullable=False)
    before_value = Column(JSON, nullable=True)
    after_value = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
