# claimflow/core/constants.py
"""Application constants and enums."""

from enum import Enum
from typing import List


# ===================
# Policy Constants
# ===================

class PolicyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    LAPSED = "LAPSED"
    TERMINATED = "TERMINATED"
    SUSPENDED = "SUSPENDED"


class PremiumStatus(str, Enum):
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class CalculationKind(str, Enum):
    REAL_LOSS = "REAL_LOSS"
    DAILY = "DAILY"
    LUMP_SUM = "LUMP_SUM"


class CustomerRiskGrade(str, Enum):
    NORMAL = "NORMAL"
    WATCH = "WATCH"
    HIGH_RISK = "HIGH_RISK"


# Coverage codes the adjudication pipeline knows how to analyse
class CoverageCode:
    HOSP_INSURED = "DIS_HOSP_INS"
    HOSP_UNINSURED = "DIS_HOSP_UNINS"
    HOSP_DAILY = "DIS_HOSP_DAILY"
    OUTPATIENT_INSURED = "OUT_INS"
    OUTPATIENT_UNINSURED = "OUT_UNINS"
    SURGERY_PREFIX = "DIS_SURG_"


# Coverage code -> policy term family used for citations
TERM_FAMILY_BY_COVERAGE = {
    CoverageCode.HOSP_INSURED: "HOSP_INS",
    CoverageCode.HOSP_UNINSURED: "HOSP_UNINS",
    CoverageCode.HOSP_DAILY: "HOSP_DAILY",
    CoverageCode.OUTPATIENT_INSURED: "OUT_INS",
    CoverageCode.OUTPATIENT_UNINSURED: "OUT_UNINS",
}
SURGERY_TERM_FAMILY = "SURGERY"


# ===================
# Claim Constants
# ===================

class ClaimType(str, Enum):
    HOSPITALIZATION = "HOSPITALIZATION"
    OUTPATIENT = "OUTPATIENT"
    SURGERY = "SURGERY"
    DIAGNOSIS = "DIAGNOSIS"

    @classmethod
    def values(cls) -> List[str]:
        return [e.value for e in cls]


class ClaimStatus(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    PENDING_REVIEW = "PENDING_REVIEW"
    RETURNED = "RETURNED"

    @classmethod
    def values(cls) -> List[str]:
        return [e.value for e in cls]


class HoldStatus(str, Enum):
    NONE = "NONE"
    HELD = "HELD"


class Recommendation(str, Enum):
    AUTO_APPROVE = "AUTO_APPROVE"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    REJECT = "REJECT"


SYSTEM_ACTOR = "SYSTEM"


# ===================
# Fraud Constants
# ===================

class FraudProfile(str, Enum):
    INTAKE = "INTAKE"
    FULL_AUDIT = "FULL_AUDIT"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class FraudAction(str, Enum):
    APPROVE = "APPROVE"
    AUTO_APPROVE = "AUTO_APPROVE"
    REVIEW = "REVIEW"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    INVESTIGATE = "INVESTIGATE"
    REJECT = "REJECT"


HIGH_RISK_DIAGNOSIS_CODES = ("M54.5", "M51.1", "M51.2", "S13.4")
BACK_PAIN_DIAGNOSIS_CODE = "M54.5"


# ===================
# Approval Constants
# ===================

class ApprovalStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    RETURNED = "RETURNED"
    CANCELLED = "CANCELLED"

    @classmethod
    def active(cls) -> List[str]:
        return [cls.PENDING.value, cls.IN_PROGRESS.value]


class ApprovalAction(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    RETURN = "RETURN"
    HOLD = "HOLD"
    DELEGATE = "DELEGATE"
    SKIP = "SKIP"

    @classmethod
    def values(cls) -> List[str]:
        return [e.value for e in cls]


class InboxStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    SUPERSEDED = "SUPERSEDED"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
