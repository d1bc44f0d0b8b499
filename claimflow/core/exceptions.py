# claimflow/core/exceptions.py
"""Custom exceptions for ClaimFlow application."""

from typing import Optional, Dict, Any


class ClaimFlowException(Exception):
    """Base exception for all ClaimFlow errors."""

    http_status = 500

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# ===================
# Not Found
# ===================

class NotFoundError(ClaimFlowException):
    """Requested entity does not exist."""

    http_status = 404


class PolicyNotFoundError(NotFoundError):

    def __init__(self, policy_number: str):
        super().__init__(
            message=f"Policy not found: {policy_number}",
            error_code="POLICY_NOT_FOUND",
            details={"policy_number": policy_number}
        )


class ClaimNotFoundError(NotFoundError):

    def __init__(self, claim_id: Any):
        super().__init__(
            message=f"Claim not found: {claim_id}",
            error_code="CLAIM_NOT_FOUND",
            details={"claim_id": claim_id}
        )


class ApprovalNotFoundError(NotFoundError):

    def __init__(self, approval_id: Any):
        super().__init__(
            message=f"Approval not found: {approval_id}",
            error_code="APPROVAL_NOT_FOUND",
            details={"approval_id": approval_id}
        )


class UserNotFoundError(NotFoundError):

    def __init__(self, user_id: Any):
        super().__init__(
            message=f"User not found: {user_id}",
            error_code="USER_NOT_FOUND",
            details={"user_id": user_id}
        )


# ===================
# Validation
# ===================

class ValidationError(ClaimFlowException):
    """Caller supplied missing or malformed input."""

    http_status = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"field": field} if field else {}
        )


class InvalidInputError(ValidationError):
    """Calculation or scoring input outside its contract."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(f"Invalid {field}={value!r}: {reason}", field=field)
        self.error_code = "INVALID_INPUT"
        self.details["value"] = value


# ===================
# Business Rules
# ===================

class BusinessRuleViolation(ClaimFlowException):
    """Expected control-flow outcome rejected by a business rule."""

    http_status = 400


class DuplicateActiveWorkflowError(BusinessRuleViolation):

    def __init__(self, claim_id: int, approval_id: int):
        super().__init__(
            message=f"Claim {claim_id} already has an active approval workflow ({approval_id})",
            error_code="DUPLICATE_ACTIVE_WORKFLOW",
            details={"claim_id": claim_id, "approval_id": approval_id}
        )


class NoApplicableTemplateError(BusinessRuleViolation):

    def __init__(self, claim_type: str, amount: int, fraud_score: int):
        super().__init__(
            message=f"No approval line template matches claim_type={claim_type}, "
                    f"amount={amount}, fraud_score={fraud_score}",
            error_code="NO_APPLICABLE_TEMPLATE",
            details={"claim_type": claim_type, "amount": amount, "fraud_score": fraud_score}
        )


class NoApproversAvailableError(BusinessRuleViolation):

    def __init__(self, role_code: str, step_no: int):
        super().__init__(
            message=f"No active approvers hold role {role_code} for step {step_no}",
            error_code="NO_APPROVERS_AVAILABLE",
            details={"role_code": role_code, "step_no": step_no}
        )


class CoverageLimitExhaustedError(BusinessRuleViolation):
    """Approved payout no longer fits the coverage's remaining allowance."""

    def __init__(self, coverage_id: int, requested: int, remaining: int, unit: str):
        super().__init__(
            message=(
                f"Coverage {coverage_id} has {remaining} {unit} left but the claim needs {requested}; "
                "reject or return the claim for re-adjudication"
            ),
            error_code="COVERAGE_LIMIT_EXHAUSTED",
            details={"coverage_id": coverage_id, "requested": requested, "remaining": remaining, "unit": unit}
        )


class NotAuthorizedToApproveError(BusinessRuleViolation):

    http_status = 403

    def __init__(self, approval_id: int, user_id: int, step_no: int):
        super().__init__(
            message=f"User {user_id} has no pending assignment for step {step_no} "
                    f"of approval {approval_id}",
            error_code="NOT_AUTHORIZED_TO_APPROVE",
            details={"approval_id": approval_id, "user_id": user_id, "step_no": step_no}
        )


class ApprovalNotInProgressError(BusinessRuleViolation):

    def __init__(self, approval_id: int, status: str):
        super().__init__(
            message=f"Approval {approval_id} is not in progress (status={status})",
            error_code="APPROVAL_NOT_IN_PROGRESS",
            details={"approval_id": approval_id, "status": status}
        )


class UnsupportedApprovalActionError(BusinessRuleViolation, NotImplementedError):
    """Recognised action value with no workflow semantics."""

    def __init__(self, action: str):
        BusinessRuleViolation.__init__(
            self,
            message=f"Approval action {action} is not supported",
            error_code="ACTION_NOT_SUPPORTED",
            details={"action": action}
        )


# ===================
# Conflicts
# ===================

class ConflictError(ClaimFlowException):
    """Concurrent update lost a race; re-read and retry."""

    http_status = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, error_code="CONFLICT", details=details)


# ===================
# Infrastructure
# ===================

class InfrastructureError(ClaimFlowException):
    """Store unavailable or transaction failure."""

    http_status = 500


class StorageError(InfrastructureError):

    def __init__(self, operation: str, message: str):
        super().__init__(
            message=f"Storage {operation} failed: {message}",
            error_code="STORAGE_ERROR",
            details={"operation": operation}
        )
