# claimflow/core/dependencies.py
from fastapi import Depends, Request

from claimflow.core.config import settings
from claimflow.core.exceptions import InvalidInputError, ValidationError
from claimflow.core.logging import get_logger
from claimflow.database.session import Database, get_database
from claimflow.models.approval import CallerIdentity

logger = get_logger(__name__)

# ===================
# Database
# ===================

def get_db() -> Database:
    """Get the database handle; overridden in tests."""
    return get_database()

# ===================
# Service Instances
# ===================

def get_claim_service(database: Database = Depends(get_db)):
    """Get claim service."""
    from claimflow.services.claim_service import ClaimService
    return ClaimService(database)

def get_approval_service(database: Database = Depends(get_db)):
    """Get approval service."""
    from claimflow.services.approval_service import ApprovalService
    return ApprovalService(database)

def get_fraud_service(database: Database = Depends(get_db)):
    """Get fraud detection service."""
    from claimflow.services.fraud_service import FraudService
    return FraudService(database)

# ===================
# Caller Identity
# ===================

def get_current_user(request: Request, database: Database = Depends(get_db)) -> CallerIdentity:
    """Resolve the caller from the user-id header against the user directory."""
    raw = request.headers.get(settings.USER_ID_HEADER)
    if not raw:
        raise ValidationError(f"{settings.USER_ID_HEADER} header is required", field=settings.USER_ID_HEADER)
    try:
        user_id = int(raw)
    except ValueError:
        raise InvalidInputError(settings.USER_ID_HEADER, raw, "must be an integer user id")

    from claimflow.storage.approval_store import ApproverDirectory
    with database.session_scope() as session:
        user = ApproverDirectory(session).get_active_user(user_id)
        return CallerIdentity(
            user_id=user.id,
            name=user.name,
            role_code=user.role.role_code,
            role_level=user.role.level,
            department=user.department,
            permissions=list(user.role.permissions or []),
        )
