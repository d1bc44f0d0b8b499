# claimflow/api/v1/admin.py
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from claimflow.core.config import settings
from claimflow.core.dependencies import get_db
from claimflow.core.logging import get_logger
from claimflow.database.session import Database

logger = get_logger(__name__)
router = APIRouter()


@router.get("/health")
def health_check(database: Database = Depends(get_db)):
    """Detailed health check."""
    try:
        with database.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database_status = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        database_status = "unavailable"

    return {
        "status": "healthy" if database_status == "connected" else "degraded",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": database_status,
        "fraud_profile": settings.ADJUDICATION_FRAUD_PROFILE,
        "debug_mode": settings.DEBUG,
    }
