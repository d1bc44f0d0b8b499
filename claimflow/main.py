# claimflow/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from claimflow.core.config import settings
from claimflow.core.exceptions import ClaimFlowException
from claimflow.core.logging import get_logger
from claimflow.database.seed import seed_database
from claimflow.database.session import get_database

logger = get_logger(__name__)

# ===================
# Lifespan Management
# ===================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}", environment=settings.ENVIRONMENT)
    database = get_database()
    database.create_all()
    if settings.SEED_DEMO_DATA:
        with database.session_scope() as session:
            seed_database(session)
    yield
    logger.info("Shutting down...")

# ===================
# Application Setup
# ===================

app = FastAPI(
    title=settings.APP_NAME,
    description="Insurance claim adjudication and multi-step approval workflow",
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# ===================
# CORS Middleware
# ===================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===================
# Error Handling
# ===================

@app.exception_handler(ClaimFlowException)
async def claimflow_exception_handler(request: Request, exc: ClaimFlowException):
    if exc.http_status >= 500:
        logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

# ===================
# Include Routers
# ===================

from claimflow.api.v1.claims import router as claims_router
from claimflow.api.v1.approvals import router as approvals_router
from claimflow.api.v1.fraud import router as fraud_router
from claimflow.api.v1.admin import router as admin_router

app.include_router(claims_router, prefix=f"{settings.API_PREFIX}/claims", tags=["claims"])
app.include_router(approvals_router, prefix=f"{settings.API_PREFIX}/approvals", tags=["approvals"])
app.include_router(fraud_router, prefix=f"{settings.API_PREFIX}/fraud", tags=["fraud"])
app.include_router(admin_router, prefix=f"{settings.API_PREFIX}/admin", tags=["admin"])

# ===================
# Root Endpoints
# ===================

@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "claims": f"{settings.API_PREFIX}/claims",
            "approvals": f"{settings.API_PREFIX}/approvals",
            "fraud": f"{settings.API_PREFIX}/fraud",
            "admin": f"{settings.API_PREFIX}/admin"
        }
    }

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.APP_VERSION}
