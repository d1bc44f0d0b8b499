# claimflow/core/config.py
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # ===================================
    # APPLICATION SETTINGS
    # ===================================
    APP_NAME: str = "ClaimFlow - Claims Adjudication & Approval"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # ===================================
    # API SETTINGS
    # ===================================
    API_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: List[str] = ["*"]
    USER_ID_HEADER: str = "X-User-Id"
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # ===================================
    # DATABASE
    # ===================================
    DATA_DIR: str = "data"
    DATABASE_URL: Optional[str] = None  # Defaults to a SQLite file under DATA_DIR
    DATABASE_ECHO: bool = False
    SEED_DEMO_DATA: bool = True

    # ===================================
    # ADJUDICATION
    # ===================================
    AUTO_APPROVE_MAX_AMOUNT: int = 3_000_000
    AUTO_APPROVE_MAX_FRAUD_SCORE: int = 20
    ADJUDICATION_FRAUD_PROFILE: str = "INTAKE"  # Options: "INTAKE", "FULL_AUDIT"
    DEFAULT_REDUCTION_RATE: int = 50
    DEFAULT_DAILY_MAX_DAYS: int = 180

    # ===================================
    # FRAUD DETECTION
    # ===================================
    HIGH_RISK_MIN_SCORE: int = 50

    # ===================================
    # COMPUTED PROPERTIES
    # ===================================
    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///./{self.DATA_DIR}/claimflow.db"

    # ===================================
    # PYDANTIC CONFIG
    # ===================================
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "allow"


# ===================================
# SINGLETON PATTERN
# ===================================
@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
