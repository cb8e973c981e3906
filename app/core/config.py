from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API Settings
    PROJECT_NAME: str = "LMS Admin API"
    API_PREFIX: str = "/api"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Student fee ledger, EMI schedules and receipts"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # MongoDB
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "lms_admin"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:8080"]

    # JWT
    JWT_SECRET: str = "change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 480

    # First super admin, created at startup when no user exists
    BOOTSTRAP_ADMIN_USERNAME: str = ""
    BOOTSTRAP_ADMIN_PASSWORD: str = ""
    BOOTSTRAP_ADMIN_NAME: str = "Super Admin"

    # Receipt letterhead
    ORGANIZATION_NAME: str = "LMS Academy"
    ORGANIZATION_ADDRESS: str = ""
    ORGANIZATION_PHONE: str = ""
    ORGANIZATION_EMAIL: str = ""

    # Ledger
    RECONCILIATION_TOLERANCE: float = 0.01
    RECEIPT_NUMBER_MAX_RETRIES: int = 5
    DEFAULT_FEE_OFFERED: float = 50000
    DEFAULT_DOWN_PAYMENT: float = 10000

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
