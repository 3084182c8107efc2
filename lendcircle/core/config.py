from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path

# Find .env file - check lendcircle/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
PACKAGE_ENV = BASE_DIR / "lendcircle" / ".env"
ROOT_ENV = BASE_DIR / ".env"

# Use lendcircle/.env if it exists, otherwise try root .env
env_file = str(PACKAGE_ENV) if PACKAGE_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./lendcircle.db"

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Circle rules
    CREDIT_CEILING: int = 400000  # Maximum outstanding a member may carry
    CASH_BILL_INTEREST_PERCENT: float = 1.5  # Monthly interest on the outstanding balance
    DEFAULT_MONTHLY_SUBSCRIPTION: int = 2100
    DEFAULT_LOAN_INTEREST_RATE: float = 1.5  # Monthly percent, same basis as the cash bill interest
    MIN_LOAN_AMOUNT: int = 10000
    CASH_BILL_TITLE: str = "CASH BILL MEETING 85"

    # Application
    AUDIT_LOG_DIR: Optional[str] = None
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = env_file
        case_sensitive = True


settings = Settings()

# Derived paths
LOGS_DIR = Path(settings.AUDIT_LOG_DIR) if settings.AUDIT_LOG_DIR else BASE_DIR / "logs"
