"""
Configuration management for the catering back office
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Catering Back Office"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./catering_backoffice.db"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Daily orders
    NEA_DURATION_HOURS: int = 4  # ready-by to consume-by window

    # Billing
    DEFAULT_TAX_RATE: float = 0.18   # reporting only
    BILLING_TAX_RATE: float = 0.0    # GST applied outside the engine
    DEFAULT_COST_PER_MEAL: float = 25.0
    COMPANY_PAYMENT_TOLERANCE: float = 0.01
    CUSTOMER_BILL_PREFIX: str = "BILL-C"
    COMPANY_BILL_PREFIX: str = "BILL-CO"

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
