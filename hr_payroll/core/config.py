import os
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import BaseModel, ConfigDict, Field, field_validator
from dotenv import load_dotenv

load_dotenv()


class PayrollSettings(BaseModel):
    model_config = ConfigDict(validate_default=True)

    # Calendar that payslip timestamps are placed on, e.g. the structure delete window.
    timezone: str = Field(default=os.getenv("PAYROLL_TIMEZONE", "UTC"))
    # 1 = generate inline in the request session
    bulk_max_workers: int = Field(default=int(os.getenv("PAYROLL_BULK_MAX_WORKERS", "1")), ge=1)
    money_precision: int = Field(default=int(os.getenv("MONEY_PRECISION", "2")), ge=0)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown PAYROLL_TIMEZONE: {value}")
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class Config(BaseModel):
    app_name: str = "HR Payroll Engine"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./payroll.db")

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    # Upstream gateway headers carrying the authenticated context
    tenant_header: str = "X-Tenant-ID"
    actor_header: str = "X-User-ID"

    # Pagination
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
    max_page_size: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    payroll: PayrollSettings = PayrollSettings()


settings = Config()

_logger = logging.getLogger(__name__)
if settings.environment == "development" and settings.database_url.startswith("sqlite"):
    _logger.warning("Using SQLite database - only acceptable in development.")
