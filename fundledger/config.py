"""Configuration management using pydantic settings."""

from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: Path = Field(default=Path("fundledger.db"))


class AccountingConfig(BaseModel):
    """Fund accounting configuration."""

    reconciliation_abs_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=Decimal("0"),
        description="Absolute tolerance for identity and continuity checks",
    )

    # 0 keeps the fixed absolute tolerance; 1e-6 scales it for large accounts
    reconciliation_rel_tolerance: Decimal = Field(
        default=Decimal("0"),
        ge=Decimal("0"),
        le=Decimal("0.01"),
        description="Relative tolerance as a fraction of the compared balance",
    )

    large_gap_threshold: Decimal = Field(
        default=Decimal("100"),
        ge=Decimal("0"),
        description="Continuity gaps above this are classified as missing capital events",
    )

    missing_capital_loss_pct: Decimal = Field(
        default=Decimal("0.30"),
        gt=Decimal("0"),
        le=Decimal("1"),
        description="MTD loss (fraction of opening) that raises the missing-capital flag",
    )

    missing_capital_ratio: Decimal = Field(
        default=Decimal("0.5"),
        gt=Decimal("0"),
        le=Decimal("1"),
        description="Flag only when |net capital| is below this fraction of |MTD P&L|",
    )


class TelemetryConfig(BaseModel):
    """Live telemetry staleness bands."""

    fresh_minutes: int = Field(default=5, ge=1)
    delayed_minutes: int = Field(default=8, ge=1)


class EmailConfig(BaseModel):
    """SMTP delivery configuration."""

    enabled: bool = Field(default=False)
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587)
    smtp_user: str = Field(default="")
    smtp_password: str = Field(default="")
    use_tls: bool = Field(default=True)
    from_address: str = Field(default="reports@localhost")
    cc_addresses: list[str] = Field(default_factory=list)
    admin_addresses: list[str] = Field(default_factory=list)
    environment: str = Field(default="dev")
    send_timeout_seconds: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=2, ge=0, le=10)


class ReportConfig(BaseModel):
    """Monthly statement content."""

    fund_name: str = Field(default="Fund")
    currency: str = Field(default="USDT")
    site_url: str = Field(default="")
    payment_instructions: str = Field(
        default="",
        description="Free text appended to statements with a fee due",
    )
    payment_due_days: int = Field(default=5, ge=1)
    report_dir: Path | None = Field(
        default=None,
        description="If set, every rendered statement is also written here",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_dir: Path = Field(default=Path("logs"))
    json_format: bool = Field(default=True)


class Settings(BaseSettings):
    """Application settings."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    accounting: AccountingConfig = Field(default_factory=AccountingConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "FUNDLEDGER_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def load_settings() -> Settings:
    """Load settings from environment variables."""
    return Settings()
