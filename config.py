import os
from dataclasses import dataclass
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()


def _flag(name, default="False"):
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///library.db")
    database_echo: bool = _flag("DATABASE_ECHO")

    # Flask
    secret_key: str = os.getenv("SECRET_KEY", "secret_key")
    debug: bool = _flag("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Circulation rules
    loan_period_days: int = int(os.getenv("LOAN_PERIOD_DAYS", "15"))
    fine_per_day: Decimal = Decimal(os.getenv("FINE_PER_DAY", "1.00"))

    # Reconciliation job
    scheduler_enabled: bool = _flag("SCHEDULER_ENABLED", "True")
    scheduler_timezone: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")
    reconcile_hour: int = int(os.getenv("RECONCILE_HOUR", "0"))


settings = Settings()
