import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_key: str = os.getenv("API_KEY", "super-secret-key")

    # Database settings
    database_file: str = (
        os.getenv("LIBRARY_DB_FILE")
        or os.getenv("LIBRARY_DATA_FILE")
        or "library.db"
    )
    # Seconds a transaction waits for the write lock before failing
    database_timeout: float = float(os.getenv("LIBRARY_DB_TIMEOUT", "30"))

    # Loan policy
    loan_period_days: int = int(os.getenv("LOAN_PERIOD_DAYS", "7"))
    # Whether a renewal also moves date_out to the renewal moment
    renewal_refreshes_date_out: bool = _flag("RENEWAL_REFRESHES_DATE_OUT")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Library Loans")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _flag("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
