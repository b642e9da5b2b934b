import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_booking.db")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:5173"])

BOOKING_LOCK_TIMEOUT_SECONDS = float(os.getenv("BOOKING_LOCK_TIMEOUT_SECONDS", "5"))

# Severity of the two "nothing to offer" availability outcomes.
AVAILABILITY_INACTIVE_STATUS_CODE = _get_int(os.getenv("AVAILABILITY_INACTIVE_STATUS_CODE"), 422)
AVAILABILITY_NO_HOURS_STATUS_CODE = _get_int(os.getenv("AVAILABILITY_NO_HOURS_STATUS_CODE"), 200)

DEFAULT_PER_PAGE = _get_int(os.getenv("DEFAULT_PER_PAGE"), 15)
MAX_PER_PAGE = _get_int(os.getenv("MAX_PER_PAGE"), 100)


def _is_soft_status(code: int) -> bool:
    return 200 <= code < 300 or 400 <= code < 500


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at a server database in production.")
    if BOOKING_LOCK_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("BOOKING_LOCK_TIMEOUT_SECONDS must be positive.")
    for name, code in (
        ("AVAILABILITY_INACTIVE_STATUS_CODE", AVAILABILITY_INACTIVE_STATUS_CODE),
        ("AVAILABILITY_NO_HOURS_STATUS_CODE", AVAILABILITY_NO_HOURS_STATUS_CODE),
    ):
        if not _is_soft_status(code):
            raise RuntimeError(f"{name} must be a 2xx or 4xx status code.")
    if not 1 <= DEFAULT_PER_PAGE <= MAX_PER_PAGE:
        raise RuntimeError("DEFAULT_PER_PAGE must be between 1 and MAX_PER_PAGE.")
