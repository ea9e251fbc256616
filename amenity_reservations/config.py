import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./amenity_reservations.db")

# Pool settings apply to server databases only
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

# Wall-clock zone used for "now" and "today" (e.g. America/Chicago)
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "America/New_York")

# Security - bearer tokens are issued by the identity service and signed with SECRET_KEY
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Fee schedule
CANCELLATION_ADMIN_FEE = float(os.getenv("CANCELLATION_ADMIN_FEE", "50"))
CANCELLATION_FULL_REFUND_DAYS = int(os.getenv("CANCELLATION_FULL_REFUND_DAYS", "14"))
CANCELLATION_ADMIN_FEE_MIN_DAYS = int(os.getenv("CANCELLATION_ADMIN_FEE_MIN_DAYS", "7"))
MODIFICATION_FEE = float(os.getenv("MODIFICATION_FEE", "25"))
MODIFICATION_FREE_WINDOW_DAYS = int(os.getenv("MODIFICATION_FREE_WINDOW_DAYS", "7"))

# Janitorial cleaning window must last at least this long
CLEANING_MIN_HOURS = float(os.getenv("CLEANING_MIN_HOURS", "2"))

# Longest date range the availability calendar answers in one request
AVAILABILITY_MAX_DAYS = int(os.getenv("AVAILABILITY_MAX_DAYS", "93"))

# Optional HTTP endpoint of the notification collaborator (email/SMS fan-out)
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")
NOTIFICATION_WEBHOOK_TIMEOUT = float(os.getenv("NOTIFICATION_WEBHOOK_TIMEOUT", "5"))
