# tenantbook/config.py

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tenantbook.db")

# JWT signing
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn("SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2)
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "365"))

# Tenant creation is disabled unless a platform key is configured
PLATFORM_API_KEY = os.getenv("PLATFORM_API_KEY")

# Display label only, instants are always stored in UTC
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Jerusalem")

# Scheduling defaults, copied onto each new business
WORK_DAY_START_HOUR = int(os.getenv("WORK_DAY_START_HOUR", "8"))
WORK_DAY_END_HOUR = int(os.getenv("WORK_DAY_END_HOUR", "20"))
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "20"))
SLOT_LOOKAHEAD_DAYS = int(os.getenv("SLOT_LOOKAHEAD_DAYS", "14"))
NEAREST_SLOTS_COUNT = int(os.getenv("NEAREST_SLOTS_COUNT", "5"))
MAX_CONFIRMED_PER_CLIENT = int(os.getenv("MAX_CONFIRMED_PER_CLIENT", "3"))
CANCEL_CUTOFF_HOURS = int(os.getenv("CANCEL_CUTOFF_HOURS", "24"))

# Push notifications (Expo)
PUSH_NOTIFICATIONS_ENABLED = os.getenv("PUSH_NOTIFICATIONS_ENABLED", "true").lower() == "true"
EXPO_PUSH_URL = os.getenv("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
PUSH_TIMEOUT_SECONDS = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
