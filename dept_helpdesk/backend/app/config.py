# dept_helpdesk/backend/app/config.py
import os

from dotenv import load_dotenv

# Load settings from .env at project root
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


DATABASE_URL = os.getenv("DATABASE_URL")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Auth
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@system.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "password")

# Outgoing mail
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = _env_int("SMTP_PORT", 587)
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_FROM = os.getenv("SMTP_FROM")
SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Overdue sweep
OVERDUE_SWEEP_ENABLED = _env_bool("OVERDUE_SWEEP_ENABLED", True)
OVERDUE_SWEEP_INTERVAL_SECONDS = _env_int("OVERDUE_SWEEP_INTERVAL_SECONDS", 60)
# 0 = notify once per overdue occurrence, never again
OVERDUE_RENOTIFY_MINUTES = _env_int("OVERDUE_RENOTIFY_MINUTES", 0)
