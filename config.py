import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _engine_options(uri: str) -> dict:
    # bounded lock waits: a conflicting writer gets an error instead of stalling
    if uri.startswith("postgresql"):
        return {
            "pool_pre_ping": True,
            "connect_args": {"options": "-c lock_timeout=5000"},
        }
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": 5}}
    return {"pool_pre_ping": True}


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored beside the app as studyslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "studyslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)

    # Identity is issued upstream; the proxy forwards it in these headers
    IDENTITY_EMAIL_HEADER = os.getenv("IDENTITY_EMAIL_HEADER", "X-Participant-Email")
    IDENTITY_NAME_HEADER = os.getenv("IDENTITY_NAME_HEADER", "X-Participant-Name")

    # Admin allow list (comma separated e-mails)
    ADMIN_EMAILS = os.getenv("ADMIN_EMAILS", "")

    # Slots
    SLOT_DURATION_MINUTES = 60
    DEFAULT_SLOT_CAPACITY = int(os.getenv("DEFAULT_SLOT_CAPACITY", "1"))

    # Reminders
    CRON_SECRET = os.getenv("CRON_SECRET")
    REMINDER_LOOKAHEAD_HOURS = int(os.getenv("REMINDER_LOOKAHEAD_HOURS", "24"))
    REMINDER_SEND_TIMEOUT_SECONDS = int(os.getenv("REMINDER_SEND_TIMEOUT_SECONDS", "10"))
    REMINDER_SUBJECT = os.getenv("REMINDER_SUBJECT", "Reminder: study appointment")
    DISPLAY_TIMEZONE = os.getenv("DISPLAY_TIMEZONE", "Europe/Zurich")
    APP_BASE_URL = os.getenv("APP_BASE_URL")

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Basic app settings
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DEBUG = False
