import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file next to app.py unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "turfslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tables normally come from `flask db upgrade`
    CREATE_TABLES_ON_STARTUP = os.getenv("CREATE_TABLES_ON_STARTUP", "false").lower() == "true"

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "turfslot_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Slot generation window (days ahead of today)
    SLOT_WINDOW_DAYS = int(os.getenv("SLOT_WINDOW_DAYS", "30"))
    MAX_SLOT_WINDOW_DAYS = int(os.getenv("MAX_SLOT_WINDOW_DAYS", "90"))

    # Cancellation policy (customers only; owners may cancel any time)
    CANCEL_CUTOFF_HOURS = int(os.getenv("CANCEL_CUTOFF_HOURS", "12"))

    # Retries for idempotent store writes; reservations are never retried
    STORE_RETRY_ATTEMPTS = int(os.getenv("STORE_RETRY_ATTEMPTS", "3"))
    STORE_RETRY_BACKOFF_SECONDS = float(os.getenv("STORE_RETRY_BACKOFF_SECONDS", "0.2"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
