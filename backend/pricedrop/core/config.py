import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [part.strip().lower() for part in raw.split(",") if part.strip()]


class Settings:
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        "postgresql+psycopg2://pricedrop:secret@db:5432/pricedrop",
    )
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # scheduler cadence
    MONITOR_ENABLED = _env_bool("MONITOR_ENABLED", True)
    NOTIFIER_INTERVAL_SECONDS = int(os.getenv("NOTIFIER_INTERVAL_SECONDS", "600"))
    MIN_CHECK_INTERVAL_SECONDS = int(os.getenv("MIN_CHECK_INTERVAL_SECONDS", "300"))
    BATCH_SIZE = int(os.getenv("BATCH_SIZE", "20"))

    # outbound pacing
    DOMAIN_DELAY_SECONDS = float(os.getenv("DOMAIN_DELAY_SECONDS", "2.0"))
    PACING_MIN_SECONDS = float(os.getenv("PACING_MIN_SECONDS", "0.8"))
    PACING_MAX_SECONDS = float(os.getenv("PACING_MAX_SECONDS", "2.8"))

    # page fetching
    FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))
    RENDER_TIMEOUT_MS = int(os.getenv("RENDER_TIMEOUT_MS", "25000"))
    RENDER_DELAY_MIN_SECONDS = float(os.getenv("RENDER_DELAY_MIN_SECONDS", "1"))
    RENDER_DELAY_MAX_SECONDS = float(os.getenv("RENDER_DELAY_MAX_SECONDS", "3"))
    RENDER_ONLY_DOMAINS = _env_list("RENDER_ONLY_DOMAINS")
    USER_AGENT = os.getenv(
        "USER_AGENT",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36",
    )
    OUTBOUND_PROXY = os.getenv("OUTBOUND_PROXY")

    # email
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_STARTTLS = _env_bool("SMTP_STARTTLS", True)
    EMAIL_FROM = os.getenv("EMAIL_FROM", "Price Drop Notifier <no-reply@example.com>")


settings = Settings()
