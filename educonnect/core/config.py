import secrets

from pydantic_settings import BaseSettings


def _generate_dev_secret() -> str:
    """Generate a random secret for local development only."""
    return secrets.token_hex(32)


class Settings(BaseSettings):
    # App
    app_name: str = "EduConnect"
    debug: bool = False
    environment: str = "development"  # development, production
    log_level: str = ""  # DEBUG, INFO, WARNING, ERROR, CRITICAL (empty = auto based on environment)
    log_to_file: bool = True

    # Database (SQLite for local dev, PostgreSQL for production)
    database_url: str = "sqlite:///./educonnect.db"

    # JWT. Must be set via SECRET_KEY in production; a random key is generated in development.
    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    remember_me_expire_days: int = 30
    refresh_token_expire_days: int = 7

    # Frontend / public URLs
    frontend_url: str = "http://localhost:5173"
    public_base_url: str = "http://localhost:8000"

    # CORS (comma-separated origins)
    allowed_origins: str = ""

    # "admin" typed on the login form resolves to this account
    admin_login_alias: str = "admin"
    admin_email: str = "admin@sis.hust.edu.vn"

    # Uploads
    upload_dir: str = "uploads"
    max_upload_size_mb: int = 10
    max_upload_files: int = 10

    # Anthropic Claude (reply suggestions)
    anthropic_api_key: str = ""
    claude_model: str = "claude-sonnet-4-5-20250929"
    suggestion_language: str = "ja"

    # Rate limiting
    rate_limit_enabled: bool = True

    # Audit logging
    audit_log_enabled: bool = True

    # Background reminder job
    reminder_check_minutes: int = 15

    # Email
    sendgrid_api_key: str = ""
    from_email: str = "noreply@educonnect.app"
    # SMTP (used when SendGrid is not configured)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

_KNOWN_WEAK_KEYS = {"your-secret-key-change-in-production", "changeme", "secret", ""}

if settings.secret_key in _KNOWN_WEAK_KEYS:
    if settings.environment == "production":
        raise RuntimeError(
            "SECRET_KEY is not set or uses a known weak default. "
            "Set a strong SECRET_KEY env var (e.g. `openssl rand -hex 32`)."
        )
    settings.secret_key = _generate_dev_secret()
