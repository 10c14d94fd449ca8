from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = False
    store_timeout_seconds: float = 5.0

    # Admin bearer tokens (issued elsewhere, verified here)
    secret_key: str
    admin_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:5173"

    # Env
    env: str = "development"

    # All booking timestamps are naive wall-clock times in this zone
    timezone: str = "UTC"

    # Frontend base for confirm / cancel links in emails
    public_base_url: str = "http://localhost:5173"

    # Reminder sweep
    reminders_enabled: bool = True
    reminder_interval_seconds: int = 15 * 60
    reminder_lookahead_hours: int = 168
    notifier_timeout_seconds: float = 10.0

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "SlotBook"
    site_name: str = "SlotBook"

    # SMS (Twilio REST API). Leave empty to disable sending.
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)

    @property
    def sms_enabled(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from)


settings = Settings()
