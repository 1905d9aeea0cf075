from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # WhatsApp Cloud API
    whatsapp_verify_token: str = Field(default="test", alias="WHATSAPP_VERIFY_TOKEN")
    whatsapp_access_token: str | None = Field(default=None, alias="WHATSAPP_ACCESS_TOKEN")
    whatsapp_phone_number_id: str | None = Field(default=None, alias="WHATSAPP_PHONE_NUMBER_ID")
    whatsapp_api_version: str = Field(default="v22.0", alias="WHATSAPP_API_VERSION")
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    # Optional components to compose a URL when REDIS_URL is not provided
    redis_host: str | None = Field(default=None, alias="REDIS_HOST")
    redis_port: int | None = Field(default=None, alias="REDIS_PORT")
    redis_db: int | None = Field(default=None, alias="REDIS_DB")
    redis_password: str | None = Field(default=None, alias="REDIS_PASSWORD")
    # Database
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    # Chat sessions
    chat_session_timeout_minutes: int = Field(default=30, alias="CHAT_SESSION_TIMEOUT_MINUTES")
    chat_session_sweep_seconds: int = Field(default=300, alias="CHAT_SESSION_SWEEP_SECONDS")
    # Chatbot login throttling
    login_max_attempts: int = Field(default=5, alias="LOGIN_MAX_ATTEMPTS")
    login_window_seconds: int = Field(default=900, alias="LOGIN_WINDOW_SECONDS")
    # Dates in chat replies and notifications
    display_timezone: str = Field(default="America/Sao_Paulo", alias="DISPLAY_TIMEZONE")
    # Notifications
    notifications_enabled: bool = Field(default=True, alias="NOTIFICATIONS_ENABLED")
    notification_interval_seconds: int = Field(default=300, alias="NOTIFICATION_INTERVAL_SECONDS")
    daily_summary_hour: int = Field(default=8, alias="DAILY_SUMMARY_HOUR")
    daily_summary_window_minutes: int = Field(default=10, alias="DAILY_SUMMARY_WINDOW_MINUTES")
    daily_summary_timezone: str = Field(
        default="America/Sao_Paulo", alias="DAILY_SUMMARY_TIMEZONE"
    )
    # Web session cookie for the settings API
    session_secret_key: str = Field(
        default="your-secret-key-change-in-production", alias="SESSION_SECRET_KEY"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def redis_conn_url(self) -> str | None:
        """Return a Redis connection URL.
        Prefers `REDIS_URL`; otherwise constructs from host/port/db/password.
        """
        if self.redis_url:
            return self.redis_url
        if not self.redis_host:
            return None
        host = self.redis_host
        port = self.redis_port or 6379
        db = self.redis_db or 0
        password = (self.redis_password or "").strip()
        auth = f":{password}@" if password else ""
        return f"redis://{auth}{host}:{port}/{db}"

    @property
    def sqlalchemy_database_url(self) -> str:
        """Return SQLAlchemy-compatible database URL, with a local SQLite default.

        Default: sqlite:///./launchrocket.db
        """
        if self.database_url and self.database_url.strip():
            return self.database_url
        return "sqlite:///./launchrocket.db"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
