"""Application settings and configuration.

This module defines all configuration options for the EcoRoute real-time core.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="EcoRoute", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    frontend_url: str = Field(default="http://localhost:3000", alias="FRONTEND_URL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./ecoroute.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Real-time channel
    ws_ping_interval_seconds: float = Field(default=25.0, alias="WS_PING_INTERVAL_SECONDS")
    ws_ping_timeout_seconds: float = Field(default=60.0, alias="WS_PING_TIMEOUT_SECONDS")
    chat_history_limit: int = Field(default=50, alias="CHAT_HISTORY_LIMIT")
    chat_default_room: str = Field(default="general", alias="CHAT_DEFAULT_ROOM")

    # Background job queue
    queue_workers_enabled: bool = Field(default=True, alias="QUEUE_WORKERS_ENABLED")
    queue_poll_interval_seconds: float = Field(default=1.0, alias="QUEUE_POLL_INTERVAL_SECONDS")
    email_job_attempts: int = Field(default=3, alias="EMAIL_JOB_ATTEMPTS")
    email_job_backoff_ms: int = Field(default=2000, alias="EMAIL_JOB_BACKOFF_MS")
    notification_job_attempts: int = Field(default=2, alias="NOTIFICATION_JOB_ATTEMPTS")
    notification_job_delay_ms: int = Field(default=1000, alias="NOTIFICATION_JOB_DELAY_MS")

    # Outbound email
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_timeout_seconds: float = Field(default=10.0, alias="SMTP_TIMEOUT_SECONDS")
    email_from: str = Field(default='"EcoRoute" <noreply@ecoroute.com>', alias="EMAIL_FROM")

    # Notifications
    notification_ttl_days: int = Field(default=30, alias="NOTIFICATION_TTL_DAYS")
    notification_purge_interval_seconds: float = Field(
        default=3600.0, alias="NOTIFICATION_PURGE_INTERVAL_SECONDS"
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def smtp_configured(self) -> bool:
        """Return True when SMTP credentials are present."""
        return bool((self.smtp_user or "").strip() and (self.smtp_password or "").strip())


settings = Settings()  # type: ignore[call-arg]
