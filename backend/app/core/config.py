"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Content Moderation Engine"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Logging and tracing
    LOG_LEVEL: str = "INFO"
    LOG_JSON_FORMAT: bool = True
    TRACING_CONSOLE_EXPORT: bool = False

    # Database - REQUIRED
    DATABASE_URL: str

    # Redis - REQUIRED
    REDIS_URL: str

    # Security - REQUIRED (no defaults for sensitive values)
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Roles that carry moderator capability
    MODERATOR_ROLES: list[str] = ["moderator", "admin"]

    # CORS
    CORS_ORIGINS: list[str] = []

    # Celery
    CELERY_BROKER_URL: str = ""
    CELERY_RESULT_BACKEND: str = ""

    # Stores
    # STORAGE_BACKEND: sql, memory (single process, data lost on restart)
    STORAGE_BACKEND: str = "sql"

    # Rate limiting
    # RATE_LIMIT_BACKEND: redis, memory
    RATE_LIMIT_BACKEND: str = "redis"
    REPORT_RATE_LIMIT_MAX_REQUESTS: int = 10
    REPORT_RATE_LIMIT_WINDOW_SECONDS: int = 3600
    MODERATION_RATE_LIMIT_MAX_REQUESTS: int = 100
    MODERATION_RATE_LIMIT_WINDOW_SECONDS: int = 3600

    # Report ingestion
    REPORT_DESCRIPTION_MIN_LENGTH: int = 10
    REPORT_DESCRIPTION_MAX_LENGTH: int = 1000
    REPORT_AUTO_HIDE_THRESHOLD: int = 0  # 0 disables auto-hide

    # Spam score banding
    SPAM_FLAG_THRESHOLD: int = 75
    SPAM_MEDIUM_RISK_THRESHOLD: int = 40

    # Moderation queue
    QUEUE_DEFAULT_PAGE_SIZE: int = 20
    QUEUE_MAX_PAGE_SIZE: int = 100
    BULK_ACTION_MAX_ITEMS: int = 100

    # Audit log writes are retried with exponential backoff
    AUDIT_WRITE_MAX_ATTEMPTS: int = 5
    AUDIT_WRITE_INITIAL_DELAY_SECONDS: float = 0.05
    AUDIT_WRITE_MAX_DELAY_SECONDS: float = 2.0

    # External content store
    CONTENT_SERVICE_URL: str = ""
    CONTENT_SERVICE_TIMEOUT_SECONDS: float = 5.0

    # Notification dispatcher (external Celery worker)
    NOTIFICATION_TASK_NAME: str = "notifications.moderation_event"
    NOTIFICATION_QUEUE: str = "notifications"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
