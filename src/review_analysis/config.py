import os
from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as redis
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")
    redis_key_prefix: str = os.getenv("REDIS_KEY_PREFIX", "")

    # Cache
    cache_operation_timeout: float = float(os.getenv("CACHE_OPERATION_TIMEOUT", "1.0"))
    cache_result_ttl: int = int(os.getenv("CACHE_RESULT_TTL", "3600"))  # 1 hour
    cache_status_ttl: int = int(os.getenv("CACHE_STATUS_TTL", "300"))  # 5 minutes
    cache_task_ttl: int = int(os.getenv("CACHE_TASK_TTL", "1800"))  # 30 minutes

    # External analysis service
    analysis_server_url: str = os.getenv("ANALYSIS_SERVER_URL", "http://localhost:30800")
    analysis_server_token: str | None = os.getenv("ANALYSIS_SERVER_TOKEN")
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "5.0"))
    http_retry_count: int = int(os.getenv("HTTP_RETRY_COUNT", "1"))
    http_retry_base_delay: float = float(os.getenv("HTTP_RETRY_BASE_DELAY", "0.5"))

    # Address the external service calls back on completion
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

    # Duplicate submission guard (off = concurrent submits may create two tasks)
    submission_guard_enabled: bool = os.getenv("SUBMISSION_GUARD_ENABLED", "false").lower() == "true"
    submission_guard_ttl: int = int(os.getenv("SUBMISSION_GUARD_TTL", "30"))

    # Realtime notifications: "broadcast" (in-process) or "redis" (pub/sub)
    notifier_backend: str = os.getenv("NOTIFIER_BACKEND", "broadcast")
    notifier_queue_size: int = int(os.getenv("NOTIFIER_QUEUE_SIZE", "100"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def callback_url(self) -> str:
        """Absolute URL of the analysis callback endpoint."""
        return f"{self.public_base_url.rstrip('/')}/api/analyze/callback"

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        for name in ("cache_result_ttl", "cache_status_ttl", "cache_task_ttl", "submission_guard_ttl"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be a positive number of seconds")

        if self.http_timeout <= 0 or self.cache_operation_timeout <= 0:
            raise ValueError("HTTP_TIMEOUT and CACHE_OPERATION_TIMEOUT must be positive")

        if self.http_retry_count < 0:
            raise ValueError("HTTP_RETRY_COUNT must be zero or greater")

        if self.notifier_backend not in ("broadcast", "redis"):
            raise ValueError(
                f"NOTIFIER_BACKEND must be one of ['broadcast', 'redis'], got {self.notifier_backend}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create an asyncio Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
        socket_timeout=settings.cache_operation_timeout,
        socket_connect_timeout=settings.cache_operation_timeout,
    )
