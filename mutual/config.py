import os
from functools import lru_cache
from pydantic import BaseModel, Field
from pathlib import Path as _Path

# Fallback: attempt to load .env early if not already loaded
try:
    from dotenv import load_dotenv as _load_dotenv  # type: ignore
    _load_dotenv(dotenv_path=_Path(__file__).resolve().parent.parent / ".env", override=False)
except Exception:
    pass


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _redis_pubsub_enabled_default() -> bool:
    explicit = os.getenv("REDIS_PUBSUB_ENABLED")
    if explicit is not None:
        return explicit.lower() in ("1", "true", "yes")
    return bool(os.getenv("REDIS_URL"))


class Settings(BaseModel):
    # Support multiple common env var names for Mongo connection string
    mongo_uri: str = Field(
        default_factory=lambda: (
            os.getenv("MONGO_URI")
            or os.getenv("MONGODB_URI")
            or os.getenv("MONGO_URL")
            or ""
        )
    )
    mongo_db: str = Field(default_factory=lambda: os.getenv("MONGO_DB_NAME", "mutual"))
    # Optional: provide a non-SRV fallback URI (e.g., mongodb://127.0.0.1:27017)
    mongo_alt_uri: str = Field(default_factory=lambda: os.getenv("MONGO_ALT_URI", ""))
    # Optional: force direct connection (applies to non-SRV URIs)
    mongo_direct: bool = Field(default_factory=lambda: _env_flag("MONGO_DIRECT"))
    cors_origins: str = Field(
        default_factory=lambda: os.getenv("CORS_ORIGINS")
        or os.getenv("CORS_ORIGIN")
        or "http://localhost:5173,http://127.0.0.1:5173"
    )
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "8081")))

    # Auth (tokens are minted by the identity provider; we only verify them)
    jwt_secret: str = Field(default_factory=lambda: os.getenv("JWT_SECRET", ""))

    # Redis (real-time fan-out between instances)
    redis_url: str = Field(default_factory=lambda: os.getenv("REDIS_URL", ""))
    redis_pubsub_enabled: bool = Field(default_factory=_redis_pubsub_enabled_default)
    redis_pubsub_prefix: str = Field(default_factory=lambda: os.getenv("REDIS_PUBSUB_PREFIX", "mutual"))

    # Per-user lease guarding activate/end
    activation_lock_ttl_ms: int = Field(default_factory=lambda: int(os.getenv("ACTIVATION_LOCK_TTL_MS", "5000")))
    activation_lock_wait_ms: int = Field(default_factory=lambda: int(os.getenv("ACTIVATION_LOCK_WAIT_MS", "2000")))

    # Conversation limits
    message_max_length: int = Field(default_factory=lambda: int(os.getenv("MESSAGE_MAX_LENGTH", "2000")))
    message_page_default: int = Field(default_factory=lambda: int(os.getenv("MESSAGE_PAGE_DEFAULT", "50")))
    message_page_max: int = Field(default_factory=lambda: int(os.getenv("MESSAGE_PAGE_MAX", "200")))

    # Pending events per WebSocket before the stream is closed
    stream_queue_size: int = Field(default_factory=lambda: int(os.getenv("STREAM_QUEUE_SIZE", "256")))

    slow_request_ms: int = Field(default_factory=lambda: int(os.getenv("SLOW_REQUEST_MS", "800")))

    @property
    def allow_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
