"""Application configuration settings."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage backend: "redis" for deployments, "memory" for local runs
    storage_backend: str = Field(default="redis", env="STORAGE_BACKEND")

    # Redis configuration
    redis_host: str = Field(default="localhost", env="REDIS_HOST")
    redis_port: int = Field(default=6379, env="REDIS_PORT")
    redis_db: int = Field(default=0, env="REDIS_DB")
    redis_password: Optional[str] = Field(default=None, env="REDIS_PASSWORD")
    redis_connection_timeout: int = Field(default=5, env="REDIS_CONNECTION_TIMEOUT")
    redis_socket_timeout: int = Field(default=5, env="REDIS_SOCKET_TIMEOUT")
    redis_max_connections: int = Field(default=10, env="REDIS_MAX_CONNECTIONS")
    redis_key_prefix: str = Field(default="pool:", env="REDIS_KEY_PREFIX")

    # Pool batching
    ingest_batch_size: int = Field(default=10000, env="INGEST_BATCH_SIZE")
    bulk_assign_user_batch_size: int = Field(default=50, env="BULK_ASSIGN_USER_BATCH_SIZE")
    release_batch_size: int = Field(default=1000, env="RELEASE_BATCH_SIZE")

    # Bootstrap admin account
    admin_user_id: str = Field(default="000000", env="ADMIN_USER_ID")
    admin_name: str = Field(default="Admin", env="ADMIN_NAME")

    # API configuration
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=8000, env="API_PORT")
    api_debug: bool = Field(default=False, env="API_DEBUG")

    # Logging configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")  # json or text

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
