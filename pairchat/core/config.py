"""
Core configuration module using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str = "sqlite:///./pairchat.db"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_pre_ping: bool = True
    db_pool_recycle: int = 3600  # 1 hour
    shutdown_drain_seconds: float = 10.0

    # Security Configuration
    jwt_secret_key: str = "changeme-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    bcrypt_rounds: int = 12
    min_password_length: int = 8

    # Messaging Configuration
    max_message_length: int = 4000
    # Off by default: any connection that knows a conversation id may join its room
    require_participation_on_join: bool = False

    # Application Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
