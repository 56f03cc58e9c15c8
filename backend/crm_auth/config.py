"""Application configuration."""
from collections import Counter
from functools import lru_cache
import math

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "CRM Auth"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    frontend_url: str = "http://localhost:5173"

    # Database
    database_url: str = "sqlite:///./data/crm.db"

    # Auth
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_days: int = 7
    verification_token_expire_hours: int = 24
    reset_token_expire_hours: int = 1
    session_retention_days: int = 30
    bcrypt_rounds: int = 12

    # System administrator
    system_admin_email: str = "admin@yitro.com"
    system_admin_name: str = "System Administrator"
    bootstrap_admin_password: str | None = None

    # Email
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_from_email: str = "noreply@crm.local"
    smtp_timeout_seconds: float = 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value: str) -> str:
        """Fail closed if SECRET_KEY is weak or placeholder quality."""
        if not value:
            raise ValueError("SECRET_KEY must be set.")

        if len(value) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")

        weak_values = {"changeme", "changeme-in-production", "secret", "password", "test"}
        lowered = value.lower()
        if lowered in weak_values or "changeme" in lowered:
            raise ValueError("SECRET_KEY must not be a placeholder value.")

        counts = Counter(value)
        entropy_per_char = -sum((count / len(value)) * math.log2(count / len(value)) for count in counts.values())
        estimated_entropy_bits = entropy_per_char * len(value)
        if estimated_entropy_bits < 100:
            raise ValueError("SECRET_KEY entropy is too low; use a cryptographically random value.")

        return value

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        """bcrypt accepts cost factors 4..31."""
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return value

    @field_validator("system_admin_email")
    @classmethod
    def normalize_admin_email(cls, value: str) -> str:
        return value.strip().lower()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
