"""Application configuration."""
from collections import Counter
from functools import lru_cache
import math

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXEMPT_PATHS = (
    "/",
    "/health",
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/logout",
    "/api/auth/loggedInCheck",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    app_name: str = "SessionGuard"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/sessionguard.db"

    # Token signing
    secret_key: str
    algorithm: str = "HS256"

    # Session lifetimes. The cookie outlives both sessions so an expired
    # session is reported as such instead of as a missing login.
    login_session_ttl_seconds: int = 600
    csrf_session_ttl_seconds: int = 600
    cookie_max_age_seconds: int = 3 * 60 * 60
    deletion_grace_seconds: float = 15.0

    # Cookies and headers
    token_cookie_name: str = "auth_jwt"
    csrf_cookie_name: str = "auth_csrf"
    csrf_header_name: str = "auth_csrf"
    cookie_path: str = "/"
    cookie_samesite: str = "lax"
    cookie_secure: bool = True

    exempt_paths: tuple[str, ...] = DEFAULT_EXEMPT_PATHS

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

    @field_validator("login_session_ttl_seconds", "csrf_session_ttl_seconds", "cookie_max_age_seconds")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Lifetimes must be positive.")
        return value

    @field_validator("deletion_grace_seconds")
    @classmethod
    def validate_grace(cls, value: float) -> float:
        if value < 0:
            raise ValueError("DELETION_GRACE_SECONDS must not be negative.")
        return value

    @model_validator(mode="after")
    def validate_cookie_outlives_sessions(self) -> "Settings":
        """Cookie transport lifetime must exceed both session TTLs."""
        longest_session = max(self.login_session_ttl_seconds, self.csrf_session_ttl_seconds)
        if self.cookie_max_age_seconds <= longest_session:
            raise ValueError("COOKIE_MAX_AGE_SECONDS must exceed the session TTLs.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
