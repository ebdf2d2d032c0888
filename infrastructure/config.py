"""
Application configuration
Values come from environment variables (prefix HOTEL_) or a .env file
"""
from datetime import timedelta
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    APP_NAME: str = "Hotel Access & Reservation API"
    LOG_LEVEL: str = "INFO"

    # JWT
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60

    # Login throttle, per client address
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    LOGIN_RATE_LIMIT_MAX_ATTEMPTS: int = 5

    # Account lockout
    ACCOUNT_LOCKOUT_THRESHOLD: int = 5
    ACCOUNT_LOCKOUT_MINUTES: int = 30

    # Upper bound for any single store call or room lock wait
    STORE_TIMEOUT_SECONDS: float = 5.0

    SEED_DEMO_DATA: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_prefix="HOTEL_", case_sensitive=True)

    @property
    def access_token_expires(self) -> timedelta:
        return timedelta(minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES)

    @property
    def lockout_duration(self) -> timedelta:
        return timedelta(minutes=self.ACCOUNT_LOCKOUT_MINUTES)

    @property
    def rate_limit_window(self) -> timedelta:
        return timedelta(seconds=self.LOGIN_RATE_LIMIT_WINDOW_SECONDS)


def get_settings() -> Settings:
    return Settings()
