"""Application settings"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Hotel Reservation Service"

    # Auth (override in production through the environment)
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Reservation domain
    confirmation_prefix: str = "HTP"
    currency: str = "PEN"
    # calendar dates (check-in guards, "today" filters) are read in the hotel timezone
    timezone: str = "America/Lima"
    guest_search_limit: int = 10
    reservation_search_limit: int = 10
    default_page_size: int = 50

    log_level: str = "INFO"
    seed_demo_data: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
