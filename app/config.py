from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration settings"""

    # App
    environment: Literal["development", "production"] = "development"
    frontend_url: str = "http://localhost:3000"

    # API
    api_v1_prefix: str = "/api/v1"

    # Supabase
    supabase_url: str
    supabase_key: str
    supabase_jwt_secret: str

    # Player
    default_volume: float = 0.7
    previous_restart_seconds: float = 3.0
    session_idle_seconds: int = 1800
    max_cover_bytes: int = 5 * 1024 * 1024

    # Logging
    log_level: str = "INFO"

    @property
    def allowed_cors_origins(self) -> list[str]:
        """CORS allowed origins"""
        return [self.frontend_url]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def debug(self) -> bool:
        return self.environment == "development"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()
