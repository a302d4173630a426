from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    # Request settings
    request_timeout: float = 30.0  # seconds, per request
    follow_redirects: bool = True
    verify_ssl: bool = True
    max_body_size: int = 10 * 1024 * 1024  # 10MB max response body

    # Run settings
    max_concurrency: int = 8  # max in-flight requests per run

    log_level: str = "WARNING"

    @field_validator("request_timeout")
    @classmethod
    def check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout must be positive")
        return value

    @field_validator("max_concurrency")
    @classmethod
    def check_concurrency(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_concurrency must be at least 1")
        return value

    class Config:
        env_prefix = "APITESTER_"
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
