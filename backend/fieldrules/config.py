from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False  # True for production (structured JSON), False for dev (colored)

    # Validation
    VALIDATION_MODE: str = "collect_all"  # or "fail_fast"
    MAX_ERRORS: int | None = None  # cap on collected failures, None for no cap
    NULL_LITERALS: list[str] = ["null", "undefined"]

    class Config:
        env_prefix = "FIELDRULES_"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
