from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = Field(default="Contact Reconciliation API", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    app_env: str = Field(default="local", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    db_name: str = Field(default="contacts.db", alias="DB_NAME")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_connect_timeout: float = Field(default=10.0, alias="DB_CONNECT_TIMEOUT")
    db_retry_attempts: int = Field(default=3, alias="DB_RETRY_ATTEMPTS")
    db_retry_delay: float = Field(default=2.0, alias="DB_RETRY_DELAY")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
