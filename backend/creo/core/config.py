from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', case_sensitive=False, extra='ignore')

    app_name: str = 'Creo'
    api_v1_prefix: str = '/api'
    debug: bool = False
    log_level: str = 'INFO'

    stock_api_base_url: str = 'https://nehtw.com/api'
    stock_api_key: str | None = None
    request_timeout_seconds: float = 30.0

    max_concurrent_lookups: int = Field(default=4, ge=1, le=32)
    catalog_ttl_seconds: int = 300
    api_retry_attempts: int = 3
    api_retry_backoff_seconds: int = 2

    default_currency_unit: str = 'points'

    @field_validator('stock_api_base_url')
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip('/')


settings = Settings()
