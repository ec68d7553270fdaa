# src/smart_select/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    app_name: str = "Smart Select Redirect API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Upstream (RedCircle Store-Stock / Product API)
    redcircle_api_key: str = Field(default="")
    redcircle_base_url: str = "https://api.redcircleapi.com/request"
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)

    # Cache: Stock ist volatil (Minuten), Katalogdaten ändern sich selten (Stunden)
    stock_cache_ttl_seconds: int = Field(default=300, gt=0)
    catalog_cache_ttl_seconds: int = Field(default=3600, gt=0)

    # Ziel-URL für die Produktdetailseite (PDP)
    product_url_template: str = "https://www.target.com/p/-/A-{product_id}"

    # CORS
    cors_origins: list[str] = Field(default=["*"])

    # Rate Limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_key_configured(self) -> bool:
        return bool(self.redcircle_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
