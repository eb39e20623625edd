from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "DSA Tracker Backend"
    api_prefix: str = "/api"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    database_url: str = "sqlite:////tmp/dsa_tracker.db"

    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Server-side listing cache
    questions_cache_ttl_seconds: float = 300.0
    default_view_ttl_multiplier: int = 2
    filters_cache_ttl_seconds: float = 1800.0
    cache_sweep_interval_seconds: float = 300.0

    # Pagination and cacheability policy
    default_page_size: int = 25
    page_size_options: List[int] = [25, 50, 100]
    cacheable_pages: List[int] = [1]

    # Access tiers
    free_tier_max_questions: int = 100

    @property
    def is_production(self) -> bool:
        return not self.database_url.startswith("sqlite")

    @property
    def cacheable_max_page_size(self) -> int:
        return min(self.page_size_options)

    @property
    def default_view_ttl_seconds(self) -> float:
        return self.questions_cache_ttl_seconds * self.default_view_ttl_multiplier


settings = Settings()
