from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/jobs.db"
    openai_api_key: str = ""
    scrape_interval_hours: int = 6
    log_level: str = "INFO"

    # Redis configuration
    redis_url: str = "redis://localhost:6379"

    # Celery configuration
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/0"

    # Scraping
    # When disabled, adapters return sample postings instead of fetching
    scraping_enabled: bool = True
    throttle_min_delay: float = 2.0
    throttle_max_delay: float = 5.0
    retry_max_retries: int = 3
    retry_base_delay: float = 10.0
    fetch_timeout: float = 30.0
    max_concurrent_fetches: int = 3

    # AI matching
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.3
    openai_timeout: float = 60.0
    match_batch_size: int = 20
    match_parallelism: int = 3
    match_threshold: float = 0.5
    match_group_delay: float = 1.0
    match_cache_ttl: int = 604800  # 7 days

    # Outgoing mail for the send-email queue
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_sender: str = "jobs@localhost"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
