import logging

from pydantic_settings import BaseSettings
from typing import List

_logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Unfurler"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Outbound fetching
    USER_AGENT: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36 Unfurler/0.1"
    )
    FETCH_TIMEOUT: float = 10.0  # seconds, primary page fetch
    IMAGE_FETCH_TIMEOUT: float = 5.0  # seconds, secondary image fetch
    MAX_PAGE_BYTES: int = 2 * 1024 * 1024
    MAX_IMAGE_BYTES: int = 1024 * 1024
    MAX_REDIRECTS: int = 5
    MAX_CONCURRENT_FETCHES: int = 50  # outbound connection pool size

    # Proxy-target policy. Only turn this on for local development.
    ALLOW_PRIVATE_TARGETS: bool = False

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2
    SENTRY_ENVIRONMENT: str = "development"

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    def model_post_init(self, __context) -> None:
        if self.ALLOW_PRIVATE_TARGETS:
            _logger.warning(
                "ALLOW_PRIVATE_TARGETS is enabled, internal addresses can be "
                "fetched. Never enable this in production."
            )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
