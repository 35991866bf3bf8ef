"""Central environment-driven settings for the notification sync service.

The process loads this once at startup. Polling cadence, presentation timing and
backend location are controlled by environment variables (see `.env.example`).
"""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "notification-sync"
    log_level: str = "INFO"
    api_base_url: str = "http://localhost:8000/api"
    http_timeout_seconds: float = 30.0
    poll_interval_seconds: float = 3.0
    auto_close_seconds: float = 5.0
    poll_page_limit: int = 10
    bootstrap_page_limit: int = 100
    bootstrap_max_pages: int = 10
    retry_unresolved_orders: bool = False
    auth_token: SecretStr | None = None
    user_role: str = "PICKER"
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
