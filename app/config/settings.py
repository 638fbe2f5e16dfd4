from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # Backend REST API
    api_url: str = "http://localhost:8080"
    request_timeout: float = 30.0

    # Notifications
    notification_poll_interval: int = 30  # seconds between unread polls
    system_sender_id: str = "system"
    system_sender_name: str = "DNA Community"

    # Per-user sessions
    session_idle_timeout: int = 1800  # seconds without a request before a session is closed
    session_sweep_interval: int = 60  # 0 disables idle eviction

    # App
    app_name: str = "workshops-gateway"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def workshops_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/api/workshops"

    @property
    def notifications_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/api/notifications"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
