"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with KNOWHUB_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: every process (API replica, relay, CLI) reads the same settings,
so the broker URL and JWT secret only need to be set once per deployment.
"""

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via KNOWHUB_* env vars."""

    # Broker
    redis_url: str = "redis://localhost:6379/0"
    broker_backend: Literal["redis", "memory"] = "redis"

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 5000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:5173",
    ]

    # Realtime
    verify_team_on_join: bool = True  # admit joins only for the session's own team
    activity_retention: int = 5  # recent-activity feed length on clients
    reconnect_initial_delay: float = 0.5  # seconds
    reconnect_max_delay: float = 30.0
    reconnect_factor: float = 2.0
    relay_startup_timeout: float = 5.0  # wait for subscriptions before serving

    model_config = {"env_prefix": "KNOWHUB_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.jwt_secret == "change-me-in-production"
        ):
            raise ValueError(
                "KNOWHUB_JWT_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        if self.reconnect_max_delay < self.reconnect_initial_delay:
            raise ValueError(
                "KNOWHUB_RECONNECT_MAX_DELAY must be >= KNOWHUB_RECONNECT_INITIAL_DELAY"
            )
        return self


# Singleton — import this everywhere
settings = Settings()
