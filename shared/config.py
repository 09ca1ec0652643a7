"""
Shared configuration management for the TursoConnector.
"""

from typing import Optional

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


class ConnectorConfig(BaseSettings):
    """Connector configuration loaded from CONNECTOR_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CONNECTOR_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    service_name: str = Field(default="TursoConnector")

    # Database
    database_url: str
    auth_token: SecretStr
    database_pool_size: int = Field(default=10, ge=1, le=100)
    database_timeout_seconds: float = Field(default=30.0, gt=0)
    initialize_database: bool = Field(default=True)

    # Resilience
    max_retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)

    # Query cache
    cache_enabled: bool = Field(default=True)
    cache_max_size: int = Field(default=100, ge=10, le=10000)

    # NATS
    nats_url: str = Field(default="nats://localhost:4222")
    nats_max_reconnect_attempts: int = Field(default=60)
    nats_reconnect_time_wait: float = Field(default=2.0)
    exchange_create_subject: str = Field(default="game.exchange.create")
    exchange_query_subject: str = Field(default="game.exchange.query")
    health_check_subject: str = Field(default="game.health.check")

    # Health checks
    health_check_timeout_seconds: float = Field(default=10.0, gt=0)
    health_check_interval_seconds: float = Field(default=30.0, gt=0)
    memory_threshold_mb: int = Field(default=500, ge=1)

    # Observability
    enable_metrics: bool = Field(default=False)
    metrics_port: int = Field(default=9090)


def get_config(env_file: Optional[str] = None, **overrides) -> ConnectorConfig:
    """Load connector configuration, raising ConfigurationError when invalid."""
    try:
        if env_file is not None:
            return ConnectorConfig(_env_file=env_file, **overrides)
        return ConnectorConfig(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(
            "Invalid connector configuration",
            details={"errors": [
                {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
                for error in exc.errors()
            ]},
        ) from exc
