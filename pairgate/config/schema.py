"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitConfig(BaseModel):
    """Per-client request rate limiting."""
    enabled: bool = True
    max_requests: int = 100
    window_seconds: int = 900  # 15 minutes


class GatewayConfig(BaseModel):
    """Gateway/server configuration."""
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origin: str = "*"
    shutdown_timeout: float = 10.0  # Seconds to drain in-flight requests
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)


class PairingConfig(BaseModel):
    """Pairing code and session token configuration."""
    token_ttl_seconds: int = Field(default=3600, gt=0)
    code_ttl_seconds: int = Field(default=600, gt=0)
    store: Literal["memory", "file"] = "file"
    store_path: str = "~/.pairgate/pairing-codes.json"
    prune_interval_seconds: float = Field(default=3600, gt=0)  # Background prune of stale codes

    @property
    def store_file(self) -> Path:
        """Get expanded store path."""
        return Path(self.store_path).expanduser()


class LoggingConfig(BaseModel):
    """Log sink configuration."""
    level: str = "INFO"
    file: str = ""  # Combined log file; errors also go to <stem>.error<suffix>
    serialize: bool = False  # JSON lines in file sinks


class Config(BaseSettings):
    """Root configuration for pairgate."""
    model_config = SettingsConfigDict(env_prefix="PAIRGATE_", env_nested_delimiter="__")

    environment: Literal["development", "production"] = "development"
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    pairing: PairingConfig = Field(default_factory=PairingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def expose_error_detail(self) -> bool:
        """Whether internal error messages may be returned to clients."""
        return self.environment != "production"
