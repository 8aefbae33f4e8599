import uuid

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PORT = 9000
DEFAULT_INTERVAL = 10.0  # seconds between rounds
DEFAULT_REPLY_TIMEOUT = 3.0  # seconds to wait for a TIME_REPLY


class CoordinatorSettings(BaseSettings):
    """Coordinator settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_prefix="BERKELEY_COORDINATOR_",
        env_file=".env",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    interval: float = Field(default=DEFAULT_INTERVAL, gt=0)
    reply_timeout: float = Field(default=DEFAULT_REPLY_TIMEOUT, gt=0)
    log_level: str = "INFO"


class NodeSettings(BaseSettings):
    """Node settings; offset/drift simulate a skewed local clock."""

    model_config = SettingsConfigDict(
        env_prefix="BERKELEY_NODE_",
        env_file=".env",
        extra="ignore",
    )

    id: str = Field(default_factory=lambda: f"client-{uuid.uuid4().hex[:8]}")
    host: str = "127.0.0.1"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    offset: float = 0.0
    drift: float = 0.0
    set_system_clock: bool = False
    log_level: str = "INFO"
