"""Models for the config file"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class BackendSettings(BaseModel):
    """Connection settings for the classification backend"""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "base_url": "http://localhost:8000",
                "user_id": "me@example.com",
                "request_timeout_seconds": 30,
            }
        }
    )

    base_url: str = Field(default="http://localhost:8000", description="Backend base URL")
    user_id: str = Field(default="default-user", description="Mailbox owner sent with each workflow")
    request_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Per-request HTTP timeout"
    )


class ContinuationSettings(BaseModel):
    """Bounded polling used when a decision leads to a further interrupt"""

    max_attempts: int = Field(default=5, ge=1, description="Number of status polls")
    interval_seconds: float = Field(
        default=1.0, ge=0, description="Delay before each status poll"
    )


class LoggingSettings(BaseModel):
    """Logging configuration"""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


class AssistantConfig(BaseModel):
    """Complete assistant configuration"""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "backend": {"base_url": "http://localhost:8000", "user_id": "me@example.com"},
                "continuation": {"max_attempts": 5, "interval_seconds": 1.0},
                "logging": {"level": "INFO"},
            }
        }
    )

    backend: BackendSettings = Field(default_factory=BackendSettings)
    continuation: ContinuationSettings = Field(default_factory=ContinuationSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
