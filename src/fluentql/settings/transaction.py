"""Transaction and advisory lock settings."""

from pydantic import BaseModel, Field


class TransactionSettings(BaseModel):

    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Total attempts made by transaction_with_retry before the last error is raised"
    )

    retry_sleep_ms: int = Field(
        default=100,
        ge=0,
        le=60_000,
        description="Pause between transaction_with_retry attempts in milliseconds"
    )

    lock_timeout_seconds: float = Field(
        default=10.0,
        ge=0.0,
        le=3600.0,
        description="Default time to wait for an advisory lock"
    )

    lock_poll_interval_seconds: float = Field(
        default=0.05,
        gt=0.0,
        le=5.0,
        description="Polling interval for dialects without a blocking lock primitive"
    )
