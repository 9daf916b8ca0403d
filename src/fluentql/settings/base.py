from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FluentQLBaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FLUENTQL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__"
    )

    app_env: str = Field(
        default="dev",
        description="Application deployment environment (e.g., dev, qa, prod). Attached to log records."
    )

    log_level: str = Field(
        default="INFO",
        description="Base log level used by setup_logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    def model_post_init(self, __context: Any) -> None:
        """Post initialization hook for additional setup.

        Subclasses should override this method and call super() to add
        custom initialization logic.
        """
        super().model_post_init(__context)
