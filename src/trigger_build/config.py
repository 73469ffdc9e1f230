from __future__ import annotations

from typing import Annotated, List

from pydantic import Field, confloat, conint, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .constants import Endpoints


class TriggerSettings(BaseSettings):
    """Engine settings loaded from ``TRIGGER_BUILD_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRIGGER_BUILD_",
        frozen=True,
        extra="ignore",
    )

    com_api_endpoint: str = Field(default=Endpoints.COM, description="API root of gitlab.com")
    ops_api_endpoint: str = Field(default=Endpoints.OPS, description="API root of ops.gitlab.net")
    http_timeout_seconds: confloat(gt=0) = Field(
        default=15.0, description="Per-request timeout handed to the HTTP transport"
    )

    wait: bool = Field(default=True, description="Block until the downstream pipeline or job finishes")
    poll_interval_seconds: conint(ge=0) = Field(default=60)
    max_wait_seconds: conint(ge=0) = Field(default=3 * 60 * 60)

    # Empty means: discover *_VERSION files in version_dir.
    version_files: Annotated[List[str], NoDecode] = Field(default_factory=list)
    version_dir: str = Field(default=".")

    env_file: str = Field(default="", description="Write resolved variables here as KEY=value lines")

    @field_validator("version_files", mode="before")
    @classmethod
    def _split_names(cls, value: object) -> object:
        if isinstance(value, str):
            return [name.strip() for name in value.split(",") if name.strip()]
        return value

    @field_validator("com_api_endpoint", "ops_api_endpoint", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value
