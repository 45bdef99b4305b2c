"""Configuration models for the pull synchronization client."""

from pydantic import BaseModel, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemoteConfig(BaseModel):
    """Configuration for the remote table service."""

    base_url: HttpUrl = Field(default=..., description="Mobile app backend URL")
    api_version: str = Field(default="2.0.0", description="Value of the ZUMO-API-VERSION header")
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout applied to each page request"
    )


class StoreConfig(BaseModel):
    """Configuration for the local store."""

    type: str = Field(default="sqlite", description="Local store type (sqlite, memory)")
    path: str = Field(default="tablesync.db", description="SQLite database file")


class TableConfig(BaseModel):
    """A table to pull on schedule."""

    name: str = Field(default=..., min_length=1, description="Remote table name")
    filter: str | None = Field(default=None, description="Optional OData filter")
    query_id: str | None = Field(
        default=None, description="Incremental pull ID. If None, a vanilla pull is performed."
    )


class PullConfig(BaseModel):
    """Configuration for pull operations."""

    page_size: int = Field(default=50, ge=1, description="Records requested per page")
    tables: list[TableConfig] = Field(default_factory=list, description="Tables to pull")


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class LoggingConfig(BaseModel):
    """Where pull lifecycle events go and how they are rendered."""

    log_level: str = Field(default="INFO", description=f"One of {', '.join(LOG_LEVELS)}")
    json_logs: bool = Field(
        default=True, description="Render one JSON object per line; console format when False"
    )
    log_file: str | None = Field(
        default=None, description="Rotating file receiving a copy of stdout events"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize the level name to upper case."""
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
        return level


class AppConfig(BaseSettings):
    """Settings for scheduled pulls.

    Sections can be given directly, loaded from YAML by ConfigLoader, or read from
    ``APP_`` variables with ``__`` between section and field (APP_PULL__PAGE_SIZE).
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    remote: RemoteConfig
    store: StoreConfig = Field(default_factory=StoreConfig)
    pull: PullConfig = Field(default_factory=PullConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
