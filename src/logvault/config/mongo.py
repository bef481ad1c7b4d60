"""
MongoDB Log Sink Configuration.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_COLLECTION = "logs"
DEFAULT_DATABASE = "logvault"
DEFAULT_RETENTION_DAYS = 30


class MongoSinkSettings(BaseSettings):
    """
    Connection and retention settings for the MongoDB sink.
    Prefix: LV_MONGO_

    A blank `uri` is accepted here; the sink reports it when started.
    """

    model_config = SettingsConfigDict(
        env_prefix="LV_MONGO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    uri: str = Field(default="", description="MongoDB connection string (mongodb:// or mongodb+srv://)")
    collection: str = Field(default=DEFAULT_COLLECTION, description="Target collection name")
    retention_days: int = Field(default=DEFAULT_RETENTION_DAYS, ge=0, description="TTL horizon in days")
    enabled: bool = Field(default=True, description="Disable to turn the sink into a no-op")
    default_database: str = Field(
        default=DEFAULT_DATABASE,
        description="Database used when the connection string names none",
    )
    server_selection_timeout_ms: int = Field(
        default=5000,
        gt=0,
        description="Driver server selection timeout; bounds how long a write can block",
    )
    app_name: str | None = Field(default=None, description="appName reported to the server")

    @property
    def retention_seconds(self) -> int:
        return self.retention_days * 86400
