"""
Settings for the catalog integrity tools.

Values come from the environment (or a local .env file), one prefix per
section: NEO4J_*, QUALITY_*, OBSERVABILITY_*. Top-level keys such as
LOG_LEVEL are unprefixed.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import BeforeValidator, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NEO4J_URI_SCHEMES = ("bolt", "bolt+s", "bolt+ssc", "neo4j", "neo4j+s", "neo4j+ssc")


def _upper(value: object) -> object:
    return value.upper() if isinstance(value, str) else value


class Neo4jSettings(BaseSettings):
    """Where the catalog graph lives and how to log in."""

    model_config = SettingsConfigDict(env_prefix="NEO4J_")

    uri: str = Field(default="bolt://localhost:7687", description="Bolt or neo4j:// URI of the catalog")
    username: str = Field(default="neo4j")
    password: SecretStr = Field(default=SecretStr("password"))
    database: str = Field(default="neo4j", description="Database holding the catalog")
    max_connection_pool_size: int = Field(default=50, ge=1)
    connection_timeout_s: float = Field(
        default=15.0, gt=0, description="Seconds to wait when opening a connection"
    )

    @field_validator("uri")
    @classmethod
    def check_scheme(cls, v: str) -> str:
        scheme = v.split("://", 1)[0].lower()
        if scheme not in NEO4J_URI_SCHEMES:
            expected = ", ".join(NEO4J_URI_SCHEMES)
            raise ValueError(f"Unsupported Neo4j URI scheme '{scheme}' (expected one of {expected})")
        return v


class QualitySettings(BaseSettings):
    """Audit, fix and cleanup behaviour."""

    model_config = SettingsConfigDict(env_prefix="QUALITY_")

    # The CLI only writes when --fix is given
    default_dry_run: bool = True
    audit_concurrency: int = Field(default=4, ge=1, description="Relationship types audited at once")
    fix_concurrency: int = Field(default=4, ge=1, description="Entity pairs repaired at once")
    report_directory: str = Field(default="reports", description="Directory for reports written with --save")


class ObservabilitySettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_")

    log_format: Literal["json", "console"] = "console"


class Settings(BaseSettings):
    """All settings, grouped by section."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="jinglegraph", description="Tags every log event")
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR"],
        BeforeValidator(_upper),
    ] = "INFO"

    neo4j: Neo4jSettings = Field(default_factory=Neo4jSettings)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Settings read once per process; call ``cache_clear()`` to reload."""
    return Settings()
