"""Harness settings with Pydantic validation and environment loading."""

from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Harness settings loaded from WC_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Cluster entry point
    mongos_uri: str = Field(
        default="mongodb://localhost:27017",
        description="Connection URI of the cluster router (mongos)",
    )
    server_selection_timeout_ms: int = Field(
        default=10_000, ge=100, description="Server selection timeout for all clients"
    )
    socket_timeout_ms: int = Field(
        default=15 * 60 * 1000,
        ge=1_000,
        description="Socket timeout, must exceed the largest wtimeout",
    )

    # Scratch namespace
    db_prefix: str = Field(
        default="wc-test-configRS", min_length=1, description="Working database prefix"
    )
    collection_name: str = Field(default="leaves", min_length=1)
    scratch_users: List[str] = Field(
        default_factory=lambda: ["username", "user1", "tempUser"],
        description="Users discarded from the working database on reset",
    )

    # Write concern timeouts (milliseconds)
    majority_wtimeout_ms: int = Field(default=10 * 60 * 1000, ge=1)
    shard_fault_wtimeout_ms: int = Field(
        default=15_000,
        ge=1,
        description="High enough for the config servers, always exceeded on shards",
    )
    config_fault_wtimeout_ms: int = Field(default=3_000, ge=1)

    # Topology control
    replication_timeout_s: float = Field(
        default=60.0, gt=0, description="Max wait for secondaries to catch up"
    )
    replication_poll_interval_s: float = Field(default=0.5, gt=0)
    failpoint_timeout_ms: int = Field(
        default=30_000, ge=100, description="Max wait for a fail point to be entered"
    )

    # Run behaviour
    fail_fast: bool = Field(default=False, description="Stop the run on first failure")
    report_dir: str = Field(default="test-results/wc-reports")
    report_log_lines: int = Field(default=50, ge=0, le=1024)

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="text", description="Log format: json or text")

    @field_validator("scratch_users", mode="before")
    @classmethod
    def parse_users(cls, v):
        if isinstance(v, str):
            return [u.strip() for u in v.split(",") if u.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower = v.lower()
        if lower not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return lower

    @model_validator(mode="after")
    def check_socket_timeout(self) -> "Settings":
        largest = max(
            self.majority_wtimeout_ms,
            self.shard_fault_wtimeout_ms,
            self.config_fault_wtimeout_ms,
        )
        if self.socket_timeout_ms <= largest:
            raise ValueError(
                "socket_timeout_ms must exceed every wtimeout so the server reply "
                "always arrives before the client gives up"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
