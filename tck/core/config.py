"""Harness settings with Pydantic validation and environment loading."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Harness settings loaded from environment variables.

    Variable names match the ones the JavaScript harness reads, so an
    existing ``.env`` file can be reused as-is.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Read paths
    mirror_node_rest_url: str = Field(
        default="http://localhost:5551",
        description="Base URL of the mirror node REST API",
    )
    consensus_query_url: str = Field(
        default="http://localhost:8090",
        description="Base URL of the consensus query gateway",
    )

    # System under test
    json_rpc_url: str = Field(
        default="http://localhost",
        description="JSON-RPC endpoint of the SDK server being tested",
    )

    # Eventual consistency
    node_timeout: int = Field(
        default=30_000,
        ge=0,
        description="Mirror node consistency budget in milliseconds",
    )
    http_timeout: float = Field(
        default=10.0, gt=0, description="Per-request HTTP timeout in seconds"
    )

    # Operator and network bootstrap
    operator_account_id: str | None = Field(default=None)
    operator_account_private_key: SecretStr | None = Field(default=None)
    node_ip: str | None = Field(default=None)
    node_account_id: str | None = Field(default=None)
    mirror_network: str | None = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="text", description="text or json")
    debug: bool = Field(default=False, description="Add source location to JSON logs")

    @field_validator("mirror_node_rest_url", "consensus_query_url", "json_rpc_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return fmt

    @property
    def operator_configured(self) -> bool:
        return bool(self.operator_account_id and self.operator_account_private_key)


@dataclass(frozen=True)
class Endpoint:
    """
    Read-only addresses and timing shared by every client and verifier.

    The mirror node is read once per second. ``poll_interval`` is not
    configurable from the environment; only tests build endpoints with
    another cadence.
    """

    mirror_node_url: str
    consensus_url: str
    json_rpc_url: str
    consistency_timeout: float
    poll_interval: float = 1.0
    http_timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "Endpoint":
        return cls(
            mirror_node_url=settings.mirror_node_rest_url,
            consensus_url=settings.consensus_query_url,
            json_rpc_url=settings.json_rpc_url,
            consistency_timeout=settings.node_timeout / 1000,
            http_timeout=settings.http_timeout,
        )


def load_settings(**overrides) -> Settings:
    """Build settings from the environment.

    Called once at process start; the result is passed explicitly to
    whatever needs it.
    """
    return Settings(**overrides)
