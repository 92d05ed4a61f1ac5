"""
Central configuration for Veritasor.

This module provides a single, typed configuration object that reads from
environment variables (12-factor style) using pydantic-settings.

Usage:

    from veritasor.core.settings import get_settings

    settings = get_settings()
    if settings.anchor.mode is AnchorMode.HTTP:
        ...
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from veritasor.protocol.enums import AnchorMode


class AnchorSettings(BaseSettings):
    mode: AnchorMode = Field(
        default=AnchorMode.DISABLED,
        description="Chain anchor backend: 'disabled', 'memory' or 'http'.",
    )
    url: Optional[str] = Field(
        default=None,
        description="Base URL of the anchoring relay (http mode only).",
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound, in seconds, for one anchoring call.",
    )
    pending_prefix: str = Field(
        default="pending_",
        description="Prefix of the synthetic tx hash used when anchoring fails.",
    )

    model_config = SettingsConfigDict(env_prefix="VERITASOR_ANCHOR_")

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @model_validator(mode="after")
    def _require_url_for_http(self) -> "AnchorSettings":
        if self.mode is AnchorMode.HTTP and not self.url:
            raise ValueError("VERITASOR_ANCHOR_URL is required when the anchor mode is 'http'")
        return self


class IdempotencySettings(BaseSettings):
    ttl: float = Field(
        default=86400.0,
        gt=0,
        description="Seconds a cached submit result is replayed for its key.",
    )

    model_config = SettingsConfigDict(env_prefix="VERITASOR_IDEMPOTENCY_")


class StoreSettings(BaseSettings):
    path: Optional[str] = Field(
        default=None,
        description="Directory for the JSONL attestation log; in-memory when unset.",
    )
    sync: bool = Field(
        default=True,
        description="fsync every log append (disable only for testing).",
    )

    model_config = SettingsConfigDict(env_prefix="VERITASOR_STORE_")


class AttestationSettings(BaseSettings):
    default_version: str = Field(default="1.0.0", min_length=1)
    page_limit: int = Field(default=20, ge=1)
    max_page_limit: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(env_prefix="VERITASOR_")

    @model_validator(mode="after")
    def _check_limits(self) -> "AttestationSettings":
        if self.page_limit > self.max_page_limit:
            raise ValueError("VERITASOR_PAGE_LIMIT cannot exceed VERITASOR_MAX_PAGE_LIMIT")
        return self


class RuntimeSettings(BaseSettings):
    log_level: str = Field(
        default="INFO",
        description="Log level for the 'veritasor' logger (DEBUG/INFO/WARNING/ERROR).",
    )

    model_config = SettingsConfigDict(env_prefix="VERITASOR_")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        v = (v or "INFO").upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return "INFO"
        return v


class VeritasorSettings(BaseSettings):
    """
    Root configuration object.

    Aggregates:
      - Anchor
      - Idempotency
      - Store
      - Attestation
      - Runtime
    """

    anchor: AnchorSettings = Field(default_factory=AnchorSettings)
    idempotency: IdempotencySettings = Field(default_factory=IdempotencySettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    attestation: AttestationSettings = Field(default_factory=AttestationSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)

    model_config = SettingsConfigDict(env_prefix="VERITASOR_")


@lru_cache(maxsize=1)
def get_settings() -> VeritasorSettings:
    """
    Cached accessor for VeritasorSettings.
    """
    return VeritasorSettings()
