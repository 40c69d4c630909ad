"""
Pydantic v2 Configuration Models for ResourceDownload

Provides strict, typed configuration for the resource download engine:
- HTTP client settings (connect timeout, TLS, redirects, pool size)
- Field selection (scalar fields and delimited list fields)
- Scheduling (concurrency limit) and storage layout (import subdirectory)
- Top-level ResourceDownloadConfig as single source of truth

All models use extra="forbid" for strict validation. Environment variables
and CLI overrides follow: file < env < CLI precedence (see loader.py).
"""

from __future__ import annotations

import hashlib
import json
from typing import ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_SCALAR_FIELDS = ["swatch_image", "image", "small_image", "thumbnail"]
DEFAULT_LIST_FIELDS = ["additional_images"]


class HttpClientConfig(BaseModel):
    """Configuration for the shared async HTTP client."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    user_agent: str = Field(default="ImportKit/ResourceDownload", description="User-Agent string")
    timeout_connect_s: float = Field(
        default=5.0,
        description="Connection timeout in seconds; no read/write/total deadline is applied",
    )
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")
    follow_redirects: bool = Field(default=True, description="Follow 3xx responses")
    connect_retries: int = Field(
        default=0, description="Transport-level retries on connection failure"
    )
    max_connections: Optional[int] = Field(
        default=None, description="Connection pool cap (None = concurrency limit)"
    )

    @field_validator("timeout_connect_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_connect_s must be > 0")
        return v

    @field_validator("connect_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("connect_retries must be >= 0")
        return v

    @field_validator("max_connections")
    @classmethod
    def validate_max_connections(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("max_connections must be > 0 or None")
        return v


class ResourceDownloadConfig(BaseModel):
    """Top-level configuration for one ``process`` call."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    concurrency_limit: int = Field(default=25, description="Maximum fetches in flight")
    overwrite_existing: bool = Field(
        default=False,
        description=(
            "Re-download resources already on disk. Declared for compatibility; "
            "the existing-file skip does not consult it yet."
        ),
    )
    scalar_fields: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SCALAR_FIELDS),
        description="Fields holding a single resource URL",
    )
    list_fields: List[str] = Field(
        default_factory=lambda: list(DEFAULT_LIST_FIELDS),
        description="Fields holding a delimited list of resource URLs",
    )
    list_delimiter: str = Field(default=",", description="Delimiter of list fields")
    import_subdir: str = Field(
        default="import", description="Subdirectory of the base path receiving downloads"
    )
    chunk_size_bytes: int = Field(default=1 << 16, description="Stream chunk size")
    http: HttpClientConfig = Field(default_factory=HttpClientConfig, description="HTTP client")

    @field_validator("concurrency_limit", "chunk_size_bytes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Must be >= 1")
        return v

    @field_validator("list_delimiter")
    @classmethod
    def validate_delimiter(cls, v: str) -> str:
        if not v:
            raise ValueError("list_delimiter must not be empty")
        return v

    @field_validator("import_subdir")
    @classmethod
    def validate_subdir(cls, v: str) -> str:
        v = v.strip().strip("/")
        if not v or ".." in v.split("/"):
            raise ValueError("import_subdir must be a relative path without '..'")
        return v

    @model_validator(mode="after")
    def validate_field_sets(self) -> "ResourceDownloadConfig":
        overlap = set(self.scalar_fields) & set(self.list_fields)
        if overlap:
            raise ValueError(f"Fields cannot be both scalar and list fields: {sorted(overlap)}")
        return self

    def config_hash(self) -> str:
        """Stable SHA-256 of the canonical JSON dump."""
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
