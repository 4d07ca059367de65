"""Pydantic models used across the bulk-scraper configuration flow."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_STRIP_TAGS = ["style", "script", "meta", "head", "title"]


class PoolConfig(BaseModel):
    """Admission control and per-item timeout for one batch."""

    # Small default suited to low-memory hosts.
    concurrency: int = 8
    timeout: float = 10.0
    timeout_grace: float = Field(
        default=0.1,
        description="Extra seconds the pool waits past `timeout` before abandoning a stuck fetch.",
    )

    @model_validator(mode="after")
    def _validate_bounds(self) -> "PoolConfig":
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.timeout_grace < 0:
            raise ValueError("timeout_grace must be >= 0")
        return self


class FetchConfig(BaseModel):
    """HTTP transport settings for the fetcher."""

    user_agent: str = "Mozilla/5.0 (compatible; bulk-scraper/0.1)"
    user_agent_list: list[str] | Path | None = None
    follow_redirects: bool = True
    verify_ssl: bool = True
    extra_headers: dict[str, str] = Field(default_factory=dict)
    max_content_bytes: int | None = 5 * 1024 * 1024

    @field_validator("max_content_bytes")
    @classmethod
    def _check_cap(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError("max_content_bytes must be positive or null")
        return value

    @model_validator(mode="after")
    def _apply_user_agents(self) -> "FetchConfig":
        if isinstance(self.user_agent_list, Path):
            if not self.user_agent_list.exists():
                raise ValueError(f"UA file not found: {self.user_agent_list}")
            content = self.user_agent_list.read_text(encoding="utf-8").splitlines()
            self.user_agent_list = [line.strip() for line in content if line.strip()]
        return self


class ExtractConfig(BaseModel):
    """Which subtrees count as non-content and how text nodes are joined."""

    strip_tags: list[str] = Field(default_factory=lambda: list(DEFAULT_STRIP_TAGS))
    separator: str = " "
    decode_errors: Literal["strict", "replace", "ignore"] = "replace"

    @field_validator("strip_tags", mode="before")
    @classmethod
    def _normalise_tags(cls, value: Any) -> list[str]:
        if value in (None, ""):
            return list(DEFAULT_STRIP_TAGS)
        if isinstance(value, str):
            value = value.split(",")
        return [str(tag).strip().lower() for tag in value if str(tag).strip()]

    @field_validator("separator")
    @classmethod
    def _check_separator(cls, value: str) -> str:
        if not value:
            raise ValueError("separator cannot be empty")
        return value


class OutputConfig(BaseModel):
    """Where extracted records go."""

    format: Literal["json", "csv", "txt", "sqlite", "mongodb", "none"] = "json"
    outputs_dir: Path = Field(default=Path("data/outputs"))
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_database: str = "bulk_scraper"

    @field_validator("outputs_dir", mode="before")
    @classmethod
    def _coerce_dir(cls, value: Any) -> Path:
        return Path(value)


class GlobalConfig(BaseModel):
    """Top-level configuration persisted as `data/config.yaml`."""

    pool: PoolConfig = Field(default_factory=PoolConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    extract: ExtractConfig = Field(default_factory=ExtractConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    enable_progress_bar: bool = True
    max_url_display_length: int = 60


__all__ = [
    "DEFAULT_STRIP_TAGS",
    "ExtractConfig",
    "FetchConfig",
    "GlobalConfig",
    "OutputConfig",
    "PoolConfig",
]
