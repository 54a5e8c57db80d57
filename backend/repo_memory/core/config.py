"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "REPOMEM_"
DEFAULT_CONFIG_PATH = Path("~/.config/repo-memory/config.yaml")

# YAML section -> {key inside the section: Settings field}
_SECTIONS: Mapping[str, Mapping[str, str]] = {
    "storage": {"db_path": "db_path"},
    "embeddings": {
        "backend": "embedding_backend",
        "model": "embedding_model",
        "dim": "embedding_dim",
        "timeout_s": "embedding_timeout_s",
    },
    "chunking": {
        "max_chunk_size": "max_chunk_size",
        "min_chunk_size": "min_chunk_size",
        "overlap_lines": "overlap_lines",
    },
    "ingest": {
        "max_file_size": "max_file_size",
        "file_batch_size": "file_batch_size",
        "embedding_batch_size": "embedding_batch_size",
        "file_batch_delay_s": "file_batch_delay_s",
        "embedding_batch_delay_s": "embedding_batch_delay_s",
        "fetch_workers": "fetch_workers",
        "fetch_timeout_s": "fetch_timeout_s",
        "freshness_hours": "freshness_hours",
        "lease_ttl_s": "lease_ttl_s",
        "max_primary_languages": "max_primary_languages",
    },
    "retrieval": {
        "context_limit": "context_limit",
        "novelty_threshold": "novelty_threshold",
    },
    "github": {
        "api_url": "github_api_url",
        "timeout_s": "github_timeout_s",
        "token": "github_token",
    },
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".repo-memory" / "memory.db")
    embedding_backend: Literal["hashed", "litellm"] = "hashed"
    embedding_model: str = "openai/text-embedding-3-small"
    embedding_dim: int = Field(default=384, ge=8)
    embedding_timeout_s: float = Field(default=60.0, gt=0)
    max_chunk_size: int = Field(default=2000, ge=1)
    min_chunk_size: int = Field(default=100, ge=0)
    overlap_lines: int = Field(default=3, ge=0)
    max_file_size: int = Field(default=100 * 1024, ge=1)
    file_batch_size: int = Field(default=20, ge=1)
    embedding_batch_size: int = Field(default=50, ge=1)
    file_batch_delay_s: float = Field(default=0.1, ge=0)
    embedding_batch_delay_s: float = Field(default=0.5, ge=0)
    fetch_workers: int = Field(default=8, ge=1)
    fetch_timeout_s: float = Field(default=30.0, gt=0)
    freshness_hours: float = Field(default=24.0, ge=0)
    lease_ttl_s: int = Field(default=3600, ge=1)
    max_primary_languages: int = Field(default=5, ge=1)
    context_limit: int = Field(default=10, ge=1)
    novelty_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    github_api_url: str = "https://api.github.com"
    github_timeout_s: float = Field(default=30.0, gt=0)
    github_token: str | None = None

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @model_validator(mode="after")
    def _check_chunk_bounds(self) -> "Settings":
        if self.min_chunk_size >= self.max_chunk_size:
            raise ValueError("min_chunk_size must be smaller than max_chunk_size")
        return self

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            if not isinstance(raw, Mapping):
                raise ValueError(f"{config_path} must contain a mapping of config sections")
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        if "github_token" not in data and os.environ.get("GITHUB_TOKEN"):
            data["github_token"] = os.environ["GITHUB_TOKEN"]
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map ``section: {key: value}`` YAML onto Settings field names.

    Top-level keys that already name a Settings field are accepted as-is;
    anything else is ignored.
    """
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        section = _SECTIONS.get(key)
        if section is not None and isinstance(value, Mapping):
            for inner_key, inner_value in value.items():
                field_name = section.get(inner_key)
                if field_name:
                    flat[field_name] = inner_value
        elif key in Settings.model_fields:
            flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with REPOMEM_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
