"""Configuration management for codectx."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from codectx.exceptions import ConfigError

CODECTX_DIR = ".codectx"
CONFIG_FILE = "config.json"


class GraphConfig(BaseModel):
    """Import resolution and graph analysis settings."""

    # Import prefix -> directory, e.g. {"@/": "src/"}. First match wins.
    aliases: dict[str, str] = Field(default_factory=dict)
    extensions: list[str] = Field(
        default_factory=lambda: [
            ".ts",
            ".tsx",
            ".js",
            ".jsx",
            "/index.ts",
            "/index.tsx",
            "/index.js",
        ]
    )
    transitive_depth_limit: int = Field(default=10, ge=1)
    cycle_detection: Literal["stack", "scc"] = "stack"


class SelectorConfig(BaseModel):
    """Context selection tuning."""

    default_max_tokens: int = 16000
    type_priority_boost: float = 0.35
    api_route_priority_boost: float = 0.25
    hook_priority_boost: float = 0.15
    context_provider_boost: float = 0.25
    must_include_dependency_limit: int = Field(default=5, ge=0)
    min_relevance: float = 0.3
    reduced_retry_threshold: float = 0.6
    comment_prefix: str = "//"


class CacheConfig(BaseModel):
    """Bounds and expiry for the analysis and selection caches."""

    max_analysis_cache_size: int = Field(default=500, ge=1)
    max_selection_cache_size: int = Field(default=50, ge=1)
    ttl_seconds: float = Field(default=300.0, gt=0)


class ProjectConfig(BaseModel):
    """Full project configuration."""

    name: str = ""
    graph: GraphConfig = Field(default_factory=GraphConfig)
    selector: SelectorConfig = Field(default_factory=SelectorConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .codectx directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / CODECTX_DIR).is_dir():
            return current
        current = current.parent
    if (current / CODECTX_DIR).is_dir():
        return current
    return None


def get_codectx_dir(root: Path) -> Path:
    """Get the .codectx directory for a project root."""
    return root / CODECTX_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .codectx/config.json."""
    config_path = get_codectx_dir(root) / CONFIG_FILE
    if not config_path.exists():
        return ProjectConfig(name=root.name)
    try:
        data = json.loads(config_path.read_text())
        return ProjectConfig(**data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigError(f"Could not load {config_path}: {e}") from e


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .codectx/config.json."""
    ctx_dir = get_codectx_dir(root)
    ctx_dir.mkdir(parents=True, exist_ok=True)
    config_path = ctx_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(), indent=2))


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'cache.ttl_seconds')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    try:
        return ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e
