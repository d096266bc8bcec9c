"""YAML configuration loading with Pydantic validation."""

from __future__ import annotations

from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field

from cortex_guard.core.enums import ClassificationLevel
from cortex_guard.core.protocols import ExternalGatingPolicy


def _default_data_dir() -> Path:
    """Return the default data directory: ~/.cortex_guard"""
    return Path.home() / ".cortex_guard"


class AuditConfig(BaseModel):
    jsonl_path: str = str(_default_data_dir() / "audit" / "audit.jsonl")
    structured_sink: bool = False  # mirror events into the SQL table below
    table: str = "audit_log"
    redact_patterns: List[str] = Field(default_factory=list)  # appended to the built-ins


class DatabaseConfig(BaseModel):
    path: str = str(_default_data_dir() / "cortex_guard_data.db")


class ApprovalsConfig(BaseModel):
    default_timeout_ms: int = 5 * 60_000


class ClassificationConfig(BaseModel):
    max_external_classification: ClassificationLevel = ClassificationLevel.INTERNAL
    mask_pii_before_external: bool = True

    def to_policy(self) -> ExternalGatingPolicy:
        return ExternalGatingPolicy(
            max_external_classification=self.max_external_classification,
            mask_pii_before_external=self.mask_pii_before_external,
        )


class LogConfig(BaseModel):
    dir: str = str(_default_data_dir() / "logs")


class AppConfig(BaseModel):
    audit: AuditConfig = Field(default_factory=AuditConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    approvals: ApprovalsConfig = Field(default_factory=ApprovalsConfig)
    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    log: LogConfig = Field(default_factory=LogConfig)


_config: AppConfig | None = None


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load config from YAML file. Falls back to defaults if file not found."""
    global _config
    if _config is not None:
        return _config

    paths_to_try = []
    if config_path:
        paths_to_try.append(Path(config_path))
    paths_to_try.extend([
        Path("config.yaml"),
        Path("config.yml"),
        _default_data_dir() / "config.yaml",
        _default_data_dir() / "config.yml",
    ])

    for p in paths_to_try:
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}
            _config = AppConfig(**data)
            return _config

    _config = AppConfig()
    return _config


def get_config() -> AppConfig:
    """Get the current config, loading defaults if needed."""
    if _config is None:
        return load_config()
    return _config


def reset_config() -> None:
    """Reset config (for testing)."""
    global _config
    _config = None
