"""Configuration management for path-versions."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class HistoryConfig(BaseModel):
    """Configuration for history traversal and rename detection."""

    rename_detection: Literal["exact", "similarity"] = Field(
        default="exact",
        description="Rename detection mode: identical blob only, or content similarity",
    )
    similarity_threshold: float = Field(
        default=0.5,
        description="Minimum similarity (0-1] for an edited file to count as renamed",
    )
    rename_limit: int = Field(
        default=1000,
        description="Skip similarity scoring when a commit has more add/delete candidates than this",
    )
    tree_cache_size: int = Field(
        default=512, description="Number of tree objects kept in the read cache"
    )

    @field_validator("similarity_threshold")
    @classmethod
    def validate_similarity_threshold(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("similarity_threshold must be in the range (0, 1]")
        return v

    @field_validator("rename_limit", "tree_cache_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be a positive integer")
        return v


class Config(BaseModel):
    """Main configuration."""

    repo_path: Path = Field(default=Path("."), description="Repository to analyse")
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    error_log_dir: Optional[Path] = Field(
        default=None, description="Directory for error logs (disabled when unset)"
    )

    @field_validator("repo_path", mode="before")
    @classmethod
    def convert_path(cls, v: Any) -> Path:
        return Path(v)


class ConfigManager:
    """Loads the optional per-repository configuration file."""

    CONFIG_DIR_NAME = ".path-versions"
    CONFIG_FILE_NAME = "config.json"

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path
        self._config: Optional[Config] = None

    @classmethod
    def for_repository(cls, repo_path: Path) -> "ConfigManager":
        return cls(Path(repo_path) / cls.CONFIG_DIR_NAME / cls.CONFIG_FILE_NAME)

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """Load configuration from file (if present) and apply overrides.

        Overrides use the same shape as the file; nested ``history`` keys are
        merged rather than replaced. ``None`` override values are ignored.
        """
        data: Dict[str, Any] = {}
        if self.config_path is not None and self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ValueError(f"Failed to load config from {self.config_path}: {e}")
            if not isinstance(data, dict):
                raise ValueError(
                    f"Failed to load config from {self.config_path}: expected an object"
                )
            logger.debug(f"Loaded configuration from {self.config_path}")

        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key == "history" and isinstance(value, dict):
                history = dict(data.get("history") or {})
                history.update({k: v for k, v in value.items() if v is not None})
                data["history"] = history
            else:
                data[key] = value

        try:
            self._config = Config(**data)
        except Exception as e:
            raise ValueError(f"Invalid configuration: {e}")
        return self._config

    def get_config(self) -> Config:
        if self._config is None:
            return self.load()
        return self._config
