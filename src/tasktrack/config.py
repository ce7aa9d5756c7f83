"""
Configuration management for tasktrack based on Pydantic Settings.

Supported sources, highest priority first:
- Explicit keyword arguments
- Environment variables (TASKTRACK_ prefix, nested with "__")
- .env file
- YAML configuration file via TaskTrackConfig.from_yaml()
"""

from pathlib import Path
from typing import Any, Dict, Literal, Union

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tasktrack.exceptions import ConfigurationError

DEFAULT_STORAGE_PATH = "tasks.json"


class LoggingConfig(BaseModel):
    """Structured logging settings."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["console", "json"] = Field(default="console", description="Renderer")
    include_timestamps: bool = Field(default=True, description="Add ISO timestamps to events")

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class TaskTrackConfig(BaseSettings):
    """Main tasktrack configuration."""

    storage_path: str = Field(
        default=DEFAULT_STORAGE_PATH,
        min_length=1,
        description="Path of the JSON file holding the task collection",
    )
    due_soon_days: int = Field(
        default=7,
        ge=0,
        description="Default look-ahead window in days for due-soon queries",
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="TASKTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "TaskTrackConfig":
        """Load configuration from a YAML file."""
        import yaml

        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {yaml_path}", config_file=str(yaml_path)
            )

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML configuration: {e}", config_file=str(yaml_path)
            ) from e

        if not isinstance(config_data, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping", config_file=str(yaml_path)
            )

        return cls(**config_data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary."""
        return self.model_dump()
