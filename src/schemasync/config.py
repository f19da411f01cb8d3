"""
Configuration system for schemasync using Pydantic.
"""

import logging
import logging.handlers
import os
from collections import Counter
from pathlib import Path
from typing import Any, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .schema.models import DeclaredSchema


class StoreConfig(BaseModel):
    """Schema store (backend REST API) configuration."""

    server_url: str = Field(
        "http://localhost:1337/parse", description="Backend REST API base URL"
    )
    app_id: str = Field("", description="Application id")
    master_key: str = Field("", description="Master key, required for schema changes")
    timeout: float = Field(30.0, description="Request timeout in seconds")

    @field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class MigrationsConfig(BaseModel):
    """Declared schemas and reconciliation policy."""

    schemas: List[DeclaredSchema] = Field(
        default_factory=list, description="Declared schemas"
    )
    strict: bool = Field(
        False, description="Warn about undeclared classes, fields and type mismatches"
    )
    delete_extra_fields: bool = Field(
        False, description="Delete live fields missing from the declared schema"
    )
    recreate_modified_fields: bool = Field(
        False, description="Delete and re-add fields whose type changed"
    )
    delete_extra_indexes: bool = Field(
        True, description="Delete live indexes missing from the declared schema"
    )

    @field_validator("schemas")
    @classmethod
    def validate_unique_class_names(cls, v: List[DeclaredSchema]) -> List[DeclaredSchema]:
        counts = Counter(schema.class_name for schema in v)
        duplicates = sorted(name for name, count in counts.items() if count > 1)
        if duplicates:
            raise ValueError(f"Duplicate class names: {', '.join(duplicates)}")
        return v


class RetryConfig(BaseModel):
    """Startup timeout and retry policy for a migration run."""

    max_retries: int = Field(3, ge=0, description="Retries after the first failed pass")
    base_delay: float = Field(
        1.0, gt=0, description="Base delay in seconds; attempt n waits n times this"
    )
    startup_timeout: float = Field(
        20.0, gt=0, description="Bootstrap and enumeration window in production"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class SchemaSyncConfig(BaseSettings):
    """Main schemasync configuration."""

    environment: Literal["development", "production"] = Field(
        "development", description="Deployment environment"
    )

    store: StoreConfig = Field(
        default_factory=StoreConfig, description="Schema store configuration"
    )
    migrations: MigrationsConfig = Field(
        default_factory=MigrationsConfig, description="Declared schemas and policy"
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig, description="Retry configuration"
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SCHEMASYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SchemaSyncConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            # Expand environment variables in the data
            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def get_schema(self, class_name: str) -> DeclaredSchema:
        """Get a declared schema by class name."""
        for schema in self.migrations.schemas:
            if schema.class_name == class_name:
                return schema
        raise ConfigurationError(f"Schema for class '{class_name}' not declared")

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(by_alias=True, exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
            )


def setup_logging(config: LoggingConfig) -> None:
    """Configure the root logger from ``config``."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.max_size,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        )

    logging.basicConfig(
        level=getattr(logging, config.level),
        format=config.format,
        handlers=handlers,
        force=True,
    )
