"""
Configuration system for schemacat using Pydantic.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database.connection import ConnectionConfig
from .exceptions import ConfigurationError
from .importers.reconciler import ConflictPolicy
from .importers.rows import DEFAULT_SCHEMA
from .importers.workbook import DEFAULT_WORKSHEET


class DatabaseConnection(BaseModel):
    """Catalogue database connection configuration."""

    host: str = Field(..., description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field(..., description="Database name")
    user: str = Field(..., description="Database user")
    password: str = Field(..., description="Database password")
    ssl_mode: str = Field("prefer", description="SSL mode")
    min_pool_size: int = Field(1, description="Minimum connections in pool")
    max_pool_size: int = Field(5, description="Maximum connections in pool")
    command_timeout: int = Field(60, description="Command timeout in seconds")

    def to_connection_config(self) -> ConnectionConfig:
        """Convert to the pool's connection configuration."""
        return ConnectionConfig(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            ssl_mode=self.ssl_mode,
            min_size=self.min_pool_size,
            max_size=self.max_pool_size,
            command_timeout=self.command_timeout,
        )


class ImportConfig(BaseModel):
    """Import behaviour defaults."""

    default_policy: ConflictPolicy = Field(
        ConflictPolicy.ADD_NEW_ONLY, description="Conflict resolution policy"
    )
    dry_run: bool = Field(True, description="Compute the tally without writing")
    worksheet_name: str = Field(
        DEFAULT_WORKSHEET, description="Preferred worksheet in legacy workbooks"
    )
    default_schema: str = Field(
        DEFAULT_SCHEMA, description="Schema used when a workbook row has none"
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

    def configure(self) -> None:
        """Configure the root logger unless it already has handlers."""
        if self.file:
            handler: logging.Handler = logging.handlers.RotatingFileHandler(
                self.file, maxBytes=self.max_size, backupCount=self.backup_count
            )
        else:
            handler = logging.StreamHandler()
        logging.basicConfig(level=self.level, format=self.format, handlers=[handler])


class SchemacatConfig(BaseSettings):
    """Main schemacat configuration."""

    service_name: str = Field("schemacat", description="Service name")
    debug: bool = Field(False, description="Enable debug mode")

    database: Optional[DatabaseConnection] = Field(
        None, description="Catalogue database connection"
    )
    imports: ImportConfig = Field(
        default_factory=ImportConfig, description="Import configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SCHEMACAT_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SchemacatConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

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

    def require_database(self) -> DatabaseConnection:
        """Get the database connection or fail with a configuration error."""
        if self.database is None:
            raise ConfigurationError("No catalogue database configured")
        return self.database

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(mode="json", exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )
