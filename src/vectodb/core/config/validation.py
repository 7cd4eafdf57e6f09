"""
Configuration validation utilities for VectoDB.

This module validates the construction parameters of a vector database
instance with a Pydantic model, so that a bad dimension, an unknown metric
or an unusable index key is rejected before any file is created. It also
loads the same parameters from YAML or JSON configuration files for the
command-line interface.

Validated Parameters:
    work_dir: Directory holding the durable log and snapshot files
    dim: Vector dimensionality (positive)
    metric: "IP"/"L2", or the integer selectors 0 (IP) and 1 (L2)
    index_key: FAISS index factory key, used as a file name component
    query_params: FAISS ParameterSpace string, passed through untouched

Example Usage:
    >>> config = ConfigValidator.validate_config(
    ...     {"work_dir": "/tmp/db", "dim": 128, "metric": 1}
    ... )
    >>> config.metric
    'L2'
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from vectodb.core.config.settings import Settings, settings
from vectodb.core.exceptions.custom_exceptions import ConfigurationError

# Integer metric selectors: 0 - IP, 1 - L2
_METRIC_SELECTORS = {0: "IP", 1: "L2"}


class VectoDBConfig(BaseModel):
    """Construction parameters of a VectoDB instance"""

    work_dir: str
    dim: int
    metric: Union[str, int] = "L2"
    index_key: str = "Flat"
    query_params: str = ""

    @field_validator("dim")
    @classmethod
    def validate_dim(cls, v):
        if v <= 0:
            raise ValueError("dim must be a positive integer")
        return v

    @field_validator("metric")
    @classmethod
    def validate_metric(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            if v not in _METRIC_SELECTORS:
                raise ValueError("integer metric must be 0 (IP) or 1 (L2)")
            return _METRIC_SELECTORS[v]
        if isinstance(v, str) and v.upper() in ("IP", "L2"):
            return v.upper()
        raise ValueError("metric must be one of: ['IP', 'L2', 0, 1]")

    @field_validator("index_key")
    @classmethod
    def validate_index_key(cls, v):
        if not v or not v.strip():
            raise ValueError("index_key cannot be empty")
        if "/" in v or "\\" in v:
            raise ValueError("index_key cannot contain path separators")
        return v.strip()

    @field_validator("work_dir")
    @classmethod
    def validate_work_dir(cls, v):
        if not v or not v.strip():
            raise ValueError("work_dir cannot be empty")
        return v


class ConfigValidator:
    """Configuration validator for VectoDB construction parameters"""

    @staticmethod
    def load_config(file_path: str) -> Dict[str, Any]:
        """Load configuration from file"""
        path = Path(file_path)

        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        if path.suffix.lower() not in [".yaml", ".yml", ".json"]:
            raise ConfigurationError(f"Unsupported file format: {path.suffix}")

        try:
            with open(path, "r") as f:
                if path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration file must contain a mapping",
                details={"file_path": file_path},
            )
        return data

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> VectoDBConfig:
        """Validate construction parameters"""
        try:
            return VectoDBConfig(**config)
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e}",
                error_code="CONFIG_VALIDATION_ERROR",
                details={"errors": e.errors()},
            ) from e

    @staticmethod
    def validate_file(file_path: str) -> VectoDBConfig:
        """Load and validate configuration file"""
        config = ConfigValidator.load_config(file_path)
        return ConfigValidator.validate_config(config)

    @staticmethod
    def from_settings(
        overrides: Optional[Dict[str, Any]] = None,
        app_settings: Optional[Settings] = None,
    ) -> VectoDBConfig:
        """Build a config from settings, letting non-None overrides win."""
        app_settings = app_settings or settings
        config: Dict[str, Any] = {
            "work_dir": app_settings.WORK_DIR,
            "dim": app_settings.VECTOR_DIMENSION,
            "metric": app_settings.METRIC,
            "index_key": app_settings.INDEX_KEY,
            "query_params": app_settings.QUERY_PARAMS,
        }
        for key, value in (overrides or {}).items():
            if value is not None:
                config[key] = value
        return ConfigValidator.validate_config(config)
