"""
Core configuration management for VectoDB.

This module provides centralized configuration management using Pydantic
settings with support for environment variables, type validation and a
``.env`` file. Every value here is a default: the ``VectoDB`` facade and the
CLI accept explicit arguments that take precedence.

Classes:
    Settings: Main configuration class with all application settings

Environment Variables:
    Settings can be overridden using environment variables with the same
    names as the class attributes (case-sensitive).

Example:
    >>> from vectodb.core.config.settings import Settings
    >>> settings = Settings()
    >>> print(settings.INDEX_KEY)
    Flat

Configuration Sections:
    - Application: Basic app configuration (name, version, environment)
    - Store: Working directory, dimensionality, metric and index type
    - Lifecycle: Rebuild thresholds, training sample cap, builder period
    - Search: Internal search width and optional distance threshold
    - Runtime: Mirror preallocation, fsync policy and OpenMP threads
    - Logging: Application logging configuration
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Attributes:
        APP_NAME: Application name identifier
        APP_VERSION: Current application version
        ENVIRONMENT: Deployment environment (development/staging/production)
        DEBUG: Enable debug mode with rich console logging

        WORK_DIR: Directory holding base.fvecs and snapshot files
        VECTOR_DIMENSION: Dimensionality of stored vectors
        METRIC: Distance metric, "L2" or "IP" (inner product)
        INDEX_KEY: FAISS index factory key; "Flat" is the exact variant
        QUERY_PARAMS: FAISS ParameterSpace string applied to trained indexes

        EXHAUST_THRESHOLD: Unindexed vectors tolerated before a rebuild
        MAX_TRAIN: Lower bound of the training sample once data allows it
        BUILD_INTERVAL_SEC: Period of the background index builder

        SEARCH_WIDTH: Candidates fetched from the index before refinement
        DISTANCE_THRESHOLD: Results worse than this are reported as misses

        INITIAL_CAPACITY: Vectors preallocated in the in-memory mirror
        FSYNC_ON_APPEND: fsync the log after every append batch
        OMP_NUM_THREADS: OpenMP threads used by FAISS

        LOG_LEVEL: Logging level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
        LOG_FORMAT: Log format (json/text)
        LOG_FILE_PATH: Path for log file output (optional)
    """

    # Application
    APP_NAME: str = "VectoDB"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Store Configuration
    WORK_DIR: str = "./vectodb_data"
    VECTOR_DIMENSION: int = 128
    METRIC: str = "L2"
    INDEX_KEY: str = "Flat"
    QUERY_PARAMS: str = ""

    # Index Lifecycle
    EXHAUST_THRESHOLD: int = 1000
    MAX_TRAIN: int = 160000
    BUILD_INTERVAL_SEC: float = 5.0

    # Search
    SEARCH_WIDTH: int = 100
    DISTANCE_THRESHOLD: Optional[float] = None

    # Runtime
    INITIAL_CAPACITY: int = 1024
    FSYNC_ON_APPEND: bool = False
    OMP_NUM_THREADS: int = 1

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    LOG_FILE_PATH: Optional[str] = None

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate logging level is a supported value.

        Converts to uppercase for consistency.

        Raises:
            ValueError: If log level is not supported
        """
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {valid_levels}")
        return v.upper()

    @field_validator("METRIC")
    @classmethod
    def validate_metric(cls, v: str) -> str:
        """Validate the metric selector, accepting "ip"/"l2" in any case."""
        if v.upper() not in ("IP", "L2"):
            raise ValueError("METRIC must be one of: ['IP', 'L2']")
        return v.upper()

    @field_validator("SEARCH_WIDTH", "MAX_TRAIN", "INITIAL_CAPACITY", "OMP_NUM_THREADS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be a positive integer")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


def get_settings() -> Settings:
    """Get application settings instance"""
    return Settings()


settings = Settings()
