"""
Application configuration using Pydantic Settings
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from core.exceptions import ConfigurationError

# Hard limit of the Sui JSON-RPC endpoints for paged and multi-get queries
SUI_QUERY_MAX_RESULT_LIMIT = 50


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Sui RPC
    SUI_RPC_URL: str = "https://fullnode.mainnet.sui.io:443"
    SUI_REQUEST_TIMEOUT: float = Field(30.0, gt=0)
    SUI_QUERY_DESCENDING: bool = False

    # Document store
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DATABASE: str = "sui"
    MONGO_COLLECTION: str = "objects"
    CHECKPOINT_COLLECTION: str = "etl_checkpoints"
    SOURCE_NAME: str = "sui_object_changes"

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FILTERS: Optional[str] = None  # e.g. "httpx=DEBUG,ingestion.loaders=WARNING"

    # ETL Configuration
    EXTRACT_RETRY_DELAY: float = Field(0.5, ge=0)
    EXTRACT_STALL_DELAY: float = Field(10.0, ge=0)
    TRANSFORM_BATCH_SIZE: int = Field(SUI_QUERY_MAX_RESULT_LIMIT, ge=1, le=SUI_QUERY_MAX_RESULT_LIMIT)
    TRANSFORM_BATCH_TIMEOUT: float = Field(1.0, gt=0)
    LOAD_BATCH_SIZE: int = Field(64, ge=1)
    LOAD_BATCH_TIMEOUT: float = Field(1.0, gt=0)


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build settings from the environment and an optional env file.

    Raises:
        ConfigurationError: If any value fails validation
    """
    try:
        if env_file:
            return Settings(_env_file=env_file)
        return Settings()
    except ValueError as e:
        raise ConfigurationError(
            "Invalid configuration",
            context={"env_file": env_file or ".env"},
            original_exception=e
        )


@lru_cache
def get_settings() -> Settings:
    """
    Process-wide default settings, built on first use.

    Raises:
        ConfigurationError: If any value fails validation
    """
    return load_settings()
