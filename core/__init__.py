"""
Core utilities and configuration for the Sui data loader.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Document store client and collection helpers
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities
    sui_client: Async Sui JSON-RPC read client

Usage:
    from core.config import get_settings, load_settings
    from core.database import create_client, get_database
    from core.exceptions import APIExtractionError, NetworkError
    from core.logging import setup_logging
    from core.sui_client import SuiReadApi

Example:
    # Initialize logging
    setup_logging()

    # Talk to the chain
    async with SuiReadApi(get_settings().SUI_RPC_URL) as sui:
        latest = await sui.ping()
"""

__all__ = [
    "get_settings",
    "load_settings",
    "setup_logging",
    "SuiReadApi",
    "create_client",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "APIExtractionError",
    "NetworkError",
    "RateLimitError",
    "RPCError",
    "RPCResponseError",
    "RequestLimitError",
    "TransformationError",
    "BulkResponseMismatchError",
    "LoadError",
    "DocumentStoreError",
    "MissingObjectSnapshotError",
    "CheckpointError",
    "ConfigurationError",
    "RetryableError",
    "NonRetryableError",
]
